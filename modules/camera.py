from __future__ import annotations

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from modules.errors import CameraError

logger = logging.getLogger(__name__)


class FrameSource(ABC):
	"""
	Camera interface. `read_rgb()` returns one HxWx3 uint8 RGB frame or raises CameraError.
	"""

	@abstractmethod
	def name(self) -> str: ...

	@abstractmethod
	def open(self) -> None: ...

	@abstractmethod
	async def read_rgb(self) -> Any: ...

	@abstractmethod
	def close(self) -> None: ...

	@abstractmethod
	def get_status(self) -> Dict[str, Any]: ...


class OpenCvCamera(FrameSource):
	"""
	Local webcam via OpenCV VideoCapture.

	Notes:
	- The capture is opened lazily on first read so the app starts without a camera.
	- Reads run in a worker thread; an asyncio.Lock keeps the monitor loop and the
	  calibration capture from reading the device at the same time.
	"""

	def __init__(self, index: int = 0, width: Optional[int] = None, height: Optional[int] = None) -> None:
		self._index = int(index)
		self._width = width
		self._height = height
		self._cap = None
		self._lock = threading.Lock()
		self._read_lock = asyncio.Lock()
		self._last_error: Optional[str] = None
		self._last_frame_t: Optional[float] = None
		self._frames = 0

	def name(self) -> str:
		return f"opencv:{self._index}"

	def open(self) -> None:
		import cv2

		with self._lock:
			if self._cap is not None:
				return
			cap = cv2.VideoCapture(self._index)
			if not cap.isOpened():
				cap.release()
				self._last_error = f"camera {self._index} could not be opened"
				raise CameraError(self._last_error)
			if self._width:
				cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(self._width))
			if self._height:
				cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(self._height))
			self._cap = cap
			self._last_error = None
			logger.info("[Camera] opened %s", self.name())

	def _read_blocking(self) -> Any:
		import cv2

		self.open()
		try:
			with self._lock:
				ok, bgr = self._cap.read() if self._cap is not None else (False, None)
			rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB) if ok and bgr is not None else None
		except Exception as e:
			# cv2.error and driver failures surface as CameraError like a missing frame.
			self._last_error = f"camera read failed: {e}"
			raise CameraError(self._last_error) from e
		if rgb is None:
			self._last_error = "camera returned no frame"
			raise CameraError(self._last_error)
		self._last_frame_t = time.time()
		self._frames += 1
		return rgb

	async def read_rgb(self) -> Any:
		async with self._read_lock:
			return await asyncio.to_thread(self._read_blocking)

	def close(self) -> None:
		with self._lock:
			cap, self._cap = self._cap, None
		if cap is not None:
			cap.release()
			logger.info("[Camera] closed %s", self.name())

	def get_status(self) -> Dict[str, Any]:
		with self._lock:
			return {
				"name": self.name(),
				"running": self._cap is not None,
				"frames": self._frames,
				"t_last_frame": self._last_frame_t,
				"error": self._last_error,
			}
