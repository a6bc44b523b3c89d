from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from modules.calibration_workflow import CalibrationWorkflow
from modules.camera import FrameSource
from modules.errors import BusyError, CameraError
from modules.notifier import NotificationService, message_for
from modules.posture_detector import ClassificationResult, PostureDetectionService

logger = logging.getLogger(__name__)


class PostureMonitor:
	"""
	Periodic detection driver: frame -> classify -> alert -> publish.

	Each cycle runs to completion before the next one is scheduled, so
	classification never overlaps itself. A bad frame or a missing camera never
	stops the loop.
	"""

	def __init__(
		self,
		camera: FrameSource,
		detector: PostureDetectionService,
		notifier: NotificationService,
		workflow: Optional[CalibrationWorkflow] = None,
		interval_seconds: float = 0.5,
		on_result: Optional[Callable[[ClassificationResult], None]] = None,
	) -> None:
		self._camera = camera
		self._detector = detector
		self._notifier = notifier
		self._workflow = workflow
		self.interval_seconds = max(0.05, float(interval_seconds))
		self._on_result = on_result
		self._task: Optional[asyncio.Task] = None
		self.last_result: Optional[ClassificationResult] = None
		self._last_camera_error: Optional[str] = None

	@property
	def running(self) -> bool:
		return self._task is not None and not self._task.done()

	def _should_skip(self) -> bool:
		if not self._detector.is_model_ready():
			return True
		if self._detector.is_calibration_needed():
			return True
		return self._workflow is not None and self._workflow.is_open

	async def run_once(self) -> Optional[ClassificationResult]:
		"""One detection cycle. Returns None when the cycle was skipped."""
		if self._should_skip():
			return None
		try:
			frame = await self._camera.read_rgb()
		except CameraError as e:
			if str(e) != self._last_camera_error:
				logger.warning("[Monitor] camera: %s", e)
				self._last_camera_error = str(e)
			return None
		self._last_camera_error = None

		try:
			result = await self._detector.classify(frame)
		except BusyError:
			# Calibration holds the detector; try again next cycle.
			return None

		self.last_result = result
		if result.status.is_bad:
			msg = message_for(result.status)
			if msg:
				self._notifier.notify_bad_posture(msg)
		if self._on_result is not None:
			try:
				self._on_result(result)
			except Exception as e:
				logger.warning("[Monitor] on_result listener failed: %s", e)
		return result

	async def _loop(self) -> None:
		logger.info("[Monitor] started (interval=%.2fs)", self.interval_seconds)
		while True:
			try:
				await self.run_once()
			except Exception:
				# A failing cycle is logged; the next one runs on schedule.
				logger.exception("[Monitor] detection cycle failed")
			await asyncio.sleep(self.interval_seconds)

	def start(self) -> None:
		if self.running:
			return
		self._task = asyncio.create_task(self._loop())

	async def stop(self) -> None:
		task, self._task = self._task, None
		if task is None:
			return
		task.cancel()
		try:
			await task
		except asyncio.CancelledError:
			pass
		logger.info("[Monitor] stopped")
