from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from modules.errors import InferenceError, ModelLoadError, ModelNotReadyError
from modules.pose.base import PoseProvider
from modules.pose.types import LandmarkSet

logger = logging.getLogger(__name__)


def _check_frame(frame: Any) -> None:
	shape = getattr(frame, "shape", None)
	if shape is None or len(shape) != 3:
		raise InferenceError(f"expected an HxWx3 RGB frame, got shape={shape!r}")
	h, w, c = (int(v) for v in shape)
	if h <= 0 or w <= 0 or c != 3:
		raise InferenceError(f"malformed frame shape={tuple(shape)!r}")


class PoseModelAdapter:
	"""
	Owns the lifecycle of one pose provider.

	`provider_factory` builds a ready-to-use PoseProvider; it runs in a worker
	thread because model construction can take seconds. Loading is idempotent:
	concurrent callers share the in-flight load, and a failed load leaves the
	adapter unloaded so it can be retried.
	"""

	def __init__(self, provider_factory: Callable[[], PoseProvider]) -> None:
		self._factory = provider_factory
		self._provider: Optional[PoseProvider] = None
		self._load_task: Optional[asyncio.Task] = None
		self._last_error: Optional[str] = None

	def is_model_ready(self) -> bool:
		return self._provider is not None

	@property
	def last_error(self) -> Optional[str]:
		return self._last_error

	@property
	def backend(self) -> Optional[str]:
		return self._provider.name() if self._provider is not None else None

	async def load_model(self) -> None:
		if self._provider is not None:
			return
		if self._load_task is None or self._load_task.done():
			self._load_task = asyncio.ensure_future(self._load())
		# shield: a cancelled waiter must not cancel the shared load
		await asyncio.shield(self._load_task)

	async def _load(self) -> None:
		t0 = time.monotonic()
		try:
			provider = await asyncio.to_thread(self._factory)
		except Exception as e:
			self._last_error = repr(e)
			logger.warning("[Pose] model load failed: %s", e)
			raise ModelLoadError(f"pose model failed to load: {e}") from e
		self._provider = provider
		self._last_error = None
		logger.info("[Pose] %s ready in %.2fs", provider.name(), time.monotonic() - t0)

	async def detect(self, frame: Any, t_host: Optional[float] = None) -> LandmarkSet:
		provider = self._provider
		if provider is None:
			raise ModelNotReadyError("detect() called before the pose model finished loading")
		_check_frame(frame)
		try:
			return await asyncio.to_thread(provider.infer_rgb, frame, t_host)
		except InferenceError:
			raise
		except Exception as e:
			raise InferenceError(f"pose inference failed: {e}") from e

	def close(self) -> None:
		provider, self._provider = self._provider, None
		if provider is not None:
			provider.close()
