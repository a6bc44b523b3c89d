"""
Posture detection service.

Owns the in-memory calibration baseline and turns frames into a posture
status. One calibrate/classify call may be in flight at a time; a second call
while one is pending fails fast with BusyError.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, Optional

from modules.calibration_store import CalibrationBaseline, CalibrationState, CalibrationStore
from modules.config import PostureSettings
from modules.errors import BusyError, CalibrationDataInsufficient, InferenceError, StorageError
from modules.pose.adapter import PoseModelAdapter
from modules.pose.pose_metrics import compute_metrics
from modules.pose.types import PostureMetrics

logger = logging.getLogger(__name__)


class PostureStatus(str, Enum):
	GOOD = "good"
	SLOUCHING = "slouching"
	SHOULDER_MISALIGNED = "shoulder_misaligned"
	UNKNOWN = "unknown"

	@property
	def is_bad(self) -> bool:
		return self in (PostureStatus.SLOUCHING, PostureStatus.SHOULDER_MISALIGNED)


class Lifecycle(str, Enum):
	UNINITIALIZED = "uninitialized"
	READY_NOT_CALIBRATED = "ready_not_calibrated"
	READY_CALIBRATED = "ready_calibrated"


@dataclass(frozen=True)
class ClassificationResult:
	status: PostureStatus
	metrics: Optional[PostureMetrics] = None
	reason: Optional[str] = None
	shoulder_deviation_deg: Optional[float] = None
	neck_deviation_deg: Optional[float] = None

	def as_dict(self) -> Dict[str, Any]:
		return {
			"status": self.status.value,
			"metrics": self.metrics.as_dict() if self.metrics else None,
			"reason": self.reason,
			"shoulder_deviation_deg": self.shoulder_deviation_deg,
			"neck_deviation_deg": self.neck_deviation_deg,
		}


class PostureDetectionService:
	def __init__(
		self,
		adapter: PoseModelAdapter,
		store: CalibrationStore,
		get_settings: Callable[[], PostureSettings],
		clock: Callable[[], float] = time.time,
	) -> None:
		self._adapter = adapter
		self._store = store
		self._get_settings = get_settings
		self._clock = clock
		self._busy = False
		self.last_calibration_error: Optional[str] = None

		self._baseline: Optional[CalibrationBaseline] = None
		try:
			self._baseline = store.load_baseline()
		except StorageError as e:
			# Degrade to "needs calibration" rather than trusting a corrupt record.
			logger.warning("[Detector] could not load calibration, recalibration required: %s", e)
			self._baseline = None
		self._state = CalibrationState.CALIBRATED if self._baseline is not None else CalibrationState.NOT_CALIBRATED

	# -- model -------------------------------------------------------------

	async def load_model(self) -> None:
		await self._adapter.load_model()

	def is_model_ready(self) -> bool:
		return self._adapter.is_model_ready()

	# -- calibration state ---------------------------------------------------

	@property
	def baseline(self) -> Optional[CalibrationBaseline]:
		return self._baseline

	@property
	def calibration_state(self) -> CalibrationState:
		return self._state

	@property
	def lifecycle(self) -> Lifecycle:
		if not self.is_model_ready():
			return Lifecycle.UNINITIALIZED
		if self._state is CalibrationState.CALIBRATED:
			return Lifecycle.READY_CALIBRATED
		return Lifecycle.READY_NOT_CALIBRATED

	@property
	def busy(self) -> bool:
		return self._busy

	def is_calibration_needed(self) -> bool:
		return self._state is CalibrationState.NOT_CALIBRATED

	@contextmanager
	def _exclusive(self, op: str) -> Iterator[None]:
		if self._busy:
			raise BusyError(f"{op} rejected: another posture operation is in flight")
		self._busy = True
		try:
			yield
		finally:
			self._busy = False

	def _require_calibration_metrics(self, metrics: PostureMetrics) -> None:
		missing = []
		if metrics.shoulder_tilt_deg is None:
			missing.append("shoulders")
		if metrics.neck_angle_deg is None:
			missing.append("ears")
		if missing:
			raise CalibrationDataInsufficient(
				"no clear skeleton detected (missing or low-confidence: " + ", ".join(missing) + ")"
			)

	async def calibrate(self, frame: Any) -> bool:
		"""
		Capture `frame` as the new baseline.

		Returns False (baseline untouched) when the frame does not show a
		confident upper body. StorageError propagates; in-memory state only
		changes after the store write succeeded.
		"""
		with self._exclusive("calibrate"):
			settings = self._get_settings()
			try:
				landmarks = await self._adapter.detect(frame, t_host=self._clock())
				metrics = compute_metrics(landmarks, settings.detection_confidence)
				self._require_calibration_metrics(metrics)
			except (InferenceError, CalibrationDataInsufficient) as e:
				self.last_calibration_error = str(e)
				logger.info("[Detector] calibration rejected: %s", e)
				return False

			baseline = CalibrationBaseline.from_metrics(metrics, captured_at=self._clock())
			baseline = self._store.save_baseline(baseline)
			self._baseline = baseline
			self._state = CalibrationState.CALIBRATED
			self.last_calibration_error = None
			logger.info(
				"[Detector] calibrated: shoulder=%.1f neck=%.1f torso=%s",
				baseline.shoulder_tilt_deg,
				baseline.neck_angle_deg,
				"n/a" if baseline.torso_lean_deg is None else f"{baseline.torso_lean_deg:.1f}",
			)
			return True

	def clear_calibration_data(self) -> None:
		self._store.clear()
		self._baseline = None
		self._state = CalibrationState.NOT_CALIBRATED

	async def classify(self, frame: Any) -> ClassificationResult:
		"""
		Classify one frame against the baseline.

		Never raises for a frame without a clear skeleton: that is UNKNOWN.
		Shoulder misalignment is checked before slouching and wins when both
		thresholds are exceeded.
		"""
		with self._exclusive("classify"):
			baseline = self._baseline
			if baseline is None:
				return ClassificationResult(PostureStatus.UNKNOWN, reason="not calibrated")

			settings = self._get_settings()
			try:
				landmarks = await self._adapter.detect(frame, t_host=self._clock())
			except InferenceError as e:
				logger.debug("[Detector] frame skipped: %s", e)
				return ClassificationResult(PostureStatus.UNKNOWN, reason="inference failed")

			metrics = compute_metrics(landmarks, settings.detection_confidence)
			if metrics.shoulder_tilt_deg is None or metrics.neck_angle_deg is None:
				return ClassificationResult(PostureStatus.UNKNOWN, metrics=metrics, reason="insufficient keypoints")

			d_shoulder = abs(metrics.shoulder_tilt_deg - baseline.shoulder_tilt_deg)
			d_neck = abs(metrics.neck_angle_deg - baseline.neck_angle_deg)

			if d_shoulder > settings.shoulder_alignment_threshold:
				status = PostureStatus.SHOULDER_MISALIGNED
			elif d_neck > settings.slouch_threshold:
				status = PostureStatus.SLOUCHING
			else:
				status = PostureStatus.GOOD

			return ClassificationResult(
				status,
				metrics=metrics,
				shoulder_deviation_deg=d_shoulder,
				neck_deviation_deg=d_neck,
			)
