"""
Explicit app state – single source of truth for runtime lifecycle.
Created in lifespan, attached to app.state.state; injected into routes via Depends(get_state).
"""
import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from modules.calibration_store import CalibrationStore, JsonFileStore, KeyValueStore
from modules.calibration_workflow import CalibrationWorkflow, WorkflowSnapshot, run_countdown
from modules.camera import FrameSource, OpenCvCamera
from modules.config import AppConfig, PostureSettings
from modules.monitor import PostureMonitor
from modules.notifier import NotificationService
from modules.pose.adapter import PoseModelAdapter
from modules.pose.base import PoseProvider
from modules.posture_detector import ClassificationResult, PostureDetectionService

logger = logging.getLogger(__name__)


class AppState:
	"""
	Holds all runtime services for the app. Populated by build_state(); routes and
	the lifespan receive this instance instead of reaching for module globals.
	"""

	cfg: AppConfig
	settings: PostureSettings

	camera: FrameSource
	adapter: PoseModelAdapter
	store: CalibrationStore
	detector: PostureDetectionService
	notifier: NotificationService
	workflow: CalibrationWorkflow
	monitor: PostureMonitor

	# Countdown driver task (set while the calibration countdown is running)
	countdown_task: Optional[asyncio.Task] = None

	# Fire-and-forget event sink for WebSocket clients: publish(event_type, payload)
	publish: Callable[[str, Any], None]

	def __init__(self, cfg: AppConfig) -> None:
		self.cfg = cfg
		self.settings = cfg.posture
		self.publish = lambda _type, _payload: None

	def get_settings(self) -> PostureSettings:
		return self.settings

	def apply_settings(self, settings: PostureSettings) -> None:
		"""Swap the settings object; the detector re-reads it on its next call."""
		self.settings = settings
		self.notifier.set_enabled(settings.enable_notifications)
		self.notifier.set_cooldown(settings.notification_interval_ms)

	def start_countdown(self) -> bool:
		if not self.workflow.start():
			return False
		self.cancel_countdown()
		self.countdown_task = asyncio.create_task(run_countdown(self.workflow))
		return True

	def cancel_countdown(self) -> None:
		task, self.countdown_task = self.countdown_task, None
		if task is not None and not task.done():
			task.cancel()


def build_state(
	cfg: AppConfig,
	*,
	provider_factory: Optional[Callable[[], PoseProvider]] = None,
	camera: Optional[FrameSource] = None,
	kv: Optional[KeyValueStore] = None,
	publish: Optional[Callable[[str, Any], None]] = None,
) -> AppState:
	"""Wire the services together. Tests inject fakes for the model, camera and storage."""
	state = AppState(cfg)
	if publish is not None:
		state.publish = publish

	if provider_factory is None:
		def provider_factory() -> PoseProvider:
			from modules.pose.mediapipe_provider import MediaPipePoseProvider

			return MediaPipePoseProvider(
				model_complexity=cfg.pose.model_complexity,
				min_detection_confidence=cfg.pose.min_detection_confidence,
				min_tracking_confidence=cfg.pose.min_tracking_confidence,
			)

	state.camera = camera or OpenCvCamera(cfg.camera.index, cfg.camera.width, cfg.camera.height)
	state.adapter = PoseModelAdapter(provider_factory)
	state.store = CalibrationStore(
		kv or JsonFileStore(Path(cfg.storage.calibration_path)),
		key=cfg.storage.calibration_key,
	)
	state.detector = PostureDetectionService(state.adapter, state.store, state.get_settings)
	state.notifier = NotificationService(
		lambda msg: state.publish("alert", {"msg": msg}),
		enabled=state.settings.enable_notifications,
		cooldown_ms=state.settings.notification_interval_ms,
	)

	def _on_change(snap: WorkflowSnapshot) -> None:
		state.publish("calibration", snap.as_dict())

	def _on_complete() -> None:
		logger.info("[Calibration] complete")
		state.publish("calibration_complete", {"baseline": state.detector.baseline.to_record()})

	state.workflow = CalibrationWorkflow(
		state.detector,
		state.camera.read_rgb,
		on_complete=_on_complete,
		on_change=_on_change,
	)

	def _on_result(result: ClassificationResult) -> None:
		state.publish("status", result.as_dict())

	state.monitor = PostureMonitor(
		state.camera,
		state.detector,
		state.notifier,
		workflow=state.workflow,
		interval_seconds=cfg.monitor.interval_seconds,
		on_result=_on_result,
	)
	return state
