"""
User-facing calibration sequence.

    instructions -> countdown(5..1) -> capturing -> success
                                               `-> failed(reason) -> instructions

The workflow is a plain state machine advanced by discrete events: `start()`
(user pressed start), `tick()` (one second elapsed) and `dismiss()` (user
closed the dialog). `run_countdown` is the asyncio driver that produces the
ticks in the server; tests call `tick()` directly.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from modules.errors import BusyError, CameraError, ModelLoadError, StorageError
from modules.posture_detector import PostureDetectionService

logger = logging.getLogger(__name__)

COUNTDOWN_START = 5


class WorkflowStep(str, Enum):
	INSTRUCTIONS = "instructions"
	COUNTDOWN = "countdown"
	CAPTURING = "capturing"
	SUCCESS = "success"
	FAILED = "failed"


@dataclass(frozen=True)
class WorkflowSnapshot:
	step: WorkflowStep
	countdown: int
	error: Optional[str]
	is_open: bool
	session: int

	def as_dict(self) -> Dict[str, Any]:
		return {
			"step": self.step.value,
			"countdown": self.countdown,
			"error": self.error,
			"is_open": self.is_open,
			"session": self.session,
		}


class CalibrationWorkflow:
	def __init__(
		self,
		detector: PostureDetectionService,
		capture_frame: Callable[[], Awaitable[Any]],
		on_complete: Optional[Callable[[], None]] = None,
		on_change: Optional[Callable[[WorkflowSnapshot], None]] = None,
		countdown_start: int = COUNTDOWN_START,
	) -> None:
		self._detector = detector
		self._capture_frame = capture_frame
		self._on_complete = on_complete
		self._on_change = on_change
		self._countdown_start = max(1, int(countdown_start))

		self._step = WorkflowStep.INSTRUCTIONS
		self._countdown = self._countdown_start
		self._error: Optional[str] = None
		self._is_open = False
		self._session = 0
		self._completed = False

	@property
	def step(self) -> WorkflowStep:
		return self._step

	@property
	def countdown(self) -> int:
		return self._countdown

	@property
	def error(self) -> Optional[str]:
		return self._error

	@property
	def is_open(self) -> bool:
		return self._is_open

	@property
	def session(self) -> int:
		return self._session

	def snapshot(self) -> WorkflowSnapshot:
		return WorkflowSnapshot(
			step=self._step,
			countdown=self._countdown,
			error=self._error,
			is_open=self._is_open,
			session=self._session,
		)

	def _emit(self) -> None:
		if self._on_change is None:
			return
		try:
			self._on_change(self.snapshot())
		except Exception as e:
			logger.warning("[Calibration] on_change listener failed: %s", e)

	def _to_instructions(self) -> None:
		self._step = WorkflowStep.INSTRUCTIONS
		self._countdown = self._countdown_start

	# -- user events --------------------------------------------------------

	def open(self) -> None:
		"""(Re-)enter the workflow. Any in-progress countdown is discarded."""
		self._session += 1
		self._to_instructions()
		self._error = None
		self._completed = False
		self._is_open = True
		logger.info("[Calibration] opened (session %d)", self._session)
		self._emit()

	def start(self) -> bool:
		if not self._is_open or self._step is not WorkflowStep.INSTRUCTIONS:
			return False
		self._step = WorkflowStep.COUNTDOWN
		self._countdown = self._countdown_start
		self._error = None
		self._emit()
		return True

	def dismiss(self) -> None:
		"""Close the workflow; a running countdown is cancelled without capturing."""
		if self._step is WorkflowStep.COUNTDOWN:
			logger.info("[Calibration] countdown cancelled at %d", self._countdown)
		self._session += 1
		self._to_instructions()
		self._is_open = False
		self._emit()

	# -- timer events -------------------------------------------------------

	async def tick(self) -> None:
		if self._step is not WorkflowStep.COUNTDOWN:
			return
		self._countdown -= 1
		if self._countdown > 0:
			self._emit()
			return
		self._countdown = 0
		await self._capture()

	async def _capture(self) -> None:
		session = self._session
		self._step = WorkflowStep.CAPTURING
		self._emit()

		try:
			frame = await self._capture_frame()
		except CameraError as e:
			logger.warning("[Calibration] camera unavailable: %s", e)
			self._fail(session, "no camera: could not access the camera, check permissions and try again")
			return
		except Exception:
			logger.exception("[Calibration] unexpected capture failure")
			self._fail(session, "no camera: could not access the camera, check permissions and try again")
			return

		try:
			if not self._detector.is_model_ready():
				await self._detector.load_model()
			ok = await self._detector.calibrate(frame)
		except ModelLoadError as e:
			self._fail(session, f"pose model is not available: {e}")
			return
		except BusyError:
			self._fail(session, "detector busy, please try again")
			return
		except StorageError as e:
			self._fail(session, f"could not save calibration: {e}")
			return
		except Exception as e:
			logger.exception("[Calibration] unexpected calibration failure")
			self._fail(session, f"calibration failed: {e}")
			return

		if session != self._session:
			# Dismissed while the frame was being processed.
			logger.info("[Calibration] result of stale session %d ignored (ok=%s)", session, ok)
			return

		if not ok:
			self._fail(session, self._detector.last_calibration_error or "no clear skeleton detected")
			return

		self._step = WorkflowStep.SUCCESS
		self._error = None
		self._emit()
		if not self._completed:
			self._completed = True
			if self._on_complete is not None:
				self._on_complete()

	def _fail(self, session: int, reason: str) -> None:
		if session != self._session:
			return
		logger.info("[Calibration] failed: %s", reason)
		self._step = WorkflowStep.FAILED
		self._error = reason
		self._emit()
		self._to_instructions()
		self._emit()


async def run_countdown(
	workflow: CalibrationWorkflow,
	interval: float = 1.0,
	sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> None:
	"""
	Tick `workflow` once per `interval` until its countdown ends.

	Stops as soon as the workflow leaves the countdown or a new session starts;
	cancelling the task has no side effects.
	"""
	session = workflow.session
	while workflow.session == session and workflow.step is WorkflowStep.COUNTDOWN:
		await sleep(interval)
		if workflow.session != session:
			return
		await workflow.tick()
