import asyncio

import pytest

from modules.calibration_workflow import COUNTDOWN_START, CalibrationWorkflow, WorkflowStep, run_countdown
from modules.errors import CameraError
from modules.pose.adapter import PoseModelAdapter
from modules.pose.types import KeypointName
from modules.posture_detector import PostureDetectionService
from tests.fakes import FakeProvider, SettingsHolder, make_landmarks


class _Recorder:
	def __init__(self):
		self.snapshots = []
		self.completions = 0

	def on_change(self, snap):
		self.snapshots.append(snap)

	def on_complete(self):
		self.completions += 1

	@property
	def steps(self):
		return [s.step for s in self.snapshots]


@pytest.fixture
def recorder():
	return _Recorder()


@pytest.fixture
def workflow(detector, camera, recorder):
	wf = CalibrationWorkflow(
		detector,
		camera.read_rgb,
		on_complete=recorder.on_complete,
		on_change=recorder.on_change,
	)
	wf.open()
	return wf


def _tick(wf, n):
	async def go():
		for _ in range(n):
			await wf.tick()

	asyncio.run(go())


def test_open_shows_instructions(workflow):
	assert workflow.is_open
	assert workflow.step is WorkflowStep.INSTRUCTIONS
	assert workflow.countdown == COUNTDOWN_START == 5


def test_countdown_then_successful_capture(workflow, detector, camera, recorder):
	assert workflow.start()
	assert workflow.step is WorkflowStep.COUNTDOWN
	_tick(workflow, 4)
	assert workflow.countdown == 1
	assert camera.reads == 0
	_tick(workflow, 1)
	assert workflow.step is WorkflowStep.SUCCESS
	assert camera.reads == 1
	assert not detector.is_calibration_needed()
	assert WorkflowStep.CAPTURING in recorder.steps
	assert recorder.completions == 1


def test_completion_signal_fires_once(workflow, recorder):
	workflow.start()
	_tick(workflow, 8)
	assert workflow.step is WorkflowStep.SUCCESS
	assert workflow.start() is False
	assert recorder.completions == 1


def test_dismissed_countdown_never_captures(workflow, detector, camera, store):
	workflow.start()
	_tick(workflow, 2)
	assert workflow.countdown == 3
	workflow.dismiss()
	_tick(workflow, 5)
	assert camera.reads == 0
	assert store.load_baseline() is None
	assert detector.is_calibration_needed()
	assert workflow.step is WorkflowStep.INSTRUCTIONS
	assert workflow.countdown == 5
	assert not workflow.is_open


def test_failed_capture_returns_to_instructions(workflow, provider, recorder, detector):
	provider.landmarks = make_landmarks(omit=(KeypointName.LEFT_SHOULDER,))
	workflow.start()
	_tick(workflow, 5)
	assert workflow.step is WorkflowStep.INSTRUCTIONS
	assert workflow.countdown == 5
	assert "no clear skeleton detected" in workflow.error
	assert WorkflowStep.FAILED in recorder.steps
	assert recorder.completions == 0
	assert detector.is_calibration_needed()

	# user retries
	provider.landmarks = make_landmarks()
	assert workflow.start()
	assert workflow.error is None
	_tick(workflow, 5)
	assert workflow.step is WorkflowStep.SUCCESS


def test_camera_failure_is_reported(workflow, camera):
	camera.error = CameraError("camera 0 could not be opened")
	workflow.start()
	_tick(workflow, 5)
	assert workflow.step is WorkflowStep.INSTRUCTIONS
	assert workflow.error.startswith("no camera")


def test_unexpected_camera_exception_does_not_strand_capture(workflow, camera):
	camera.error = RuntimeError("driver crashed")
	workflow.start()
	_tick(workflow, 5)
	assert workflow.step is WorkflowStep.INSTRUCTIONS
	assert workflow.error.startswith("no camera")
	camera.error = None
	assert workflow.start() is True
	_tick(workflow, 5)
	assert workflow.step is WorkflowStep.SUCCESS


def test_unexpected_calibrate_exception_is_reported(workflow, detector, monkeypatch):
	async def broken(_frame):
		raise ValueError("bad landmarks")

	monkeypatch.setattr(detector, "calibrate", broken)
	workflow.start()
	_tick(workflow, 5)
	assert workflow.step is WorkflowStep.INSTRUCTIONS
	assert "bad landmarks" in workflow.error
	assert workflow.start() is True


def test_reopen_resets_countdown(workflow):
	workflow.start()
	_tick(workflow, 3)
	workflow.open()
	assert workflow.step is WorkflowStep.INSTRUCTIONS
	assert workflow.countdown == 5
	_tick(workflow, 1)
	assert workflow.countdown == 5


def test_start_requires_open_instructions(detector, camera):
	wf = CalibrationWorkflow(detector, camera.read_rgb)
	assert wf.start() is False
	wf.open()
	assert wf.start() is True
	assert wf.start() is False


def test_model_is_loaded_on_demand(camera, store):
	provider = FakeProvider()
	detector = PostureDetectionService(PoseModelAdapter(lambda: provider), store, SettingsHolder())
	wf = CalibrationWorkflow(detector, camera.read_rgb)
	wf.open()
	wf.start()
	_tick(wf, 5)
	assert detector.is_model_ready()
	assert wf.step is WorkflowStep.SUCCESS


def test_model_load_failure_is_reported(camera, store):
	def factory():
		raise OSError("weights missing")

	detector = PostureDetectionService(PoseModelAdapter(factory), store, SettingsHolder())
	wf = CalibrationWorkflow(detector, camera.read_rgb)
	wf.open()
	wf.start()
	_tick(wf, 5)
	assert wf.step is WorkflowStep.INSTRUCTIONS
	assert "pose model" in wf.error


def test_run_countdown_drives_to_capture(workflow):
	sleeps = []

	async def fake_sleep(seconds):
		sleeps.append(seconds)

	workflow.start()
	asyncio.run(run_countdown(workflow, sleep=fake_sleep))
	assert sleeps == [1.0] * 5
	assert workflow.step is WorkflowStep.SUCCESS


def test_run_countdown_stops_when_dismissed(workflow, camera):
	async def scenario():
		ticks = []

		async def fake_sleep(seconds):
			ticks.append(seconds)
			if len(ticks) == 3:
				workflow.dismiss()

		workflow.start()
		await run_countdown(workflow, sleep=fake_sleep)
		return ticks

	ticks = asyncio.run(scenario())
	assert len(ticks) == 3
	assert camera.reads == 0
	assert workflow.step is WorkflowStep.INSTRUCTIONS


def test_cancelling_countdown_task_has_no_side_effects(workflow, camera):
	async def scenario():
		workflow.start()
		task = asyncio.ensure_future(run_countdown(workflow, interval=10.0))
		await asyncio.sleep(0)
		task.cancel()
		with pytest.raises(asyncio.CancelledError):
			await task

	asyncio.run(scenario())
	assert workflow.step is WorkflowStep.COUNTDOWN
	assert workflow.countdown == 5
	assert camera.reads == 0
