import asyncio

import pytest

from modules.errors import BusyError, CameraError
from modules.monitor import PostureMonitor
from modules.notifier import NotificationService
from modules.posture_detector import PostureStatus
from tests.fakes import make_frame, make_landmarks


@pytest.fixture
def alerts():
	return []


@pytest.fixture
def notifier(alerts):
	return NotificationService(alerts.append, cooldown_ms=60000, clock=lambda: 0.0)


@pytest.fixture
def results():
	return []


@pytest.fixture
def monitor(camera, detector, notifier, results):
	return PostureMonitor(camera, detector, notifier, interval_seconds=0.05, on_result=results.append)


def _calibrate(detector):
	assert asyncio.run(detector.calibrate(make_frame())) is True


def test_skips_until_calibrated(monitor, camera, results):
	assert asyncio.run(monitor.run_once()) is None
	assert camera.reads == 0
	assert results == []


def test_good_posture_publishes_without_alert(monitor, detector, alerts, results):
	_calibrate(detector)
	res = asyncio.run(monitor.run_once())
	assert res.status is PostureStatus.GOOD
	assert results == [res]
	assert monitor.last_result is res
	assert alerts == []


def test_bad_posture_alerts_once_per_window(monitor, detector, provider, alerts):
	_calibrate(detector)
	provider.landmarks = make_landmarks(neck_angle=30.0)
	for _ in range(3):
		res = asyncio.run(monitor.run_once())
		assert res.status is PostureStatus.SLOUCHING
	assert len(alerts) == 1
	assert "slouching" in alerts[0]


def test_camera_failure_skips_cycle(monitor, detector, camera, results):
	_calibrate(detector)
	camera.error = CameraError("camera 0 could not be opened")
	assert asyncio.run(monitor.run_once()) is None
	assert results == []
	camera.error = None
	assert asyncio.run(monitor.run_once()) is not None


def test_busy_detector_skips_cycle(monitor, detector, results, monkeypatch):
	_calibrate(detector)

	async def busy(_frame):
		raise BusyError("calibration in progress")

	monkeypatch.setattr(detector, "classify", busy)
	assert asyncio.run(monitor.run_once()) is None
	assert results == []


def test_listener_failure_does_not_break_cycle(camera, detector, notifier):
	_calibrate(detector)

	def boom(_result):
		raise RuntimeError("listener gone")

	m = PostureMonitor(camera, detector, notifier, on_result=boom)
	assert asyncio.run(m.run_once()).status is PostureStatus.GOOD


def test_start_and_stop(monitor, detector, camera):
	_calibrate(detector)

	async def scenario():
		monitor.start()
		assert monitor.running
		await asyncio.sleep(0.12)
		await monitor.stop()
		assert not monitor.running

	asyncio.run(scenario())
	assert camera.reads >= 1


def test_loop_survives_unexpected_camera_exception(monitor, detector, camera, results):
	_calibrate(detector)
	camera.error = RuntimeError("cv2 error: cvtColor")

	async def scenario():
		monitor.start()
		await asyncio.sleep(0.12)
		assert monitor.running
		camera.error = None
		await asyncio.sleep(0.12)
		await monitor.stop()

	asyncio.run(scenario())
	assert results
	assert results[-1].status is PostureStatus.GOOD
