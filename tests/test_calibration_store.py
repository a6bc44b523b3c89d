import json

import pytest

from modules.calibration_store import (
	CalibrationBaseline,
	CalibrationState,
	CalibrationStore,
	JsonFileStore,
	MemoryStore,
)
from modules.errors import StorageError
from modules.pose.types import PostureMetrics


def _metrics(shoulder=2.0, neck=11.0, torso=None):
	return PostureMetrics(shoulder_tilt_deg=shoulder, neck_angle_deg=neck, torso_lean_deg=torso, timestamp=50.0)


@pytest.fixture(params=["memory", "file"])
def cal_store(request, tmp_path):
	if request.param == "memory":
		return CalibrationStore(MemoryStore())
	return CalibrationStore(JsonFileStore(tmp_path / "calibration.json"))


def test_empty_store_is_not_calibrated(cal_store):
	assert cal_store.load_baseline() is None
	assert cal_store.load_state() is CalibrationState.NOT_CALIBRATED


def test_save_then_load_round_trips(cal_store):
	saved = cal_store.save_baseline(_metrics(torso=4.5))
	loaded = cal_store.load_baseline()
	assert loaded == saved
	assert loaded.shoulder_tilt_deg == 2.0
	assert loaded.neck_angle_deg == 11.0
	assert loaded.torso_lean_deg == 4.5
	assert cal_store.load_state() is CalibrationState.CALIBRATED


def test_save_overwrites_previous_baseline(cal_store):
	cal_store.save_baseline(_metrics(shoulder=1.0))
	cal_store.save_baseline(_metrics(shoulder=9.0))
	assert cal_store.load_baseline().shoulder_tilt_deg == 9.0


def test_clear_removes_baseline(cal_store):
	cal_store.save_baseline(_metrics())
	cal_store.clear()
	assert cal_store.load_baseline() is None
	assert cal_store.load_state() is CalibrationState.NOT_CALIBRATED


def test_clear_without_baseline_is_a_noop(cal_store):
	cal_store.clear()
	cal_store.clear()
	assert cal_store.load_baseline() is None


def test_missing_timestamp_is_filled_in():
	store = CalibrationStore(MemoryStore())
	saved = store.save_baseline(CalibrationBaseline(shoulder_tilt_deg=1.0, neck_angle_deg=2.0))
	assert saved.captured_at is not None


def test_baseline_requires_core_metrics():
	with pytest.raises(ValueError):
		CalibrationBaseline.from_metrics(PostureMetrics(shoulder_tilt_deg=None, neck_angle_deg=3.0))


def test_file_store_keeps_other_keys(tmp_path):
	path = tmp_path / "data" / "store.json"
	kv = JsonFileStore(path)
	kv.set("other", {"a": 1})
	CalibrationStore(kv).save_baseline(_metrics())
	CalibrationStore(kv).clear()
	assert json.loads(path.read_text(encoding="utf-8")) == {"other": {"a": 1}}


def test_malformed_file_raises_storage_error(tmp_path):
	path = tmp_path / "calibration.json"
	path.write_text("{not json", encoding="utf-8")
	with pytest.raises(StorageError):
		CalibrationStore(JsonFileStore(path)).load_baseline()


def test_corrupt_file_is_moved_aside_on_save(tmp_path):
	path = tmp_path / "calibration.json"
	path.write_text("{not json", encoding="utf-8")
	store = CalibrationStore(JsonFileStore(path))
	store.save_baseline(_metrics())
	assert store.load_state() is CalibrationState.CALIBRATED
	assert (tmp_path / "calibration.json.corrupt").read_text(encoding="utf-8") == "{not json"


def test_clear_recovers_from_corrupt_file(tmp_path):
	path = tmp_path / "calibration.json"
	path.write_text("[1, 2]", encoding="utf-8")
	store = CalibrationStore(JsonFileStore(path))
	store.clear()
	assert store.load_baseline() is None
	assert (tmp_path / "calibration.json.corrupt").exists()


def test_corrupt_baseline_field_raises_storage_error():
	kv = MemoryStore()
	kv.set("posture_calibration", {"calibrated": True, "baseline": {"shoulder_tilt_deg": "x", "neck_angle_deg": 1.0}})
	with pytest.raises(StorageError):
		CalibrationStore(kv).load_baseline()


def test_unreadable_path_raises_storage_error(tmp_path):
	# A directory where the file should be.
	with pytest.raises(StorageError):
		CalibrationStore(JsonFileStore(tmp_path)).save_baseline(_metrics())


def test_flag_false_means_no_baseline():
	kv = MemoryStore()
	kv.set("posture_calibration", {"calibrated": False, "baseline": {"shoulder_tilt_deg": 1.0, "neck_angle_deg": 1.0}})
	assert CalibrationStore(kv).load_baseline() is None
