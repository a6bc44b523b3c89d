import asyncio

import numpy as np
import pytest

from modules.camera import OpenCvCamera
from modules.errors import CameraError


class _FakeCapture:
	def __init__(self, result):
		self.result = result
		self.released = False

	def read(self):
		if isinstance(self.result, Exception):
			raise self.result
		return self.result

	def release(self):
		self.released = True


def _camera_with(result) -> OpenCvCamera:
	cam = OpenCvCamera(index=0)
	cam._cap = _FakeCapture(result)
	return cam


def test_frame_is_converted_to_rgb():
	bgr = np.zeros((4, 6, 3), dtype=np.uint8)
	bgr[..., 0] = 255
	cam = _camera_with((True, bgr))
	rgb = asyncio.run(cam.read_rgb())
	assert rgb.shape == (4, 6, 3)
	assert rgb[0, 0].tolist() == [0, 0, 255]
	assert cam.get_status()["frames"] == 1


def test_missing_frame_raises_camera_error():
	cam = _camera_with((False, None))
	with pytest.raises(CameraError):
		asyncio.run(cam.read_rgb())
	assert cam.get_status()["error"] == "camera returned no frame"


def test_conversion_failure_raises_camera_error():
	cam = _camera_with((True, np.zeros((4, 6), dtype=np.uint8)))
	with pytest.raises(CameraError):
		asyncio.run(cam.read_rgb())


def test_driver_exception_raises_camera_error():
	cam = _camera_with(OSError("device unplugged"))
	with pytest.raises(CameraError, match="device unplugged"):
		asyncio.run(cam.read_rgb())


def test_close_releases_capture():
	cam = _camera_with((False, None))
	cap = cam._cap
	cam.close()
	assert cap.released
	assert cam.get_status()["running"] is False
