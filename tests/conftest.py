import asyncio
import sys
from pathlib import Path

import pytest

# Repo root on sys.path so `modules.*` imports work without installing.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from modules.calibration_store import CalibrationStore, MemoryStore  # noqa: E402
from modules.pose.adapter import PoseModelAdapter  # noqa: E402
from modules.posture_detector import PostureDetectionService  # noqa: E402
from tests.fakes import FakeCamera, FakeProvider, SettingsHolder  # noqa: E402


@pytest.fixture
def provider() -> FakeProvider:
	return FakeProvider()


@pytest.fixture
def camera() -> FakeCamera:
	return FakeCamera()


@pytest.fixture
def settings() -> SettingsHolder:
	return SettingsHolder()


@pytest.fixture
def store() -> CalibrationStore:
	return CalibrationStore(MemoryStore())


@pytest.fixture
def adapter(provider: FakeProvider) -> PoseModelAdapter:
	return PoseModelAdapter(lambda: provider)


@pytest.fixture
def detector(adapter, store, settings) -> PostureDetectionService:
	svc = PostureDetectionService(adapter, store, settings, clock=lambda: 1000.0)
	asyncio.run(svc.load_model())
	return svc
