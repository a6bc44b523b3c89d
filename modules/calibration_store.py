"""Calibration baseline persistence on a local key/value store."""
from __future__ import annotations

import json
import logging
import math
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from modules.errors import StorageError
from modules.pose.types import PostureMetrics

logger = logging.getLogger(__name__)


class CalibrationState(str, Enum):
	NOT_CALIBRATED = "not_calibrated"
	CALIBRATED = "calibrated"


@dataclass(frozen=True)
class CalibrationBaseline:
	"""The user's calibrated "good posture" reference metrics."""

	shoulder_tilt_deg: float
	neck_angle_deg: float
	torso_lean_deg: Optional[float] = None
	captured_at: Optional[float] = None

	@classmethod
	def from_metrics(cls, metrics: PostureMetrics, captured_at: Optional[float] = None) -> "CalibrationBaseline":
		if metrics.shoulder_tilt_deg is None or metrics.neck_angle_deg is None:
			raise ValueError("baseline requires shoulder tilt and neck angle")
		return cls(
			shoulder_tilt_deg=float(metrics.shoulder_tilt_deg),
			neck_angle_deg=float(metrics.neck_angle_deg),
			torso_lean_deg=float(metrics.torso_lean_deg) if metrics.torso_lean_deg is not None else None,
			captured_at=captured_at if captured_at is not None else metrics.timestamp,
		)

	def to_record(self) -> Dict[str, Any]:
		return {
			"shoulder_tilt_deg": self.shoulder_tilt_deg,
			"neck_angle_deg": self.neck_angle_deg,
			"torso_lean_deg": self.torso_lean_deg,
			"captured_at": self.captured_at,
		}

	@classmethod
	def from_record(cls, rec: Any) -> "CalibrationBaseline":
		if not isinstance(rec, dict):
			raise StorageError(f"corrupt baseline record: {rec!r}")

		def _num(key: str, required: bool) -> Optional[float]:
			v = rec.get(key)
			if v is None and not required:
				return None
			if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(float(v)):
				raise StorageError(f"corrupt baseline field {key}={v!r}")
			return float(v)

		return cls(
			shoulder_tilt_deg=_num("shoulder_tilt_deg", True),
			neck_angle_deg=_num("neck_angle_deg", True),
			torso_lean_deg=_num("torso_lean_deg", False),
			captured_at=_num("captured_at", False),
		)


class KeyValueStore(ABC):
	"""Minimal JSON-value store. Implementations raise StorageError on failure."""

	@abstractmethod
	def get(self, key: str) -> Optional[Any]: ...

	@abstractmethod
	def set(self, key: str, value: Any) -> None: ...

	@abstractmethod
	def delete(self, key: str) -> None: ...


class MemoryStore(KeyValueStore):
	def __init__(self) -> None:
		self._data: Dict[str, str] = {}

	def get(self, key: str) -> Optional[Any]:
		raw = self._data.get(key)
		return json.loads(raw) if raw is not None else None

	def set(self, key: str, value: Any) -> None:
		# Round-trip through JSON so callers can't share mutable state with the store.
		self._data[key] = json.dumps(value)

	def delete(self, key: str) -> None:
		self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
	"""
	All keys live in one JSON object on disk.

	Writes go to a temp file and are moved into place with os.replace, so a crash
	mid-write leaves the previous content intact.
	"""

	def __init__(self, path: Union[str, Path]) -> None:
		self.path = Path(path).expanduser()

	def _read_all(self, recover: bool = False) -> Dict[str, Any]:
		if not self.path.exists():
			return {}
		try:
			text = self.path.read_text(encoding="utf-8")
		except OSError as e:
			raise StorageError(f"could not read {self.path}: {e}") from e
		try:
			data = json.loads(text)
		except ValueError as e:
			reason = f"could not parse {self.path}: {e}"
		else:
			if isinstance(data, dict):
				return data
			reason = f"{self.path} does not hold a JSON object"
		if not recover:
			raise StorageError(reason)
		# A corrupt file must not block recalibration: move it aside and start over.
		corrupt = self.path.with_name(self.path.name + ".corrupt")
		try:
			os.replace(self.path, corrupt)
		except OSError as e:
			raise StorageError(f"could not move aside {self.path}: {e}") from e
		logger.warning("[Store] %s; moved to %s", reason, corrupt)
		return {}

	def _write_all(self, data: Dict[str, Any]) -> None:
		tmp = self.path.with_name(self.path.name + ".tmp")
		try:
			self.path.parent.mkdir(parents=True, exist_ok=True)
			tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
			os.replace(tmp, self.path)
		except OSError as e:
			raise StorageError(f"could not write {self.path}: {e}") from e

	def get(self, key: str) -> Optional[Any]:
		return self._read_all().get(key)

	def set(self, key: str, value: Any) -> None:
		data = self._read_all(recover=True)
		data[key] = value
		self._write_all(data)

	def delete(self, key: str) -> None:
		data = self._read_all(recover=True)
		if key not in data:
			return
		del data[key]
		self._write_all(data)


class CalibrationStore:
	"""
	Durable backing for the calibration baseline and its state flag.

	Record layout under `key`:
	    {"calibrated": true, "baseline": {shoulder_tilt_deg, neck_angle_deg, torso_lean_deg, captured_at}}
	"""

	def __init__(self, kv: KeyValueStore, key: str = "posture_calibration") -> None:
		self._kv = kv
		self._key = key

	def _read(self) -> Optional[Dict[str, Any]]:
		rec = self._kv.get(self._key)
		if rec is None:
			return None
		if not isinstance(rec, dict):
			raise StorageError(f"corrupt calibration record under {self._key!r}")
		return rec

	def load_baseline(self) -> Optional[CalibrationBaseline]:
		rec = self._read()
		if not rec or not rec.get("calibrated"):
			return None
		return CalibrationBaseline.from_record(rec.get("baseline"))

	def load_state(self) -> CalibrationState:
		return CalibrationState.CALIBRATED if self.load_baseline() is not None else CalibrationState.NOT_CALIBRATED

	def save_baseline(
		self,
		metrics: Union[PostureMetrics, CalibrationBaseline],
		captured_at: Optional[float] = None,
	) -> CalibrationBaseline:
		if isinstance(metrics, CalibrationBaseline):
			baseline = metrics
		else:
			baseline = CalibrationBaseline.from_metrics(metrics, captured_at=captured_at)
		if baseline.captured_at is None:
			baseline = replace(baseline, captured_at=time.time())
		self._kv.set(self._key, {"calibrated": True, "baseline": baseline.to_record()})
		logger.info(
			"[Store] baseline saved: shoulder=%.1f neck=%.1f",
			baseline.shoulder_tilt_deg,
			baseline.neck_angle_deg,
		)
		return baseline

	def clear(self) -> None:
		self._kv.delete(self._key)
		logger.info("[Store] calibration cleared")
