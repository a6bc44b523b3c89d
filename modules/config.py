from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostureSettings:
	"""
	User-tunable detection settings, consumed read-only by the detector.

	- shoulder_alignment_threshold: max allowed change (deg) of shoulder tilt vs baseline.
	- slouch_threshold: max allowed change (deg) of neck angle vs baseline.
	- detection_confidence: minimum keypoint score [0..1] for a keypoint to count.
	- enable_notifications: whether bad-posture alerts are dispatched at all.
	- notification_interval_ms: minimum time between two dispatched alerts.
	"""

	shoulder_alignment_threshold: float = 15.0
	slouch_threshold: float = 20.0
	detection_confidence: float = 0.6
	enable_notifications: bool = True
	notification_interval_ms: int = 60000

	def __post_init__(self) -> None:
		for key in ("shoulder_alignment_threshold", "slouch_threshold"):
			v = getattr(self, key)
			if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v) or v < 0.0 or v > 180.0:
				raise ValueError(f"{key} must be within [0, 180] degrees, got {v!r}")
		c = self.detection_confidence
		if isinstance(c, bool) or not isinstance(c, (int, float)) or not (0.0 <= float(c) <= 1.0):
			raise ValueError(f"detection_confidence must be within [0, 1], got {c!r}")
		if isinstance(self.notification_interval_ms, bool) or not isinstance(self.notification_interval_ms, int) or self.notification_interval_ms < 0:
			raise ValueError(f"notification_interval_ms must be a non-negative int, got {self.notification_interval_ms!r}")

	def updated(self, **changes: Any) -> "PostureSettings":
		"""Return a validated copy with the given fields replaced."""
		return replace(self, **changes)

	def as_dict(self) -> Dict[str, Any]:
		return {
			"shoulder_alignment_threshold": self.shoulder_alignment_threshold,
			"slouch_threshold": self.slouch_threshold,
			"detection_confidence": self.detection_confidence,
			"enable_notifications": self.enable_notifications,
			"notification_interval_ms": self.notification_interval_ms,
		}


@dataclass(frozen=True)
class PoseModelConfig:
	model_complexity: int = 1  # 0 (lite) / 1 (full) / 2 (heavy)
	min_detection_confidence: float = 0.5
	min_tracking_confidence: float = 0.5


@dataclass(frozen=True)
class CameraConfig:
	index: int = 0
	width: int = 640
	height: int = 480


@dataclass(frozen=True)
class StorageConfig:
	# Local JSON file holding the calibration baseline (never leaves the device).
	calibration_path: str = str(Path("data") / "calibration.json")
	calibration_key: str = "posture_calibration"


@dataclass(frozen=True)
class MonitorConfig:
	# Seconds between two classification cycles.
	interval_seconds: float = 0.5
	autostart: bool = True


@dataclass(frozen=True)
class ServerConfig:
	host: str = "127.0.0.1"
	port: int = 8000


@dataclass(frozen=True)
class AppConfig:
	posture: PostureSettings = field(default_factory=PostureSettings)
	pose: PoseModelConfig = field(default_factory=PoseModelConfig)
	camera: CameraConfig = field(default_factory=CameraConfig)
	storage: StorageConfig = field(default_factory=StorageConfig)
	monitor: MonitorConfig = field(default_factory=MonitorConfig)
	server: ServerConfig = field(default_factory=ServerConfig)


_CONFIG_PATH: Optional[Path] = None
_CONFIG_CACHE: Optional[AppConfig] = None


def _repo_root() -> Path:
	# modules/config.py -> repo root is one level up.
	return Path(__file__).resolve().parents[1]


def get_default_config_path() -> Path:
	return _repo_root() / "config.json"


def set_config_path(path: str | Path) -> None:
	"""
	Override the config path (must be called before first get_config()).
	Intended for tooling/tests; the server normally uses the default path.
	"""
	global _CONFIG_PATH
	global _CONFIG_CACHE
	_CONFIG_PATH = Path(path).expanduser().resolve()
	_CONFIG_CACHE = None


def _deep_get(d: Dict[str, Any], keys: list[str], default: Any = None) -> Any:
	cur: Any = d
	for k in keys:
		if not isinstance(cur, dict):
			return default
		cur = cur.get(k)
	return cur if cur is not None else default


def _as_int(v: Any, default: int) -> int:
	try:
		return int(v)
	except Exception:
		return int(default)


def _as_bool(v: Any, default: bool) -> bool:
	if isinstance(v, bool):
		return v
	if isinstance(v, (int, float)):
		return bool(v)
	if isinstance(v, str):
		return v.strip().lower() in ("1", "true", "yes", "on")
	return bool(default)


def _as_str(v: Any, default: str = "") -> str:
	return str(v) if v is not None else str(default)


def _as_float(v: Any, default: float) -> float:
	try:
		f = float(v)
	except Exception:
		return float(default)
	return f if math.isfinite(f) else float(default)


def _parse_posture(obj: Any) -> PostureSettings:
	defaults = PostureSettings()
	if not isinstance(obj, dict):
		return defaults
	try:
		return PostureSettings(
			shoulder_alignment_threshold=_as_float(obj.get("shoulder_alignment_threshold"), defaults.shoulder_alignment_threshold),
			slouch_threshold=_as_float(obj.get("slouch_threshold"), defaults.slouch_threshold),
			detection_confidence=_as_float(obj.get("detection_confidence"), defaults.detection_confidence),
			enable_notifications=_as_bool(obj.get("enable_notifications"), defaults.enable_notifications),
			notification_interval_ms=_as_int(obj.get("notification_interval_ms"), defaults.notification_interval_ms),
		)
	except ValueError as e:
		# Out-of-range values in config.json: keep running on defaults.
		logger.warning("[Config] invalid posture settings, using defaults: %s", e)
		return defaults


def load_config(path: Optional[str | Path] = None) -> AppConfig:
	p = Path(path).expanduser().resolve() if path else (_CONFIG_PATH or get_default_config_path())
	if not p.exists():
		# Defaults-only config; app can still run.
		return AppConfig()
	try:
		raw = json.loads(p.read_text(encoding="utf-8"))
	except Exception as e:
		# If config is malformed, fail safe to defaults (but keep app running).
		logger.warning("[Config] could not read %s, using defaults: %s", p, e)
		return AppConfig()

	if not isinstance(raw, dict):
		return AppConfig()

	posture = _parse_posture(raw.get("posture"))

	complexity = _as_int(_deep_get(raw, ["pose", "model_complexity"], 1), 1)
	det_conf = _as_float(_deep_get(raw, ["pose", "min_detection_confidence"], 0.5), 0.5)
	trk_conf = _as_float(_deep_get(raw, ["pose", "min_tracking_confidence"], 0.5), 0.5)

	cam_index = _as_int(_deep_get(raw, ["camera", "index"], 0), 0)
	cam_w = _as_int(_deep_get(raw, ["camera", "width"], 640), 640)
	cam_h = _as_int(_deep_get(raw, ["camera", "height"], 480), 480)

	calib_path = _as_str(_deep_get(raw, ["storage", "calibration_path"], StorageConfig.calibration_path), "").strip()
	calib_key = _as_str(_deep_get(raw, ["storage", "calibration_key"], "posture_calibration"), "").strip()

	interval = _as_float(_deep_get(raw, ["monitor", "interval_seconds"], 0.5), 0.5)
	autostart = _as_bool(_deep_get(raw, ["monitor", "autostart"], True), True)

	host = _as_str(_deep_get(raw, ["server", "host"], "127.0.0.1"), "127.0.0.1").strip()
	port = _as_int(_deep_get(raw, ["server", "port"], 8000), 8000)

	return AppConfig(
		posture=posture,
		pose=PoseModelConfig(
			model_complexity=complexity if complexity in (0, 1, 2) else 1,
			min_detection_confidence=det_conf if 0.0 <= det_conf <= 1.0 else 0.5,
			min_tracking_confidence=trk_conf if 0.0 <= trk_conf <= 1.0 else 0.5,
		),
		camera=CameraConfig(
			index=cam_index if cam_index >= 0 else 0,
			width=cam_w if cam_w > 0 else 640,
			height=cam_h if cam_h > 0 else 480,
		),
		storage=StorageConfig(
			calibration_path=calib_path or StorageConfig.calibration_path,
			calibration_key=calib_key or "posture_calibration",
		),
		monitor=MonitorConfig(
			interval_seconds=max(0.05, float(interval)),
			autostart=autostart,
		),
		server=ServerConfig(host=host or "127.0.0.1", port=port if 0 < port < 65536 else 8000),
	)


def get_config() -> AppConfig:
	global _CONFIG_CACHE
	if _CONFIG_CACHE is None:
		_CONFIG_CACHE = load_config()
	return _CONFIG_CACHE
