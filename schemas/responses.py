"""Pydantic response models for API docs (optional; routes may return dicts)."""
from typing import Any, Dict, Optional

from pydantic import BaseModel


class SettingsResponse(BaseModel):
	"""Response from GET/PUT /api/settings."""

	shoulder_alignment_threshold: float
	slouch_threshold: float
	detection_confidence: float
	enable_notifications: bool
	notification_interval_ms: int


class CalibrationResponse(BaseModel):
	"""Response from the /api/calibration/* actions."""

	detail: str
	calibration_needed: bool
	workflow: Dict[str, Any]


class NotificationResponse(BaseModel):
	"""Response from POST /api/notifications/test."""

	dispatched: bool
	stats: Dict[str, Any]


class ModelLoadResponse(BaseModel):
	detail: str
	backend: Optional[str] = None
