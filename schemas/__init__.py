"""Pydantic request/response models for API validation and docs."""
from schemas.requests import (
	SettingsPayload,
	NotificationTestPayload,
)
from schemas.responses import (
	CalibrationResponse,
	ModelLoadResponse,
	NotificationResponse,
	SettingsResponse,
)

__all__ = [
	"SettingsPayload",
	"NotificationTestPayload",
	"CalibrationResponse",
	"ModelLoadResponse",
	"NotificationResponse",
	"SettingsResponse",
]
