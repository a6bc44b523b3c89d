"""Pydantic request body models; ranges are validated here, at the API boundary."""
from typing import Optional

from pydantic import BaseModel, Field


class SettingsPayload(BaseModel):
	"""Request body for PUT /api/settings. Omitted fields keep their current value."""

	shoulder_alignment_threshold: Optional[float] = Field(None, ge=0, le=180, description="Max shoulder tilt change vs baseline (deg)")
	slouch_threshold: Optional[float] = Field(None, ge=0, le=180, description="Max neck angle change vs baseline (deg)")
	detection_confidence: Optional[float] = Field(None, ge=0, le=1, description="Minimum keypoint confidence [0..1]")
	enable_notifications: Optional[bool] = Field(None, description="Dispatch bad-posture alerts")
	notification_interval_ms: Optional[int] = Field(None, ge=0, description="Minimum time between two alerts (ms)")


class NotificationTestPayload(BaseModel):
	"""Request body for POST /api/notifications/test."""

	message: str = Field("Test notification", min_length=1, max_length=200)
