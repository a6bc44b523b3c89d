"""Settings and notification routes. Routes: /api/settings, /api/notifications/test."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from app_state import AppState
from deps import get_state
from schemas import NotificationResponse, NotificationTestPayload, SettingsPayload, SettingsResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["settings"])


@router.get("/api/settings", response_model=SettingsResponse)
async def get_settings(state: AppState = Depends(get_state)):
	return state.settings.as_dict()


@router.put("/api/settings", response_model=SettingsResponse)
async def update_settings(payload: SettingsPayload, state: AppState = Depends(get_state)):
	"""Partial update; omitted fields keep their current value."""
	changes = payload.model_dump(exclude_none=True)
	try:
		new_settings = state.settings.updated(**changes)
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	state.apply_settings(new_settings)
	if changes:
		logger.info("[Settings] updated: %s", changes)
	return new_settings.as_dict()


@router.post("/api/notifications/test", response_model=NotificationResponse)
async def test_notification(payload: Optional[NotificationTestPayload] = None, state: AppState = Depends(get_state)):
	"""Send an alert through the normal throttled path (same as a real bad-posture alert)."""
	payload = payload or NotificationTestPayload()
	sent = state.notifier.notify_bad_posture(payload.message)
	return {"dispatched": sent, "stats": state.notifier.get_stats()}
