"""Calibration routes. Routes: /api/calibration/{open,start,dismiss,recalibrate}, DELETE /api/calibration."""
import logging

from fastapi import APIRouter, Depends, HTTPException

from app_state import AppState
from deps import get_state
from modules.errors import StorageError
from schemas import CalibrationResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["calibration"])


def _response(state: AppState, detail: str):
	return {
		"detail": detail,
		"calibration_needed": state.detector.is_calibration_needed(),
		"workflow": state.workflow.snapshot().as_dict(),
	}


@router.get("/api/calibration", response_model=CalibrationResponse)
async def get_calibration(state: AppState = Depends(get_state)):
	return _response(state, "ok")


@router.post("/api/calibration/open", response_model=CalibrationResponse)
async def open_calibration(state: AppState = Depends(get_state)):
	"""Show the instructions step; any running countdown is discarded."""
	state.cancel_countdown()
	state.workflow.open()
	return _response(state, "Calibration opened.")


@router.post("/api/calibration/start", response_model=CalibrationResponse)
async def start_calibration(state: AppState = Depends(get_state)):
	"""User is sitting straight: start the countdown. Capture happens when it reaches 0."""
	if not state.workflow.is_open:
		state.workflow.open()
	if not state.start_countdown():
		raise HTTPException(status_code=409, detail=f"Cannot start from step '{state.workflow.step.value}'")
	return _response(state, "Countdown started.")


@router.post("/api/calibration/dismiss", response_model=CalibrationResponse)
async def dismiss_calibration(state: AppState = Depends(get_state)):
	state.cancel_countdown()
	state.workflow.dismiss()
	return _response(state, "Calibration closed.")


@router.post("/api/calibration/recalibrate", response_model=CalibrationResponse)
async def recalibrate(state: AppState = Depends(get_state)):
	"""Forget the current baseline and reopen the calibration workflow."""
	try:
		state.detector.clear_calibration_data()
	except StorageError as e:
		raise HTTPException(status_code=500, detail=str(e))
	state.cancel_countdown()
	state.workflow.open()
	return _response(state, "Calibration data cleared.")


@router.delete("/api/calibration", response_model=CalibrationResponse)
async def clear_calibration(state: AppState = Depends(get_state)):
	try:
		state.detector.clear_calibration_data()
	except StorageError as e:
		raise HTTPException(status_code=500, detail=str(e))
	return _response(state, "Calibration data cleared.")
