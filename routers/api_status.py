"""Status and model routes. Routes: /api/status, /api/model/load."""
import logging

from fastapi import APIRouter, Depends, HTTPException

from app_state import AppState
from deps import get_state
from modules import __version__
from modules.errors import ModelLoadError
from schemas import ModelLoadResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["status"])


@router.get("/api/status")
async def get_status(state: AppState = Depends(get_state)):
	"""Everything the UI needs to render the current posture view."""
	det = state.detector
	last = state.monitor.last_result
	baseline = det.baseline
	return {
		"version": __version__,
		"model_ready": det.is_model_ready(),
		"model_error": state.adapter.last_error,
		"lifecycle": det.lifecycle.value,
		"calibration_state": det.calibration_state.value,
		"calibration_needed": det.is_calibration_needed(),
		"baseline": baseline.to_record() if baseline else None,
		"last_result": last.as_dict() if last else None,
		"workflow": state.workflow.snapshot().as_dict(),
		"notifications": state.notifier.get_stats(),
		"camera": state.camera.get_status(),
		"monitor_running": state.monitor.running,
	}


@router.post("/api/model/load", response_model=ModelLoadResponse)
async def load_model(state: AppState = Depends(get_state)):
	"""Load the pose model; safe to call repeatedly and to retry after a failure."""
	try:
		await state.detector.load_model()
	except ModelLoadError as e:
		raise HTTPException(status_code=503, detail=str(e))
	return {"detail": "Pose model ready.", "backend": state.adapter.backend}
