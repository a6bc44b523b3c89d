"""
FastAPI dependencies. Use Depends(get_state) in route handlers to receive AppState,
or one of the narrower getters when a route only needs a single service.
"""
from fastapi import Depends, Request

from app_state import AppState
from modules.calibration_workflow import CalibrationWorkflow
from modules.posture_detector import PostureDetectionService


def get_state(request: Request) -> AppState:
	"""Return the app state instance attached in lifespan."""
	return request.app.state.state


def get_detector(state: AppState = Depends(get_state)) -> PostureDetectionService:
	return state.detector


def get_workflow(state: AppState = Depends(get_state)) -> CalibrationWorkflow:
	return state.workflow
