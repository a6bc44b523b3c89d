from __future__ import annotations

import math
from typing import Optional, Tuple

from modules.pose.types import KeypointName, LandmarkSet, PostureMetrics


def _midpoint(
	landmarks: LandmarkSet,
	left: KeypointName,
	right: KeypointName,
	min_confidence: float,
) -> Optional[Tuple[float, float]]:
	a = landmarks.confident(left, min_confidence)
	b = landmarks.confident(right, min_confidence)
	if a is None or b is None:
		return None
	return (float(a.x_px) + float(b.x_px)) / 2.0, (float(a.y_px) + float(b.y_px)) / 2.0


def _angle_from_vertical(lower: Tuple[float, float], upper: Tuple[float, float]) -> float:
	"""
	Angle (deg) between the lower->upper vector and upward vertical.

	Image y grows downwards, so "up" is -y. 0 = upper point straight above the
	lower one; the value grows with lean in either direction.
	"""
	dx = upper[0] - lower[0]
	dy = upper[1] - lower[1]
	if dx == 0.0 and dy == 0.0:
		return 0.0
	return math.degrees(math.atan2(abs(dx), -dy))


def shoulder_tilt_deg(landmarks: LandmarkSet, min_confidence: float) -> Optional[float]:
	"""
	Angle of the shoulder line relative to horizontal, in [0, 90].

	Which shoulder is higher does not matter; only the magnitude is reported.
	"""
	ls = landmarks.confident(KeypointName.LEFT_SHOULDER, min_confidence)
	rs = landmarks.confident(KeypointName.RIGHT_SHOULDER, min_confidence)
	if ls is None or rs is None:
		return None
	dx = abs(float(rs.x_px) - float(ls.x_px))
	dy = abs(float(rs.y_px) - float(ls.y_px))
	if dx == 0.0 and dy == 0.0:
		return 0.0
	return math.degrees(math.atan2(dy, dx))


def neck_angle_deg(landmarks: LandmarkSet, min_confidence: float) -> Optional[float]:
	"""
	Angle between the shoulder-midpoint -> ear-midpoint vector and vertical.

	Approximates forward/sideways head tilt; used as the slouch indicator.
	"""
	shoulders = _midpoint(landmarks, KeypointName.LEFT_SHOULDER, KeypointName.RIGHT_SHOULDER, min_confidence)
	ears = _midpoint(landmarks, KeypointName.LEFT_EAR, KeypointName.RIGHT_EAR, min_confidence)
	if shoulders is None or ears is None:
		return None
	return _angle_from_vertical(shoulders, ears)


def torso_lean_deg(landmarks: LandmarkSet, min_confidence: float) -> Optional[float]:
	"""Hip-midpoint -> shoulder-midpoint vs vertical. Hips are often out of frame at a desk."""
	hips = _midpoint(landmarks, KeypointName.LEFT_HIP, KeypointName.RIGHT_HIP, min_confidence)
	shoulders = _midpoint(landmarks, KeypointName.LEFT_SHOULDER, KeypointName.RIGHT_SHOULDER, min_confidence)
	if hips is None or shoulders is None:
		return None
	return _angle_from_vertical(hips, shoulders)


def compute_metrics(landmarks: LandmarkSet, min_confidence: float) -> PostureMetrics:
	return PostureMetrics(
		shoulder_tilt_deg=shoulder_tilt_deg(landmarks, min_confidence),
		neck_angle_deg=neck_angle_deg(landmarks, min_confidence),
		torso_lean_deg=torso_lean_deg(landmarks, min_confidence),
		timestamp=landmarks.t_host,
	)
