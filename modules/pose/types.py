from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class KeypointName(str, Enum):
	"""COCO-17 keypoint names shared by every provider."""

	NOSE = "nose"
	LEFT_EYE = "left_eye"
	RIGHT_EYE = "right_eye"
	LEFT_EAR = "left_ear"
	RIGHT_EAR = "right_ear"
	LEFT_SHOULDER = "left_shoulder"
	RIGHT_SHOULDER = "right_shoulder"
	LEFT_ELBOW = "left_elbow"
	RIGHT_ELBOW = "right_elbow"
	LEFT_WRIST = "left_wrist"
	RIGHT_WRIST = "right_wrist"
	LEFT_HIP = "left_hip"
	RIGHT_HIP = "right_hip"
	LEFT_KNEE = "left_knee"
	RIGHT_KNEE = "right_knee"
	LEFT_ANKLE = "left_ankle"
	RIGHT_ANKLE = "right_ankle"


@dataclass(frozen=True)
class Keypoint:
	"""
	A single 2D keypoint in pixel coordinates.
	"""

	name: KeypointName
	x_px: float
	y_px: float
	score: float  # confidence/visibility [0..1] best-effort


@dataclass(frozen=True)
class LandmarkSet:
	"""
	Model-agnostic pose output for a single video frame.

	- Coordinates are in pixel space to keep downstream logic consistent.
	- Keypoints are keyed by name, so a set never holds duplicates. A set may be
	  partial: missing names are simply absent.
	"""

	backend: str
	width: int
	height: int
	t_host: Optional[float] = None
	keypoints: Dict[KeypointName, Keypoint] = field(default_factory=dict)

	def get(self, name: KeypointName) -> Optional[Keypoint]:
		if not self.keypoints:
			return None
		return self.keypoints.get(KeypointName(name))

	def confident(self, name: KeypointName, min_score: float) -> Optional[Keypoint]:
		"""Return the keypoint only if its score reaches min_score (inclusive)."""
		kp = self.get(name)
		if kp is None or float(kp.score) < float(min_score):
			return None
		return kp

	def __len__(self) -> int:
		return len(self.keypoints)


@dataclass(frozen=True)
class PostureMetrics:
	"""
	Geometric posture measures for one frame, in degrees.

	0 means neutral/upright; larger values are always worse. None marks a metric
	that could not be computed because its keypoints were missing or not
	confident enough.
	"""

	shoulder_tilt_deg: Optional[float]
	neck_angle_deg: Optional[float]
	torso_lean_deg: Optional[float] = None
	timestamp: Optional[float] = None

	def as_dict(self) -> Dict[str, Any]:
		return {
			"shoulder_tilt_deg": self.shoulder_tilt_deg,
			"neck_angle_deg": self.neck_angle_deg,
			"torso_lean_deg": self.torso_lean_deg,
			"timestamp": self.timestamp,
		}
