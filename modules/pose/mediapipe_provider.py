from __future__ import annotations

import logging
from typing import Optional

from modules.pose.base import PoseProvider
from modules.pose.types import Keypoint, KeypointName, LandmarkSet

logger = logging.getLogger(__name__)


class MediaPipePoseProvider(PoseProvider):
	"""
	MediaPipe Pose provider that outputs the canonical COCO-17 keypoint set.

	Notes:
	- MediaPipe uses normalized coordinates; we convert to pixel space.
	- `visibility` is used as score (best-effort).
	- Only the first (most prominent) person is reported.
	"""

	def __init__(
		self,
		model_complexity: int = 1,
		min_detection_confidence: float = 0.5,
		min_tracking_confidence: float = 0.5,
		static_image_mode: bool = False,
	) -> None:
		try:
			import mediapipe as mp  # type: ignore
		except Exception as e:
			raise RuntimeError(
				"MediaPipe is not installed. Install it with: pip install mediapipe"
			) from e

		self._mp = mp
		self._pose = mp.solutions.pose.Pose(
			static_image_mode=bool(static_image_mode),
			model_complexity=int(model_complexity),
			enable_segmentation=False,
			smooth_landmarks=True,
			min_detection_confidence=float(min_detection_confidence),
			min_tracking_confidence=float(min_tracking_confidence),
		)
		PL = mp.solutions.pose.PoseLandmark
		self._mapping = {kp: getattr(PL, kp.name) for kp in KeypointName}

	def name(self) -> str:
		return "mediapipe_pose"

	def infer_rgb(self, rgb, t_host: Optional[float] = None) -> LandmarkSet:
		# rgb: HxWx3
		h, w = int(rgb.shape[0]), int(rgb.shape[1])
		res = self._pose.process(rgb)
		out = LandmarkSet(backend=self.name(), width=w, height=h, t_host=t_host)
		if not res or not getattr(res, "pose_landmarks", None):
			return out

		lm = res.pose_landmarks.landmark
		for name, idx in self._mapping.items():
			try:
				p = lm[int(idx)]
			except IndexError:
				continue
			out.keypoints[name] = Keypoint(
				name=name,
				x_px=float(p.x) * float(w),
				y_px=float(p.y) * float(h),
				score=float(getattr(p, "visibility", 0.0) or 0.0),
			)
		return out

	def close(self) -> None:
		try:
			if self._pose:
				self._pose.close()
		except Exception as e:
			logger.debug("[Pose] mediapipe close failed: %s", e)
