from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from modules.pose.types import LandmarkSet


class PoseProvider(ABC):
	"""
	Model adapter interface.

	Implementations should take an RGB image (H,W,3 uint8) and return a LandmarkSet.
	A provider instance is fully loaded once constructed.
	"""

	@abstractmethod
	def name(self) -> str: ...

	@abstractmethod
	def infer_rgb(self, rgb, t_host: Optional[float] = None) -> LandmarkSet: ...

	@abstractmethod
	def close(self) -> None: ...
