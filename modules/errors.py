"""
Error taxonomy for the posture pipeline.

Per-frame failures (InferenceError) are recoverable and end up as an
`unknown` status; calibration failures are surfaced to the workflow so the
user can retry; ModelLoadError is raised to whoever asked for the load.
"""


class PostureError(Exception):
	"""Base class for all recoverable posture pipeline errors."""


class ModelLoadError(PostureError):
	"""The pose model failed to initialise. Retryable by the caller."""


class InferenceError(PostureError):
	"""Detection failed for a single frame (e.g. malformed frame)."""


class CalibrationDataInsufficient(PostureError):
	"""Not enough confident keypoints to commit a baseline."""


class StorageError(PostureError):
	"""Persistence layer failure on load/save/clear."""


class BusyError(PostureError):
	"""Another calibrate/classify call is still in flight."""


class CameraError(PostureError):
	"""Camera could not be opened or did not deliver a frame."""


class ModelNotReadyError(RuntimeError):
	"""detect() was called before the model finished loading (programming error)."""
