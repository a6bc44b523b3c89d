"""
Pose estimation utilities.

This package defines a model-agnostic LandmarkSet interface, provider adapters
(e.g., MediaPipe Pose) and the geometric posture metrics computed from them,
so we can swap pose stacks later without touching the detector.
"""
