"""
SitRight posture monitor core.

Pose estimation, posture metrics, calibration and alerting. The server layer
(server.py, routers/) is a thin shell over these modules.
"""

from importlib import metadata
from pathlib import Path


def _read_version() -> str:
	# Source checkout: VERSION at the repo root wins over installed metadata.
	vf = Path(__file__).resolve().parents[1] / "VERSION"
	try:
		val = vf.read_text(encoding="utf-8").strip()
	except OSError:
		val = ""
	if val:
		return val
	try:
		return metadata.version("sitright")
	except metadata.PackageNotFoundError:
		return "0.0.0"


__version__ = _read_version()
