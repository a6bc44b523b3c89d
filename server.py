"""
SitRight local UI server.

Serves the posture status, calibration and settings API plus a WebSocket event
feed to a UI running on the same machine. Binds to 127.0.0.1 by default; no
frame or posture data leaves the device.
"""
import argparse
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app_state import AppState, build_state
from modules import __version__
from modules.config import get_config, set_config_path
from modules.errors import ModelLoadError
from routers import api_calibration, api_settings, api_status, ws
from routers.ws import manager

logger = logging.getLogger(__name__)


class _ClientLogHandler(logging.Handler):
	"""Forward warnings from the pipeline to WebSocket clients as `log` events."""

	def emit(self, record: logging.LogRecord) -> None:
		try:
			manager.publish("log", {"level": record.levelname, "msg": self.format(record)})
		except Exception:
			self.handleError(record)


@asynccontextmanager
async def lifespan(app: FastAPI):
	state: Optional[AppState] = getattr(app.state, "state", None)
	if state is None:
		state = build_state(get_config(), publish=manager.publish)
		app.state.state = state

	client_log = _ClientLogHandler(level=logging.WARNING)
	logging.getLogger("modules").addHandler(client_log)
	try:
		try:
			await state.detector.load_model()
		except ModelLoadError as e:
			# Keep serving; the UI can retry via POST /api/model/load.
			logger.warning("[Server] %s", e)

		# First run (or cleared baseline): ask the user to calibrate.
		if state.detector.is_calibration_needed():
			state.workflow.open()

		if state.cfg.monitor.autostart:
			state.monitor.start()
		yield
	finally:
		await state.monitor.stop()
		state.cancel_countdown()
		state.camera.close()
		state.adapter.close()
		logging.getLogger("modules").removeHandler(client_log)


def create_app(state: Optional[AppState] = None) -> FastAPI:
	app = FastAPI(title="SitRight", version=__version__, lifespan=lifespan)
	if state is not None:
		app.state.state = state
	app.add_middleware(
		CORSMiddleware,
		allow_origins=["http://localhost", "http://127.0.0.1"],
		allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	app.include_router(api_status.router)
	app.include_router(api_settings.router)
	app.include_router(api_calibration.router)
	app.include_router(ws.router)
	return app


app = create_app()


def main(argv: Optional[list[str]] = None) -> int:
	import uvicorn

	p = argparse.ArgumentParser(description="SitRight posture monitor (local UI server)")
	p.add_argument("--config", help="Path to config.json (default: repo root)")
	p.add_argument("--host", help="Bind address (default from config: 127.0.0.1)")
	p.add_argument("--port", type=int, help="Port (default from config: 8000)")
	p.add_argument("--debug", action="store_true", help="Enable debug logging.")
	args = p.parse_args(argv)

	logging.basicConfig(
		level=logging.DEBUG if args.debug else logging.INFO,
		format="%(asctime)s %(levelname)s:%(name)s:%(message)s",
	)
	if args.config:
		set_config_path(args.config)
	cfg = get_config()

	try:
		uvicorn.run(
			app,
			host=args.host or cfg.server.host,
			port=int(args.port or cfg.server.port),
			log_level="debug" if args.debug else "info",
		)
		return 0
	except KeyboardInterrupt:
		return 0


if __name__ == "__main__":
	raise SystemExit(main())
