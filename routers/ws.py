"""Event feed for the local UI. Route: /ws.

Every message is a JSON envelope {"type", "t", "data"}. Event types:
status (one per classification), alert (dispatched notification),
calibration (workflow snapshot), calibration_complete, log (warnings).
"""
import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)
router = APIRouter(tags=["ws"])


def make_event(event_type: str, data: Any) -> Dict[str, Any]:
	return {"type": event_type, "t": time.time(), "data": data}


class ConnectionManager:
	"""Tracks UI sockets; clients whose send fails are dropped from the set."""

	def __init__(self) -> None:
		self._clients: Set[WebSocket] = set()
		self._lock = asyncio.Lock()

	async def connect(self, websocket: WebSocket) -> None:
		await websocket.accept()
		async with self._lock:
			self._clients.add(websocket)

	async def disconnect(self, websocket: WebSocket) -> None:
		async with self._lock:
			self._clients.discard(websocket)

	async def broadcast_json(self, message: Dict[str, Any]) -> None:
		payload = json.dumps(message, separators=(",", ":"))
		async with self._lock:
			clients: List[WebSocket] = list(self._clients)
		if not clients:
			return
		results = await asyncio.gather(*(ws.send_text(payload) for ws in clients), return_exceptions=True)
		dead = [ws for ws, res in zip(clients, results) if isinstance(res, Exception)]
		if dead:
			logger.debug("[WS] dropping %d client(s) after failed send", len(dead))
			async with self._lock:
				self._clients.difference_update(dead)

	def publish(self, event_type: str, payload: Any) -> None:
		"""
		Queue an event for all connected clients.
		Fire-and-forget; safe to call from non-async code running on the event loop.
		"""
		if not self._clients:
			return
		try:
			asyncio.get_running_loop()
		except RuntimeError:
			return
		asyncio.create_task(self.broadcast_json(make_event(event_type, payload)))


manager = ConnectionManager()


@router.websocket("/ws")
async def ws_endpoint(websocket: WebSocket):
	await manager.connect(websocket)
	try:
		# New clients get the calibration view right away instead of waiting for a change.
		state = websocket.app.state.state
		await websocket.send_json(make_event("calibration", state.workflow.snapshot().as_dict()))
		while True:
			await websocket.receive_text()
	except WebSocketDisconnect:
		pass
	finally:
		await manager.disconnect(websocket)
