"""Rate-limited bad-posture alerts, independent of detection frequency."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

from modules.posture_detector import PostureStatus

logger = logging.getLogger(__name__)

MESSAGES = {
	PostureStatus.SLOUCHING: "You're slouching. Sit up straight and bring your head back over your shoulders.",
	PostureStatus.SHOULDER_MISALIGNED: "Your shoulders are uneven. Relax them and level them out.",
}


def message_for(status: PostureStatus) -> Optional[str]:
	return MESSAGES.get(status)


class NotificationService:
	"""
	At most one alert per cooldown window; extra alerts are dropped, not queued.

	The window is fixed when an alert is dispatched: changing the cooldown only
	affects windows opened by later alerts. Disabling alerts leaves the timers
	alone, so re-enabling does not burst a stale alert.
	"""

	def __init__(
		self,
		dispatch: Callable[[str], Any],
		enabled: bool = True,
		cooldown_ms: int = 60000,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self._dispatch = dispatch
		self._enabled = bool(enabled)
		self._cooldown_s = max(0, int(cooldown_ms)) / 1000.0
		self._clock = clock
		self._last_sent_t: Optional[float] = None
		self._window_ends_t: Optional[float] = None
		self._sent_count = 0
		self._dropped_count = 0

	def set_enabled(self, enabled: bool) -> None:
		self._enabled = bool(enabled)

	def set_cooldown(self, ms: int) -> None:
		ms = int(ms)
		if ms < 0:
			raise ValueError(f"cooldown must be >= 0 ms, got {ms}")
		self._cooldown_s = ms / 1000.0

	@property
	def enabled(self) -> bool:
		return self._enabled

	@property
	def cooldown_ms(self) -> int:
		return int(round(self._cooldown_s * 1000.0))

	def notify_bad_posture(self, message: str) -> bool:
		"""Dispatch `message` unless disabled or inside the cooldown window. Returns True if sent."""
		if not self._enabled:
			return False
		now = self._clock()
		if self._window_ends_t is not None and now < self._window_ends_t:
			self._dropped_count += 1
			return False
		try:
			self._dispatch(message)
		except Exception as e:
			logger.warning("[Notify] dispatch failed: %s", e)
			return False
		self._last_sent_t = now
		self._window_ends_t = now + self._cooldown_s
		self._sent_count += 1
		logger.info("[Notify] %s", message)
		return True

	def get_stats(self) -> Dict[str, Any]:
		return {
			"enabled": self._enabled,
			"cooldown_ms": self.cooldown_ms,
			"last_sent_t": self._last_sent_t,
			"sent_count": self._sent_count,
			"dropped_count": self._dropped_count,
		}
