from __future__ import annotations

import logging
import threading
from typing import Any, Callable


logger = logging.getLogger(__name__)


SUBMISSION = "submission"
VOTING = "voting"


def reconnect_kind(player_key: str) -> str:
    return f"reconnect:{player_key}"


class BackgroundTimer:
    """One-shot deferred call run as a Socket.IO background task."""

    def __init__(self, socketio: Any, delay: float, fn: Callable[[], None]) -> None:
        self.socketio = socketio
        self.delay = delay
        self.fn = fn
        self.cancelled = False

    def start(self) -> None:
        self.socketio.start_background_task(self._run)

    def _run(self) -> None:
        self.socketio.sleep(self.delay)
        if self.cancelled:
            return
        self.fn()

    def cancel(self) -> None:
        self.cancelled = True


def background_timer_factory(socketio: Any) -> Callable[[float, Callable[[], None]], BackgroundTimer]:
    def _make(delay: float, fn: Callable[[], None]) -> BackgroundTimer:
        return BackgroundTimer(socketio, delay, fn)

    return _make


class TimerCoordinator:
    """At most one pending deferred callback per (lobby code, kind).

    ``timer_factory(delay, fn)`` must return an object with ``start()`` and
    ``cancel()``, such as the one built by ``background_timer_factory``.
    """

    def __init__(self, timer_factory: Callable[[float, Callable[[], None]], Any]) -> None:
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timers: dict[tuple[str, str], object] = {}

    def schedule(self, code: str, kind: str, delay_seconds: float, callback: Callable[[], None]) -> None:
        key = (code, kind)
        holder: dict[str, object] = {}

        def _fire() -> None:
            with self._lock:
                # Replaced or cancelled while sleeping.
                if self._timers.get(key) is not holder.get("timer"):
                    logger.info("[timer-abort] lobby=%s kind=%s stale", code, kind)
                    return
                del self._timers[key]
            logger.info("[timer-fire] lobby=%s kind=%s", code, kind)
            try:
                callback()
            except Exception:
                logger.exception("[timer-error] lobby=%s kind=%s", code, kind)

        timer = self._timer_factory(max(0.0, float(delay_seconds)), _fire)
        holder["timer"] = timer

        with self._lock:
            prev = self._timers.pop(key, None)
            self._timers[key] = timer
        if prev is not None:
            prev.cancel()
            logger.info("[timer-replace] lobby=%s kind=%s", code, kind)

        timer.start()
        logger.info("[timer-set] lobby=%s kind=%s delay=%ss", code, kind, delay_seconds)

    def cancel(self, code: str, kind: str) -> bool:
        with self._lock:
            timer = self._timers.pop((code, kind), None)
        if timer is None:
            return False
        timer.cancel()
        logger.info("[timer-cancel] lobby=%s kind=%s", code, kind)
        return True

    def cancel_all(self, code: str) -> int:
        with self._lock:
            keys = [k for k in self._timers if k[0] == code]
            timers = [self._timers.pop(k) for k in keys]
        for t in timers:
            t.cancel()
        if timers:
            logger.info("[timer-cancel-all] lobby=%s count=%d", code, len(timers))
        return len(timers)

    def pending(self, code: str) -> list[str]:
        with self._lock:
            return sorted(kind for (c, kind) in self._timers if c == code)

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for t in timers:
            t.cancel()
