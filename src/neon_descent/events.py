"""Run notifications for whatever presents a run (terminal, UI, tests).

:class:`~neon_descent.engine.GameSession` hands every accepted transition to
:meth:`EventBus.announce`, which splits it into typed :class:`RunEvent`
notifications: one ``LOG_APPENDED`` per new history line, ``GAME_OVER`` the
first time the run ends, then ``STATE_CHANGED`` with the new snapshot.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .models import GameState, LogEntry, RunStatus

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    STATE_CHANGED = "state.changed"
    LOG_APPENDED = "log.appended"
    GAME_OVER = "run.game_over"


@dataclass(frozen=True)
class RunEvent:
    """
    Attributes:
        type: What happened.
        state: Run snapshot after the transition.
        action: The accepted action (``STATE_CHANGED`` only).
        entry: The new history line (``LOG_APPENDED`` only).
    """

    type: EventType
    state: GameState
    action: Any = None
    entry: Optional[LogEntry] = None

    @property
    def floor(self) -> int:
        return self.state.floor


Subscriber = Callable[[RunEvent], None]


def new_entries(before: GameState, after: GameState, fresh_run: bool = False) -> Tuple[LogEntry, ...]:
    """History lines ``after`` added on top of ``before``; a fresh run starts a new history."""
    if fresh_run:
        return after.history
    return after.history[len(before.history):]


class EventBus:
    """Delivers run notifications to subscribers, synchronously and in registration order.

    A subscriber that raises is logged and skipped; the run it watches and the
    remaining subscribers are unaffected.
    """

    def __init__(self) -> None:
        self._subs: Dict[EventType, List[Subscriber]] = {t: [] for t in EventType}
        self._lock = RLock()

    def subscribe(self, event_type: Union[EventType, str], callback: Subscriber) -> None:
        if not callable(callback):
            raise TypeError("callback must be callable")
        event_type = EventType(event_type)
        with self._lock:
            self._subs[event_type].append(callback)

    def unsubscribe(self, event_type: Union[EventType, str], callback: Subscriber) -> None:
        try:
            event_type = EventType(event_type)
        except ValueError:
            return
        with self._lock:
            if callback in self._subs[event_type]:
                self._subs[event_type].remove(callback)

    def announce(self, before: GameState, after: GameState, action: Any, fresh_run: bool = False) -> None:
        """Publish everything the transition ``before`` -> ``after`` produced."""
        for entry in new_entries(before, after, fresh_run):
            self._deliver(RunEvent(EventType.LOG_APPENDED, after, entry=entry))
        if after.status is RunStatus.GAME_OVER and before.status is not RunStatus.GAME_OVER:
            logger.debug("Run over on floor %s", after.floor)
            self._deliver(RunEvent(EventType.GAME_OVER, after))
        self._deliver(RunEvent(EventType.STATE_CHANGED, after, action=action))

    def _deliver(self, event: RunEvent) -> None:
        with self._lock:
            subs = list(self._subs[event.type])
        for cb in subs:
            try:
                cb(event)
            except Exception:
                logger.exception("Subscriber %r failed on %s (floor %s)", cb, event.type.value, event.floor)


__all__ = ["EventBus", "EventType", "RunEvent", "new_entries"]
