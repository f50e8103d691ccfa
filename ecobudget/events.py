"""
Change notifications.

The engines publish named events after every state transition; the session
and any presentation layer subscribe to them instead of polling.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, NamedTuple

import structlog

__all__ = [
    'Event',
    'EventBus',
    'LEDGER_CHANGED',
    'CHALLENGE_COMPLETED',
    'CHALLENGES_UNLOCKED',
    'LEVEL_UP',
    'DATA_RESET',
]

LEDGER_CHANGED = "ledger_changed"
CHALLENGE_COMPLETED = "challenge_completed"
CHALLENGES_UNLOCKED = "challenges_unlocked"
LEVEL_UP = "level_up"
DATA_RESET = "data_reset"

logger = structlog.get_logger("ecobudget.events")


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], Any]


class EventBus:
    """Synchronous publish/subscribe; handlers run in subscription order."""

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)

    def publish(self, name: str, payload: dict) -> List[Any]:
        """
        Deliver an event to every handler.

        A failing subscriber is logged and skipped; it never aborts the
        mutation that published the event.
        """
        if name not in self._subscribers:
            return []

        event = Event(
            name=name,
            ts=datetime.now(timezone.utc).isoformat(),
            payload=payload,
        )

        results = []
        for handler in list(self._subscribers[name]):
            try:
                results.append(handler(event, payload))
            except Exception as e:
                logger.error("event_handler_failed", event_name=name, error=str(e))
        return results
