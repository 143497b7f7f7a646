"""Tournament event dispatch."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Awaitable, Callable, DefaultDict

EventListener = Callable[[Any], Awaitable[None]]

PLAYER_REGISTERED = "player.registered"
PLAYER_STATUS_CHANGED = "player.status_changed"
MATCH_RECORDED = "match.recorded"
MATCH_CORRECTED = "match.corrected"
MATCHING_COMMITTED = "matching.committed"


class EventBus:
    """Async pub-sub; listeners run in subscription order after a commit."""

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, list[EventListener]] = defaultdict(list)

    def subscribe(self, event_name: str, listener: EventListener) -> None:
        self._listeners[event_name].append(listener)

    async def publish(self, event_name: str, payload: Any) -> None:
        for listener in list(self._listeners.get(event_name, ())):
            await listener(payload)
