from typing import Dict, List, Callable, Any
import asyncio
import logging

logger = logging.getLogger(__name__)

LEADERBOARD_REBUILT = "leaderboard_rebuilt"

class EventBus:
    """In-process publish/subscribe for coroutine handlers.

    Handlers run concurrently; a failing handler is logged and does not
    affect the others or the publisher.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, handler: Callable):
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, event_type: str, handler: Callable):
        if handler in self._handlers.get(event_type, []):
            self._handlers[event_type].remove(handler)

    async def publish(self, event_type: str, data: Dict[str, Any]):
        handlers = list(self._handlers.get(event_type, []))
        if not handlers:
            return

        results = await asyncio.gather(*(handler(data) for handler in handlers), return_exceptions=True)
        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(f"Error in event handler {handler.__name__}: {result}")

event_bus = EventBus()
