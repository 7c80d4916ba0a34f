"""
Refresh signal bus.

Level-triggered invalidation hint broadcast after mutations that may change
notification state. Owned by the application shell, handed to services.
A failing subscriber is logged and never breaks the publisher.
"""

import inspect
import logging
from typing import Any, Callable, Dict, List

from config import now_iso

logger = logging.getLogger("events")


class RefreshSignal:
    """Payload delivered to subscribers"""

    def __init__(self, source: str, timestamp: str = None):
        self.source = source
        self.timestamp = timestamp or now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "source": self.source}


class RefreshBus:
    """Publish / subscribe for RefreshSignal"""

    def __init__(self):
        self._subscribers: List[Callable] = []
        self.last_signal = None

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        """Register a callback (sync or async). Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: Callable) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, source: str) -> RefreshSignal:
        signal = RefreshSignal(source)
        self.last_signal = signal

        for callback in list(self._subscribers):
            try:
                result = callback(signal)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"[REFRESH] Subscriber failed for source={source}: {e}")

        return signal
