"""In-process live subscriptions for chat screens.

Subscribers register a callback per key (a chat id, or a user id for chat
lists) and receive the full current list on every change. ``subscribe``
returns the matching unsubscribe function; whoever subscribes must call it on
teardown.
"""

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, Hashable, List

logger = logging.getLogger(__name__)

Callback = Callable[[List[Dict[str, Any]]], None]


class ChatHub:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[Hashable, Dict[int, Callback]] = defaultdict(dict)
        self._next_token = 0

    def subscribe(self, key: Hashable, callback: Callback) -> Callable[[], None]:
        with self._lock:
            self._next_token += 1
            token = self._next_token
            self._subscribers[key][token] = callback

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._subscribers.get(key)
                if listeners is None:
                    return
                listeners.pop(token, None)
                if not listeners:
                    del self._subscribers[key]

        return unsubscribe

    def publish(self, key: Hashable, payload: List[Dict[str, Any]]) -> int:
        with self._lock:
            listeners = list(self._subscribers.get(key, {}).values())
        for callback in listeners:
            try:
                callback(payload)
            except Exception as exc:
                logger.warning("Chat subscriber for %r failed: %s", key, exc)
        return len(listeners)

    def subscriber_count(self, key: Hashable) -> int:
        with self._lock:
            return len(self._subscribers.get(key, {}))


hub = ChatHub()
