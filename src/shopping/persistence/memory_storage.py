"""In-memory key-value storage with change notifications.

Several persistence adapters sharing one InMemoryStorage behave like several
browser tabs sharing local storage: each write is announced to every
listener, tagged with the writer's origin.
"""

import threading

from shopping.persistence.port import ChangeListener, KeyValueStorage


class InMemoryStorage(KeyValueStorage):
    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self._listeners: list[ChangeListener] = []
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self.data.get(key)

    def set(self, key: str, value: str, origin: str | None = None) -> None:
        with self._lock:
            self.data[key] = value
        self._notify(key, value, origin)

    def delete(self, key: str, origin: str | None = None) -> None:
        with self._lock:
            existed = self.data.pop(key, None) is not None
        if existed:
            self._notify(key, None, origin)

    def subscribe(self, listener: ChangeListener):
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key, value, origin):
        for listener in list(self._listeners):
            listener(key, value, origin)
