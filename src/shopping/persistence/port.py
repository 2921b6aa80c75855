"""Key-value storage port (abstract interface).

A durable, client-side key-value slot store: the browser's local storage on the web
storefront, a JSON file or an in-memory dict on the server. Values are
opaque strings; the cart persistence adapter owns the encoding.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

# Listener signature: (key, new_value_or_None, origin)
ChangeListener = Callable[[str, str | None, str | None], None]


class KeyValueStorage(ABC):
    """Abstract key-value storage interface."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None."""
        ...

    @abstractmethod
    def set(self, key: str, value: str, origin: str | None = None) -> None:
        """Store ``value`` under ``key``. ``origin`` identifies the writer for change listeners."""
        ...

    @abstractmethod
    def delete(self, key: str, origin: str | None = None) -> None:
        """Remove ``key``. Deleting a missing key is not an error."""
        ...

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:  # noqa: ARG002
        """Register for change notifications. Storages without notifications return a no-op."""
        return lambda: None
