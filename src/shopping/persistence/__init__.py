"""Storage factory — pluggable durable key-value storage for cart state."""

import os

_storage_instance = None


def get_storage():
    """Return the configured storage (singleton).

    Uses InMemoryStorage by default. Set CART_STORAGE=file (and optionally
    CART_STORAGE_DIR) to keep carts in JSON files instead.
    """
    global _storage_instance
    if _storage_instance is None:
        backend = os.environ.get("CART_STORAGE", "memory")
        if backend == "memory":
            from shopping.persistence.memory_storage import InMemoryStorage

            _storage_instance = InMemoryStorage()
        elif backend == "file":
            from shopping.persistence.file_storage import JsonFileStorage

            _storage_instance = JsonFileStorage(os.environ.get("CART_STORAGE_DIR", ".carts"))
        else:
            raise ValueError(f"Unknown cart storage: {backend}")
    return _storage_instance


def reset_storage():
    """Reset the storage singleton (useful for testing)."""
    global _storage_instance
    _storage_instance = None
