"""Cart persistence adapter — mirrors cart state into durable key-value slots.

Two slots per browsing session:

    "cart"       lines + active coupon, rewritten after every mutation
    "lastOrder"  the most recent checkout, read once by the confirmation page

Derived totals are never written; they are recomputed from the lines on
load. A missing or unreadable "cart" slot loads as an empty cart: corrupt
client state must never take the storefront down.

Writes are numbered. A write that completes after a newer write has already
landed is dropped, so a slow earlier save can never overwrite a later one.
"""

import asyncio
import json
import threading
from uuid import uuid4

import structlog
from protean.exceptions import ValidationError

from shopping.cart.cart import Cart

logger = structlog.get_logger(__name__)

CART_SLOT = "cart"
LAST_ORDER_SLOT = "lastOrder"


class CartPersistence:
    def __init__(self, storage, namespace: str | None = None) -> None:
        self.storage = storage
        self.namespace = namespace
        self.origin = uuid4().hex
        self._lock = threading.RLock()
        self._issued_seq = 0
        self._written_seq = 0

    # -------------------------------------------------------------------
    # Slot names
    # -------------------------------------------------------------------
    def _slot(self, name: str) -> str:
        return f"{self.namespace}:{name}" if self.namespace else name

    @property
    def cart_slot(self) -> str:
        return self._slot(CART_SLOT)

    @property
    def last_order_slot(self) -> str:
        return self._slot(LAST_ORDER_SLOT)

    # -------------------------------------------------------------------
    # Cart slot
    # -------------------------------------------------------------------
    @property
    def has_pending_writes(self) -> bool:
        """True while a save has been issued but has not reached storage yet."""
        with self._lock:
            return self._issued_seq > self._written_seq

    def _issue(self, cart) -> tuple[int, str]:
        payload = json.dumps(cart.to_state())
        with self._lock:
            self._issued_seq += 1
            return self._issued_seq, payload

    def _write(self, seq: int, payload: str) -> bool:
        with self._lock:
            if seq < self._written_seq:
                logger.debug("stale_cart_write_dropped", seq=seq, written_seq=self._written_seq)
                return False
            self.storage.set(self.cart_slot, payload, origin=self.origin)
            self._written_seq = seq
            return True

    def save(self, cart) -> None:
        """Write the cart's lines and coupon to the "cart" slot."""
        seq, payload = self._issue(cart)
        self._write(seq, payload)

    def save_async(self, cart):
        """Fire-and-forget flavour of ``save``.

        The payload and its sequence number are taken now; the returned
        awaitable performs the storage write in a worker thread and resolves
        to False when a newer write landed first.
        """
        seq, payload = self._issue(cart)
        return asyncio.to_thread(self._write, seq, payload)

    def load(self, session_id=None) -> Cart:
        """Read the "cart" slot. Anything unreadable comes back as an empty cart."""
        raw = self.storage.get(self.cart_slot)
        if raw is None:
            return Cart.create(session_id=session_id)

        try:
            state = json.loads(raw)
            return Cart.from_state(state, session_id=session_id)
        except (ValueError, TypeError, KeyError, AttributeError, ValidationError) as exc:
            logger.warning(
                "persistence_corrupt",
                slot=self.cart_slot,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return Cart.create(session_id=session_id)

    def clear(self) -> None:
        self.storage.delete(self.cart_slot, origin=self.origin)

    # -------------------------------------------------------------------
    # Last-order slot (read once)
    # -------------------------------------------------------------------
    def save_last_order(self, record: dict) -> None:
        self.storage.set(self.last_order_slot, json.dumps(record), origin=self.origin)

    def consume_last_order(self) -> dict | None:
        """Return the stored last order and delete it. A second read returns None."""
        raw = self.storage.get(self.last_order_slot)
        if raw is None:
            return None

        self.storage.delete(self.last_order_slot, origin=self.origin)
        try:
            record = json.loads(raw)
        except ValueError:
            logger.warning("persistence_corrupt", slot=self.last_order_slot)
            return None
        return record if isinstance(record, dict) else None

    # -------------------------------------------------------------------
    # Change notifications
    # -------------------------------------------------------------------
    def watch(self, on_external_change):
        """Call ``on_external_change()`` whenever another writer changes the "cart" slot."""

        def listener(key, value, origin):  # noqa: ARG001
            if key == self.cart_slot and origin != self.origin:
                on_external_change()

        return self.storage.subscribe(listener)
