"""Cart Store — the one object every screen talks to about the cart.

The store wraps a ``Cart`` aggregate and gives the UI a mutation API that
never raises for business failures: every operation returns a ``CartResult``
carrying either the fresh totals or the reason it was refused. After each
successful mutation the store mirrors the cart into persistence and notifies
its subscribers, in that order.

Coupon validation is the only operation that waits on I/O. While it is in
flight ``is_validating_coupon`` is True and a second ``apply_coupon`` is
refused with ``CouponError.BUSY`` instead of being queued.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError

from shopping.cart.cart import Cart, CartTotals
from shopping.cart.errors import CapacityExceeded, CartError, CouponError, EmptyCartError, LineNotFound
from shopping.checkout.snapshot import OrderSnapshot, build_snapshot
from shopping.coupon.validator import CouponValidator

logger = structlog.get_logger(__name__)

Listener = Callable[[CartTotals], None]


@dataclass(frozen=True)
class CartResult:
    """Outcome of a cart operation."""

    success: bool
    totals: CartTotals | None = None
    error: CartError | CouponError | None = None
    message: str | None = None
    line_id: str | None = None
    previous_state: dict | None = None
    snapshot: OrderSnapshot | None = None


def _first_message(exc: ValidationError) -> str:
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        for field_messages in messages.values():
            if field_messages:
                return str(field_messages[0]) if isinstance(field_messages, list) else str(field_messages)
    return str(exc)


class CartStore:
    def __init__(
        self,
        cart: Cart | None = None,
        persistence=None,
        validator: CouponValidator | None = None,
        session_id: str | None = None,
        write_behind: bool = False,
    ) -> None:
        """Build a store around ``cart``, or around the cart found in ``persistence``.

        With ``write_behind`` set and an event loop running, saves are
        scheduled as background writes instead of happening inline.
        """
        self.session_id = session_id
        self.write_behind = write_behind
        self._persistence = persistence
        self._validator = validator or CouponValidator()
        self._listeners: list[Listener] = []
        self._validating = False
        self._pending_writes: set[asyncio.Task] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._bind_loop()
        self._log = logger.bind(session_id=session_id)

        if cart is None:
            cart = persistence.load(session_id=session_id) if persistence else Cart.create(session_id=session_id)
        self._cart = cart

        self._unwatch = persistence.watch(self._on_external_change) if persistence else None

    # -------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------
    @property
    def cart(self) -> Cart:
        return self._cart

    @property
    def lines(self):
        return list(self._cart.lines)

    @property
    def coupon(self):
        return self._cart.coupon

    @property
    def is_empty(self) -> bool:
        return self._cart.is_empty

    @property
    def is_validating_coupon(self) -> bool:
        return self._validating

    @property
    def cart_count(self) -> int:
        return self._cart.unit_count

    @property
    def base_subtotal(self) -> float:
        return self._cart.base_subtotal

    @property
    def total_customization_fee(self) -> float:
        return self._cart.total_customization_fee

    @property
    def subtotal(self) -> float:
        return self._cart.subtotal

    @property
    def discount_amount(self) -> float:
        return self._cart.discount_amount

    @property
    def shipping_price(self) -> float:
        return self._cart.shipping_price

    @property
    def total_price(self) -> float:
        return self._cart.total_price

    @property
    def totals(self) -> CartTotals:
        return self._cart.totals()

    # -------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(totals)`` after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        totals = self.totals
        for listener in list(self._listeners):
            try:
                listener(totals)
            except Exception:
                self._log.exception("cart_listener_failed", listener=repr(listener))

    # -------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------
    def _bind_loop(self) -> None:
        """Remember the event loop this store is driven from, if any."""
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            pass

    def _persist(self) -> None:
        self._bind_loop()
        if self._persistence is None:
            return

        if self.write_behind:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                task = loop.create_task(self._persistence.save_async(self._cart))
                self._pending_writes.add(task)
                task.add_done_callback(self._pending_writes.discard)
                return

        self._persistence.save(self._cart)

    async def flush(self) -> None:
        """Wait for every background write issued so far."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes))

    def _committed(self, operation: str, line_id=None, previous_state=None, **context) -> CartResult:
        self._persist()
        self._notify()
        totals = self.totals
        self._log.info(operation, line_id=line_id, cart_count=totals.cart_count, total_price=totals.total_price, **context)
        return CartResult(success=True, totals=totals, line_id=line_id, previous_state=previous_state)

    def _rejected(self, operation: str, error, exc=None, message=None) -> CartResult:
        message = message or (_first_message(exc) if exc is not None else None)
        self._log.info(f"{operation}_rejected", error=error.value, reason=message)
        return CartResult(success=False, totals=self.totals, error=error, message=message)

    def _on_external_change(self) -> None:
        # Storage may announce a change from a writer thread; reload on the loop that owns the cart
        loop = self._loop
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if loop is not None and current is not loop and loop.is_running():
            loop.call_soon_threadsafe(self._on_external_change)
            return

        if self._pending_writes or (self._persistence and self._persistence.has_pending_writes):
            self._log.info("external_cart_change_deferred")
            return
        self.reload()

    def reload(self) -> None:
        """Replace the in-memory cart with what persistence currently holds."""
        self._cart = self._persistence.load(session_id=self.session_id)
        self._log.info("cart_reloaded", cart_count=self._cart.unit_count)
        self._notify()

    def close(self) -> None:
        """Stop listening for external changes."""
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(self, product, size, quantity=1, customization=None) -> CartResult:
        try:
            line = self._cart.add_item(product, size, quantity=quantity, customization=customization)
        except CapacityExceeded as exc:
            return self._rejected("add_item", CartError.CAPACITY_EXCEEDED, exc)
        except (ValidationError, KeyError, TypeError, ValueError) as exc:
            return self._rejected("add_item", CartError.INVALID_ITEM, exc)

        return self._committed("add_item", line_id=str(line.id))

    def update_quantity(self, line_id, new_quantity) -> CartResult:
        if isinstance(new_quantity, int) and new_quantity < 1:
            return self.remove_item(line_id)

        try:
            self._cart.update_quantity(line_id, new_quantity)
        except CapacityExceeded as exc:
            return self._rejected("update_quantity", CartError.CAPACITY_EXCEEDED, exc)
        except LineNotFound as exc:
            return self._rejected("update_quantity", CartError.LINE_NOT_FOUND, exc)
        except (ValidationError, TypeError) as exc:
            return self._rejected("update_quantity", CartError.INVALID_ITEM, exc)

        return self._committed("update_quantity", line_id=str(line_id))

    def remove_item(self, line_id) -> CartResult:
        if not self._cart.remove_item(line_id):
            return CartResult(success=True, totals=self.totals, line_id=str(line_id))
        return self._committed("remove_item", line_id=str(line_id))

    def clear_cart(self) -> CartResult:
        """Empty the cart. ``previous_state`` in the result feeds ``restore`` for undo."""
        previous_state = self._cart.clear()
        return self._committed("clear_cart", previous_state=previous_state)

    def restore(self, previous_state: dict) -> CartResult:
        """Put back a state captured by ``clear_cart`` (undo)."""
        try:
            self._cart.restore(previous_state)
        except CapacityExceeded as exc:
            return self._rejected("restore", CartError.CAPACITY_EXCEEDED, exc)
        except (ValidationError, KeyError, TypeError, ValueError) as exc:
            return self._rejected("restore", CartError.INVALID_ITEM, exc)

        return self._committed("restore")

    # -------------------------------------------------------------------
    # Coupons
    # -------------------------------------------------------------------
    async def apply_coupon(self, code, timeout: float | None = None) -> CartResult:
        self._bind_loop()
        if self._validating:
            return self._rejected("apply_coupon", CouponError.BUSY, message="A coupon is already being verified")

        self._validating = True
        try:
            validation = await self._validator.validate(code, self._cart, timeout=timeout)
        finally:
            self._validating = False

        if not validation.success:
            return self._rejected("apply_coupon", validation.error, message=validation.message)

        self._cart.apply_coupon(validation.coupon)
        return self._committed("apply_coupon", coupon_code=validation.code)

    def remove_coupon(self) -> CartResult:
        self._cart.remove_coupon()
        return self._committed("remove_coupon")

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def build_snapshot(self, customer_info, shipping_address) -> CartResult:
        """Freeze the cart without consuming it."""
        try:
            snapshot = build_snapshot(self._cart, customer_info, shipping_address)
        except EmptyCartError as exc:
            return self._rejected("checkout", CartError.EMPTY_CART, exc)
        except (ValidationError, KeyError, TypeError, ValueError) as exc:
            return self._rejected("checkout", CartError.INVALID_CHECKOUT_DETAILS, exc)
        return CartResult(success=True, totals=self.totals, snapshot=snapshot)

    def checkout(self, customer_info, shipping_address, preference_id: str | None = None) -> CartResult:
        """Freeze the cart, hand the snapshot to the "lastOrder" slot and reset the cart."""
        result = self.build_snapshot(customer_info, shipping_address)
        if not result.success:
            return result

        snapshot = result.snapshot
        if self._persistence is not None:
            self._persistence.save_last_order(snapshot.to_last_order(preference_id))

        self._cart.clear()
        committed = self._committed("checkout", order_number=snapshot.order_number)
        return CartResult(success=True, totals=committed.totals, snapshot=snapshot)

    def consume_last_order(self) -> dict | None:
        """Read-once access to the most recent checkout for the confirmation page."""
        if self._persistence is None:
            return None
        return self._persistence.consume_last_order()

