"""
Checkout engine: turns a buyer's line items into orders and settles payment.

A checkout is one ``BEGIN IMMEDIATE`` transaction.  Inside it the engine loads
the buyer, the products and (for cart checkouts) the cart entries, validates
everything, and only then applies the mutations: insert orders, decrement
stock, delete consumed cart entries, debit the buyer and credit each seller
once with the sum of their lines.  Any error rolls the whole thing back.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List

from dao import MarketplaceStore, Product, User
from errors import ConflictError, MarketplaceError, NotFoundError, StorageError, ValidationError
from metrics import CHECKOUT_DURATION_SECONDS, CHECKOUT_ERROR_TOTAL, ORDERS_CREATED_TOTAL
from schemas import CheckoutItem, Identity, Role, parse_checkout_items, require_role, to_money

logger = logging.getLogger(__name__)


@dataclass
class OrderReceipt:
    order_id: int
    seller_id: int
    product_id: int
    quantity: int
    total: Decimal


@dataclass
class CheckoutResult:
    orders: List[OrderReceipt]
    total: Decimal
    buyer_balance: Decimal


@dataclass
class _Line:
    item: CheckoutItem
    product: Product
    amount: Decimal


@dataclass
class _Plan:
    buyer: User
    lines: List[_Line] = field(default_factory=list)
    total: Decimal = Decimal("0.00")

    def seller_credits(self) -> Dict[int, Decimal]:
        credits: Dict[int, Decimal] = defaultdict(lambda: Decimal("0.00"))
        for line in self.lines:
            credits[line.product.seller_id] += line.amount
        return dict(credits)


class CheckoutEngine:
    """Validates and settles checkouts against an injected store."""

    def __init__(self, store: MarketplaceStore) -> None:
        self.store = store

    # ---- Public API ----

    def process_checkout(
        self, identity: Identity, items: Iterable[Any], from_cart: bool = False
    ) -> CheckoutResult:
        """Check out ad-hoc line items (or cart lines when ``from_cart``).

        Items are dicts or :class:`CheckoutItem` objects with ``product_id``,
        ``quantity`` and optional ``seller_id`` / ``cart_entry_id``.

        Raises:
            AuthorizationError: The caller is not a buyer.
            ValidationError: Malformed items or a seller id that does not own the product.
            NotFoundError: Unknown buyer, product or cart entry.
            ConflictError: Not enough stock or balance.
            StorageError: The database failed; nothing was applied.
        """
        return self._run(identity, lambda: items, from_cart)

    def checkout_cart(self, identity: Identity) -> CheckoutResult:
        """Check out everything in the caller's cart and empty it."""

        def load_cart() -> List[CheckoutItem]:
            entries = self.store.cart.get_cart_entries(identity.id)
            if not entries:
                raise ValidationError("Cart is empty")
            return [
                CheckoutItem(product_id=e.product_id, quantity=e.quantity, cart_entry_id=e.id)
                for e in entries
            ]

        return self._run(identity, load_cart, from_cart=True)

    # ---- Internals ----

    def _run(
        self, identity: Identity, load_items: Callable[[], Iterable[Any]], from_cart: bool
    ) -> CheckoutResult:
        start_time = time.perf_counter()
        error_type: str | None = None
        buyer_id = identity.id if identity is not None else None
        try:
            require_role(identity, Role.BUYER, message="Only buyers can check out")
            lines = parse_checkout_items(load_items())
            with self.store.transaction():
                plan = self._validate(identity.id, lines, from_cart)
                result = self._apply(plan, from_cart)
        except StorageError as exc:
            error_type = exc.category
            logger.error(
                "Checkout rolled back",
                extra={"user_id": buyer_id, "extra": {"error": exc.message}},
            )
            raise
        except MarketplaceError as exc:
            error_type = exc.category
            logger.warning(
                "Checkout rejected",
                extra={"user_id": buyer_id, "extra": {"reason": exc.message, "type": exc.category}},
            )
            raise
        finally:
            duration = time.perf_counter() - start_time
            CHECKOUT_DURATION_SECONDS.observe(duration, outcome="error" if error_type else "success")
            if error_type:
                CHECKOUT_ERROR_TOTAL.inc(type=error_type)

        ORDERS_CREATED_TOTAL.inc(amount=len(result.orders))
        logger.info(
            "Payment processed, orders created",
            extra={
                "user_id": buyer_id,
                "extra": {
                    "total": str(result.total),
                    "orders": [o.order_id for o in result.orders],
                    "from_cart": from_cart,
                },
            },
        )
        return result

    def _validate(self, buyer_id: int, items: List[CheckoutItem], from_cart: bool) -> _Plan:
        """Read live state under the write lock and check every precondition."""
        buyer = self.store.users.get_user(buyer_id)
        if buyer is None:
            raise NotFoundError("buyer", buyer_id, "Buyer not found")

        products = {
            p.id: p for p in self.store.products.get_products_by_ids(it.product_id for it in items)
        }
        plan = _Plan(buyer=buyer)
        # Repeated lines for one product draw on the same stock
        demand: Dict[int, int] = defaultdict(int)
        for item in items:
            product = products.get(item.product_id)
            if product is None:
                raise NotFoundError("product", item.product_id)
            if item.seller_id is not None and item.seller_id != product.seller_id:
                raise ValidationError(f"Seller mismatch for product {item.product_id}")
            demand[product.id] += item.quantity
            if product.quantity < demand[product.id]:
                raise ConflictError(f"Insufficient stock for product: {product.id}")
            plan.lines.append(_Line(item, product, to_money(product.price * item.quantity)))

        plan.total = to_money(sum((line.amount for line in plan.lines), Decimal("0")))
        if buyer.balance < plan.total:
            raise ConflictError("Insufficient balance")

        if from_cart:
            self._validate_cart_entries(buyer_id, items)
        return plan

    def _validate_cart_entries(self, buyer_id: int, items: List[CheckoutItem]) -> None:
        seen: set[int] = set()
        for item in items:
            entry_id = item.cart_entry_id
            if entry_id is None:
                continue
            if entry_id in seen:
                raise ValidationError(f"Cart entry {entry_id} listed twice")
            seen.add(entry_id)
            entry = self.store.cart.get_entry(entry_id)
            if entry is None or entry.buyer_id != buyer_id:
                raise NotFoundError("cart entry", entry_id)
            if entry.product_id != item.product_id:
                raise ValidationError(f"Cart entry {entry_id} does not hold product {item.product_id}")

    def _apply(self, plan: _Plan, from_cart: bool) -> CheckoutResult:
        buyer_id = plan.buyer.id
        receipts: List[OrderReceipt] = []
        for line in plan.lines:
            product = line.product
            order_id = self.store.orders.create_order(
                buyer_id=buyer_id,
                seller_id=product.seller_id,
                product_id=product.id,
                quantity=line.item.quantity,
                total=line.amount,
            )
            if not self.store.products.decrement_stock(product.id, line.item.quantity):
                raise ConflictError(f"Insufficient stock for product: {product.id}")
            if from_cart and line.item.cart_entry_id is not None:
                self.store.cart.delete_cart_entry(line.item.cart_entry_id)
            receipts.append(
                OrderReceipt(
                    order_id=order_id,
                    seller_id=product.seller_id,
                    product_id=product.id,
                    quantity=line.item.quantity,
                    total=line.amount,
                )
            )

        buyer_balance = self.store.users.adjust_balance(buyer_id, -plan.total)
        for seller_id, amount in plan.seller_credits().items():
            self.store.users.adjust_balance(seller_id, amount)
        return CheckoutResult(orders=receipts, total=plan.total, buyer_balance=buyer_balance)
