"""
Post-checkout order handling: seller status updates, buyer cancellation and
order queries.

Cancellation is committed first; the stock it frees is put back afterwards as
a separate, best-effort write.  If that restore fails the order stays
canceled and the failure is logged and counted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import List

from dao import MarketplaceStore, Order
from errors import (
    AuthorizationError,
    ConflictError,
    MarketplaceError,
    NotFoundError,
    ValidationError,
)
from metrics import (
    ORDER_CANCELLATIONS_TOTAL,
    ORDER_STATUS_UPDATES_TOTAL,
    STOCK_RESTORE_FAILURES_TOTAL,
)
from schemas import (
    DeliveryStatus,
    Identity,
    PaymentStatus,
    Role,
    StatusUpdate,
    parse,
    require_id,
    require_role,
)

logger = logging.getLogger(__name__)

# One message for "no such order" and "not yours" so callers cannot probe ids
ORDER_NOT_VISIBLE = "Order not found or unauthorized"

PENDING_STATE = (PaymentStatus.PENDING, DeliveryStatus.PENDING)
CANCELED_STATE = (PaymentStatus.CANCELED, DeliveryStatus.CANCELED)


@dataclass
class CancellationResult:
    order: Order
    restocked: bool


def _require_order_id(order_id) -> int:
    return require_id(order_id, "Order ID is required")


class OrderLifecycleManager:
    """Status transitions and compensating actions for existing orders."""

    def __init__(self, store: MarketplaceStore) -> None:
        self.store = store

    # ---- Seller side ----

    def update_status(
        self,
        identity: Identity,
        order_id: int,
        payment_status: PaymentStatus | str,
        delivery_status: DeliveryStatus | str,
    ) -> Order:
        """Set both status fields of an order the calling seller owns.

        Canceled is not a value sellers may set, and a canceled order accepts
        no further updates.

        Raises:
            AuthorizationError: Caller is not a seller, or the order is unknown
                or belongs to another seller (not distinguished).
            ValidationError: Missing or invalid status values.
            ConflictError: The order is already canceled.
        """
        try:
            require_role(identity, Role.SELLER, message="Only sellers can update order status")
            _require_order_id(order_id)
            update = parse(
                StatusUpdate,
                {"payment_status": payment_status, "delivery_status": delivery_status},
                prefix="Invalid status",
            )
            if (
                update.payment_status == PaymentStatus.CANCELED
                or update.delivery_status == DeliveryStatus.CANCELED
            ):
                raise ValidationError("Invalid status: orders are canceled by the buyer, not the seller")

            with self.store.transaction():
                order = self.store.orders.get_order(order_id)
                if order is None or order.seller_id != identity.id:
                    raise AuthorizationError(ORDER_NOT_VISIBLE)
                if order.state == CANCELED_STATE:
                    raise ConflictError("Order is canceled and can no longer change")
                self.store.orders.set_order_status(order_id, update.payment_status, update.delivery_status)
        except MarketplaceError as exc:
            ORDER_STATUS_UPDATES_TOTAL.inc(result=exc.category)
            logger.warning(
                "Order status update rejected",
                extra={
                    "user_id": getattr(identity, "id", None),
                    "extra": {"order_id": order_id, "reason": exc.message},
                },
            )
            raise

        ORDER_STATUS_UPDATES_TOTAL.inc(result="updated")
        logger.info(
            "Order status updated",
            extra={
                "user_id": identity.id,
                "extra": {
                    "order_id": order_id,
                    "payment_status": update.payment_status.value,
                    "delivery_status": update.delivery_status.value,
                },
            },
        )
        return replace(
            order, payment_status=update.payment_status, delivery_status=update.delivery_status
        )

    # ---- Buyer side ----

    def cancel_order(self, identity: Identity, order_id: int) -> CancellationResult:
        """Cancel an order that is still (pending, pending) and restock it.

        Raises:
            ValidationError: Missing order id.
            NotFoundError: No such order.
            AuthorizationError: The caller is not the order's buyer.
            ConflictError: The order is not in the (pending, pending) state.
        """
        if identity is None:
            raise AuthorizationError("Unauthorized")
        _require_order_id(order_id)

        with self.store.transaction():
            order = self.store.orders.get_order(order_id)
            if order is None:
                raise NotFoundError("order", order_id)
            if order.buyer_id != identity.id:
                logger.warning(
                    "Unauthorized cancel attempt",
                    extra={"user_id": identity.id, "extra": {"order_id": order_id}},
                )
                raise AuthorizationError("Unauthorized")
            if order.state != PENDING_STATE:
                raise ConflictError("Order cannot be canceled in its current state")
            self.store.orders.set_order_status(order_id, *CANCELED_STATE)

        ORDER_CANCELLATIONS_TOTAL.inc()
        restocked = self._restore_stock(order)
        logger.info(
            "Order canceled",
            extra={"user_id": identity.id, "extra": {"order_id": order_id, "restocked": restocked}},
        )
        canceled = replace(
            order, payment_status=PaymentStatus.CANCELED, delivery_status=DeliveryStatus.CANCELED
        )
        return CancellationResult(order=canceled, restocked=restocked)

    def _restore_stock(self, order: Order) -> bool:
        try:
            restored = self.store.products.increment_stock(order.product_id, order.quantity)
            reason = "product no longer exists"
        except MarketplaceError as exc:
            restored = False
            reason = exc.message
        if not restored:
            STOCK_RESTORE_FAILURES_TOTAL.inc()
            logger.error(
                "Stock restore error",
                extra={
                    "extra": {
                        "order_id": order.id,
                        "product_id": order.product_id,
                        "quantity": order.quantity,
                        "reason": reason,
                    }
                },
            )
        return restored

    # ---- Queries ----

    def list_orders(self, identity: Identity) -> List[Order]:
        """Buyers see their purchases, sellers their sales, admins everything."""
        if identity is None:
            raise AuthorizationError("Unauthorized")
        if identity.role == Role.BUYER:
            return self.store.orders.list_for_buyer(identity.id)
        if identity.role == Role.SELLER:
            return self.store.orders.list_for_seller(identity.id)
        return self.store.orders.list_all()

    def get_order(self, identity: Identity, order_id: int) -> Order:
        if identity is None:
            raise AuthorizationError("Unauthorized")
        order = self.store.orders.get_order(_require_order_id(order_id))
        if order is None or not (
            identity.is_admin or identity.id in (order.buyer_id, order.seller_id)
        ):
            raise AuthorizationError(ORDER_NOT_VISIBLE)
        return order
