import unittest
from decimal import Decimal

from marketplace_fixtures import BrokenRestockProductDAO, MarketplaceTestCase, VanishedProductDAO

from errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from metrics import ORDER_CANCELLATIONS_TOTAL, ORDER_STATUS_UPDATES_TOTAL, STOCK_RESTORE_FAILURES_TOTAL
from order_lifecycle import ORDER_NOT_VISIBLE
from schemas import DeliveryStatus, Identity, PaymentStatus, Role


class LifecycleTestCase(MarketplaceTestCase):
    """Seeds one seller, one buyer and a single order of 3 out of 5 units."""

    def setUp(self):
        super().setUp()
        self.seller = self.make_seller()
        self.buyer = self.make_buyer("100")
        self.product = self.make_product(self.seller, price="10", quantity=5)
        result = self.app.checkout(self.buyer, [{"product_id": self.product, "quantity": 3}])
        self.order_id = result.orders[0].order_id

    def order(self):
        return self.store.orders.get_order(self.order_id)

    def make_pending(self):
        self.app.update_order_status(self.seller, self.order_id, "pending", "pending")


class TestCancellation(LifecycleTestCase):

    def test_new_orders_are_paid_and_awaiting_delivery(self):
        self.assertEqual(self.order().state, (PaymentStatus.COMPLETED, DeliveryStatus.PENDING))

    def test_paid_order_cannot_be_canceled(self):
        with self.assertRaises(ConflictError):
            self.app.cancel_order(self.buyer, self.order_id)
        self.assertEqual(self.order().state, (PaymentStatus.COMPLETED, DeliveryStatus.PENDING))
        self.assertEqual(self.stock(self.product), 2)

    def test_cancel_pending_order_restores_stock(self):
        self.make_pending()
        before = ORDER_CANCELLATIONS_TOTAL.value()

        result = self.app.cancel_order(self.buyer, self.order_id)

        self.assertTrue(result.restocked)
        self.assertEqual(result.order.state, (PaymentStatus.CANCELED, DeliveryStatus.CANCELED))
        self.assertEqual(self.order().state, (PaymentStatus.CANCELED, DeliveryStatus.CANCELED))
        self.assertEqual(self.stock(self.product), 5)
        self.assertEqual(ORDER_CANCELLATIONS_TOTAL.value(), before + 1)

    def test_cancellation_does_not_refund(self):
        self.make_pending()
        self.app.cancel_order(self.buyer, self.order_id)
        self.assertEqual(self.balance(self.buyer), Decimal("70"))
        self.assertEqual(self.balance(self.seller), Decimal("30"))

    def test_cancel_twice(self):
        self.make_pending()
        self.app.cancel_order(self.buyer, self.order_id)
        with self.assertRaises(ConflictError):
            self.app.cancel_order(self.buyer, self.order_id)
        self.assertEqual(self.stock(self.product), 5)

    def test_only_the_buyer_may_cancel(self):
        self.make_pending()
        stranger = self.make_buyer("0")
        with self.assertRaises(AuthorizationError):
            self.app.cancel_order(stranger, self.order_id)
        with self.assertRaises(AuthorizationError):
            self.app.cancel_order(self.seller, self.order_id)
        self.assertEqual(self.order().state, (PaymentStatus.PENDING, DeliveryStatus.PENDING))
        self.assertEqual(self.stock(self.product), 2)

    def test_unknown_order(self):
        with self.assertRaises(NotFoundError):
            self.app.cancel_order(self.buyer, 9999)

    def test_missing_order_id(self):
        for bad in (None, 0, -3, "1", True, 2**63, 2**70):
            with self.subTest(order_id=bad):
                with self.assertRaises(ValidationError) as ctx:
                    self.app.cancel_order(self.buyer, bad)
                self.assertEqual(ctx.exception.message, "Order ID is required")


class TestFailedRestock(LifecycleTestCase):
    """The cancellation stands even when the stock cannot be put back."""

    dao_factories = {"products": BrokenRestockProductDAO}

    def test_restore_failure_is_logged_not_raised(self):
        self.make_pending()
        failures_before = STOCK_RESTORE_FAILURES_TOTAL.value()

        with self.assertLogs("order_lifecycle", level="ERROR") as logs:
            result = self.app.cancel_order(self.buyer, self.order_id)

        self.assertFalse(result.restocked)
        self.assertEqual(self.order().state, (PaymentStatus.CANCELED, DeliveryStatus.CANCELED))
        self.assertEqual(self.stock(self.product), 2)
        self.assertEqual(STOCK_RESTORE_FAILURES_TOTAL.value(), failures_before + 1)
        self.assertTrue(any("Stock restore error" in line for line in logs.output))


class TestRestockRaisingMarketplaceError(LifecycleTestCase):

    dao_factories = {"products": VanishedProductDAO}

    def test_committed_cancellation_is_still_reported(self):
        self.make_pending()
        failures_before = STOCK_RESTORE_FAILURES_TOTAL.value()

        with self.assertLogs("order_lifecycle", level="ERROR"):
            result = self.app.cancel_order(self.buyer, self.order_id)

        self.assertFalse(result.restocked)
        self.assertEqual(result.order.state, (PaymentStatus.CANCELED, DeliveryStatus.CANCELED))
        self.assertEqual(self.order().state, (PaymentStatus.CANCELED, DeliveryStatus.CANCELED))
        self.assertEqual(STOCK_RESTORE_FAILURES_TOTAL.value(), failures_before + 1)


class TestStatusUpdates(LifecycleTestCase):

    def test_owner_updates_status(self):
        before = ORDER_STATUS_UPDATES_TOTAL.value(result="updated")

        updated = self.app.update_order_status(self.seller, self.order_id, "completed", "shipped")

        self.assertEqual(updated.state, (PaymentStatus.COMPLETED, DeliveryStatus.SHIPPED))
        self.assertEqual(self.order().state, (PaymentStatus.COMPLETED, DeliveryStatus.SHIPPED))
        self.assertEqual(ORDER_STATUS_UPDATES_TOTAL.value(result="updated"), before + 1)

    def test_enum_values_are_accepted(self):
        self.app.update_order_status(
            self.seller, self.order_id, PaymentStatus.FAILED, DeliveryStatus.DELIVERED
        )
        self.assertEqual(self.order().state, (PaymentStatus.FAILED, DeliveryStatus.DELIVERED))

    def test_other_seller_and_unknown_order_look_the_same(self):
        rival = self.make_seller()
        with self.assertRaises(AuthorizationError) as foreign:
            self.app.update_order_status(rival, self.order_id, "completed", "shipped")
        with self.assertRaises(AuthorizationError) as missing:
            self.app.update_order_status(self.seller, 9999, "completed", "shipped")

        self.assertEqual(foreign.exception.message, ORDER_NOT_VISIBLE)
        self.assertEqual(missing.exception.message, ORDER_NOT_VISIBLE)
        self.assertEqual(self.order().state, (PaymentStatus.COMPLETED, DeliveryStatus.PENDING))

    def test_invalid_status_values(self):
        cases = [
            ("paid", "pending"),
            ("completed", "lost"),
            (None, "pending"),
            ("completed", None),
            ("canceled", "pending"),
            ("completed", "canceled"),
        ]
        for payment, delivery in cases:
            with self.subTest(payment=payment, delivery=delivery):
                with self.assertRaises(ValidationError):
                    self.app.update_order_status(self.seller, self.order_id, payment, delivery)
        self.assertEqual(self.order().state, (PaymentStatus.COMPLETED, DeliveryStatus.PENDING))

    def test_out_of_range_order_id(self):
        with self.assertRaises(ValidationError):
            self.app.update_order_status(self.seller, 2**70, "completed", "shipped")
        with self.assertRaises(ValidationError):
            self.app.lifecycle.get_order(self.buyer, 2**70)

    def test_buyers_cannot_update_status(self):
        with self.assertRaises(AuthorizationError):
            self.app.update_order_status(self.buyer, self.order_id, "completed", "shipped")

    def test_canceled_order_is_final(self):
        self.make_pending()
        self.app.cancel_order(self.buyer, self.order_id)
        with self.assertRaises(ConflictError):
            self.app.update_order_status(self.seller, self.order_id, "completed", "shipped")
        self.assertEqual(self.order().state, (PaymentStatus.CANCELED, DeliveryStatus.CANCELED))

    def test_rejections_are_counted(self):
        before = ORDER_STATUS_UPDATES_TOTAL.value(result="validation")
        with self.assertRaises(ValidationError):
            self.app.update_order_status(self.seller, self.order_id, "paid", "pending")
        self.assertEqual(ORDER_STATUS_UPDATES_TOTAL.value(result="validation"), before + 1)


class TestOrderQueries(LifecycleTestCase):

    def test_listing_by_role(self):
        other_buyer = self.make_buyer("50")
        self.app.checkout(other_buyer, [{"product_id": self.product, "quantity": 1}])
        other_seller = self.make_seller()

        self.assertEqual([o.id for o in self.app.orders(self.buyer)], [self.order_id])
        self.assertEqual(len(self.app.orders(other_buyer)), 1)
        self.assertEqual(len(self.app.orders(self.seller)), 2)
        self.assertEqual(self.app.orders(other_seller), [])
        self.assertEqual(len(self.app.orders(self.admin)), 2)

    def test_get_order_visibility(self):
        lifecycle = self.app.lifecycle
        self.assertEqual(lifecycle.get_order(self.buyer, self.order_id).id, self.order_id)
        self.assertEqual(lifecycle.get_order(self.seller, self.order_id).id, self.order_id)
        self.assertEqual(lifecycle.get_order(self.admin, self.order_id).id, self.order_id)

        with self.assertRaises(AuthorizationError):
            lifecycle.get_order(self.make_buyer(), self.order_id)
        with self.assertRaises(AuthorizationError):
            lifecycle.get_order(Identity(id=self.seller.id, role=Role.SELLER), 9999)


if __name__ == "__main__":
    unittest.main(verbosity=2)
