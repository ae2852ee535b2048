import unittest
from decimal import Decimal

from marketplace_fixtures import MarketplaceTestCase

import dao
from errors import ConflictError, NotFoundError, StorageError
from schemas import DeliveryStatus, PaymentStatus


class TestSchema(MarketplaceTestCase):

    def test_schema_is_applied_once(self):
        conn = self.store.db.connection()
        (version,) = conn.execute("PRAGMA user_version;").fetchone()
        self.assertEqual(version, dao.SCHEMA_VERSION)
        tables = {
            row["name"]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table';")
        }
        for table in ("users", "sellers", "products", "cart", "orders", "seller_approvals"):
            self.assertIn(table, tables)

    def test_reopening_keeps_data(self):
        seller = self.make_seller()
        pid = self.make_product(seller)
        reopened = dao.MarketplaceStore(dao.Database(self.store.db.path))
        try:
            self.assertEqual(reopened.products.get_product(pid).quantity, 5)
        finally:
            reopened.close()


class TestTransactions(MarketplaceTestCase):

    def test_exception_rolls_back_all_statements(self):
        seller = self.make_seller("10")
        pid = self.make_product(seller)

        with self.assertRaises(RuntimeError):
            with self.store.transaction():
                self.store.products.decrement_stock(pid, 2)
                self.store.users.adjust_balance(seller.id, Decimal("5"))
                raise RuntimeError("boom")

        self.assertEqual(self.stock(pid), 5)
        self.assertEqual(self.balance(seller), Decimal("10"))
        self.assertFalse(self.store.db.connection().in_transaction)

    def test_nested_blocks_join_the_outer_transaction(self):
        seller = self.make_seller("10")
        with self.assertRaises(ConflictError):
            with self.store.transaction():
                self.store.users.adjust_balance(seller.id, Decimal("5"))
                self.store.users.adjust_balance(seller.id, Decimal("-50"))
        self.assertEqual(self.balance(seller), Decimal("10"))

    def test_driver_errors_become_storage_errors(self):
        with self.assertRaises(StorageError):
            with self.store.transaction() as conn:
                conn.execute("UPDATE no_such_table SET x = 1;")
        self.assertFalse(self.store.db.connection().in_transaction)

    def test_constraint_violation_is_a_storage_error(self):
        seller = self.make_seller()
        pid = self.make_product(seller)
        with self.assertRaises(StorageError):
            with self.store.transaction() as conn:
                conn.execute("UPDATE products SET quantity = -1 WHERE id = ?;", (pid,))
        self.assertEqual(self.stock(pid), 5)


class TestUserDAO(MarketplaceTestCase):

    def test_adjust_balance(self):
        buyer = self.make_buyer("1.10")
        users = self.store.users
        self.assertEqual(users.adjust_balance(buyer.id, Decimal("0.20")), Decimal("1.30"))
        with self.assertRaises(ConflictError):
            users.adjust_balance(buyer.id, Decimal("-1.31"))
        self.assertEqual(users.adjust_balance(buyer.id, Decimal("-1.30")), Decimal("0.00"))
        with self.assertRaises(NotFoundError):
            users.adjust_balance(9999, Decimal("1"))

    def test_set_balance_unknown_user(self):
        self.assertFalse(self.store.users.set_balance(9999, Decimal("1")))

    def test_passwords_are_not_stored_in_clear(self):
        self.make_buyer()
        rows = self.store.db.connection().execute("SELECT password_hash FROM users;").fetchall()
        self.assertTrue(rows)
        for row in rows:
            self.assertNotEqual(row["password_hash"], "secret")
            self.assertEqual(len(row["password_hash"]), 64)


class TestSellerDetailsDAO(MarketplaceTestCase):

    def test_one_record_per_seller(self):
        seller = self.make_seller(approved=False)
        details = self.store.seller_details
        self.assertIsNone(details.get(seller.id))

        details.submit(seller.id, "MSME-1", "docs/msme-1.pdf", "4 Mill Road", "1234", "9876")
        profile = details.get(seller.id)
        self.assertEqual(profile.msme_number, "MSME-1")
        self.assertEqual(profile.msme_doc, "docs/msme-1.pdf")
        self.assertTrue(profile.submitted_at)

        with self.assertRaises(ConflictError):
            details.submit(seller.id, "MSME-2", "docs/msme-2.pdf", "5 Mill Road", "1234", "9876")
        self.assertEqual(details.get(seller.id).msme_number, "MSME-1")


class TestProductDAO(MarketplaceTestCase):

    def setUp(self):
        super().setUp()
        self.seller = self.make_seller()
        self.pid = self.make_product(self.seller, price="0.10", quantity=3)

    def test_decrement_is_conditional(self):
        products = self.store.products
        self.assertFalse(products.decrement_stock(self.pid, 4))
        self.assertEqual(self.stock(self.pid), 3)
        self.assertTrue(products.decrement_stock(self.pid, 3))
        self.assertEqual(self.stock(self.pid), 0)
        self.assertFalse(products.decrement_stock(9999, 1))

    def test_increment_missing_product(self):
        self.assertFalse(self.store.products.increment_stock(9999, 1))
        self.assertTrue(self.store.products.increment_stock(self.pid, 2))
        self.assertEqual(self.stock(self.pid), 5)

    def test_negative_amounts_are_rejected(self):
        with self.assertRaises(ValueError):
            self.store.products.decrement_stock(self.pid, -1)
        with self.assertRaises(ValueError):
            self.store.products.increment_stock(self.pid, -1)

    def test_batch_lookup(self):
        other = self.make_product(self.seller)
        products = self.store.products
        self.assertEqual(products.get_products_by_ids([]), [])
        found = products.get_products_by_ids([other, self.pid, other, 9999])
        self.assertEqual([p.id for p in found], sorted([self.pid, other]))

    def test_prices_come_back_as_cents(self):
        self.assertEqual(self.store.products.get_product(self.pid).price, Decimal("0.10"))
        self.store.products.update_price(self.pid, Decimal("1.005"))
        self.assertEqual(self.store.products.get_product(self.pid).price, Decimal("1.01"))


class TestOrderDAO(MarketplaceTestCase):

    def test_create_and_update(self):
        seller = self.make_seller()
        buyer = self.make_buyer()
        pid = self.make_product(seller)
        orders = self.store.orders

        oid = orders.create_order(buyer.id, seller.id, pid, 2, Decimal("20"))
        order = orders.get_order(oid)
        self.assertEqual(order.state, (PaymentStatus.COMPLETED, DeliveryStatus.PENDING))
        self.assertEqual(order.total, Decimal("20.00"))

        self.assertTrue(orders.set_order_status(oid, PaymentStatus.FAILED, DeliveryStatus.SHIPPED))
        self.assertEqual(orders.get_order(oid).state, (PaymentStatus.FAILED, DeliveryStatus.SHIPPED))
        self.assertFalse(orders.set_order_status(9999, PaymentStatus.FAILED, DeliveryStatus.SHIPPED))
        self.assertIsNone(orders.get_order(9999))


if __name__ == "__main__":
    unittest.main(verbosity=2)
