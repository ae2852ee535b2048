import io
import unittest
from contextlib import redirect_stdout
from unittest import mock

from marketplace_fixtures import MarketplaceTestCase

from cli import MarketplaceConsole


class TestConsole(MarketplaceTestCase):

    def run_console(self, *answers):
        out = io.StringIO()
        with mock.patch("builtins.input", side_effect=list(answers)), redirect_stdout(out):
            MarketplaceConsole(self.app).run()
        return out.getvalue()

    def test_register_login_and_top_up(self):
        output = self.run_console(
            "1", "Bob", "bob", "bob@market.io", "pw", "5550102", "3 Market Street", "buyer",
            "2", "bob@market.io", "pw",
            "12", "25",
            "11",
            "0",
        )
        self.assertIn("Registered with user ID", output)
        self.assertIn("Logged in as buyer", output)
        self.assertIn("Balance: $25.00", output)

    def test_errors_are_printed_not_raised(self):
        output = self.run_console("6", "2", "nobody@market.io", "pw", "99", "0")
        self.assertIn("Error: Please log in first.", output)
        self.assertIn("Error: User not found or invalid password", output)
        self.assertIn("Invalid option", output)

    def test_seller_submits_details_and_admin_approves(self):
        seller = self.make_seller(approved=False)

        output = self.run_console(
            "17", str(seller.id), "MSME-7", "uploads/msme-7.pdf", "9 Dock Lane", "4321", "5678",
            "2", "admin@gmail.com", "admin123",
            "13", str(seller.id),
            "0",
        )
        self.assertIn("Seller details submitted, awaiting approval.", output)
        self.assertIn("Seller approved.", output)
        self.assertTrue(self.store.users.get_user(seller.id).approved)

    def test_buyer_checks_out_cart(self):
        seller = self.make_seller()
        pid = self.make_product(seller, price="10", quantity=5)
        buyer = self.make_buyer("100")
        buyer_email = self.store.users.get_user(buyer.id).email

        output = self.run_console(
            "2", buyer_email, "secret",
            "5", str(pid), "3",
            "7",
            "0",
        )
        self.assertIn("Order ", output)
        self.assertIn("Remaining balance: $70.00", output)
        self.assertEqual(self.stock(pid), 2)


if __name__ == "__main__":
    unittest.main(verbosity=2)
