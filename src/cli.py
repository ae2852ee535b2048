"""
Command-line interface for the marketplace.

This script wires :class:`MarketplaceApp` into an interactive loop.  It
prompts for input, calls the app with the logged-in identity and prints the
result.  Marketplace errors are shown by their message; everything else
propagates.
"""

import sys
from typing import Callable, Dict, Optional

import logging_config
from errors import MarketplaceError
from marketplace_app import MarketplaceApp
from schemas import Identity, Role


def _ask_int(prompt: str) -> Optional[int]:
    try:
        return int(input(prompt))
    except ValueError:
        print("Please enter a valid number.")
        return None


class MarketplaceConsole:
    """Menu-driven session holding the current identity."""

    def __init__(self, app: MarketplaceApp) -> None:
        self.app = app
        self.identity: Identity | None = None

    # ---- menu actions ----

    def register(self) -> None:
        fields = {
            key: input(f"{label}: ").strip()
            for key, label in (
                ("name", "Name"),
                ("username", "Username"),
                ("email", "Email"),
                ("password", "Password"),
                ("phone", "Phone"),
                ("address", "Address"),
                ("role", "Role (buyer/seller)"),
            )
        }
        user_id = self.app.register(**fields)
        print(f"Registered with user ID {user_id}.")
        if fields["role"] == Role.SELLER.value:
            print("Submit seller details (option 17); you can log in once an admin approves them.")

    def seller_details(self) -> None:
        user_id = _ask_int("Seller user ID: ")
        if user_id is None:
            return
        fields = {
            key: input(f"{label}: ").strip()
            for key, label in (
                ("msme_number", "MSME number"),
                ("msme_doc", "MSME document reference"),
                ("address", "Business address"),
                ("adhar_number", "Aadhaar number"),
                ("account_number", "Bank account number"),
            )
        }
        self.app.submit_seller_details(self.app.identity_for(user_id), **fields)
        print("Seller details submitted, awaiting approval.")

    def login(self) -> None:
        email = input("Email: ").strip()
        password = input("Password: ").strip()
        self.identity = self.app.authenticate(email, password)
        print(f"Logged in as {self.identity.role.value} #{self.identity.id}.")

    def list_products(self) -> None:
        products = self.app.list_products()
        if not products:
            print("No products available.")
            return
        print("\nAvailable Products:")
        for p in products:
            print(f"{p.id}. {p.description} - ${p.price:.2f} (Stock: {p.quantity}, Seller: {p.seller_id})")

    def add_product(self) -> None:
        description = input("Description: ").strip()
        image = input("Image URL: ").strip()
        price = input("Price: ").strip()
        quantity = _ask_int("Initial stock: ")
        if quantity is None:
            return
        product_id = self.app.add_product(
            self._me(), description=description, image=image, price=price, quantity=quantity
        )
        print(f"Added product with ID {product_id}.")

    def add_to_cart(self) -> None:
        product_id = _ask_int("Enter Product ID: ")
        quantity = _ask_int("Enter quantity: ")
        if product_id is None or quantity is None:
            return
        self.app.add_to_cart(self._me(), product_id, quantity)
        print("Product added to cart.")

    def view_cart(self) -> None:
        lines = self.app.view_cart(self._me())
        if not lines:
            print("Cart is empty.")
            return
        print("\nCart Contents:")
        for line in lines:
            print(f"[{line.id}] {line.description} x {line.quantity} = ${line.line_total:.2f}")
        print(f"Total at current prices: ${self.app.cart_total(self._me()):.2f}")

    def remove_from_cart(self) -> None:
        entry_id = _ask_int("Cart entry ID: ")
        if entry_id is None:
            return
        self.app.remove_from_cart(self._me(), entry_id)
        print("Removed from cart.")

    def checkout(self) -> None:
        result = self.app.checkout_cart(self._me())
        print("\nPayment processed, orders created:")
        for receipt in result.orders:
            print(f" - Order {receipt.order_id}: product {receipt.product_id} x {receipt.quantity} = ${receipt.total:.2f}")
        print(f"Total: ${result.total:.2f}  Remaining balance: ${result.buyer_balance:.2f}")

    def orders(self) -> None:
        orders = self.app.orders(self._me())
        if not orders:
            print("No orders.")
            return
        for o in orders:
            print(
                f"Order {o.id}: product {o.product_id} x {o.quantity} = ${o.total:.2f} "
                f"[payment: {o.payment_status.value}, delivery: {o.delivery_status.value}]"
            )

    def update_status(self) -> None:
        order_id = _ask_int("Order ID: ")
        if order_id is None:
            return
        payment = input("Payment status (pending/completed/failed): ").strip()
        delivery = input("Delivery status (pending/shipped/delivered): ").strip()
        self.app.update_order_status(self._me(), order_id, payment, delivery)
        print("Order status updated.")

    def cancel_order(self) -> None:
        order_id = _ask_int("Order ID: ")
        if order_id is None:
            return
        result = self.app.cancel_order(self._me(), order_id)
        print("Order canceled successfully.")
        if not result.restocked:
            print("Warning: stock could not be restored for this order.")

    def balance(self) -> None:
        print(f"Balance: ${self.app.get_balance(self._me()):.2f}")

    def top_up(self) -> None:
        amount = input("Amount to add: ").strip()
        print(f"New balance: ${self.app.add_balance(self._me(), amount):.2f}")

    def withdraw(self) -> None:
        amount = input("Amount to withdraw: ").strip()
        print(f"New balance: ${self.app.withdraw(self._me(), amount):.2f}")

    def approve_seller(self) -> None:
        seller_id = _ask_int("Seller user ID: ")
        if seller_id is None:
            return
        self.app.approve_seller(self._me(), seller_id)
        print("Seller approved.")

    def set_balance(self) -> None:
        user_id = _ask_int("User ID: ")
        if user_id is None:
            return
        balance = input("New balance: ").strip()
        self.app.set_balance(self._me(), user_id, balance)
        print("Balance updated.")

    # ---- loop ----

    def _me(self) -> Identity:
        if self.identity is None:
            raise MarketplaceError("Please log in first.")
        return self.identity

    def actions(self) -> Dict[str, tuple[str, Callable[[], None]]]:
        return {
            "1": ("Register", self.register),
            "2": ("Login", self.login),
            "3": ("List Products", self.list_products),
            "4": ("Add Product (seller)", self.add_product),
            "5": ("Add Product to Cart (buyer)", self.add_to_cart),
            "6": ("View Cart (buyer)", self.view_cart),
            "7": ("Checkout Cart (buyer)", self.checkout),
            "8": ("My Orders", self.orders),
            "9": ("Update Order Status (seller)", self.update_status),
            "10": ("Cancel Order (buyer)", self.cancel_order),
            "11": ("View Balance", self.balance),
            "12": ("Add Balance (buyer)", self.top_up),
            "13": ("Approve Seller (admin)", self.approve_seller),
            "14": ("Set User Balance (admin)", self.set_balance),
            "15": ("Withdraw Balance (buyer)", self.withdraw),
            "16": ("Remove Cart Entry (buyer)", self.remove_from_cart),
            "17": ("Submit Seller Details (seller)", self.seller_details),
        }

    def run(self) -> None:
        actions = self.actions()
        while True:
            print("\n-- Marketplace --")
            for key, (label, _) in actions.items():
                print(f"{key}. {label}")
            print("0. Exit")
            choice = input("Select an option: ").strip()
            if choice == "0":
                print("Exiting application.")
                break
            if choice not in actions:
                print("Invalid option. Please try again.")
                continue
            try:
                actions[choice][1]()
            except MarketplaceError as exc:
                print(f"Error: {exc.message}")


def main() -> int:
    logging_config.configure_logging()
    app = MarketplaceApp()
    app.bootstrap_admin()
    try:
        MarketplaceConsole(app).run()
    except KeyboardInterrupt:
        print("\nInterrupted by user. Exiting.")
    finally:
        app.store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
