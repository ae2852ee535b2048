# src/marketplace_app.py
from __future__ import annotations

import logging
import os
from decimal import Decimal
from typing import Any, Iterable, List

from checkout import CheckoutEngine, CheckoutResult
from dao import CartLine, MarketplaceStore, Order, Product
from errors import AuthorizationError, ConflictError, NotFoundError
from order_lifecycle import CancellationResult, OrderLifecycleManager
from schemas import (
    AmountChange,
    BalanceOverride,
    CartAdd,
    DeliveryStatus,
    Identity,
    PaymentStatus,
    ProductCreate,
    Role,
    SellerDetails,
    UserRegistration,
    parse,
    require_id,
    require_role,
    to_money,
)

logger = logging.getLogger(__name__)


class MarketplaceApp:
    """
    Business facade for the marketplace.  Every call takes the caller's
    :class:`Identity` explicitly; the facade checks roles and ownership for
    the plumbing operations (accounts, catalog, cart, balances) and hands
    checkout and order handling to the core engines.
    """

    def __init__(self, store: MarketplaceStore | None = None) -> None:
        self.store = store if store is not None else MarketplaceStore()
        self.checkout_engine = CheckoutEngine(self.store)
        self.lifecycle = OrderLifecycleManager(self.store)

    # ---- Accounts ----

    def bootstrap_admin(self) -> int:
        """Create the default admin from MARKETPLACE_ADMIN_* settings if missing."""
        admin_id = self.store.users.ensure_admin(
            name="Admin User",
            username=os.environ.get("MARKETPLACE_ADMIN_USERNAME", "admin"),
            email=os.environ.get("MARKETPLACE_ADMIN_EMAIL", "admin@gmail.com"),
            password=os.environ.get("MARKETPLACE_ADMIN_PASSWORD", "admin123"),
        )
        logger.info("Admin user created if not exists", extra={"user_id": admin_id})
        return admin_id

    def register(self, **fields: Any) -> int:
        """Register a buyer or seller.  Sellers need admin approval before they can log in."""
        data = parse(UserRegistration, fields, prefix="All fields are required")
        user_id = self.store.users.register_user(
            name=data.name,
            username=data.username,
            email=str(data.email),
            password=data.password,
            phone=data.phone,
            address=data.address,
            role=data.role,
        )
        logger.info(
            "User registered",
            extra={"user_id": user_id, "extra": {"email": str(data.email), "role": data.role.value}},
        )
        return user_id

    def authenticate(self, email: str, password: str) -> Identity:
        user = self.store.users.authenticate(email, password)
        if user is None:
            logger.warning("Login failed: invalid credentials", extra={"extra": {"email": email}})
            raise AuthorizationError("User not found or invalid password")
        if user.role == Role.SELLER and not user.approved:
            logger.warning("Login failed: seller not approved", extra={"user_id": user.id})
            raise AuthorizationError("Seller not approved")
        logger.info("User logged in", extra={"user_id": user.id})
        return Identity(id=user.id, role=user.role)

    def identity_for(self, user_id: int) -> Identity:
        """Resolve a user id (e.g. from a verified token) to an Identity."""
        user = self.store.users.get_user(require_id(user_id, "User ID must be a number"))
        if user is None:
            raise NotFoundError("user", user_id, "User not found")
        return Identity(id=user.id, role=user.role)

    def submit_seller_details(self, identity: Identity, **fields: Any) -> None:
        """Record a seller's business details.  An admin can approve the seller afterwards."""
        require_role(identity, Role.SELLER, message="Invalid user ID or user is not a seller")
        data = parse(SellerDetails, fields, prefix="All fields are required")
        with self.store.transaction():
            user = self.store.users.get_user(identity.id)
            if user is None or user.role != Role.SELLER:
                raise NotFoundError("seller", identity.id, "Invalid user ID or user is not a seller")
            self.store.seller_details.submit(
                user_id=identity.id,
                msme_number=data.msme_number,
                msme_doc=data.msme_doc,
                address=data.address,
                adhar_number=data.adhar_number,
                account_number=data.account_number,
            )
        logger.info("Seller details submitted, awaiting approval", extra={"user_id": identity.id})

    def approve_seller(self, admin: Identity, seller_id: int) -> None:
        """Approve a pending seller who has submitted business details."""
        require_role(admin, Role.ADMIN, message="Only admins can approve sellers")
        require_id(seller_id, "User ID must be a number")
        with self.store.transaction():
            has_details = self.store.seller_details.get(seller_id) is not None
            if not has_details or not self.store.users.approve_seller(seller_id):
                raise NotFoundError("seller", seller_id, "Seller not found or already approved")
            self.store.approvals.record_approval(seller_id, admin.id)
        logger.info("Seller approved", extra={"user_id": admin.id, "extra": {"seller_id": seller_id}})

    # ---- Balances ----

    def get_balance(self, identity: Identity) -> Decimal:
        user = self.store.users.get_user(identity.id)
        if user is None:
            raise NotFoundError("user", identity.id, "User not found")
        return user.balance

    def add_balance(self, identity: Identity, amount: Any) -> Decimal:
        require_role(identity, Role.BUYER, message="Only buyers can add balance")
        change = parse(AmountChange, {"amount": amount}, prefix="Valid amount is required")
        balance = self.store.users.adjust_balance(identity.id, to_money(change.amount))
        logger.info(
            "Balance added", extra={"user_id": identity.id, "extra": {"amount": str(change.amount)}}
        )
        return balance

    def withdraw(self, identity: Identity, amount: Any) -> Decimal:
        require_role(identity, Role.BUYER, message="Only buyers can withdraw balance")
        change = parse(AmountChange, {"amount": amount}, prefix="Valid amount is required")
        balance = self.store.users.adjust_balance(identity.id, -to_money(change.amount))
        logger.info(
            "Balance withdrawn", extra={"user_id": identity.id, "extra": {"amount": str(change.amount)}}
        )
        return balance

    def set_balance(self, admin: Identity, user_id: Any, balance: Any) -> None:
        """Admin override of any user's balance."""
        require_role(admin, Role.ADMIN, message="Only admins can update balances")
        data = parse(
            BalanceOverride,
            {"user_id": user_id, "balance": balance},
            prefix="User ID and valid balance are required",
        )
        if not self.store.users.set_balance(data.user_id, data.balance):
            raise NotFoundError("user", data.user_id, "Target user not found")
        logger.info(
            "Balance updated",
            extra={"user_id": admin.id, "extra": {"target": data.user_id, "balance": str(data.balance)}},
        )

    # ---- Product catalogue ----

    def add_product(self, identity: Identity, **fields: Any) -> int:
        require_role(identity, Role.SELLER, message="Only sellers can add products")
        seller = self.store.users.get_user(identity.id)
        if seller is None or not seller.approved:
            raise AuthorizationError("Seller not approved")
        data = parse(ProductCreate, fields, prefix="All fields are required")
        product_id = self.store.products.add_product(
            seller_id=identity.id,
            description=data.description,
            image=data.image,
            price=to_money(data.price),
            quantity=data.quantity,
            category=data.category,
        )
        logger.info("Product added", extra={"user_id": identity.id, "extra": {"product_id": product_id}})
        return product_id

    def list_products(self, seller_id: int | None = None) -> List[Product]:
        return self.store.products.list_products(seller_id)

    # ---- Cart operations ----

    def add_to_cart(self, identity: Identity, product_id: Any, quantity: Any) -> int:
        require_role(identity, Role.BUYER, message="Only buyers can add to cart")
        data = parse(
            CartAdd,
            {"product_id": product_id, "quantity": quantity},
            prefix="Product ID and quantity are required",
        )
        product = self.store.products.get_product(data.product_id)
        if product is None:
            raise NotFoundError("product", data.product_id)
        if product.quantity < data.quantity:
            raise ConflictError(f"Only {product.quantity} in stock")
        entry_id = self.store.cart.add_entry(identity.id, data.product_id, data.quantity)
        logger.info(
            "Product added to cart",
            extra={"user_id": identity.id, "extra": {"product_id": data.product_id, "quantity": data.quantity}},
        )
        return entry_id

    def view_cart(self, identity: Identity) -> List[CartLine]:
        require_role(identity, Role.BUYER, message="Only buyers have a cart")
        return self.store.cart.get_cart_lines(identity.id)

    def cart_total(self, identity: Identity) -> Decimal:
        """Cart value at current prices (what checkout would charge right now)."""
        return to_money(sum((line.line_total for line in self.view_cart(identity)), Decimal("0")))

    def remove_from_cart(self, identity: Identity, entry_id: int) -> None:
        require_role(identity, Role.BUYER, message="Only buyers have a cart")
        entry = self.store.cart.get_entry(require_id(entry_id, "Cart entry ID is required"))
        if entry is None or entry.buyer_id != identity.id:
            raise NotFoundError("cart entry", entry_id)
        self.store.cart.delete_cart_entry(entry_id)

    def clear_cart(self, identity: Identity) -> int:
        require_role(identity, Role.BUYER, message="Only buyers have a cart")
        removed = self.store.cart.clear(identity.id)
        logger.info("Cart cleared", extra={"user_id": identity.id, "extra": {"removed": removed}})
        return removed

    # ---- Checkout & orders ----

    def checkout(self, identity: Identity, items: Iterable[Any]) -> CheckoutResult:
        return self.checkout_engine.process_checkout(identity, items)

    def checkout_cart(self, identity: Identity) -> CheckoutResult:
        return self.checkout_engine.checkout_cart(identity)

    def orders(self, identity: Identity) -> List[Order]:
        return self.lifecycle.list_orders(identity)

    def update_order_status(
        self,
        identity: Identity,
        order_id: int,
        payment_status: PaymentStatus | str,
        delivery_status: DeliveryStatus | str,
    ) -> Order:
        return self.lifecycle.update_status(identity, order_id, payment_status, delivery_status)

    def cancel_order(self, identity: Identity, order_id: int) -> CancellationResult:
        return self.lifecycle.cancel_order(identity, order_id)
