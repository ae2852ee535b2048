"""
Data access layer for the marketplace.

Provides:
 - a ``Database`` object owning per-thread SQLite connections
 - an explicit transaction primitive (``BEGIN IMMEDIATE`` for writers)
 - one DAO per table (users, products, cart, orders, seller details and approvals)
 - ``MarketplaceStore``, the bundle of DAOs injected into the core
"""

from __future__ import annotations

import hashlib
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, UTC
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from errors import ConflictError, NotFoundError, StorageError
from schemas import DeliveryStatus, PaymentStatus, Role, to_money

logger = logging.getLogger(__name__)

_THIS_FILE = Path(__file__).resolve()
_DEFAULT_DB_PATH = (_THIS_FILE.parent / ".." / "db" / "marketplace.db").resolve()

SCHEMA_VERSION = 2

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    username TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    phone TEXT NOT NULL DEFAULT '',
    address TEXT NOT NULL DEFAULT '',
    role TEXT NOT NULL CHECK (role IN ('admin', 'seller', 'buyer')),
    balance REAL NOT NULL DEFAULT 0 CHECK (balance >= 0),
    approved INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS products (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    seller_id INTEGER NOT NULL,
    description TEXT NOT NULL,
    image TEXT NOT NULL,
    category TEXT,
    price REAL NOT NULL CHECK (price > 0),
    quantity INTEGER NOT NULL CHECK (quantity >= 0),
    FOREIGN KEY (seller_id) REFERENCES users(id)
);

CREATE TABLE IF NOT EXISTS sellers (
    user_id INTEGER PRIMARY KEY,
    msme_number TEXT NOT NULL,
    msme_doc TEXT NOT NULL,
    address TEXT NOT NULL,
    adhar_number TEXT NOT NULL,
    account_number TEXT NOT NULL,
    submitted_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(id)
);

CREATE INDEX IF NOT EXISTS idx_products_seller ON products(seller_id);

CREATE TABLE IF NOT EXISTS cart (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    buyer_id INTEGER NOT NULL,
    product_id INTEGER NOT NULL,
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    FOREIGN KEY (buyer_id) REFERENCES users(id),
    FOREIGN KEY (product_id) REFERENCES products(id)
);

CREATE TABLE IF NOT EXISTS orders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    buyer_id INTEGER NOT NULL,
    seller_id INTEGER NOT NULL,
    product_id INTEGER NOT NULL,
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    total REAL NOT NULL,
    payment_status TEXT NOT NULL
        CHECK (payment_status IN ('pending', 'completed', 'failed', 'canceled')),
    delivery_status TEXT NOT NULL
        CHECK (delivery_status IN ('pending', 'shipped', 'delivered', 'canceled')),
    created_at TEXT NOT NULL,
    FOREIGN KEY (buyer_id) REFERENCES users(id),
    FOREIGN KEY (seller_id) REFERENCES users(id),
    FOREIGN KEY (product_id) REFERENCES products(id)
);

CREATE INDEX IF NOT EXISTS idx_orders_buyer ON orders(buyer_id);
CREATE INDEX IF NOT EXISTS idx_orders_seller ON orders(seller_id);

CREATE TABLE IF NOT EXISTS seller_approvals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    admin_id INTEGER NOT NULL,
    approved_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(id),
    FOREIGN KEY (admin_id) REFERENCES users(id)
);
"""

# ------------------------------------------------------------------------------
# Utility helpers
# ------------------------------------------------------------------------------
def _ensure_parent_dir(path: str) -> None:
    if path == ":memory:":
        return
    parent = os.path.dirname(os.path.abspath(path))
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

def resolve_db_path() -> str:
    return os.environ.get("MARKETPLACE_DB_PATH", str(_DEFAULT_DB_PATH))

def _now() -> str:
    return datetime.now(UTC).isoformat()

def _hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()

def _apply_schema_if_needed(conn: sqlite3.Connection) -> None:
    (ver,) = conn.execute("PRAGMA user_version;").fetchone()
    if int(ver) >= SCHEMA_VERSION:
        return
    conn.executescript(_SCHEMA)
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")

# ------------------------------------------------------------------------------
# Connection management
# ------------------------------------------------------------------------------
class Database:
    """Per-thread SQLite connections to one database file.

    Connections run in autocommit mode (``isolation_level=None``); grouping of
    statements is done explicitly with :meth:`transaction`.  Every thread gets
    its own connection so concurrent requests never share cursor state, and
    SQLite's file lock does the serialisation between them.
    """

    def __init__(self, path: str | None = None, timeout: float = 10.0) -> None:
        self.path = path or resolve_db_path()
        self.timeout = timeout
        self._local = threading.local()
        self._opened: List[sqlite3.Connection] = []
        self._opened_lock = threading.Lock()

    def _open(self) -> sqlite3.Connection:
        """Open and configure a new connection.

        Sets a busy timeout so writers queue behind each other instead of
        failing with ``database is locked``, enables WAL so readers are not
        blocked by a writer, and applies the schema to a brand-new file.

        Raises:
            StorageError: If the database cannot be opened or initialised.
        """
        _ensure_parent_dir(self.path)
        try:
            conn = sqlite3.connect(
                self.path,
                timeout=self.timeout,
                check_same_thread=False,
                isolation_level=None,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON;")
            conn.execute(f"PRAGMA busy_timeout = {int(self.timeout * 1000)};")
            try:
                conn.execute("PRAGMA journal_mode = WAL;")
            except sqlite3.OperationalError:
                # Unsupported filesystem; rollback journal still works
                pass
            _apply_schema_if_needed(conn)
        except sqlite3.Error as e:
            logger.error(f"DB open failed ({self.path}): {e}")
            raise StorageError(f"Cannot open database: {e}") from e
        with self._opened_lock:
            self._opened.append(conn)
        return conn

    def connection(self) -> sqlite3.Connection:
        """Return this thread's connection, opening it on first use."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._open()
            self._local.conn = conn
        return conn

    def close(self) -> None:
        with self._opened_lock:
            opened, self._opened = self._opened, []
        for conn in opened:
            conn.close()
        self._local = threading.local()

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if not conn.in_transaction:
            return
        try:
            conn.execute("ROLLBACK;")
        except sqlite3.Error as e:
            logger.error(f"Rollback failed: {e}")

    @contextmanager
    def transaction(self, write: bool = True) -> Iterator[sqlite3.Connection]:
        """Run the enclosed block as one transaction on this thread's connection.

        Writers start with ``BEGIN IMMEDIATE``, which takes the database write
        lock before the first read, so everything read inside the block stays
        valid until commit.  A block entered while a transaction is already
        open joins it.  Any exception rolls back; driver errors are re-raised
        as :class:`StorageError`.
        """
        conn = self.connection()
        if conn.in_transaction:
            yield conn
            return
        try:
            conn.execute("BEGIN IMMEDIATE;" if write else "BEGIN;")
        except sqlite3.Error as e:
            logger.error(f"Could not start transaction: {e}")
            raise StorageError(f"Could not start transaction: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            self._rollback(conn)
            logger.error(f"Transaction rolled back: {e}")
            raise StorageError(f"Storage failure: {e}") from e
        except BaseException:
            self._rollback(conn)
            raise
        try:
            conn.execute("COMMIT;")
        except sqlite3.Error as e:
            self._rollback(conn)
            logger.error(f"Commit failed: {e}")
            raise StorageError(f"Commit failed: {e}") from e

# ------------------------------------------------------------------------------
# Domain models
# ------------------------------------------------------------------------------

@dataclass
class User:
    id: int
    name: str
    username: str
    email: str
    role: Role
    balance: Decimal
    approved: bool

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "User":
        return cls(
            id=row["id"],
            name=row["name"],
            username=row["username"],
            email=row["email"],
            role=Role(row["role"]),
            balance=to_money(row["balance"]),
            approved=bool(row["approved"]),
        )


@dataclass
class Product:
    id: int
    seller_id: int
    description: str
    image: str
    price: Decimal
    quantity: int
    category: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Product":
        return cls(
            id=row["id"],
            seller_id=row["seller_id"],
            description=row["description"],
            image=row["image"],
            price=to_money(row["price"]),
            quantity=row["quantity"],
            category=row["category"],
        )


@dataclass
class CartEntry:
    id: int
    buyer_id: int
    product_id: int
    quantity: int


@dataclass
class CartLine:
    """A cart entry joined with the product it points at."""
    id: int
    product_id: int
    quantity: int
    description: str
    price: Decimal
    image: str

    @property
    def line_total(self) -> Decimal:
        return to_money(self.price * self.quantity)


@dataclass
class Order:
    id: int
    buyer_id: int
    seller_id: int
    product_id: int
    quantity: int
    total: Decimal
    payment_status: PaymentStatus
    delivery_status: DeliveryStatus
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Order":
        return cls(
            id=row["id"],
            buyer_id=row["buyer_id"],
            seller_id=row["seller_id"],
            product_id=row["product_id"],
            quantity=row["quantity"],
            total=to_money(row["total"]),
            payment_status=PaymentStatus(row["payment_status"]),
            delivery_status=DeliveryStatus(row["delivery_status"]),
            created_at=row["created_at"],
        )

    @property
    def state(self) -> tuple[PaymentStatus, DeliveryStatus]:
        return self.payment_status, self.delivery_status


@dataclass
class SellerApproval:
    id: int
    user_id: int
    admin_id: int
    approved_at: str


@dataclass
class SellerProfile:
    """Business details a seller submitted for review."""
    user_id: int
    msme_number: str
    msme_doc: str
    address: str
    adhar_number: str
    account_number: str
    submitted_at: str

# ------------------------------------------------------------------------------
# Base DAO
# ------------------------------------------------------------------------------

class BaseDAO:
    """Base class for all DAOs.  Statements run on the database's per-thread connection."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def _conn(self) -> sqlite3.Connection:
        return self.db.connection()

    def _fetchall(self, query: str, params: Iterable = ()) -> List[sqlite3.Row]:
        try:
            return self._conn().execute(query, tuple(params)).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Read failed: {e}")
            raise StorageError(f"Storage failure: {e}") from e

    def _fetchone(self, query: str, params: Iterable = ()) -> Optional[sqlite3.Row]:
        rows = self._fetchall(query, params)
        return rows[0] if rows else None

# ------------------------------------------------------------------------------
# User DAO
# ------------------------------------------------------------------------------

_USER_COLUMNS = "id, name, username, email, role, balance, approved"

class UserDAO(BaseDAO):
    """Users and their balances (the ledger)."""

    def register_user(
        self,
        name: str,
        username: str,
        email: str,
        password: str,
        phone: str,
        address: str,
        role: Role,
    ) -> int:
        """Insert a user with a zero balance.  Sellers start unapproved.

        Raises:
            ConflictError: If the username or email is already taken.
        """
        approved = 0 if role == Role.SELLER else 1
        with self.db.transaction() as conn:
            try:
                cur = conn.execute(
                    "INSERT INTO users (name, username, email, password_hash, phone, address, role, balance, approved)"
                    " VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?);",
                    (name, username, email, _hash_password(password), phone, address, role.value, approved),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError("User already exists") from e
        return cur.lastrowid

    def ensure_admin(self, name: str, username: str, email: str, password: str) -> int:
        """Create the admin account unless it already exists; return its id."""
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO users (name, username, email, password_hash, role, balance, approved)"
                " VALUES (?, ?, ?, ?, 'admin', 0, 1);",
                (name, username, email, _hash_password(password)),
            )
            row = conn.execute("SELECT id FROM users WHERE email = ?;", (email,)).fetchone()
        return row["id"]

    def authenticate(self, email: str, password: str) -> Optional[User]:
        row = self._fetchone(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = ? AND password_hash = ?;",
            (email, _hash_password(password)),
        )
        return User.from_row(row) if row else None

    def get_user(self, user_id: int) -> Optional[User]:
        row = self._fetchone(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?;", (user_id,))
        return User.from_row(row) if row else None

    def adjust_balance(self, user_id: int, delta: Decimal) -> Decimal:
        """Add ``delta`` (may be negative) to a balance and return the new balance.

        Raises:
            NotFoundError: If the user does not exist.
            ConflictError: If the balance would go negative.
        """
        with self.db.transaction() as conn:
            row = conn.execute("SELECT balance FROM users WHERE id = ?;", (user_id,)).fetchone()
            if row is None:
                raise NotFoundError("user", user_id)
            new_balance = to_money(to_money(row["balance"]) + to_money(delta))
            if new_balance < 0:
                raise ConflictError("Insufficient balance")
            conn.execute("UPDATE users SET balance = ? WHERE id = ?;", (float(new_balance), user_id))
        return new_balance

    def set_balance(self, user_id: int, balance: Decimal) -> bool:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE users SET balance = ? WHERE id = ?;", (float(to_money(balance)), user_id)
            )
        return cur.rowcount > 0

    def approve_seller(self, user_id: int) -> bool:
        """Flip ``approved`` for a pending seller.  False if no such pending seller."""
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE users SET approved = 1 WHERE id = ? AND role = 'seller' AND approved = 0;",
                (user_id,),
            )
        return cur.rowcount > 0

# ------------------------------------------------------------------------------
# Product DAO
# ------------------------------------------------------------------------------

_PRODUCT_COLUMNS = "id, seller_id, description, image, category, price, quantity"

class ProductDAO(BaseDAO):
    """DAO for the product catalog."""

    def add_product(
        self,
        seller_id: int,
        description: str,
        image: str,
        price: Decimal,
        quantity: int,
        category: str | None = None,
    ) -> int:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO products (seller_id, description, image, category, price, quantity)"
                " VALUES (?, ?, ?, ?, ?, ?);",
                (seller_id, description, image, category, float(to_money(price)), quantity),
            )
        return cur.lastrowid

    def get_product(self, product_id: int) -> Optional[Product]:
        row = self._fetchone(f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id = ?;", (product_id,))
        return Product.from_row(row) if row else None

    def get_products_by_ids(self, product_ids: Iterable[int]) -> List[Product]:
        ids = sorted(set(product_ids))
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = self._fetchall(
            f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id IN ({placeholders}) ORDER BY id;", ids
        )
        return [Product.from_row(r) for r in rows]

    def list_products(self, seller_id: int | None = None) -> List[Product]:
        if seller_id is not None:
            rows = self._fetchall(
                f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE seller_id = ? ORDER BY id;", (seller_id,)
            )
        else:
            rows = self._fetchall(f"SELECT {_PRODUCT_COLUMNS} FROM products ORDER BY id;")
        return [Product.from_row(r) for r in rows]

    def decrement_stock(self, product_id: int, amount: int) -> bool:
        """
        Decrease stock by ``amount`` only if enough is available.  Returns True
        if a row changed.  The conditional UPDATE keeps stock from ever going
        negative even if a caller skipped validation.
        """
        if amount < 0:
            raise ValueError("Quantity to decrease must be non-negative")
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE products SET quantity = quantity - ? WHERE id = ? AND quantity >= ?;",
                (amount, product_id, amount),
            )
        return cur.rowcount > 0

    def increment_stock(self, product_id: int, amount: int) -> bool:
        """Put ``amount`` units back into stock.  False if the product is gone."""
        if amount < 0:
            raise ValueError("Quantity to increase must be non-negative")
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE products SET quantity = quantity + ? WHERE id = ?;",
                (amount, product_id),
            )
        return cur.rowcount > 0

    def update_price(self, product_id: int, price: Decimal) -> bool:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE products SET price = ? WHERE id = ?;", (float(to_money(price)), product_id)
            )
        return cur.rowcount > 0

# ------------------------------------------------------------------------------
# Cart DAO
# ------------------------------------------------------------------------------

class CartDAO(BaseDAO):
    """Pending buyer selections."""

    def add_entry(self, buyer_id: int, product_id: int, quantity: int) -> int:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO cart (buyer_id, product_id, quantity) VALUES (?, ?, ?);",
                (buyer_id, product_id, quantity),
            )
        return cur.lastrowid

    def get_entry(self, entry_id: int) -> Optional[CartEntry]:
        row = self._fetchone(
            "SELECT id, buyer_id, product_id, quantity FROM cart WHERE id = ?;", (entry_id,)
        )
        return CartEntry(*row) if row else None

    def get_cart_entries(self, buyer_id: int) -> List[CartEntry]:
        rows = self._fetchall(
            "SELECT id, buyer_id, product_id, quantity FROM cart WHERE buyer_id = ? ORDER BY id;",
            (buyer_id,),
        )
        return [CartEntry(*r) for r in rows]

    def get_cart_lines(self, buyer_id: int) -> List[CartLine]:
        rows = self._fetchall(
            "SELECT c.id, c.product_id, c.quantity, p.description, p.price, p.image"
            " FROM cart c JOIN products p ON c.product_id = p.id"
            " WHERE c.buyer_id = ? ORDER BY c.id;",
            (buyer_id,),
        )
        return [
            CartLine(
                id=r["id"],
                product_id=r["product_id"],
                quantity=r["quantity"],
                description=r["description"],
                price=to_money(r["price"]),
                image=r["image"],
            )
            for r in rows
        ]

    def delete_cart_entry(self, entry_id: int) -> bool:
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM cart WHERE id = ?;", (entry_id,))
        return cur.rowcount > 0

    def clear(self, buyer_id: int) -> int:
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM cart WHERE buyer_id = ?;", (buyer_id,))
        return cur.rowcount

# ------------------------------------------------------------------------------
# Order DAO
# ------------------------------------------------------------------------------

_ORDER_COLUMNS = (
    "id, buyer_id, seller_id, product_id, quantity, total, payment_status, delivery_status, created_at"
)

class OrderDAO(BaseDAO):
    """DAO for the orders table."""

    def create_order(
        self,
        buyer_id: int,
        seller_id: int,
        product_id: int,
        quantity: int,
        total: Decimal,
        payment_status: PaymentStatus = PaymentStatus.COMPLETED,
        delivery_status: DeliveryStatus = DeliveryStatus.PENDING,
    ) -> int:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO orders (buyer_id, seller_id, product_id, quantity, total,"
                " payment_status, delivery_status, created_at)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
                (
                    buyer_id,
                    seller_id,
                    product_id,
                    quantity,
                    float(to_money(total)),
                    payment_status.value,
                    delivery_status.value,
                    _now(),
                ),
            )
        return cur.lastrowid

    def get_order(self, order_id: int) -> Optional[Order]:
        row = self._fetchone(f"SELECT {_ORDER_COLUMNS} FROM orders WHERE id = ?;", (order_id,))
        return Order.from_row(row) if row else None

    def set_order_status(
        self, order_id: int, payment_status: PaymentStatus, delivery_status: DeliveryStatus
    ) -> bool:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE orders SET payment_status = ?, delivery_status = ? WHERE id = ?;",
                (payment_status.value, delivery_status.value, order_id),
            )
        return cur.rowcount > 0

    def list_for_buyer(self, buyer_id: int) -> List[Order]:
        rows = self._fetchall(
            f"SELECT {_ORDER_COLUMNS} FROM orders WHERE buyer_id = ? ORDER BY id;", (buyer_id,)
        )
        return [Order.from_row(r) for r in rows]

    def list_for_seller(self, seller_id: int) -> List[Order]:
        rows = self._fetchall(
            f"SELECT {_ORDER_COLUMNS} FROM orders WHERE seller_id = ? ORDER BY id;", (seller_id,)
        )
        return [Order.from_row(r) for r in rows]

    def list_all(self) -> List[Order]:
        rows = self._fetchall(f"SELECT {_ORDER_COLUMNS} FROM orders ORDER BY id;")
        return [Order.from_row(r) for r in rows]

# ------------------------------------------------------------------------------
# Seller details
# ------------------------------------------------------------------------------

class SellerDetailsDAO(BaseDAO):
    """One business-details record per seller; approval requires it."""

    def submit(
        self,
        user_id: int,
        msme_number: str,
        msme_doc: str,
        address: str,
        adhar_number: str,
        account_number: str,
    ) -> None:
        """
        Raises:
            ConflictError: If the seller already submitted details.
        """
        with self.db.transaction() as conn:
            try:
                conn.execute(
                    "INSERT INTO sellers (user_id, msme_number, msme_doc, address, adhar_number,"
                    " account_number, submitted_at) VALUES (?, ?, ?, ?, ?, ?, ?);",
                    (user_id, msme_number, msme_doc, address, adhar_number, account_number, _now()),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError("Seller details already submitted") from e

    def get(self, user_id: int) -> Optional[SellerProfile]:
        row = self._fetchone(
            "SELECT user_id, msme_number, msme_doc, address, adhar_number, account_number, submitted_at"
            " FROM sellers WHERE user_id = ?;",
            (user_id,),
        )
        return SellerProfile(*row) if row else None

# ------------------------------------------------------------------------------
# Seller approvals
# ------------------------------------------------------------------------------

class SellerApprovalDAO(BaseDAO):
    """Audit trail of which admin approved which seller."""

    def record_approval(self, user_id: int, admin_id: int) -> int:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO seller_approvals (user_id, admin_id, approved_at) VALUES (?, ?, ?);",
                (user_id, admin_id, _now()),
            )
        return cur.lastrowid

    def list_for_seller(self, user_id: int) -> List[SellerApproval]:
        rows = self._fetchall(
            "SELECT id, user_id, admin_id, approved_at FROM seller_approvals WHERE user_id = ? ORDER BY id;",
            (user_id,),
        )
        return [SellerApproval(*r) for r in rows]

# ------------------------------------------------------------------------------
# Store
# ------------------------------------------------------------------------------

class MarketplaceStore:
    """
    The storage collaborators the core depends on, bundled over one Database.

    Individual DAOs can be swapped out (e.g. for fault-injecting test doubles)
    through the keyword arguments.
    """

    def __init__(
        self,
        db: Database | None = None,
        users: UserDAO | None = None,
        products: ProductDAO | None = None,
        cart: CartDAO | None = None,
        orders: OrderDAO | None = None,
        approvals: SellerApprovalDAO | None = None,
        seller_details: SellerDetailsDAO | None = None,
    ) -> None:
        self.db = db if db is not None else Database()
        self.users = users or UserDAO(self.db)
        self.products = products or ProductDAO(self.db)
        self.cart = cart or CartDAO(self.db)
        self.orders = orders or OrderDAO(self.db)
        self.approvals = approvals or SellerApprovalDAO(self.db)
        self.seller_details = seller_details or SellerDetailsDAO(self.db)

    def transaction(self, write: bool = True):
        return self.db.transaction(write=write)

    def close(self) -> None:
        self.db.close()
