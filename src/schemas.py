"""
Input schemas and shared validation helpers.

Requests coming into the marketplace core are validated here with pydantic
before any storage is touched.  Validation failures are re-raised as
:class:`errors.ValidationError` so callers only ever see marketplace errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from errors import AuthorizationError, ValidationError

CENT = Decimal("0.01")

# Largest value an SQLite INTEGER column can bind
SQLITE_MAX_INT = 2**63 - 1

M = TypeVar("M", bound=BaseModel)


class Role(str, Enum):
    ADMIN = "admin"
    SELLER = "seller"
    BUYER = "buyer"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELED = "canceled"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, resolved outside the core and passed in explicitly."""

    id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def to_money(value: Any) -> Decimal:
    """Normalise a price or balance to a two-place Decimal."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def require_role(identity: Identity, *roles: Role, message: str | None = None) -> None:
    if identity is None or identity.role not in roles:
        allowed = ", ".join(r.value for r in roles)
        raise AuthorizationError(message or f"Only {allowed} users may do this")


def require_id(value: Any, message: str) -> int:
    """Return ``value`` if it is a row id SQLite can store, else raise ValidationError."""
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value <= SQLITE_MAX_INT:
        raise ValidationError(message)
    return value


# ------------------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------------------

class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CheckoutItem(_Schema):
    """One line item of a checkout.  Accepts camelCase keys as well."""

    product_id: int = Field(..., strict=True, gt=0, le=SQLITE_MAX_INT, alias="productId")
    quantity: int = Field(..., strict=True, gt=0, le=SQLITE_MAX_INT)
    seller_id: Optional[int] = Field(None, strict=True, gt=0, le=SQLITE_MAX_INT, alias="sellerId")
    cart_entry_id: Optional[int] = Field(None, strict=True, gt=0, le=SQLITE_MAX_INT, alias="cartEntryId")


class CheckoutRequest(_Schema):
    items: List[CheckoutItem] = Field(..., min_length=1)


class StatusUpdate(_Schema):
    payment_status: PaymentStatus = Field(..., alias="paymentStatus")
    delivery_status: DeliveryStatus = Field(..., alias="deliveryStatus")


class ProductCreate(_Schema):
    description: str = Field(..., min_length=1)
    image: str = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0)
    quantity: int = Field(..., ge=0, le=SQLITE_MAX_INT)
    category: Optional[str] = None


class CartAdd(_Schema):
    product_id: int = Field(..., strict=True, gt=0, le=SQLITE_MAX_INT, alias="productId")
    quantity: int = Field(..., strict=True, gt=0, le=SQLITE_MAX_INT)


class UserRegistration(_Schema):
    name: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    role: Role

    @field_validator("role")
    @classmethod
    def _no_self_made_admins(cls, role: Role) -> Role:
        if role == Role.ADMIN:
            raise ValueError("admin accounts cannot be registered")
        return role


class SellerDetails(_Schema):
    """Business details a seller submits for admin review.  ``msme_doc`` is a reference only."""

    msme_number: str = Field(..., min_length=1, alias="msmeNumber")
    msme_doc: str = Field(..., min_length=1, alias="msmeDoc")
    address: str = Field(..., min_length=1)
    adhar_number: str = Field(..., min_length=1, alias="adharNumber")
    account_number: str = Field(..., min_length=1, alias="accountNumber")


class AmountChange(_Schema):
    amount: Decimal = Field(..., gt=0)


class BalanceOverride(_Schema):
    user_id: int = Field(..., gt=0, le=SQLITE_MAX_INT, alias="userId")
    balance: Decimal = Field(..., ge=0)


# ------------------------------------------------------------------------------
# Parsing helpers
# ------------------------------------------------------------------------------

def _describe(exc: PydanticValidationError) -> str:
    err = exc.errors()[0]
    where = ".".join(str(part) for part in err.get("loc", ()))
    return f"{where}: {err.get('msg')}" if where else str(err.get("msg"))


def parse(model: Type[M], data: Any, prefix: str = "Invalid input") -> M:
    """Validate ``data`` against ``model``, raising a marketplace ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"{prefix}: {_describe(exc)}") from exc


def parse_checkout_items(items: Iterable[Any] | None) -> List[CheckoutItem]:
    if not items:
        raise ValidationError("Payment items are required")
    request = parse(
        CheckoutRequest,
        {"items": list(items)},
        prefix="Invalid item data: productId and quantity must be positive integers",
    )
    return request.items
