"""
Typed request schemas.

Every inbound payload is converted into one of the frozen dataclasses below
before a service is called. Conversion is strict: unknown shapes, blank
strings, floats where integers are expected, negative prices and empty lists
are rejected with ValidationError naming the offending field path
(e.g. ``items[0].sizes[1].quantity``).

Money fields are integer cents.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .errors import ValidationError
from .models import ROLES, ROLE_STAFF


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999
MAX_QUANTITY = 1_000_000

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _fail(field: str, message: str) -> ValidationError:
    return ValidationError(f"{field} {message}", details={"field": field})


def _require_dict(value: Any, field: str) -> dict:
    if not isinstance(value, dict):
        raise _fail(field, "must be an object")
    return value


def _require_list(value: Any, field: str, *, min_items: int = 1) -> list:
    if not isinstance(value, list):
        raise _fail(field, "must be a list")
    if len(value) < min_items:
        raise _fail(field, f"must contain at least {min_items} item(s)")
    return value


def _require_int(value: Any, field: str, *, minimum: int, maximum: int) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if value is None:
        raise _fail(field, "is required")
    if isinstance(value, bool):
        raise _fail(field, "must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not re.fullmatch(r"-?\d+", stripped):
            raise _fail(field, "must be an integer")
        result = int(stripped)
    else:
        raise _fail(field, "must be an integer")

    if result < minimum:
        raise _fail(field, f"must be >= {minimum}")
    if result > maximum:
        raise _fail(field, f"cannot exceed {maximum}")
    return result


def _require_text(value: Any, field: str, *, max_length: int) -> str:
    if value is None:
        raise _fail(field, "is required")
    if not isinstance(value, str):
        raise _fail(field, "must be a string")
    text = value.strip()
    if not text:
        raise _fail(field, "cannot be blank")
    if len(text) > max_length:
        raise _fail(field, f"exceeds max length {max_length}")
    return text


def _optional_text(value: Any, field: str, *, max_length: int) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise _fail(field, "must be a string")
    text = value.strip()
    if not text:
        return None
    if len(text) > max_length:
        raise _fail(field, f"exceeds max length {max_length}")
    return text


def _require_email(value: Any, field: str) -> str:
    email = _require_text(value, field, max_length=255).lower()
    if not _EMAIL_RE.match(email):
        raise _fail(field, "must be a valid email address")
    return email


# =============================================================================
# Lots
# =============================================================================


@dataclass(frozen=True)
class SizeInput:
    size: str
    quantity: int
    purchase_cost_cents: int
    sell_cost_cents: int

    @classmethod
    def from_payload(cls, payload: Any, field: str) -> "SizeInput":
        data = _require_dict(payload, field)
        return cls(
            size=_require_text(data.get("size"), f"{field}.size", max_length=32),
            quantity=_require_int(data.get("quantity"), f"{field}.quantity", minimum=1, maximum=MAX_QUANTITY),
            purchase_cost_cents=_require_int(
                data.get("purchase_cost_cents"),
                f"{field}.purchase_cost_cents",
                minimum=0,
                maximum=MAX_PRICE_CENTS,
            ),
            sell_cost_cents=_require_int(
                data.get("sell_cost_cents"),
                f"{field}.sell_cost_cents",
                minimum=0,
                maximum=MAX_PRICE_CENTS,
            ),
        )


@dataclass(frozen=True)
class ColorInput:
    color: str
    sizes: tuple[SizeInput, ...]

    @classmethod
    def from_payload(cls, payload: Any, field: str) -> "ColorInput":
        data = _require_dict(payload, field)
        color = _require_text(data.get("color"), f"{field}.color", max_length=64)
        raw_sizes = _require_list(data.get("sizes"), f"{field}.sizes")

        sizes = []
        seen: set[str] = set()
        for i, raw in enumerate(raw_sizes):
            size = SizeInput.from_payload(raw, f"{field}.sizes[{i}]")
            if size.size in seen:
                raise _fail(f"{field}.sizes[{i}].size", f"duplicates size '{size.size}' for color '{color}'")
            seen.add(size.size)
            sizes.append(size)
        return cls(color=color, sizes=tuple(sizes))


@dataclass(frozen=True)
class LotInput:
    """Body of create_lot and replace_lot (full replace)."""

    lot_number: str
    items: tuple[ColorInput, ...]

    @classmethod
    def from_payload(cls, payload: Any) -> "LotInput":
        data = _require_dict(payload, "payload")
        lot_number = _require_text(data.get("lot_number"), "lot_number", max_length=64)
        raw_items = _require_list(data.get("items"), "items")

        items = []
        seen: set[str] = set()
        for i, raw in enumerate(raw_items):
            color = ColorInput.from_payload(raw, f"items[{i}]")
            if color.color in seen:
                raise _fail(f"items[{i}].color", f"duplicates color '{color.color}'")
            seen.add(color.color)
            items.append(color)
        return cls(lot_number=lot_number, items=tuple(items))

    @property
    def total_investment_cents(self) -> int:
        return sum(
            size.quantity * size.purchase_cost_cents
            for color in self.items
            for size in color.sizes
        )


# =============================================================================
# Sales
# =============================================================================


@dataclass(frozen=True)
class SaleLineInput:
    color: str
    size: str
    quantity: int

    @classmethod
    def from_payload(cls, payload: Any, field: str) -> "SaleLineInput":
        data = _require_dict(payload, field)
        # sell_price_cents, if sent, is ignored: the price comes from the lot
        return cls(
            color=_require_text(data.get("color"), f"{field}.color", max_length=64),
            size=_require_text(data.get("size"), f"{field}.size", max_length=32),
            quantity=_require_int(data.get("quantity"), f"{field}.quantity", minimum=1, maximum=MAX_QUANTITY),
        )


@dataclass(frozen=True)
class SaleInput:
    lot_id: int
    items: tuple[SaleLineInput, ...]
    customer_name: str | None = None
    invoice_number: str | None = None

    @classmethod
    def from_payload(cls, payload: Any, lot_id: int | None = None) -> "SaleInput":
        """
        Build a sale request.

        lot_id comes from the URL when selling through /api/lots/<id>/sell,
        otherwise from the body. Lines are accepted under "items" or
        "sold_items".
        """
        data = _require_dict(payload, "payload")
        if lot_id is None:
            lot_id = _require_int(data.get("lot_id"), "lot_id", minimum=1, maximum=2**63 - 1)

        raw_items = data.get("items")
        field = "items"
        if raw_items is None and "sold_items" in data:
            raw_items = data.get("sold_items")
            field = "sold_items"
        raw_items = _require_list(raw_items, field)

        return cls(
            lot_id=lot_id,
            items=tuple(SaleLineInput.from_payload(raw, f"{field}[{i}]") for i, raw in enumerate(raw_items)),
            customer_name=_optional_text(data.get("customer_name"), "customer_name", max_length=255),
            invoice_number=_optional_text(data.get("invoice_number"), "invoice_number", max_length=64),
        )


# =============================================================================
# Accounts
# =============================================================================


@dataclass(frozen=True)
class SignupInput:
    business_name: str
    admin_name: str
    email: str
    password: str
    lot_prefix: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "SignupInput":
        data = _require_dict(payload, "payload")
        password = data.get("password")
        if not isinstance(password, str) or not password:
            raise _fail("password", "is required")
        return cls(
            business_name=_require_text(data.get("business_name"), "business_name", max_length=255),
            admin_name=_require_text(data.get("admin_name"), "admin_name", max_length=255),
            email=_require_email(data.get("email"), "email"),
            password=password,
            lot_prefix=_optional_text(data.get("lot_prefix"), "lot_prefix", max_length=32),
        )


@dataclass(frozen=True)
class LoginInput:
    email: str
    password: str

    @classmethod
    def from_payload(cls, payload: Any) -> "LoginInput":
        data = _require_dict(payload, "payload")
        password = data.get("password")
        if not isinstance(password, str) or not password:
            raise _fail("password", "is required")
        return cls(email=_require_email(data.get("email"), "email"), password=password)


@dataclass(frozen=True)
class UserInput:
    name: str
    email: str
    password: str
    role: str = ROLE_STAFF

    @classmethod
    def from_payload(cls, payload: Any) -> "UserInput":
        data = _require_dict(payload, "payload")
        password = data.get("password")
        if not isinstance(password, str) or not password:
            raise _fail("password", "is required")
        role = data.get("role") or ROLE_STAFF
        if role not in ROLES:
            raise _fail("role", f"must be one of: {', '.join(ROLES)}")
        return cls(
            name=_require_text(data.get("name"), "name", max_length=255),
            email=_require_email(data.get("email"), "email"),
            password=password,
            role=role,
        )
