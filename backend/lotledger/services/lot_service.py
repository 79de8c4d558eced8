# Overview: Service-layer operations for the lot lifecycle; encapsulates business logic and database work.

"""
Lot Lifecycle Manager

MULTI-TENANT: Every lookup is (id, tenant_id). A lot belonging to another
tenant raises the same NotFoundError as a lot that does not exist.

LIFECYCLE:
- create_lot: seeds remaining_quantity = quantity, computes investment.
- replace_lot: full replace. Recomputes investment and RESETS every
  remaining_quantity to the new full quantity, discarding sold-stock state.
  Revenue and profit totals are kept.
- delete_lot: permanent, admin or creator only, never touches transactions.
- generate_lot_number: advisory next number; createLot's uniqueness check
  rejects a collision if two callers race.
"""

from __future__ import annotations

import re
from typing import Sequence

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Lot, LotColor, LotSize, ROLE_ADMIN
from ..schemas import ColorInput
from lotledger.time_utils import utcnow
from .concurrency import atomic, begin_write_lock, commit_once, lock_for_update
from .tenant_service import get_scoped, require_tenant, scoped_query

_TRAILING_NUMBER = re.compile(r"(\d+)$")


def _duplicate_lot_number() -> ValidationError:
    return ValidationError("Lot number already exists", details={"field": "lot_number"})


def _is_lot_number_conflict(exc: IntegrityError) -> bool:
    # PostgreSQL names the constraint; SQLite names the columns
    message = str(exc.orig)
    return "uq_lots_tenant_lot_number" in message or "lots.tenant_id, lots.lot_number" in message


def _lot_number_taken(tenant_id: int, lot_number: str, exclude_lot_id: int | None = None) -> bool:
    query = scoped_query(Lot, tenant_id).filter(Lot.lot_number == lot_number)
    if exclude_lot_id is not None:
        query = query.filter(Lot.id != exclude_lot_id)
    return db.session.query(query.exists()).scalar()


def _require_items(items: Sequence[ColorInput]) -> None:
    if not items:
        raise ValidationError("At least one item is required", details={"field": "items"})


def _build_colors(items: Sequence[ColorInput]) -> list[LotColor]:
    """Fresh color/size rows with remaining_quantity seeded to quantity."""
    colors = []
    for color_pos, color in enumerate(items):
        entry = LotColor(position=color_pos, color=color.color)
        for size_pos, size in enumerate(color.sizes):
            entry.sizes.append(
                LotSize(
                    position=size_pos,
                    size=size.size,
                    quantity=size.quantity,
                    remaining_quantity=size.quantity,
                    purchase_cost_cents=size.purchase_cost_cents,
                    sell_cost_cents=size.sell_cost_cents,
                )
            )
        colors.append(entry)
    return colors


def _investment_cents(items: Sequence[ColorInput]) -> int:
    return sum(size.quantity * size.purchase_cost_cents for color in items for size in color.sizes)


def _locked_lot(tenant_id: int, lot_id: int) -> Lot:
    lot = lock_for_update(scoped_query(Lot, tenant_id).filter(Lot.id == lot_id)).first()
    if lot is None:
        raise NotFoundError("Lot not found")
    return lot


def get_lot(tenant_id: int, lot_id: int) -> Lot:
    return get_scoped(Lot, tenant_id, lot_id, "Lot not found")


def create_lot(tenant_id: int, user_id: int, lot_number: str, items: Sequence[ColorInput]) -> Lot:
    """
    Create a lot with every size fully in stock.

    Raises ValidationError if lot_number already exists for the tenant,
    including when a concurrent create wins the unique constraint.
    """
    _require_items(items)

    def _op():
        require_tenant(tenant_id)

        if _lot_number_taken(tenant_id, lot_number):
            raise _duplicate_lot_number()

        now = utcnow()
        lot = Lot(
            tenant_id=tenant_id,
            lot_number=lot_number,
            created_by=user_id,
            total_investment_cents=_investment_cents(items),
            total_revenue_cents=0,
            total_profit_cents=0,
            created_at=now,
            updated_at=now,
            colors=_build_colors(items),
        )
        db.session.add(lot)
        try:
            commit_once()
        except IntegrityError as exc:
            if not _is_lot_number_conflict(exc):
                raise
            raise _duplicate_lot_number() from exc

        current_app.logger.info(
            "Lot %s (%s) created for tenant %s by user %s",
            lot.id, lot.lot_number, tenant_id, user_id,
        )
        return lot

    return atomic(_op, description="Create lot")


def replace_lot(tenant_id: int, lot_id: int, lot_number: str, items: Sequence[ColorInput]) -> Lot:
    """
    Full edit of a lot.

    WARNING: remaining quantities are reset to the new full quantities.
    Editing a lot after sales erases its remaining-stock tracking.
    """
    _require_items(items)

    def _op():
        begin_write_lock()
        lot = _locked_lot(tenant_id, lot_id)

        if lot_number != lot.lot_number and _lot_number_taken(tenant_id, lot_number, exclude_lot_id=lot.id):
            raise _duplicate_lot_number()

        # Old rows must be gone before new ones reuse their (lot, color) keys
        lot.colors.clear()
        db.session.flush()

        lot.colors.extend(_build_colors(items))
        lot.lot_number = lot_number
        lot.total_investment_cents = _investment_cents(items)
        lot.updated_at = utcnow()

        try:
            commit_once()
        except IntegrityError as exc:
            if not _is_lot_number_conflict(exc):
                raise
            raise _duplicate_lot_number() from exc

        current_app.logger.info(
            "Lot %s replaced for tenant %s; remaining quantities reset to full",
            lot.id, tenant_id,
        )
        return lot

    return atomic(_op, description=f"Replace lot {lot_id}", retry_conflicts=True)


def delete_lot(tenant_id: int, user_id: int, role: str, lot_id: int) -> None:
    """
    Permanently delete a lot.

    Only an admin or the lot's creator may delete. Sale transactions that
    reference the lot are left untouched.
    """
    def _op():
        begin_write_lock()
        lot = _locked_lot(tenant_id, lot_id)

        if role != ROLE_ADMIN and lot.created_by != user_id:
            raise ForbiddenError("Not authorized to delete this lot")

        db.session.delete(lot)
        commit_once()

        current_app.logger.info("Lot %s deleted for tenant %s by user %s", lot_id, tenant_id, user_id)

    atomic(_op, description=f"Delete lot {lot_id}", retry_conflicts=True)


def generate_lot_number(tenant_id: int) -> str:
    """
    Suggest the next lot number: "{prefix}{n:04d}".

    n is the trailing number of the most recently created lot plus one, or 1
    when the tenant has no lots or that number has no numeric suffix.
    Nothing is reserved.
    """
    tenant = require_tenant(tenant_id)
    prefix = tenant.lot_prefix or current_app.config.get("DEFAULT_LOT_PREFIX", "LOT-")
    pad = current_app.config.get("LOT_NUMBER_PAD", 4)

    last_number = (
        scoped_query(Lot, tenant_id)
        .with_entities(Lot.lot_number)
        .order_by(Lot.created_at.desc(), Lot.id.desc())
        .limit(1)
        .scalar()
    )

    next_number = 1
    if last_number:
        match = _TRAILING_NUMBER.search(last_number)
        if match:
            next_number = int(match.group(1)) + 1

    return f"{prefix}{next_number:0{pad}d}"
