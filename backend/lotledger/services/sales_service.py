# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sale Engine - atomic multi-line sales against one lot

WHY: A sale decrements stock on several (color, size) entries, bumps the lot's
revenue and profit, and writes an immutable transaction. Either all of that
happens or none of it does.

FLOW (single critical section per lot):
1. Take the write lock, read the lot under lock_for_update.
2. Validate EVERY line (color exists, size exists, stock covers the quantity
   summed across all lines for that size) before mutating anything.
3. Decrement stock, accumulate revenue and realized margin, persist the
   transaction with server-side price snapshots, commit once.

Lock contention is retried from step 1; exhausted retries surface as a
ServerError. Validation failures are never retried.
"""

from __future__ import annotations

from typing import Sequence

from flask import current_app

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Lot, LotSize, SaleTransaction, SaleTransactionItem
from ..schemas import SaleLineInput
from lotledger.time_utils import utcnow
from .concurrency import atomic, begin_write_lock, commit_once, lock_for_update
from .tenant_service import scoped_query


def _resolve_lines(lot: Lot, items: Sequence[SaleLineInput]) -> list[tuple[SaleLineInput, LotSize]]:
    """
    Map each requested line onto its LotSize, checking stock per (color, size).

    Quantities are summed across lines before comparing with remaining stock,
    so two lines of 4 against 7 remaining are rejected together.
    """
    index = lot.size_index()
    requested: dict[tuple[str, str], int] = {}
    resolved = []

    for i, line in enumerate(items):
        sizes = index.get(line.color)
        if sizes is None:
            raise ValidationError(
                f"Color {line.color} not found in lot",
                details={"field": f"items[{i}].color", "color": line.color},
            )

        size = sizes.get(line.size)
        if size is None:
            raise ValidationError(
                f"Size {line.size} not found for color {line.color}",
                details={"field": f"items[{i}].size", "color": line.color, "size": line.size},
            )

        key = (line.color, line.size)
        requested[key] = requested.get(key, 0) + line.quantity
        if requested[key] > size.remaining_quantity:
            raise InsufficientStockError(
                color=line.color,
                size=line.size,
                requested=requested[key],
                available=size.remaining_quantity,
            )

        resolved.append((line, size))

    return resolved


def record_sale(
    tenant_id: int,
    user_id: int,
    lot_id: int,
    items: Sequence[SaleLineInput],
    customer_name: str | None = None,
    invoice_number: str | None = None,
) -> tuple[SaleTransaction, Lot]:
    """
    Record one sale against one lot.

    Sell prices come from the lot at processing time; nothing the client
    sends about price is used.

    Returns (transaction, updated_lot).

    Raises:
        ValidationError: empty request, unknown color or size
        InsufficientStockError: a size would go negative
        NotFoundError: lot missing or owned by another tenant
        ServerError: storage failure or lock contention that outlasted retries
    """
    if not items:
        raise ValidationError("At least one item is required", details={"field": "items"})

    def _op():
        begin_write_lock()
        lot = lock_for_update(scoped_query(Lot, tenant_id).filter(Lot.id == lot_id)).first()
        if lot is None:
            raise NotFoundError("Lot not found")

        lines = _resolve_lines(lot, items)

        # Nothing below can fail validation; mutate and persist
        now = utcnow()
        transaction = SaleTransaction(
            tenant_id=tenant_id,
            lot_id=lot.id,
            sold_by=user_id,
            customer_name=customer_name,
            invoice_number=invoice_number,
            created_at=now,
        )

        revenue = 0
        profit = 0
        for position, (line, size) in enumerate(lines):
            sell_price = size.sell_cost_cents
            purchase_cost = size.purchase_cost_cents
            line_total = line.quantity * sell_price
            line_profit = line.quantity * (sell_price - purchase_cost)

            size.remaining_quantity -= line.quantity

            transaction.items.append(
                SaleTransactionItem(
                    position=position,
                    color=line.color,
                    size=line.size,
                    quantity=line.quantity,
                    sell_price_cents=sell_price,
                    line_total_cents=line_total,
                    purchase_cost_cents=purchase_cost,
                    line_profit_cents=line_profit,
                )
            )
            revenue += line_total
            profit += line_profit

        transaction.total_revenue_cents = revenue
        transaction.total_profit_cents = profit

        lot.total_revenue_cents += revenue
        lot.total_profit_cents += profit
        lot.updated_at = now

        db.session.add(transaction)
        commit_once()

        current_app.logger.info(
            "Sale %s recorded on lot %s (tenant %s): %s line(s), revenue=%s profit=%s",
            transaction.id, lot.id, tenant_id, len(lines), revenue, profit,
        )
        return transaction, lot

    return atomic(_op, description=f"Sale on lot {lot_id}", retry_conflicts=True)
