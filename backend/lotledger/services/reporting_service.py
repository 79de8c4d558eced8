# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

"""
Read-only projections over lots and sale transactions.

MULTI-TENANT: every query is filtered on tenant_id. Nothing here writes.

Transactions may reference lots that have since been deleted. Their lot
reference is rendered as a placeholder ({"deleted": True, "lot_number": None})
rather than being treated as an error.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Lot, LotColor, LotSize, SaleTransaction, User
from lotledger.time_utils import utc_day, utcnow
from .tenant_service import get_scoped, scoped_query

DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100
TOP_N = 10


def _like_pattern(search: str) -> str:
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _paginate(query, page: int | None, per_page: int | None) -> tuple[list, dict]:
    per_page = max(1, min(per_page or DEFAULT_PER_PAGE, MAX_PER_PAGE))
    page = max(page or 1, 1)

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()
    return rows, {
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def _lot_numbers(tenant_id: int, lot_ids: Iterable[int]) -> dict[int, str]:
    ids = set(lot_ids)
    if not ids:
        return {}
    rows = (
        scoped_query(Lot, tenant_id)
        .with_entities(Lot.id, Lot.lot_number)
        .filter(Lot.id.in_(ids))
        .all()
    )
    return {row.id: row.lot_number for row in rows}


def _lot_ref(lot_id: int, lot_numbers: dict[int, str]) -> dict:
    lot_number = lot_numbers.get(lot_id)
    if lot_number is None:
        return {"id": lot_id, "lot_number": None, "deleted": True}
    return {"id": lot_id, "lot_number": lot_number, "deleted": False}


def _serialize_transactions(tenant_id: int, transactions: list[SaleTransaction]) -> list[dict]:
    lot_numbers = _lot_numbers(tenant_id, (tx.lot_id for tx in transactions))
    out = []
    for tx in transactions:
        data = tx.to_dict()
        data["lot"] = _lot_ref(tx.lot_id, lot_numbers)
        out.append(data)
    return out


def _transactions_query(tenant_id: int):
    return (
        scoped_query(SaleTransaction, tenant_id)
        .options(selectinload(SaleTransaction.items), selectinload(SaleTransaction.seller))
        .order_by(SaleTransaction.created_at.desc(), SaleTransaction.id.desc())
    )


def list_lots(
    tenant_id: int,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped lot listing, newest first.

    Args:
        search: case-insensitive substring of the lot number
        page: 1-indexed page (default 1)
        per_page: default 10, max 100

    Returns:
        Dict with 'items', 'count' and 'pagination'.
    """
    query = (
        scoped_query(Lot, tenant_id)
        .options(
            selectinload(Lot.colors).selectinload(LotColor.sizes),
            selectinload(Lot.creator),
        )
        .order_by(Lot.created_at.desc(), Lot.id.desc())
    )

    search = (search or "").strip()
    if search:
        query = query.filter(Lot.lot_number.ilike(_like_pattern(search), escape="\\"))

    lots, pagination = _paginate(query, page, per_page)
    return {
        "items": [lot.to_dict() for lot in lots],
        "count": len(lots),
        "pagination": pagination,
    }


def list_transactions(
    tenant_id: int,
    lot_id: int | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped transaction listing, newest first.

    search matches (case-insensitively) the lot number, customer name,
    invoice number, seller name or seller email. Transactions of deleted lots
    still match on the other fields.
    """
    query = _transactions_query(tenant_id)

    if lot_id is not None:
        query = query.filter(SaleTransaction.lot_id == lot_id)

    search = (search or "").strip()
    if search:
        pattern = _like_pattern(search)
        query = (
            query
            .outerjoin(Lot, and_(Lot.id == SaleTransaction.lot_id, Lot.tenant_id == tenant_id))
            .outerjoin(User, User.id == SaleTransaction.sold_by)
            .filter(
                or_(
                    Lot.lot_number.ilike(pattern, escape="\\"),
                    SaleTransaction.customer_name.ilike(pattern, escape="\\"),
                    SaleTransaction.invoice_number.ilike(pattern, escape="\\"),
                    User.name.ilike(pattern, escape="\\"),
                    User.email.ilike(pattern, escape="\\"),
                )
            )
        )

    transactions, pagination = _paginate(query, page, per_page)
    return {
        "items": _serialize_transactions(tenant_id, transactions),
        "count": len(transactions),
        "pagination": pagination,
    }


def get_transaction(tenant_id: int, transaction_id: int) -> dict:
    """Full transaction record with its lot reference resolved."""
    transaction = get_scoped(SaleTransaction, tenant_id, transaction_id, "Transaction not found")
    return _serialize_transactions(tenant_id, [transaction])[0]


def recent_transactions(tenant_id: int, limit: int = 10) -> list[dict]:
    limit = max(1, min(limit, MAX_PER_PAGE))
    transactions = _transactions_query(tenant_id).limit(limit).all()
    return _serialize_transactions(tenant_id, transactions)


def dashboard_stats(tenant_id: int) -> dict:
    """Tenant totals over all current lots (deleted lots drop out)."""
    totals = (
        scoped_query(Lot, tenant_id)
        .with_entities(
            func.coalesce(func.sum(Lot.total_investment_cents), 0),
            func.coalesce(func.sum(Lot.total_revenue_cents), 0),
            func.coalesce(func.sum(Lot.total_profit_cents), 0),
            func.count(Lot.id),
        )
        .one()
    )

    lots_with_stock = (
        db.session.query(func.count(func.distinct(Lot.id)))
        .join(LotColor, LotColor.lot_id == Lot.id)
        .join(LotSize, LotSize.color_id == LotColor.id)
        .filter(Lot.tenant_id == tenant_id, LotSize.remaining_quantity > 0)
        .scalar()
    )

    return {
        "total_investment_cents": int(totals[0]),
        "total_revenue_cents": int(totals[1]),
        "total_profit_cents": int(totals[2]),
        "active_lots": int(totals[3]),
        "lots_with_stock": int(lots_with_stock or 0),
    }


def chart_data(tenant_id: int, days: int = 30, end: datetime | None = None) -> dict:
    """
    Dashboard chart series.

    - revenue_trend: one entry per UTC day with sales in the window
      (revenue, realized profit, transaction count), oldest first.
    - sales_by_lot: top lots by revenue (revenue > 0 only).
    - inventory_status: top lots by percentage of units sold.
    """
    end = end or utcnow()
    since = end - timedelta(days=days)

    transactions = (
        scoped_query(SaleTransaction, tenant_id)
        .filter(SaleTransaction.created_at >= since, SaleTransaction.created_at <= end)
        .order_by(SaleTransaction.created_at.asc())
        .all()
    )

    buckets: dict[str, dict] = {}
    for tx in transactions:
        day = utc_day(tx.created_at)
        bucket = buckets.setdefault(day, {"date": day, "revenue_cents": 0, "profit_cents": 0, "transactions": 0})
        bucket["revenue_cents"] += tx.total_revenue_cents
        bucket["profit_cents"] += tx.total_profit_cents
        bucket["transactions"] += 1
    revenue_trend = [buckets[day] for day in sorted(buckets)]

    lots = (
        scoped_query(Lot, tenant_id)
        .options(selectinload(Lot.colors).selectinload(LotColor.sizes))
        .all()
    )

    selling = sorted(
        (lot for lot in lots if lot.total_revenue_cents > 0),
        key=lambda lot: (-lot.total_revenue_cents, lot.id),
    )
    sales_by_lot = [
        {
            "lot_id": lot.id,
            "lot_number": lot.lot_number,
            "revenue_cents": lot.total_revenue_cents,
            "profit_cents": lot.total_profit_cents,
            "investment_cents": lot.total_investment_cents,
        }
        for lot in selling[:TOP_N]
    ]

    inventory_status = []
    for lot in lots:
        total = lot.total_quantity
        if total <= 0:
            continue
        remaining = lot.remaining_quantity
        sold = total - remaining
        inventory_status.append({
            "lot_id": lot.id,
            "lot_number": lot.lot_number,
            "total": total,
            "sold": sold,
            "remaining": remaining,
            "sold_percentage": round(sold * 100 / total, 2),
        })
    inventory_status.sort(key=lambda row: (-row["sold_percentage"], row["lot_id"]))

    return {
        "revenue_trend": revenue_trend,
        "sales_by_lot": sales_by_lot,
        "inventory_status": inventory_status[:TOP_N],
    }
