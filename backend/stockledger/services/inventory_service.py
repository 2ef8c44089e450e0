# Overview: Read-only inventory views (summaries, alerts, reports) over the ledger tables.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import case, func

from ..extensions import db
from ..models import InventorySummary, Product, StockTransaction, TRANSACTION_TYPES
from ..validation import ValidationError
from stockledger.time_utils import parse_day, parse_iso_datetime, parse_month, to_utc_z, utcnow
"""
Reporting semantics:
- Everything here is read-only; the ledger is the only writer of summaries.
- All datetimes are UTC-naive internally and serialized as ISO-8601 'Z'.
- Date ranges are half-open: start <= timestamp < end.
- "Low stock" means ending_stock <= low_stock_threshold, the same comparison
  the ledger reports on each write.
"""

TOP_PRODUCTS_LIMIT = 5


def _f(value) -> float:
    return float(value or 0)


def _summary_row(product: Product, summary: InventorySummary) -> dict:
    return {
        "id": product.id,
        "code": product.code,
        "name": product.name,
        "unit": product.unit,
        "category": product.category,
        **{k: v for k, v in summary.to_dict().items() if k != "product_id"},
    }


def list_inventory_summaries() -> list[dict]:
    rows = (
        db.session.query(Product, InventorySummary)
        .join(InventorySummary, InventorySummary.product_id == Product.id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    return [_summary_row(p, s) for p, s in rows]


def _low_stock_query():
    return (
        db.session.query(Product, InventorySummary)
        .join(InventorySummary, InventorySummary.product_id == Product.id)
        .filter(InventorySummary.ending_stock <= InventorySummary.low_stock_threshold)
    )


def list_low_stock() -> list[dict]:
    rows = _low_stock_query().order_by(
        InventorySummary.ending_stock.asc(), Product.id.asc()
    ).all()
    return [
        {
            "id": p.id,
            "code": p.code,
            "name": p.name,
            "ending_stock": _f(s.ending_stock),
            "low_stock_threshold": _f(s.low_stock_threshold),
        }
        for p, s in rows
    ]


def monthly_summary(month: str | None) -> list[dict]:
    """
    Per-product stock in/out totals for one calendar month ('YYYY-MM').

    Products without movements in the month are listed with zero totals.
    """
    if not month:
        raise ValidationError("Missing month parameter (expected format: YYYY-MM)")
    try:
        start, end = parse_month(month)
    except ValueError:
        raise ValidationError("Invalid month format. Expected format: YYYY-MM")

    stock_in = func.coalesce(
        func.sum(case((StockTransaction.transaction_type == "in", StockTransaction.quantity), else_=0)),
        0,
    )
    stock_out = func.coalesce(
        func.sum(case((StockTransaction.transaction_type == "out", StockTransaction.quantity), else_=0)),
        0,
    )

    rows = (
        db.session.query(
            Product.id,
            Product.code,
            Product.name,
            Product.unit,
            Product.category,
            stock_in.label("stock_in"),
            stock_out.label("stock_out"),
        )
        .outerjoin(
            StockTransaction,
            (StockTransaction.product_id == Product.id)
            & (StockTransaction.timestamp >= start)
            & (StockTransaction.timestamp < end),
        )
        .group_by(Product.id, Product.code, Product.name, Product.unit, Product.category)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )

    return [
        {
            "product_id": r.id,
            "code": r.code,
            "name": r.name,
            "unit": r.unit,
            "category": r.category,
            "month": month,
            "total_in": _f(r.stock_in),
            "total_out": _f(r.stock_out),
        }
        for r in rows
    ]


def list_transactions(
    *,
    product_id: int | None = None,
    transaction_type: str | None = None,
    start: str | None = None,
    end: str | None = None,
) -> list[StockTransaction]:
    """Transaction log, newest first. start/end are inclusive ISO-8601 bounds."""
    if transaction_type is not None and transaction_type not in TRANSACTION_TYPES:
        raise ValidationError("type must be 'in' or 'out'")
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 datetimes")

    q = db.session.query(StockTransaction)
    if product_id is not None:
        q = q.filter(StockTransaction.product_id == product_id)
    if transaction_type is not None:
        q = q.filter(StockTransaction.transaction_type == transaction_type)
    if start_dt is not None:
        q = q.filter(StockTransaction.timestamp >= start_dt)
    if end_dt is not None:
        q = q.filter(StockTransaction.timestamp <= end_dt)

    return q.order_by(StockTransaction.timestamp.desc(), StockTransaction.id.desc()).all()


def transactions_by_date(date: str | None) -> list[dict]:
    """Movements on one calendar day ('YYYY-MM-DD') with the product name."""
    if not date:
        raise ValidationError("Missing date parameter")
    try:
        start, end = parse_day(date)
    except ValueError:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD")

    rows = (
        db.session.query(StockTransaction, Product.name)
        .join(Product, Product.id == StockTransaction.product_id)
        .filter(StockTransaction.timestamp >= start, StockTransaction.timestamp < end)
        .order_by(StockTransaction.timestamp.desc(), StockTransaction.id.desc())
        .all()
    )
    return [
        {
            "id": tx.id,
            "product_id": tx.product_id,
            "product": name,
            "transaction_type": tx.transaction_type,
            "quantity": _f(tx.quantity),
            "timestamp": to_utc_z(tx.timestamp),
        }
        for tx, name in rows
    ]


def dashboard_summary(now: datetime | None = None) -> dict:
    """Counts for the dashboard landing page."""
    now = now or utcnow()
    day_start = datetime(now.year, now.month, now.day)
    day_end = day_start + timedelta(days=1)

    product_count = db.session.query(func.count(Product.id)).scalar() or 0
    low_stock_count = _low_stock_query().count()
    transactions_today = (
        db.session.query(func.count(StockTransaction.id))
        .filter(StockTransaction.timestamp >= day_start, StockTransaction.timestamp < day_end)
        .scalar()
        or 0
    )

    tx_count = func.count(StockTransaction.id).label("transaction_count")
    top = (
        db.session.query(Product.id, Product.name, tx_count)
        .join(StockTransaction, StockTransaction.product_id == Product.id)
        .group_by(Product.id, Product.name)
        .order_by(tx_count.desc(), Product.id.asc())
        .limit(TOP_PRODUCTS_LIMIT)
        .all()
    )

    return {
        "product_count": int(product_count),
        "low_stock_count": int(low_stock_count),
        "transactions_today": int(transactions_today),
        "top_products": [
            {"id": r.id, "name": r.name, "transaction_count": int(r.transaction_count)}
            for r in top
        ],
    }
