# Overview: The Inventory Ledger; sole writer of InventorySummary rows.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple

from flask import current_app

from ..extensions import db
from ..models import InventorySummary, Product, StockTransaction, TRANSACTION_TYPES
from ..validation import ConflictError, ValidationError, to_decimal
from stockledger.time_utils import normalize_datetime, parse_iso_datetime, utcnow
from .concurrency import lock_for_update, product_lock, run_atomic
"""
Inventory Ledger Invariants (authoritative)

Write path:
- record_transaction() is one all-or-nothing unit: validate, append the
  StockTransaction, recompute and persist the product's InventorySummary, commit.
- Units on the same product are serialized (product_lock + row lock); units on
  different products run independently.
- An `out` may never take more than the current ending_stock.

Summary arithmetic:
- ending_stock == opening_stock + total_in - total_out after every update.
- Quantities and prices carry at most 4 decimal places; finer input is rejected.
- `in`: total_in += q, ending_stock += q, and when price_per_unit > 0
    priced_quantity += q, priced_value += price_per_unit * q (exact),
    average_price = priced_value / priced_quantity rounded half-up to 4 places.
  Unpriced stock-ins leave the cost basis alone.
- `out`: total_out += q, ending_stock -= q, average_price untouched.

Low stock:
- ending_stock <= low_stock_threshold, computed on every read/write, never stored.

Errors:
- InvalidInput, InsufficientStock: client errors.
- MissingSummary: a product exists without its summary (catalog bug).
- StoreUnavailable: the unit could not be committed.
None of them are retried here; the log is not idempotent.
"""

QUANT = Decimal("0.0001")
ZERO = Decimal("0")


def _fmt(value: Decimal) -> str:
    return format(value.normalize(), "f")


class LedgerError(Exception):
    kind = "ledger_error"
    status_code = 500

    def to_dict(self) -> dict:
        return {"error": str(self), "kind": self.kind}


class InvalidInput(LedgerError, ValidationError):
    kind = "invalid_input"
    status_code = 400


class ProductNotFound(InvalidInput):
    kind = "product_not_found"
    status_code = 404

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"product {product_id} not found")


class InsufficientStock(LedgerError, ConflictError):
    kind = "insufficient_stock"
    status_code = 409

    def __init__(self, product_id: int, requested: Decimal, available: Decimal):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"insufficient stock for product {product_id}: "
            f"requested {_fmt(requested)}, available {_fmt(available)}"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["requested"] = float(self.requested)
        data["available"] = float(self.available)
        return data


class MissingSummary(LedgerError):
    kind = "missing_summary"
    status_code = 500

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"inventory summary missing for product {product_id}")


class StoreUnavailable(LedgerError):
    kind = "store_unavailable"
    status_code = 503


def _store_unavailable(exc: Exception) -> StoreUnavailable:
    return StoreUnavailable(f"inventory store unavailable: {exc.__class__.__name__}")


class SummaryState(NamedTuple):
    opening_stock: Decimal
    total_in: Decimal
    total_out: Decimal
    ending_stock: Decimal
    average_price: Decimal
    priced_quantity: Decimal
    priced_value: Decimal

    @classmethod
    def zero(cls, opening_stock: Decimal = ZERO) -> "SummaryState":
        return cls(opening_stock, ZERO, ZERO, opening_stock, ZERO, ZERO, ZERO)

    @classmethod
    def of(cls, summary: InventorySummary) -> "SummaryState":
        return cls(
            Decimal(summary.opening_stock),
            Decimal(summary.total_in),
            Decimal(summary.total_out),
            Decimal(summary.ending_stock),
            Decimal(summary.average_price),
            Decimal(summary.priced_quantity),
            Decimal(summary.priced_value),
        )


def apply_movement(
    state: SummaryState,
    transaction_type: str,
    quantity: Decimal,
    price_per_unit: Decimal | None = None,
) -> SummaryState:
    """Pure summary recomputation for one movement. No stock check here."""
    if transaction_type == "in":
        state = state._replace(
            total_in=state.total_in + quantity,
            ending_stock=state.ending_stock + quantity,
        )
        if price_per_unit is None or price_per_unit <= 0:
            return state

        priced_quantity = state.priced_quantity + quantity
        priced_value = state.priced_value + price_per_unit * quantity
        return state._replace(
            priced_quantity=priced_quantity,
            priced_value=priced_value,
            average_price=(priced_value / priced_quantity).quantize(QUANT, rounding=ROUND_HALF_UP),
        )

    return state._replace(
        total_out=state.total_out + quantity,
        ending_stock=state.ending_stock - quantity,
    )


@dataclass
class LedgerResult:
    transaction: StockTransaction
    summary: InventorySummary
    previous_ending_stock: Decimal
    new_ending_stock: Decimal
    previous_average_price: Decimal
    average_price: Decimal
    is_low_stock: bool

    def to_dict(self) -> dict:
        return {
            "transaction": self.transaction.to_dict(),
            "previous_ending_stock": float(self.previous_ending_stock),
            "new_ending_stock": float(self.new_ending_stock),
            "previous_average_price": float(self.previous_average_price),
            "average_price": float(self.average_price),
            "is_low_stock": self.is_low_stock,
            "summary": self.summary.to_dict(),
        }


def _parse_timestamp(value) -> datetime:
    """
    Normalize a transaction timestamp to canonical UTC-naive datetime.

    None -> utcnow(); datetime -> UTC-naive; str -> ISO-8601 (Z/offsets accepted).
    """
    if value is None:
        return utcnow()

    if isinstance(value, datetime):
        return normalize_datetime(value)

    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise InvalidInput("timestamp must be an ISO-8601 datetime")
        return dt if dt is not None else utcnow()

    raise InvalidInput("timestamp must be an ISO-8601 datetime")


def _amount(value, field: str) -> Decimal:
    amount = to_decimal(value, field, InvalidInput)
    if amount.normalize().as_tuple().exponent < QUANT.as_tuple().exponent:
        raise InvalidInput(f"{field} supports at most 4 decimal places")
    return amount


def _optional_amount(value, field: str) -> Decimal | None:
    if value is None:
        return None
    amount = _amount(value, field)
    if amount < 0:
        raise InvalidInput(f"{field} must be >= 0")
    return amount


def _optional_text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _require_product_id(product_id) -> int:
    if isinstance(product_id, bool) or not isinstance(product_id, int):
        raise InvalidInput("product_id must be an integer")
    return product_id


def _ensure_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFound(product_id)
    return product


def _load_summary(product_id: int, *, lock: bool = False) -> InventorySummary:
    query = db.session.query(InventorySummary).filter_by(product_id=product_id)
    if lock:
        query = lock_for_update(query)
    summary = query.first()
    if summary is None:
        raise MissingSummary(product_id)
    return summary


def record_transaction(
    *,
    product_id: int,
    transaction_type: str,
    quantity,
    price_per_unit=None,
    total_value=None,
    department: str | None = None,
    timestamp=None,
    notes: str | None = None,
) -> LedgerResult:
    """
    Record one stock movement and update the product's summary atomically.

    Validation runs before anything touches the session: quantity > 0, type
    exactly in/out, non-negative price and total value, at most 4 decimal
    places on every amount, parseable timestamp. The stock
    check for `out` reads ending_stock under the product lock.

    total_value is derived as price_per_unit * quantity when it is missing or
    zero and the price is positive.

    Raises InvalidInput, InsufficientStock, MissingSummary or StoreUnavailable;
    on any of them nothing has been written.
    """
    if quantity is None:
        raise InvalidInput("quantity is required")
    qty = _amount(quantity, "quantity")
    if qty <= 0:
        raise InvalidInput("quantity must be greater than 0")

    if transaction_type not in TRANSACTION_TYPES:
        raise InvalidInput("transaction_type must be 'in' or 'out'")

    price = _optional_amount(price_per_unit, "price_per_unit")
    value = _optional_amount(total_value, "total_value")
    if (value is None or value == 0) and price is not None and price > 0:
        value = (price * qty).quantize(QUANT, rounding=ROUND_HALF_UP)

    occurred_at = _parse_timestamp(timestamp)
    product_id = _require_product_id(product_id)

    def _op() -> LedgerResult:
        _ensure_product(product_id)
        summary = _load_summary(product_id, lock=True)
        before = SummaryState.of(summary)

        if transaction_type == "out" and qty > before.ending_stock:
            raise InsufficientStock(product_id, qty, before.ending_stock)

        tx = StockTransaction(
            product_id=product_id,
            transaction_type=transaction_type,
            quantity=qty,
            price_per_unit=price,
            total_value=value,
            department=_optional_text(department),
            timestamp=occurred_at,
            notes=_optional_text(notes),
        )
        db.session.add(tx)
        db.session.flush()  # assigns tx.id inside the unit

        after = apply_movement(before, transaction_type, qty, price)
        summary.total_in = after.total_in
        summary.total_out = after.total_out
        summary.ending_stock = after.ending_stock
        summary.average_price = after.average_price
        summary.priced_quantity = after.priced_quantity
        summary.priced_value = after.priced_value

        is_low = after.ending_stock <= Decimal(summary.low_stock_threshold)

        db.session.commit()

        return LedgerResult(
            transaction=tx,
            summary=summary,
            previous_ending_stock=before.ending_stock,
            new_ending_stock=after.ending_stock,
            previous_average_price=before.average_price,
            average_price=after.average_price,
            is_low_stock=is_low,
        )

    with product_lock(product_id):
        result = run_atomic(_op, on_store_error=_store_unavailable)

    current_app.logger.info(
        "Recorded stock %s of %s for product %s (ending %s -> %s)",
        transaction_type,
        _fmt(qty),
        product_id,
        _fmt(result.previous_ending_stock),
        _fmt(result.new_ending_stock),
    )
    if result.is_low_stock:
        current_app.logger.warning(
            "Product %s is low on stock: %s on hand",
            product_id,
            _fmt(result.new_ending_stock),
        )
    return result


def initialize_summary(product_id: int, *, low_stock_threshold=None) -> InventorySummary:
    """
    Create the zero-state summary for a freshly created product.

    Runs inside the caller's unit of work: flushes, never commits, so the
    product row and its summary become visible together.
    """
    if low_stock_threshold is None:
        low_stock_threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 5)
    threshold = _optional_amount(low_stock_threshold, "low_stock_threshold")

    existing = db.session.query(InventorySummary).filter_by(product_id=product_id).first()
    if existing is not None:
        raise InvalidInput(f"inventory summary already exists for product {product_id}")

    summary = InventorySummary(
        product_id=product_id,
        opening_stock=ZERO,
        total_in=ZERO,
        total_out=ZERO,
        ending_stock=ZERO,
        average_price=ZERO,
        priced_quantity=ZERO,
        priced_value=ZERO,
        low_stock_threshold=threshold,
    )
    db.session.add(summary)
    db.session.flush()
    return summary


def get_summary(product_id: int) -> InventorySummary:
    product_id = _require_product_id(product_id)
    _ensure_product(product_id)
    return _load_summary(product_id)


def set_low_stock_threshold(product_id: int, new_threshold) -> InventorySummary:
    """Administrative override; not part of the transaction path."""
    if new_threshold is None:
        raise InvalidInput("new_threshold is required")
    threshold = _optional_amount(new_threshold, "new_threshold")
    product_id = _require_product_id(product_id)

    def _op() -> InventorySummary:
        _ensure_product(product_id)
        summary = _load_summary(product_id, lock=True)
        summary.low_stock_threshold = threshold
        db.session.commit()
        return summary

    with product_lock(product_id):
        summary = run_atomic(_op, on_store_error=_store_unavailable)

    current_app.logger.info(
        "Low-stock threshold for product %s set to %s", product_id, _fmt(threshold)
    )
    return summary


def reconcile_summary(product_id: int) -> dict:
    """
    Audit check: re-derive the summary from the full transaction log and
    compare it with the stored row. Read-only.
    """
    product_id = _require_product_id(product_id)
    _ensure_product(product_id)
    summary = _load_summary(product_id)
    stored = SummaryState.of(summary)

    derived = SummaryState.zero(stored.opening_stock)
    rows = (
        db.session.query(StockTransaction)
        .filter_by(product_id=product_id)
        .order_by(StockTransaction.id.asc())
        .all()
    )
    for tx in rows:
        derived = apply_movement(
            derived,
            tx.transaction_type,
            Decimal(tx.quantity),
            Decimal(tx.price_per_unit) if tx.price_per_unit is not None else None,
        )

    return {
        "product_id": product_id,
        "transaction_count": len(rows),
        "stored": {k: float(v) for k, v in stored._asdict().items()},
        "derived": {k: float(v) for k, v in derived._asdict().items()},
        "consistent": stored == derived,
    }
