# backend/stockledger/routes/transactions.py
"""
Stock transaction routes.

POST is the only write path into inventory: every stock movement goes through
ledger_service.record_transaction(), which appends the transaction and
updates the product's summary in one DB transaction.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- Omitted timestamp means "now".
"""
from flask import Blueprint, current_app, request

from ..models import StockTransaction
from ..validation import ModelValidationPolicy, ValidationError, validate_payload


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")

TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id",
        "transaction_type",
        "quantity",
        "price_per_unit",
        "total_value",
        "department",
        "timestamp",
        "notes",
    },
    required_on_create={"product_id", "transaction_type", "quantity"},
)


@transactions_bp.post("")
def create_transaction_route():
    """
    Record a stock-in or stock-out.

    201 with the transaction, before/after stock and the low-stock flag.
    400 invalid input, 409 insufficient stock.
    """
    payload = request.get_json(silent=True)

    try:
        patch = validate_payload(
            model=StockTransaction,
            payload=payload,
            policy=TRANSACTION_POLICY,
            partial=False,
        )
    except ValidationError as e:
        return {"error": str(e), "kind": "invalid_input"}, 400

    from ..services.ledger_service import LedgerError, record_transaction

    try:
        result = record_transaction(
            product_id=patch["product_id"],
            # raw value: the type must match exactly, no whitespace stripping
            transaction_type=payload["transaction_type"],
            quantity=patch["quantity"],
            price_per_unit=patch.get("price_per_unit"),
            total_value=patch.get("total_value"),
            department=patch.get("department"),
            timestamp=patch.get("timestamp"),
            notes=patch.get("notes"),
        )
    except LedgerError as e:
        if e.status_code >= 500:
            current_app.logger.exception("Failed to record stock transaction")
        return e.to_dict(), e.status_code

    body = result.to_dict()
    body["message"] = "Transaction recorded successfully"
    body["low_stock_alert"] = result.is_low_stock
    return body, 201


@transactions_bp.get("")
def list_transactions_route():
    """
    List stock transactions, newest first.

    Query params (all optional): product_id, type (in|out), start, end (ISO-8601, inclusive).
    """
    from ..services.inventory_service import list_transactions

    try:
        rows = list_transactions(
            product_id=request.args.get("product_id", type=int),
            transaction_type=request.args.get("type") or None,
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
    except ValidationError as e:
        return {"error": str(e), "kind": "invalid_input"}, 400

    return [r.to_dict() for r in rows], 200


@transactions_bp.get("/by-date")
def transactions_by_date_route():
    """Transactions on one day. Query param: date=YYYY-MM-DD (required)."""
    from ..services.inventory_service import transactions_by_date

    try:
        return transactions_by_date(request.args.get("date")), 200
    except ValidationError as e:
        return {"error": str(e), "kind": "invalid_input"}, 400
