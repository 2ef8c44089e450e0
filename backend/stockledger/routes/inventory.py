# backend/stockledger/routes/inventory.py
"""
Inventory summary routes.

Summaries are read-only here except for the low-stock threshold, which is an
administrative setting. Stock figures change only through POST /api/transactions.
"""
from flask import Blueprint, current_app, request

from ..services import inventory_service
from ..services.ledger_service import (
    LedgerError,
    get_summary,
    reconcile_summary,
    set_low_stock_threshold,
)
from ..validation import ValidationError


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _ledger_failure(e: LedgerError, what: str):
    if e.status_code >= 500:
        current_app.logger.exception("Failed to %s", what)
    return e.to_dict(), e.status_code


@inventory_bp.get("/summary")
def inventory_summary_list_route():
    """Current summary of every product."""
    return inventory_service.list_inventory_summaries(), 200


@inventory_bp.get("/summary/monthly")
def inventory_monthly_summary_route():
    """Per-product in/out totals. Query param: month=YYYY-MM (required)."""
    try:
        return inventory_service.monthly_summary(request.args.get("month")), 200
    except ValidationError as e:
        return {"error": str(e), "kind": "invalid_input"}, 400


@inventory_bp.get("/low-stock")
def low_stock_route():
    """Products whose ending stock is at or below their threshold."""
    return inventory_service.list_low_stock(), 200


@inventory_bp.get("/dashboard")
def dashboard_route():
    return inventory_service.dashboard_summary(), 200


@inventory_bp.get("/<int:product_id>/summary")
def product_summary_route(product_id: int):
    try:
        summary = get_summary(product_id)
    except LedgerError as e:
        return _ledger_failure(e, "load inventory summary")
    return summary.to_dict(), 200


@inventory_bp.put("/<int:product_id>/threshold")
def update_threshold_route(product_id: int):
    """
    Change a product's low-stock threshold.

    Body: {"new_threshold": number >= 0}
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or "new_threshold" not in payload:
        return {"error": "new_threshold is required", "kind": "invalid_input"}, 400

    try:
        summary = set_low_stock_threshold(product_id, payload["new_threshold"])
    except LedgerError as e:
        return _ledger_failure(e, "update low-stock threshold")

    return {"message": "Threshold updated successfully", "summary": summary.to_dict()}, 200


@inventory_bp.get("/<int:product_id>/reconcile")
def reconcile_route(product_id: int):
    """Compare the stored summary with one re-derived from the transaction log."""
    try:
        return reconcile_summary(product_id), 200
    except LedgerError as e:
        return _ledger_failure(e, "reconcile inventory summary")
