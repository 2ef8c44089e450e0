# backend/stockledger/services/products_service.py
"""
Products Service (catalog collaborator)

Owns Product identity and deletion. Creation is transactionally paired with
the ledger's initialize_summary(): the product row and its zero-state
InventorySummary commit together or not at all.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product
from ..validation import ConflictError
from .concurrency import forget_product_lock, product_lock
from .ledger_service import initialize_summary

PRODUCT_MUTABLE_FIELDS = {"code", "name", "description", "unit", "category"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _code_taken(code: str, *, exclude_id: int | None = None) -> bool:
    q = db.session.query(Product.id).filter(Product.code == code)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    return q.first() is not None


def list_products(category: str | None = None) -> dict:
    """
    Catalog listing ordered by name, optionally restricted to one category.

    Returns:
        Dict with 'items' and 'count'.
    """
    q = db.session.query(Product)
    if category:
        q = q.filter(Product.category == category)
    products = q.order_by(Product.name.asc(), Product.id.asc()).all()
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


def list_categories() -> list[str]:
    rows = (
        db.session.query(Product.category)
        .filter(Product.category.isnot(None), Product.category != "")
        .distinct()
        .order_by(Product.category.asc())
        .all()
    )
    return [r[0] for r in rows]


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def create_product(*, patch: dict, low_stock_threshold=None) -> dict:
    """
    Create product using a validated patch dict, plus its inventory summary.

    Args:
        patch: Product data (code, name, unit, ...)
        low_stock_threshold: Threshold for the new summary (config default if None)

    Returns:
        Created product dict with its initial summary

    Raises:
        ConflictError: If the code already exists
    """
    code = patch.get("code")
    if code is None:
        raise ValueError("code is required")

    if _code_taken(code):
        raise ConflictError("Product code already exists.")

    p = Product()
    apply_product_patch(p, patch)

    try:
        db.session.add(p)
        db.session.flush()  # ensure p.id exists before the summary row
        summary = initialize_summary(p.id, low_stock_threshold=low_stock_threshold)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Product code already exists.")
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Created product id=%s code=%s", p.id, p.code)

    data = p.to_dict()
    data["summary"] = summary.to_dict()
    return data


def update_product(*, product_id: int, patch: dict) -> dict | None:
    """
    Update catalog fields. Inventory figures are not editable here.

    Returns:
        Updated product dict, or None if not found

    Raises:
        ConflictError: If the new code already exists
    """
    p = db.session.get(Product, product_id)
    if not p:
        return None

    if "code" in patch and patch["code"] != p.code:
        if _code_taken(patch["code"], exclude_id=p.id):
            raise ConflictError("Product code already exists.")

    apply_product_patch(p, patch)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Product code already exists.")
    return p.to_dict()


def delete_product(*, product_id: int) -> bool:
    """
    Hard-delete a product together with its summary and transaction log.

    Takes the product's ledger lock so the delete cannot interleave with an
    in-flight record_transaction() for the same product.

    Returns:
        True if deleted, False if not found
    """
    with product_lock(product_id):
        p = db.session.get(Product, product_id)
        if not p:
            return False

        db.session.delete(p)
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    forget_product_lock(product_id)
    current_app.logger.info("Deleted product id=%s", product_id)
    return True
