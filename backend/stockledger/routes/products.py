# backend/stockledger/routes/products.py
"""
Product catalog routes.

Creating a product also creates its inventory summary (same DB transaction).
Deleting a product removes its summary and its transaction history.
"""
from flask import Blueprint, request

from ..services.products_service import (
    create_product,
    delete_product,
    get_product,
    list_categories,
    list_products,
    update_product,
)
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "description", "unit", "category"},
    required_on_create={"code", "name", "unit"},
    extra_fields={"low_stock_threshold"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    List all products.

    Query params:
    - category: str (optional) - only products in this category
    """
    return list_products(category=request.args.get("category") or None), 200


@products_bp.get("/categories")
def list_categories_route():
    return list_categories(), 200


@products_bp.get("/category/<string:category>")
def list_products_by_category_route(category: str):
    return list_products(category=category), 200


@products_bp.post("")
def create_product_route():
    """
    Create a new product and its zero-state inventory summary.

    low_stock_threshold may be given in the body or as a query parameter;
    the configured default applies otherwise.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        if "low_stock_threshold" not in patch and request.args.get("low_stock_threshold"):
            patch["low_stock_threshold"] = request.args.get("low_stock_threshold")
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e), "kind": "invalid_input"}, 400

    threshold = patch.pop("low_stock_threshold", None)

    try:
        created = create_product(patch=patch, low_stock_threshold=threshold)
    except ConflictError as e:
        return {"error": str(e), "kind": "conflict"}, 409
    except ValueError as e:
        return {"error": str(e), "kind": "invalid_input"}, 400

    return created, 201


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    p = get_product(product_id)
    if p is None:
        return {"error": "Product not found", "kind": "product_not_found"}, 404
    return p.to_dict(), 200


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    """Update catalog fields of a product (partial update)."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=Product,
            payload=payload,
            policy=ModelValidationPolicy(writable_fields=PRODUCT_POLICY.writable_fields),
            partial=True,
        )
    except ValidationError as e:
        return {"error": str(e), "kind": "invalid_input"}, 400

    try:
        updated = update_product(product_id=product_id, patch=patch)
    except ConflictError as e:
        return {"error": str(e), "kind": "conflict"}, 409

    if not updated:
        return {"error": "Product not found", "kind": "product_not_found"}, 404

    return updated, 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """Delete a product together with its inventory summary and transactions."""
    if not delete_product(product_id=product_id):
        return {"error": "Product not found", "kind": "product_not_found"}, 404

    return {"message": "Product deleted successfully"}, 200
