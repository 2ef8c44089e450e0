from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z

# Quantities and money share one precision; see services.ledger_service.QUANT
QTY_TYPE = db.Numeric(18, 4, asdecimal=True)
# price * quantity of two 4-place values is exact at 8 places
VALUE_TYPE = db.Numeric(26, 8, asdecimal=True)

TRANSACTION_TYPES = ("in", "out")


def _num(value):
    return float(value) if value is not None else None


class Product(db.Model):
    """
    Product catalog entry.

    CODE: Business key, unique across the catalog. The id is assigned on insert
    and never changes.

    Every product owns exactly one InventorySummary, created in the same DB
    transaction as the product itself (see products_service.create_product).
    Deleting a product removes its summary and its transaction log.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    unit = db.Column(db.String(32), nullable=False)
    category = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    summary = db.relationship(
        "InventorySummary",
        back_populates="product",
        uselist=False,
        cascade="all, delete-orphan",
    )
    transactions = db.relationship(
        "StockTransaction",
        back_populates="product",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "unit": self.unit,
            "category": self.category,
            "created_at": to_utc_z(self.created_at),
        }


class InventorySummary(db.Model):
    """
    Running per-product aggregate, written only by the Inventory Ledger.

    Invariant after every ledger update:
        ending_stock == opening_stock + total_in - total_out

    average_price is the quantity-weighted cost of priced stock-in events; it
    stays 0 until the first `in` with a positive price_per_unit. It is derived
    from the exact running sums priced_value / priced_quantity and rounded to
    4 places, so it does not depend on the order of the stock-ins.

    Low stock is never stored: it is recomputed as ending_stock <= low_stock_threshold.
    """
    __tablename__ = "inventory_summary"

    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    )

    opening_stock = db.Column(QTY_TYPE, nullable=False, default=0)
    total_in = db.Column(QTY_TYPE, nullable=False, default=0)
    total_out = db.Column(QTY_TYPE, nullable=False, default=0)
    ending_stock = db.Column(QTY_TYPE, nullable=False, default=0)
    average_price = db.Column(QTY_TYPE, nullable=False, default=0)
    priced_quantity = db.Column(QTY_TYPE, nullable=False, default=0)
    priced_value = db.Column(VALUE_TYPE, nullable=False, default=0)
    low_stock_threshold = db.Column(QTY_TYPE, nullable=False, default=5)

    product = db.relationship("Product", back_populates="summary")

    @property
    def is_low_stock(self) -> bool:
        return self.ending_stock <= self.low_stock_threshold

    def __repr__(self) -> str:
        return (
            f"<InventorySummary product_id={self.product_id} "
            f"ending_stock={self.ending_stock} average_price={self.average_price}>"
        )

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "opening_stock": _num(self.opening_stock),
            "total_in": _num(self.total_in),
            "total_out": _num(self.total_out),
            "ending_stock": _num(self.ending_stock),
            "average_price": _num(self.average_price),
            "low_stock_threshold": _num(self.low_stock_threshold),
            "is_low_stock": self.is_low_stock,
        }


class StockTransaction(db.Model):
    """Append-only stock movement. Never updated or deleted by the ledger."""
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.CheckConstraint("transaction_type IN ('in', 'out')", name="ck_stock_tx_type"),
        db.CheckConstraint("quantity > 0", name="ck_stock_tx_quantity_positive"),
        db.Index("ix_stock_tx_product_timestamp", "product_id", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    transaction_type = db.Column(db.String(8), nullable=False, index=True)

    quantity = db.Column(QTY_TYPE, nullable=False)
    price_per_unit = db.Column(QTY_TYPE, nullable=True)
    total_value = db.Column(QTY_TYPE, nullable=True)

    department = db.Column(db.String(128), nullable=True)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    product = db.relationship("Product", back_populates="transactions")

    def __repr__(self) -> str:
        return (
            f"<StockTransaction id={self.id} product_id={self.product_id} "
            f"type={self.transaction_type} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "transaction_type": self.transaction_type,
            "quantity": _num(self.quantity),
            "price_per_unit": _num(self.price_per_unit),
            "total_value": _num(self.total_value),
            "department": self.department,
            "timestamp": to_utc_z(self.timestamp),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
