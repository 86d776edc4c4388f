import uuid
from datetime import datetime

from cleanstock.extensions import db


def _new_identifier() -> str:
    return str(uuid.uuid4())


class InventoryItemRecord(db.Model):
    __tablename__ = "inventory_item"

    id = db.Column(db.String(36), primary_key=True, default=_new_identifier)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False, default="")
    quantity = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    unit = db.Column(db.String(40), nullable=False, default="")
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    min_stock = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    supplier = db.Column(db.String(255), nullable=True)
    expiration_date = db.Column(db.Date, nullable=True)
    location = db.Column(db.String(120), nullable=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class StockMovementRecord(db.Model):
    """Append-only ledger row.

    ``item_id`` is deliberately not a foreign key: the ledger outlives the
    items it describes and is only ever cleared in bulk.
    """

    __tablename__ = "stock_movement"

    id = db.Column(db.String(36), primary_key=True, default=_new_identifier)
    item_id = db.Column(db.String(36), nullable=False, index=True)
    movement_type = db.Column(db.String(20), nullable=False)  # inbound, outbound, adjustment
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=True)
    reason = db.Column(db.String(255), nullable=False, default="")
    reference = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    user_id = db.Column(db.String(36), nullable=False, index=True)
    date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
