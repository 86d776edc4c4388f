"""Row-level access to the item and movement tables.

The store is the durable owner of inventory data. It knows nothing about the
in-memory mirror: each method performs one remote call, commits it, and maps
rows to the dataclasses in :mod:`cleanstock.services.inventory_state`. Any
SQLAlchemy failure is rolled back and re-raised as :class:`StoreError`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

from cleanstock.errors import StoreError
from cleanstock.extensions import db
from cleanstock.models import InventoryItemRecord, StockMovementRecord
from cleanstock.services.inventory_state import (
    InventoryItem,
    ItemDraft,
    MovementKind,
    StockMovement,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActingUser:
    id: str
    label: str


@dataclass(frozen=True)
class MovementDraft:
    item_id: str
    kind: MovementKind
    quantity: Decimal
    unit_price: Decimal | None
    reason: str
    reference: str | None = None
    notes: str | None = None


def _root_message(exc: SQLAlchemyError) -> str:
    root = getattr(exc, "orig", None) or exc
    return str(root).strip() or exc.__class__.__name__


def _as_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(value)


class ItemStore:
    def __init__(self, acting_user: ActingUser, default_location: str = ""):
        self.acting_user = acting_user
        self.default_location = default_location

    @contextmanager
    def _remote_call(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            db.session.rollback()
            message = _root_message(exc)
            logger.error("Store call %s failed: %s", operation, message)
            raise StoreError(message, operation=operation) from exc

    ############################
    # MAPPING
    ############################
    def _to_item(self, row: InventoryItemRecord) -> InventoryItem:
        created = row.created_at or datetime.utcnow()
        updated = row.updated_at or created
        return InventoryItem(
            id=row.id,
            name=row.name,
            category=row.category or "",
            quantity=_as_decimal(row.quantity),
            unit=row.unit or "",
            unit_price=_as_decimal(row.unit_price),
            min_stock=_as_decimal(row.min_stock),
            location=row.location or self.default_location,
            created_on=created.date(),
            updated_on=updated.date(),
            supplier=row.supplier,
            expiration_date=row.expiration_date,
            description=row.description,
        )

    def _to_movement(self, row: StockMovementRecord) -> StockMovement:
        user = row.user_id
        if user == self.acting_user.id:
            user = self.acting_user.label
        return StockMovement(
            id=row.id,
            item_id=row.item_id,
            kind=MovementKind(row.movement_type),
            quantity=_as_decimal(row.quantity),
            reason=row.reason or "",
            timestamp=row.date,
            user=user,
            unit_price=None if row.unit_price is None else Decimal(row.unit_price),
            reference=row.reference,
            notes=row.notes,
        )

    def _new_movement_row(self, draft: MovementDraft) -> StockMovementRecord:
        return StockMovementRecord(
            item_id=draft.item_id,
            movement_type=draft.kind.value,
            quantity=draft.quantity,
            unit_price=draft.unit_price,
            reason=draft.reason,
            reference=draft.reference,
            notes=draft.notes,
            user_id=self.acting_user.id,
            date=datetime.utcnow(),
        )

    ############################
    # ITEMS
    ############################
    def fetch_items(self) -> list[InventoryItem]:
        with self._remote_call("fetch_items"):
            rows = InventoryItemRecord.query.order_by(InventoryItemRecord.created_at).all()
        return [self._to_item(row) for row in rows]

    def insert_item(self, draft: ItemDraft) -> InventoryItem:
        with self._remote_call("insert_item"):
            row = InventoryItemRecord(
                name=draft.name,
                category=draft.category,
                quantity=draft.quantity,
                unit=draft.unit,
                unit_price=draft.unit_price,
                min_stock=draft.min_stock,
                supplier=draft.supplier,
                expiration_date=draft.expiration_date,
                location=draft.location or self.default_location,
                description=draft.description,
            )
            db.session.add(row)
            db.session.commit()
        return self._to_item(row)

    def update_item(self, item: InventoryItem) -> None:
        with self._remote_call("update_item"):
            InventoryItemRecord.query.filter_by(id=item.id).update(
                {
                    "name": item.name,
                    "category": item.category,
                    "quantity": item.quantity,
                    "unit": item.unit,
                    "unit_price": item.unit_price,
                    "min_stock": item.min_stock,
                    "supplier": item.supplier,
                    "expiration_date": item.expiration_date,
                    "location": item.location,
                    "description": item.description,
                    "updated_at": datetime.utcnow(),
                },
                synchronize_session=False,
            )
            db.session.commit()

    def update_quantity(self, item_id: str, quantity: Decimal) -> None:
        with self._remote_call("update_quantity"):
            InventoryItemRecord.query.filter_by(id=item_id).update(
                {"quantity": quantity, "updated_at": datetime.utcnow()},
                synchronize_session=False,
            )
            db.session.commit()

    def delete_item(self, item_id: str) -> None:
        with self._remote_call("delete_item"):
            InventoryItemRecord.query.filter_by(id=item_id).delete(
                synchronize_session=False
            )
            db.session.commit()

    ############################
    # MOVEMENTS
    ############################
    def insert_movement(self, draft: MovementDraft) -> StockMovement:
        with self._remote_call("insert_movement"):
            row = self._new_movement_row(draft)
            db.session.add(row)
            db.session.commit()
        return self._to_movement(row)

    def apply_stock_change(self, quantity: Decimal, draft: MovementDraft) -> StockMovement:
        """Write the quantity and its ledger row in a single transaction."""

        with self._remote_call("apply_stock_change"):
            InventoryItemRecord.query.filter_by(id=draft.item_id).update(
                {"quantity": quantity, "updated_at": datetime.utcnow()},
                synchronize_session=False,
            )
            row = self._new_movement_row(draft)
            db.session.add(row)
            db.session.commit()
        return self._to_movement(row)

    def fetch_movements(self, limit: int | None = None) -> list[StockMovement]:
        with self._remote_call("fetch_movements"):
            query = StockMovementRecord.query.order_by(StockMovementRecord.date.desc())
            if limit:
                query = query.limit(limit)
            rows = query.all()
        return [self._to_movement(row) for row in rows]

    def delete_movements_for_user(self) -> int:
        with self._remote_call("delete_movements"):
            deleted = StockMovementRecord.query.filter_by(
                user_id=self.acting_user.id
            ).delete(synchronize_session=False)
            db.session.commit()
        return int(deleted or 0)
