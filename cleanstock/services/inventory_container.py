"""Single in-process source of truth for items and movements.

The container pairs the durable :class:`ItemStore` with an in-memory
:class:`InventoryState` mirror. Operations call the store first and only
apply the matching reducer transition once the store call has returned.
Read paths (loading, deleting) record failures in ``state.error``; write
paths raise so the caller can show a notification.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import date
from decimal import Decimal

from flask import current_app

from cleanstock.errors import ItemNotFoundError, PartialLedgerError, StoreError
from cleanstock.services import inventory_state as selectors
from cleanstock.services.inventory_state import (
    Action,
    AddItem,
    ApplyStockUpdate,
    ClearMovements,
    DeleteItem,
    InventoryItem,
    InventoryState,
    ItemDraft,
    MovementKind,
    SetError,
    SetItems,
    SetLoading,
    SetMovements,
    SetSearchTerm,
    SetSelectedCategory,
    SetSort,
    SortKey,
    SortOrder,
    StockMovement,
    UpdateItem,
    reduce,
)
from cleanstock.services.item_store import ItemStore, MovementDraft


logger = logging.getLogger(__name__)

QUICK_ADJUST_REASON = "Accumulated quick adjustment"


class InventoryContainer:
    def __init__(self, store: ItemStore, *, atomic_stock_updates: bool = False):
        self.store = store
        self.atomic_stock_updates = atomic_stock_updates
        self._state = InventoryState()
        self._lock = threading.Lock()

    @property
    def state(self) -> InventoryState:
        return self._state

    def dispatch(self, action: Action) -> InventoryState:
        with self._lock:
            self._state = reduce(self._state, action)
            state = self._state
        logger.debug("Applied %s", type(action).__name__)
        return state

    ############################
    # READ PATHS
    ############################
    def load_items(self) -> bool:
        self.dispatch(SetLoading(True))
        try:
            items = self.store.fetch_items()
        except StoreError as exc:
            self.dispatch(SetError(exc.message))
            return False
        else:
            self.dispatch(SetItems(tuple(items)))
            return True
        finally:
            self.dispatch(SetLoading(False))

    def load_movements(self) -> bool:
        try:
            movements = self.store.fetch_movements()
        except StoreError as exc:
            self.dispatch(SetError(exc.message))
            return False
        self.dispatch(SetMovements(tuple(movements)))
        return True

    ############################
    # WRITE PATHS
    ############################
    def add_item(self, draft: ItemDraft) -> InventoryItem:
        created = self.store.insert_item(draft)
        today = date.today()
        item = replace(created, created_on=today, updated_on=today)
        self.dispatch(AddItem(item))
        logger.info("Added item %s (%s)", item.id, item.name)
        return item

    def update_item(self, item: InventoryItem) -> InventoryItem:
        self.store.update_item(item)
        state = self.dispatch(UpdateItem(item))
        return selectors.item_by_id(state, item.id) or item

    def delete_item(self, item_id: str) -> bool:
        """Remove the item locally; return ``False`` when the remote delete failed."""

        deleted = True
        try:
            self.store.delete_item(item_id)
        except StoreError as exc:
            self.dispatch(SetError(exc.message))
            deleted = False
        self.dispatch(DeleteItem(item_id))
        logger.info("Deleted item %s", item_id)
        return deleted

    def update_stock(
        self,
        item_id: str,
        delta,
        reason: str,
        *,
        notes: str | None = None,
        reference: str | None = None,
    ) -> StockMovement:
        """Adjust an item's quantity and append one ledger entry.

        The resulting quantity is clamped at zero while the movement keeps
        the full requested magnitude. Calling twice applies the delta twice.
        """

        delta = Decimal(delta)
        current = selectors.item_by_id(self._state, item_id)
        if current is None:
            raise ItemNotFoundError(item_id)

        new_quantity = max(Decimal("0"), current.quantity + delta)
        draft = MovementDraft(
            item_id=item_id,
            kind=MovementKind.from_delta(delta),
            quantity=abs(delta),
            unit_price=current.unit_price,
            reason=reason,
            reference=reference,
            notes=notes,
        )

        if self.atomic_stock_updates:
            logger.debug("Stock update %s: remote_atomic_write", item_id)
            try:
                movement = self.store.apply_stock_change(new_quantity, draft)
            except StoreError as exc:
                self.dispatch(SetError(exc.message))
                raise
        else:
            logger.debug("Stock update %s: remote_quantity_write", item_id)
            try:
                self.store.update_quantity(item_id, new_quantity)
            except StoreError as exc:
                self.dispatch(SetError(exc.message))
                raise

            logger.debug("Stock update %s: remote_ledger_write", item_id)
            try:
                movement = self.store.insert_movement(draft)
            except StoreError as exc:
                # The quantity is already committed remotely; mirror it but
                # leave the ledger without an entry for this change.
                self.dispatch(ApplyStockUpdate(item_id, new_quantity, None))
                self.dispatch(SetError(exc.message))
                logger.error(
                    "Quantity for %s committed as %s but ledger insert failed: %s",
                    item_id,
                    new_quantity,
                    exc.message,
                )
                raise PartialLedgerError(
                    exc.message, item_id=item_id, committed_quantity=new_quantity
                ) from exc

        logger.debug("Stock update %s: local_apply", item_id)
        self.dispatch(ApplyStockUpdate(item_id, new_quantity, movement))
        logger.info(
            "Stock for %s changed by %s to %s (%s)",
            item_id,
            delta,
            new_quantity,
            movement.kind.value,
        )
        return movement

    def clear_history(self) -> int:
        deleted = self.store.delete_movements_for_user()
        self.dispatch(ClearMovements())
        # other users' rows stay remote; mirror whatever is left
        self.load_movements()
        logger.info("Cleared %s movement rows", deleted)
        return deleted

    ############################
    # FILTERS
    ############################
    def set_search_term(self, term: str) -> None:
        self.dispatch(SetSearchTerm(term or ""))

    def set_selected_category(self, category: str) -> None:
        self.dispatch(SetSelectedCategory(category or ""))

    def set_sorting(self, key: SortKey | str, order: SortOrder | str) -> None:
        self.dispatch(SetSort(SortKey(key), SortOrder(order)))

    ############################
    # SELECTORS
    ############################
    def filtered_items(self) -> list[InventoryItem]:
        return selectors.filtered_items(self._state)

    def low_stock_items(self) -> list[InventoryItem]:
        return selectors.low_stock_items(self._state)

    def out_of_stock_items(self) -> list[InventoryItem]:
        return selectors.out_of_stock_items(self._state)

    def expiring_items(self, days: int = 30) -> list[InventoryItem]:
        return selectors.expiring_items(self._state, days)

    def categories(self) -> list[str]:
        return selectors.categories(self._state)

    def total_value(self) -> Decimal:
        return selectors.total_value(self._state)

    def item_by_id(self, item_id: str) -> InventoryItem | None:
        return selectors.item_by_id(self._state, item_id)

    def dashboard_summary(self, expiring_days: int = 30) -> selectors.DashboardSummary:
        return selectors.dashboard_summary(self._state, expiring_days=expiring_days)


def get_inventory() -> InventoryContainer:
    return current_app.extensions["inventory"]
