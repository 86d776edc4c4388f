"""Exception types shared by the inventory services and views."""

from __future__ import annotations

from typing import Iterable


class InventoryError(Exception):
    """Base class for failures the views turn into notifications."""


class StoreError(InventoryError):
    """A call against the item or movement tables failed."""

    def __init__(self, message: str, *, operation: str | None = None):
        super().__init__(message)
        self.message = message
        self.operation = operation


class PartialLedgerError(StoreError):
    """The quantity write was committed but the ledger insert was not."""

    def __init__(self, message: str, *, item_id: str, committed_quantity):
        super().__init__(message, operation="insert_movement")
        self.item_id = item_id
        self.committed_quantity = committed_quantity


class ItemNotFoundError(InventoryError, LookupError):
    def __init__(self, item_id: str):
        super().__init__(f"Item not found: {item_id}")
        self.item_id = item_id


class ValidationError(InventoryError, ValueError):
    def __init__(self, messages: str | Iterable[str]):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class DeliveryError(InventoryError):
    """Email or messaging delivery failed."""
