"""Form parsing helpers for the item and stock update screens."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Mapping

from cleanstock.services.inventory_state import InventoryItem, ItemDraft


INBOUND_REASONS = (
    ("purchase", "Purchase"),
    ("return", "Return"),
    ("inventory_adjustment", "Inventory adjustment"),
    ("donation", "Donation"),
    ("other_inbound", "Other"),
)
OUTBOUND_REASONS = (
    ("operational_use", "Operational use"),
    ("sale", "Sale"),
    ("loss", "Loss"),
    ("expiration", "Expiration"),
    ("inventory_adjustment", "Inventory adjustment"),
    ("other_outbound", "Other"),
)
STOCK_CHANGE_MODES = ("add", "subtract", "set")


def parse_decimal(value) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None
    try:
        parsed = Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def _parse_date(value: str | None) -> date | None:
    value = (value or "").strip()
    if not value:
        return None
    return datetime.strptime(value, "%Y-%m-%d").date()


def _optional_text(form: Mapping[str, str], field: str) -> str | None:
    return (form.get(field) or "").strip() or None


def _non_negative(
    form: Mapping[str, str], field: str, label: str, errors: list[str]
) -> Decimal:
    raw = (form.get(field) or "").strip()
    if not raw:
        return Decimal("0")
    value = parse_decimal(raw)
    if value is None:
        errors.append(f"{label} must be a number.")
        return Decimal("0")
    if value < 0:
        errors.append(f"{label} cannot be negative.")
    return value


def parse_item_form(form: Mapping[str, str]) -> tuple[ItemDraft | None, list[str]]:
    errors: list[str] = []
    name = (form.get("name") or "").strip()
    category = (form.get("category") or "").strip()
    unit = (form.get("unit") or "").strip()

    if not name:
        errors.append("Name is required.")
    if not category:
        errors.append("Category is required.")
    if not unit:
        errors.append("Unit is required.")

    quantity = _non_negative(form, "quantity", "Quantity", errors)
    unit_price = _non_negative(form, "unit_price", "Unit price", errors)
    min_stock = _non_negative(form, "min_stock", "Minimum stock", errors)

    expiration_date = None
    try:
        expiration_date = _parse_date(form.get("expiration_date"))
    except ValueError:
        errors.append("Expiration date must be in YYYY-MM-DD format.")

    if errors:
        return None, errors

    return ItemDraft(
        name=name,
        category=category,
        unit=unit,
        quantity=quantity,
        unit_price=unit_price,
        min_stock=min_stock,
        location=_optional_text(form, "location"),
        supplier=_optional_text(form, "supplier"),
        expiration_date=expiration_date,
        description=_optional_text(form, "description"),
    ), []


def apply_draft(item: InventoryItem, draft: ItemDraft) -> InventoryItem:
    """Return ``item`` with every editable field taken from ``draft``."""

    return InventoryItem(
        id=item.id,
        name=draft.name,
        category=draft.category,
        quantity=draft.quantity,
        unit=draft.unit,
        unit_price=draft.unit_price,
        min_stock=draft.min_stock,
        location=draft.location or item.location,
        created_on=item.created_on,
        updated_on=item.updated_on,
        supplier=draft.supplier,
        expiration_date=draft.expiration_date,
        description=draft.description,
    )


@dataclass
class StockUpdateRequest:
    item_id: str
    delta: Decimal
    reason: str
    notes: str | None


def parse_stock_update_form(
    form: Mapping[str, str],
    items: Mapping[str, InventoryItem],
) -> tuple[StockUpdateRequest | None, list[str]]:
    """Validate the detailed update dialog.

    Unlike the quick +/- buttons this path refuses an outbound movement
    larger than the stock on hand.
    """

    item_id = (form.get("item_id") or "").strip()
    movement_type = (form.get("movement_type") or "inbound").strip()
    reason = (form.get("reason") or "").strip()
    quantity = parse_decimal(form.get("quantity"))

    if not item_id or quantity is None or quantity <= 0 or not reason:
        return None, ["Please fill in all required fields."]
    if movement_type not in {"inbound", "outbound"}:
        return None, ["Movement type must be inbound or outbound."]

    item = items.get(item_id)
    if item is None:
        return None, ["Item not found."]

    if movement_type == "outbound" and item.quantity < quantity:
        return None, ["Not enough stock available."]

    delta = quantity if movement_type == "inbound" else -quantity
    return StockUpdateRequest(
        item_id=item_id,
        delta=delta,
        reason=reason,
        notes=_optional_text(form, "notes"),
    ), []


def compute_stock_change(mode: str, quantity: Decimal, current: Decimal) -> Decimal:
    """Translate an add/subtract/set request into a signed delta."""

    if mode == "add":
        return quantity
    if mode == "subtract":
        return -quantity
    if mode == "set":
        return quantity - current
    raise ValueError(f"Unknown stock change mode: {mode}")


def reason_choices(movement_type: str) -> tuple[tuple[str, str], ...]:
    return OUTBOUND_REASONS if movement_type == "outbound" else INBOUND_REASONS
