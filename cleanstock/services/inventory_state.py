"""In-memory inventory state, its transitions and read selectors.

The state is a frozen dataclass. Every change goes through :func:`reduce`,
which takes the current state plus one action and returns a new state; the
input is never modified. Selectors are plain functions over a state value so
views and tests can call them without a container.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Union


EPOCH = date(1970, 1, 1)
LOW_STOCK_PREVIEW_LIMIT = 5


class MovementKind(str, enum.Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"
    ADJUSTMENT = "adjustment"

    @classmethod
    def from_delta(cls, delta) -> "MovementKind":
        if delta > 0:
            return cls.INBOUND
        if delta < 0:
            return cls.OUTBOUND
        return cls.ADJUSTMENT


class SortKey(str, enum.Enum):
    NAME = "name"
    QUANTITY = "quantity"
    CREATED = "created"
    EXPIRATION = "expiration"


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class StockStatus(str, enum.Enum):
    OUT = "out"
    LOW = "low"
    OK = "ok"


@dataclass(frozen=True)
class InventoryItem:
    id: str
    name: str
    category: str
    quantity: Decimal
    unit: str
    unit_price: Decimal
    min_stock: Decimal
    location: str
    created_on: date
    updated_on: date
    supplier: str | None = None
    expiration_date: date | None = None
    description: str | None = None


@dataclass(frozen=True)
class ItemDraft:
    """Fields of an item before the store assigns its identifier."""

    name: str
    category: str
    unit: str
    quantity: Decimal = Decimal("0")
    unit_price: Decimal = Decimal("0")
    min_stock: Decimal = Decimal("0")
    location: str | None = None
    supplier: str | None = None
    expiration_date: date | None = None
    description: str | None = None


@dataclass(frozen=True)
class StockMovement:
    id: str
    item_id: str
    kind: MovementKind
    quantity: Decimal
    reason: str
    timestamp: datetime
    user: str
    unit_price: Decimal | None = None
    reference: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class InventoryState:
    items: tuple[InventoryItem, ...] = ()
    movements: tuple[StockMovement, ...] = ()
    loading: bool = False
    error: str | None = None
    search_term: str = ""
    selected_category: str = ""
    sort_key: SortKey = SortKey.NAME
    sort_order: SortOrder = SortOrder.ASC


############################
# ACTIONS
############################
@dataclass(frozen=True)
class SetLoading:
    loading: bool


@dataclass(frozen=True)
class SetError:
    message: str | None


@dataclass(frozen=True)
class SetItems:
    items: tuple[InventoryItem, ...]


@dataclass(frozen=True)
class AddItem:
    item: InventoryItem


@dataclass(frozen=True)
class UpdateItem:
    item: InventoryItem
    updated_on: date = field(default_factory=date.today)


@dataclass(frozen=True)
class DeleteItem:
    item_id: str


@dataclass(frozen=True)
class ApplyStockUpdate:
    """Set an item's quantity and prepend the movement that explains it.

    ``movement`` is ``None`` when the ledger write failed after the quantity
    had already been committed.
    """

    item_id: str
    quantity: Decimal
    movement: StockMovement | None
    updated_on: date = field(default_factory=date.today)


@dataclass(frozen=True)
class AddMovement:
    movement: StockMovement


@dataclass(frozen=True)
class SetMovements:
    movements: tuple[StockMovement, ...]


@dataclass(frozen=True)
class ClearMovements:
    pass


@dataclass(frozen=True)
class SetSearchTerm:
    term: str


@dataclass(frozen=True)
class SetSelectedCategory:
    category: str


@dataclass(frozen=True)
class SetSort:
    key: SortKey
    order: SortOrder


Action = Union[
    SetLoading,
    SetError,
    SetItems,
    AddItem,
    UpdateItem,
    DeleteItem,
    ApplyStockUpdate,
    AddMovement,
    SetMovements,
    ClearMovements,
    SetSearchTerm,
    SetSelectedCategory,
    SetSort,
]


def reduce(state: InventoryState, action: Action) -> InventoryState:
    if isinstance(action, SetLoading):
        return replace(state, loading=action.loading)
    if isinstance(action, SetError):
        return replace(state, error=action.message)
    if isinstance(action, SetItems):
        return replace(state, items=tuple(action.items))
    if isinstance(action, AddItem):
        return replace(state, items=state.items + (action.item,), error=None)
    if isinstance(action, UpdateItem):
        updated = replace(action.item, updated_on=action.updated_on)
        return replace(
            state,
            items=tuple(
                updated if item.id == action.item.id else item for item in state.items
            ),
            error=None,
        )
    if isinstance(action, DeleteItem):
        return replace(
            state,
            items=tuple(item for item in state.items if item.id != action.item_id),
        )
    if isinstance(action, ApplyStockUpdate):
        quantity = max(Decimal("0"), Decimal(action.quantity))
        items = tuple(
            replace(item, quantity=quantity, updated_on=action.updated_on)
            if item.id == action.item_id
            else item
            for item in state.items
        )
        if action.movement is None:
            return replace(state, items=items)
        return replace(
            state,
            items=items,
            movements=(action.movement,) + state.movements,
            error=None,
        )
    if isinstance(action, AddMovement):
        return replace(state, movements=(action.movement,) + state.movements)
    if isinstance(action, SetMovements):
        return replace(state, movements=tuple(action.movements))
    if isinstance(action, ClearMovements):
        return replace(state, movements=())
    if isinstance(action, SetSearchTerm):
        return replace(state, search_term=action.term)
    if isinstance(action, SetSelectedCategory):
        return replace(state, selected_category=action.category)
    if isinstance(action, SetSort):
        return replace(state, sort_key=SortKey(action.key), sort_order=SortOrder(action.order))
    return state


############################
# SELECTORS
############################
def _matches_search(item: InventoryItem, needle: str) -> bool:
    haystacks = (item.name, item.category, item.supplier, item.description)
    return any(needle in value.lower() for value in haystacks if value)


def _sort_value(item: InventoryItem, key: SortKey):
    if key is SortKey.NAME:
        return item.name.lower()
    if key is SortKey.QUANTITY:
        return item.quantity
    if key is SortKey.CREATED:
        return (item.created_on or EPOCH).toordinal()
    return (item.expiration_date or EPOCH).toordinal()


def filtered_items(state: InventoryState) -> list[InventoryItem]:
    items = list(state.items)
    if state.search_term:
        needle = state.search_term.lower()
        items = [item for item in items if _matches_search(item, needle)]
    if state.selected_category:
        items = [item for item in items if item.category == state.selected_category]
    items.sort(
        key=lambda item: _sort_value(item, state.sort_key),
        reverse=state.sort_order is SortOrder.DESC,
    )
    return items


def low_stock_items(state: InventoryState) -> list[InventoryItem]:
    return [item for item in state.items if item.quantity <= item.min_stock]


def out_of_stock_items(state: InventoryState) -> list[InventoryItem]:
    return [item for item in state.items if item.quantity == 0]


def expiring_items(
    state: InventoryState, days: int = 30, *, today: date | None = None
) -> list[InventoryItem]:
    start = today or date.today()
    cutoff = start + timedelta(days=days)
    return [
        item
        for item in state.items
        if item.expiration_date is not None and start <= item.expiration_date <= cutoff
    ]


def categories(state: InventoryState) -> list[str]:
    return sorted({item.category for item in state.items})


def total_value(state: InventoryState) -> Decimal:
    return sum(
        (item.quantity * item.unit_price for item in state.items), Decimal("0")
    )


def item_by_id(state: InventoryState, item_id: str) -> InventoryItem | None:
    for item in state.items:
        if item.id == item_id:
            return item
    return None


def stock_status(item: InventoryItem) -> StockStatus:
    if item.quantity == 0:
        return StockStatus.OUT
    if item.quantity <= item.min_stock:
        return StockStatus.LOW
    return StockStatus.OK


@dataclass(frozen=True)
class CategoryShare:
    category: str
    count: int
    percent: float


@dataclass(frozen=True)
class DashboardSummary:
    total_items: int
    low_stock_count: int
    out_of_stock_count: int
    total_value: Decimal
    low_stock_preview: tuple[InventoryItem, ...]
    category_breakdown: tuple[CategoryShare, ...]
    expiring_soon: tuple[InventoryItem, ...]


def dashboard_summary(
    state: InventoryState, *, expiring_days: int = 30, today: date | None = None
) -> DashboardSummary:
    low_items = low_stock_items(state)
    total = len(state.items)

    counts: dict[str, int] = {}
    for item in state.items:
        counts[item.category] = counts.get(item.category, 0) + 1
    breakdown = tuple(
        CategoryShare(
            category=category,
            count=count,
            percent=(count / total) * 100 if total else 0.0,
        )
        for category, count in counts.items()
    )

    return DashboardSummary(
        total_items=total,
        low_stock_count=len(low_items),
        out_of_stock_count=len(out_of_stock_items(state)),
        total_value=total_value(state),
        low_stock_preview=tuple(low_items[:LOW_STOCK_PREVIEW_LIMIT]),
        category_breakdown=breakdown,
        expiring_soon=tuple(expiring_items(state, expiring_days, today=today)),
    )
