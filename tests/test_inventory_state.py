import os
import sys
from datetime import date, datetime, timedelta
from decimal import Decimal

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from cleanstock.services import inventory_state as inv
from cleanstock.services.inventory_state import (
    AddItem,
    ApplyStockUpdate,
    ClearMovements,
    DeleteItem,
    InventoryItem,
    InventoryState,
    MovementKind,
    SetError,
    SetItems,
    SetSearchTerm,
    SetSelectedCategory,
    SetSort,
    SortKey,
    SortOrder,
    StockMovement,
    StockStatus,
    UpdateItem,
    reduce,
)


TODAY = date(2026, 10, 17)


def make_item(item_id, name, category="Detergentes", quantity=10, min_stock=5, **extra):
    values = dict(
        id=item_id,
        name=name,
        category=category,
        quantity=Decimal(quantity),
        unit="litro",
        unit_price=Decimal(extra.pop("unit_price", "2.50")),
        min_stock=Decimal(min_stock),
        location="Main warehouse",
        created_on=extra.pop("created_on", TODAY),
        updated_on=TODAY,
    )
    values.update(extra)
    return InventoryItem(**values)


def make_movement(item_id, quantity, kind=MovementKind.INBOUND):
    return StockMovement(
        id=f"mv-{item_id}-{quantity}",
        item_id=item_id,
        kind=kind,
        quantity=Decimal(quantity),
        reason="purchase",
        timestamp=datetime(2026, 10, 17, 9, 0),
        user="Current user",
    )


def state_with(*items):
    return reduce(InventoryState(), SetItems(tuple(items)))


def test_add_update_and_delete_items():
    state = state_with(make_item("a", "Lejía"))
    state = reduce(state, AddItem(make_item("b", "Escoba", category="Herramientas")))
    assert [item.id for item in state.items] == ["a", "b"]

    renamed = make_item("b", "Escoba grande", category="Herramientas")
    state = reduce(state, UpdateItem(renamed, updated_on=date(2026, 10, 18)))
    assert inv.item_by_id(state, "b").name == "Escoba grande"
    assert inv.item_by_id(state, "b").updated_on == date(2026, 10, 18)

    state = reduce(state, DeleteItem("a"))
    assert [item.id for item in state.items] == ["b"]


def test_delete_keeps_recorded_error():
    state = reduce(state_with(make_item("a", "Lejía")), SetError("connection reset"))
    state = reduce(state, DeleteItem("a"))
    assert state.items == ()
    assert state.error == "connection reset"


def test_apply_stock_update_prepends_movement():
    state = state_with(make_item("a", "Lejía"))
    state = reduce(state, ApplyStockUpdate("a", Decimal("12"), make_movement("a", 2)))
    state = reduce(state, ApplyStockUpdate("a", Decimal("15"), make_movement("a", 3)))

    assert inv.item_by_id(state, "a").quantity == Decimal("15")
    assert [movement.quantity for movement in state.movements] == [Decimal("3"), Decimal("2")]


def test_apply_stock_update_without_movement_only_touches_quantity():
    state = state_with(make_item("a", "Lejía"))
    state = reduce(state, ApplyStockUpdate("a", Decimal("4"), None))
    assert inv.item_by_id(state, "a").quantity == Decimal("4")
    assert state.movements == ()


def test_apply_stock_update_never_goes_negative():
    state = state_with(make_item("a", "Lejía"))
    state = reduce(state, ApplyStockUpdate("a", Decimal("-3"), None))
    assert inv.item_by_id(state, "a").quantity == Decimal("0")


def test_clear_movements():
    state = state_with(make_item("a", "Lejía"))
    state = reduce(state, ApplyStockUpdate("a", Decimal("12"), make_movement("a", 2)))
    state = reduce(state, ClearMovements())
    assert state.movements == ()


def test_search_is_case_insensitive_across_fields():
    state = state_with(
        make_item("a", "Detergente multiusos", category="Detergentes"),
        make_item("b", "Guantes", category="Equipos", supplier="Limpiezas DETERG S.A."),
        make_item("c", "Mopa", category="Herramientas", description="Para detergentes"),
        make_item("d", "Papel higiénico", category="Papel y Textiles"),
    )
    state = reduce(state, SetSearchTerm("deterg"))
    assert {item.id for item in inv.filtered_items(state)} == {"a", "b", "c"}


def test_category_filter_is_exact():
    state = state_with(
        make_item("a", "Detergente", category="Detergentes"),
        make_item("b", "Detergente industrial", category="Detergentes industriales"),
    )
    state = reduce(state, SetSelectedCategory("Detergentes"))
    assert [item.id for item in inv.filtered_items(state)] == ["a"]


def test_detergente_found_by_category_and_search():
    state = state_with(
        make_item("a", "Detergente", category="Detergentes"),
        make_item("b", "Lejía", category="Desinfectantes"),
    )
    by_category = reduce(state, SetSelectedCategory("Detergentes"))
    by_search = reduce(state, SetSearchTerm("deterg"))

    assert [item.name for item in inv.filtered_items(by_category)] == ["Detergente"]
    assert [item.name for item in inv.filtered_items(by_search)] == ["Detergente"]


def test_sorting_by_each_key():
    state = state_with(
        make_item("a", "beta", quantity=5, created_on=date(2026, 1, 2)),
        make_item("b", "Alpha", quantity=20, created_on=date(2026, 1, 3),
                  expiration_date=date(2026, 12, 1)),
        make_item("c", "gamma", quantity=1, created_on=date(2026, 1, 1),
                  expiration_date=date(2026, 11, 1)),
    )
    assert [i.id for i in inv.filtered_items(state)] == ["b", "a", "c"]

    by_quantity = reduce(state, SetSort(SortKey.QUANTITY, SortOrder.DESC))
    assert [i.id for i in inv.filtered_items(by_quantity)] == ["b", "a", "c"]

    by_created = reduce(state, SetSort(SortKey.CREATED, SortOrder.ASC))
    assert [i.id for i in inv.filtered_items(by_created)] == ["c", "a", "b"]

    # Items without an expiration date sort as the earliest possible date.
    by_expiration = reduce(state, SetSort(SortKey.EXPIRATION, SortOrder.ASC))
    assert [i.id for i in inv.filtered_items(by_expiration)] == ["a", "c", "b"]


def test_low_and_out_of_stock():
    state = state_with(
        make_item("a", "At minimum", quantity=5, min_stock=5),
        make_item("b", "Above", quantity=6, min_stock=5),
        make_item("c", "Empty", quantity=0, min_stock=0),
    )
    assert {i.id for i in inv.low_stock_items(state)} == {"a", "c"}
    assert [i.id for i in inv.out_of_stock_items(state)] == ["c"]
    assert inv.stock_status(inv.item_by_id(state, "a")) is StockStatus.LOW
    assert inv.stock_status(inv.item_by_id(state, "b")) is StockStatus.OK
    assert inv.stock_status(inv.item_by_id(state, "c")) is StockStatus.OUT


def test_total_value_reflects_current_quantities():
    state = state_with(
        make_item("a", "Lejía", quantity=4, unit_price="2.50"),
        make_item("b", "Jabón", quantity=2, unit_price="1.25"),
    )
    assert inv.total_value(state) == Decimal("12.50")

    state = reduce(state, ApplyStockUpdate("a", Decimal("0"), None))
    assert inv.total_value(state) == Decimal("2.50")


def test_expiring_items_window_is_inclusive():
    state = state_with(
        make_item("a", "Today", expiration_date=TODAY),
        make_item("b", "Edge", expiration_date=TODAY + timedelta(days=30)),
        make_item("c", "Later", expiration_date=TODAY + timedelta(days=31)),
        make_item("d", "Expired", expiration_date=TODAY - timedelta(days=1)),
        make_item("e", "Never"),
    )
    assert {i.id for i in inv.expiring_items(state, 30, today=TODAY)} == {"a", "b"}


def test_categories_are_distinct():
    state = state_with(
        make_item("a", "Lejía", category="Desinfectantes"),
        make_item("b", "Amoniaco", category="Desinfectantes"),
        make_item("c", "Mopa", category="Herramientas"),
    )
    assert sorted(inv.categories(state)) == ["Desinfectantes", "Herramientas"]


def test_dashboard_summary():
    items = [make_item(str(n), f"Item {n}", quantity=1, min_stock=5) for n in range(7)]
    items.append(make_item("ok", "Plenty", category="Herramientas", quantity=50))
    items.append(make_item("zero", "Gone", category="Herramientas", quantity=0))
    state = state_with(*items)

    summary = inv.dashboard_summary(state, today=TODAY)

    assert summary.total_items == 9
    assert summary.low_stock_count == 8
    assert summary.out_of_stock_count == 1
    assert len(summary.low_stock_preview) == 5
    shares = {share.category: share.count for share in summary.category_breakdown}
    assert shares == {"Detergentes": 7, "Herramientas": 2}
