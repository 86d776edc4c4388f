import os
import sys
from decimal import Decimal

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from cleanstock import create_app
from cleanstock.errors import StoreError
from cleanstock.extensions import db
from cleanstock.models import InventoryItemRecord, StockMovementRecord
from cleanstock.services.inventory_container import get_inventory
from cleanstock.services.inventory_state import ItemDraft


@pytest.fixture
def app():
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def items(app):
    inventory = get_inventory()
    detergent = inventory.add_item(
        ItemDraft(
            name="Detergente",
            category="Detergentes",
            unit="litro",
            quantity=Decimal("10"),
            min_stock=Decimal("5"),
            unit_price=Decimal("2.00"),
        )
    )
    bleach = inventory.add_item(
        ItemDraft(
            name="Lejía",
            category="Desinfectantes",
            unit="litro",
            quantity=Decimal("1"),
            min_stock=Decimal("3"),
            supplier="Químicas del Norte",
        )
    )
    return detergent, bleach


def test_dashboard_renders(client, items):
    response = client.get("/")
    assert response.status_code == 200
    assert b"Inventory dashboard" in response.data
    assert "Lejía".encode() in response.data


def test_inventory_list_filters_by_category_and_search(client, items):
    response = client.get("/inventory/?category=Detergentes&q=")
    assert b"Detergente" in response.data
    assert "Lejía".encode() not in response.data

    response = client.get("/inventory/?q=deterg&category=")
    assert b"Detergente" in response.data
    assert "Lejía".encode() not in response.data


def test_inventory_list_remembers_filters(client, items):
    client.get("/inventory/?category=Desinfectantes")
    response = client.get("/inventory/")
    assert "Lejía".encode() in response.data
    assert b">Detergente<" not in response.data


def test_add_item_form(client, app):
    response = client.post(
        "/inventory/item/add",
        data={
            "name": "Escoba",
            "category": "Herramientas",
            "unit": "unidad",
            "quantity": "4",
            "min_stock": "1",
            "unit_price": "3.5",
        },
        follow_redirects=True,
    )
    assert response.status_code == 200
    assert b"Item Escoba added successfully." in response.data
    record = InventoryItemRecord.query.filter_by(name="Escoba").one()
    assert record.location == app.config["DEFAULT_LOCATION"]
    assert get_inventory().item_by_id(record.id).quantity == Decimal("4")


def test_add_item_requires_name(client):
    response = client.post(
        "/inventory/item/add", data={"category": "Herramientas", "unit": "unidad"}
    )
    assert response.status_code == 400
    assert b"Name is required." in response.data
    assert InventoryItemRecord.query.count() == 0


def test_edit_item(client, items):
    detergent, _ = items
    response = client.post(
        f"/inventory/item/{detergent.id}/edit",
        data={
            "name": "Detergente concentrado",
            "category": "Detergentes",
            "unit": "litro",
            "quantity": "10",
            "min_stock": "5",
        },
        follow_redirects=True,
    )
    assert b"Detergente concentrado updated successfully." in response.data
    assert db.session.get(InventoryItemRecord, detergent.id).name == "Detergente concentrado"


def test_edit_unknown_item_is_404(client):
    assert client.get("/inventory/item/missing/edit").status_code == 404


def test_delete_item(client, items):
    detergent, _ = items
    response = client.post(f"/inventory/item/{detergent.id}/delete", follow_redirects=True)
    assert b"Item Detergente deleted successfully." in response.data
    assert get_inventory().item_by_id(detergent.id) is None
    assert db.session.get(InventoryItemRecord, detergent.id) is None


def test_delete_item_store_failure_shows_warning(client, items, monkeypatch):
    detergent, _ = items
    inventory = get_inventory()

    def broken_delete(item_id):
        raise StoreError("permission denied", operation="delete_item")

    monkeypatch.setattr(inventory.store, "delete_item", broken_delete)

    response = client.post(f"/inventory/item/{detergent.id}/delete", follow_redirects=True)
    assert b"permission denied" in response.data
    assert inventory.item_by_id(detergent.id) is None


def test_stock_update_dialog_inbound(client, items):
    detergent, _ = items
    response = client.post(
        "/inventory/stock/update",
        data={
            "item_id": detergent.id,
            "movement_type": "inbound",
            "quantity": "5",
            "reason": "purchase",
        },
        follow_redirects=True,
    )
    assert b"Stock updated" in response.data
    assert get_inventory().item_by_id(detergent.id).quantity == Decimal("15")
    assert StockMovementRecord.query.count() == 1


def test_stock_update_dialog_rejects_overdraw(client, items):
    _, bleach = items
    response = client.post(
        "/inventory/stock/update",
        data={
            "item_id": bleach.id,
            "movement_type": "outbound",
            "quantity": "2",
            "reason": "sale",
        },
        follow_redirects=True,
    )
    assert b"Not enough stock available." in response.data
    assert get_inventory().item_by_id(bleach.id).quantity == Decimal("1")
    assert StockMovementRecord.query.count() == 0


def test_stock_update_manual_set_mode(client, items):
    detergent, _ = items
    client.post(
        "/inventory/stock/update",
        data={"item_id": detergent.id, "mode": "set", "quantity": "4", "reason": "count"},
    )
    inventory = get_inventory()
    assert inventory.item_by_id(detergent.id).quantity == Decimal("4")
    movement = inventory.state.movements[0]
    assert movement.kind.value == "outbound"
    assert movement.quantity == Decimal("6")


def test_stock_update_partial_failure_warns(client, items, monkeypatch):
    detergent, _ = items
    inventory = get_inventory()

    def broken_insert(draft):
        raise StoreError("ledger offline", operation="insert_movement")

    monkeypatch.setattr(inventory.store, "insert_movement", broken_insert)

    response = client.post(
        "/inventory/stock/update",
        data={
            "item_id": detergent.id,
            "movement_type": "inbound",
            "quantity": "1",
            "reason": "purchase",
        },
        follow_redirects=True,
    )
    assert b"saved as 11" in response.data
    assert inventory.item_by_id(detergent.id).quantity == Decimal("11")


def test_stock_update_page_lists_reasons(client, items):
    response = client.get("/inventory/stock/update?movement_type=outbound")
    assert response.status_code == 200
    assert b"Operational use" in response.data


def test_quick_adjust_endpoint_accumulates(client, app, items):
    detergent, _ = items
    first = client.post(f"/inventory/item/{detergent.id}/quick-adjust", json={"amount": 1})
    second = client.post(f"/inventory/item/{detergent.id}/quick-adjust", json={"direction": "up"})

    assert first.status_code == 202
    assert second.get_json() == {"item_id": detergent.id, "pending": "2"}
    assert app.extensions["quick_adjust"].pending(detergent.id) == Decimal("2")
    assert get_inventory().item_by_id(detergent.id).quantity == Decimal("10")

    app.extensions["quick_adjust"].debouncer_for(detergent.id).fire()
    assert get_inventory().item_by_id(detergent.id).quantity == Decimal("12")


def test_quick_adjust_unknown_item(client):
    response = client.post("/inventory/item/missing/quick-adjust", json={"amount": 1})
    assert response.status_code == 404


def test_movement_history_and_clear(client, items):
    detergent, _ = items
    get_inventory().update_stock(detergent.id, 2, "purchase")

    response = client.get("/inventory/movements")
    assert b"purchase" in response.data
    assert b"Current user" in response.data

    response = client.post("/inventory/movements/clear", follow_redirects=True)
    assert b"Movement history cleared (1 entries)." in response.data
    assert StockMovementRecord.query.count() == 0


def test_movement_history_shows_deleted_items(client, items):
    detergent, _ = items
    inventory = get_inventory()
    inventory.update_stock(detergent.id, 2, "purchase")
    inventory.delete_item(detergent.id)

    response = client.get("/inventory/movements")
    assert b"Deleted item" in response.data


def test_export_csv(client, items):
    client.get("/inventory/?q=&category=")
    response = client.get("/inventory/export.csv")
    assert response.mimetype == "text/csv"
    lines = response.get_data(as_text=True).strip().splitlines()
    assert lines[0].startswith("Name,Category,Quantity,Unit,Min. stock,Status")
    assert any(line.startswith("Lejía,Desinfectantes,1.00,litro,3.00,Low") for line in lines)
    assert any(line.startswith("Detergente,Detergentes,10.00,litro,5.00,Normal") for line in lines)


def test_delete_warns_on_repeated_store_message(client, items, monkeypatch):
    detergent, bleach = items
    inventory = get_inventory()

    def broken_delete(item_id):
        raise StoreError("permission denied", operation="delete_item")

    monkeypatch.setattr(inventory.store, "delete_item", broken_delete)

    client.post(f"/inventory/item/{detergent.id}/delete")
    response = client.post(f"/inventory/item/{bleach.id}/delete", follow_redirects=True)
    assert b"Item removed locally but the database reported: permission denied" in response.data


def test_delete_after_earlier_failure_reports_success(client, items, monkeypatch):
    detergent, bleach = items
    inventory = get_inventory()
    original = inventory.store.delete_item

    def broken_delete(item_id):
        raise StoreError("permission denied", operation="delete_item")

    monkeypatch.setattr(inventory.store, "delete_item", broken_delete)
    client.post(f"/inventory/item/{detergent.id}/delete")

    monkeypatch.setattr(inventory.store, "delete_item", original)
    response = client.post(f"/inventory/item/{bleach.id}/delete", follow_redirects=True)
    assert f"Item {bleach.name} deleted successfully.".encode() in response.data
