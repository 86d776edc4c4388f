from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

from flask import Blueprint, current_app, jsonify, request

from cleanstock.errors import DeliveryError, ItemNotFoundError, PartialLedgerError, StoreError
from cleanstock.forms import parse_decimal
from cleanstock.services import inventory_state as selectors
from cleanstock.services.inventory_container import get_inventory
from cleanstock.services.messaging import send_whatsapp_report


bp = Blueprint("api", __name__, url_prefix="/api")

CENTS = Decimal("0.01")


def _decimal(value) -> str:
    return format(Decimal(value).quantize(CENTS), "f")


def _json_object() -> dict | None:
    """Return the JSON body when it is an object, ``{}`` when absent, else ``None``."""

    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        return None
    return payload


def _text(payload: dict, key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return str(value).strip()


def serialize_item(item: selectors.InventoryItem) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "category": item.category,
        "quantity": _decimal(item.quantity),
        "unit": item.unit,
        "unit_price": _decimal(item.unit_price),
        "min_stock": _decimal(item.min_stock),
        "location": item.location,
        "supplier": item.supplier,
        "expiration_date": item.expiration_date.isoformat() if item.expiration_date else None,
        "description": item.description,
        "created_on": item.created_on.isoformat(),
        "updated_on": item.updated_on.isoformat(),
        "status": selectors.stock_status(item).value,
    }


def serialize_movement(movement: selectors.StockMovement) -> dict:
    return {
        "id": movement.id,
        "item_id": movement.item_id,
        "type": movement.kind.value,
        "quantity": _decimal(movement.quantity),
        "reason": movement.reason,
        "date": movement.timestamp.isoformat() if movement.timestamp else None,
        "user": movement.user,
        "unit_price": None if movement.unit_price is None else _decimal(movement.unit_price),
        "reference": movement.reference,
        "notes": movement.notes,
    }


@bp.get("/items")
def list_items():
    """Return items, optionally narrowed by ``q`` and ``category``.

    The query string never changes the list view's remembered filters.
    """

    state = get_inventory().state
    view = replace(
        state,
        search_term=(request.args.get("q") or "").strip(),
        selected_category=(request.args.get("category") or "").strip(),
    )
    items = selectors.filtered_items(view)
    return jsonify({"items": [serialize_item(item) for item in items], "count": len(items)})


@bp.get("/items/<item_id>")
def get_item(item_id):
    item = get_inventory().item_by_id(item_id)
    if item is None:
        return jsonify({"error": "Item not found"}), 404
    return jsonify(serialize_item(item))


@bp.post("/items/<item_id>/stock")
def update_item_stock(item_id):
    payload = _json_object()
    if payload is None:
        return jsonify({"error": "Request body must be a JSON object"}), 400
    delta = parse_decimal(payload.get("delta"))
    reason = _text(payload, "reason")
    if delta is None or delta == 0:
        return jsonify({"error": "delta must be a non-zero number"}), 400
    if not reason:
        return jsonify({"error": "reason is required"}), 400

    inventory = get_inventory()
    try:
        movement = inventory.update_stock(
            item_id,
            delta,
            reason,
            notes=_text(payload, "notes") or None,
            reference=_text(payload, "reference") or None,
        )
    except ItemNotFoundError:
        return jsonify({"error": "Item not found"}), 404
    except PartialLedgerError as exc:
        return (
            jsonify(
                {
                    "error": exc.message,
                    "committed_quantity": _decimal(exc.committed_quantity),
                    "movement_recorded": False,
                }
            ),
            500,
        )
    except StoreError as exc:
        return jsonify({"error": exc.message}), 500

    return jsonify(
        {
            "item": serialize_item(inventory.item_by_id(item_id)),
            "movement": serialize_movement(movement),
        }
    )


@bp.get("/summary")
def summary():
    inventory = get_inventory()
    data = inventory.dashboard_summary(
        expiring_days=int(current_app.config.get("EXPIRING_SOON_DAYS", 30))
    )
    return jsonify(
        {
            "total_items": data.total_items,
            "low_stock_count": data.low_stock_count,
            "out_of_stock_count": data.out_of_stock_count,
            "total_value": _decimal(data.total_value),
            "low_stock_preview": [serialize_item(item) for item in data.low_stock_preview],
            "category_breakdown": [
                {"category": share.category, "count": share.count, "percent": share.percent}
                for share in data.category_breakdown
            ],
            "expiring_soon": [serialize_item(item) for item in data.expiring_soon],
            "error": inventory.state.error,
        }
    )


@bp.route("/send-report", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
def send_report():
    if request.method != "POST":
        return jsonify({"success": False, "error": "Method not allowed"}), 405

    payload = _json_object()
    if payload is None:
        return jsonify({"success": False, "error": "Request body must be a JSON object"}), 400
    to = _text(payload, "to")
    media_url = _text(payload, "mediaUrl")
    if not to or not media_url:
        return jsonify({"success": False, "error": "Missing 'to' or 'mediaUrl' parameter"}), 400

    try:
        sid = send_whatsapp_report(to, media_url)
    except DeliveryError as exc:
        current_app.logger.error("send-report failed: %s", exc)
        return jsonify({"success": False, "error": str(exc)}), 500
    return jsonify({"success": True, "sid": sid})
