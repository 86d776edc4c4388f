from datetime import date
from decimal import Decimal

from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)

from cleanstock.errors import (
    InventoryError,
    PartialLedgerError,
    StoreError,
)
from cleanstock.forms import (
    STOCK_CHANGE_MODES,
    parse_decimal,
    apply_draft,
    compute_stock_change,
    parse_item_form,
    parse_stock_update_form,
    reason_choices,
)
from cleanstock.services.inventory_container import get_inventory
from cleanstock.services.inventory_state import SortKey, SortOrder, stock_status
from cleanstock.services.report_export import format_quantity, status_label
from cleanstock.utils.csv_export import INVENTORY_COLUMNS, export_rows_to_csv

bp = Blueprint("inventory", __name__, url_prefix="/inventory")


def _category_choices(inventory) -> list[str]:
    configured = list(current_app.config.get("ITEM_CATEGORIES", ()))
    extra = [name for name in inventory.categories() if name not in configured]
    return configured + extra


def _form_context(inventory, **context):
    context.setdefault("categories", _category_choices(inventory))
    context.setdefault("units", current_app.config.get("ITEM_UNITS", ()))
    context.setdefault("default_location", current_app.config.get("DEFAULT_LOCATION"))
    return context


def _flash_stock_error(exc: InventoryError) -> None:
    if isinstance(exc, PartialLedgerError):
        flash(
            "Stock quantity was saved as "
            f"{format_quantity(exc.committed_quantity)} but the movement could not "
            f"be recorded: {exc.message}",
            "warning",
        )
    elif isinstance(exc, StoreError):
        flash(f"Stock could not be updated: {exc.message}", "danger")
    else:
        flash(str(exc), "danger")


############################
# LIST
############################
@bp.route("/")
def inventory_home():
    inventory = get_inventory()
    args = request.args

    if "q" in args:
        inventory.set_search_term(args.get("q", "").strip())
    if "category" in args:
        inventory.set_selected_category(args.get("category", "").strip())
    if "sort" in args or "order" in args:
        state = inventory.state
        try:
            inventory.set_sorting(
                args.get("sort") or state.sort_key,
                args.get("order") or state.sort_order,
            )
        except ValueError:
            flash("Unknown sort option ignored.", "warning")

    state = inventory.state
    quick_adjust = current_app.extensions["quick_adjust"]
    items = inventory.filtered_items()
    rows = [
        {
            "item": item,
            "status": stock_status(item).value,
            "pending": quick_adjust.pending(item.id),
        }
        for item in items
    ]
    return render_template(
        "inventory/list.html",
        rows=rows,
        state=state,
        categories=inventory.categories(),
        sort_keys=[key.value for key in SortKey],
        sort_orders=[order.value for order in SortOrder],
        total_value=inventory.total_value(),
        low_stock_count=len(inventory.low_stock_items()),
    )


############################
# ITEMS
############################
@bp.route("/item/add", methods=["GET", "POST"])
def add_item():
    inventory = get_inventory()
    if request.method == "POST":
        draft, errors = parse_item_form(request.form)
        if errors:
            for message in errors:
                flash(message, "danger")
            return (
                render_template(
                    "inventory/item_form.html",
                    **_form_context(inventory, item=None, form=request.form),
                ),
                400,
            )
        try:
            item = inventory.add_item(draft)
        except StoreError as exc:
            flash(f"Item could not be added: {exc.message}", "danger")
            return (
                render_template(
                    "inventory/item_form.html",
                    **_form_context(inventory, item=None, form=request.form),
                ),
                500,
            )
        flash(f"Item {item.name} added successfully.", "success")
        return redirect(url_for("inventory.inventory_home"))

    return render_template(
        "inventory/item_form.html", **_form_context(inventory, item=None, form={})
    )


@bp.route("/item/<item_id>/edit", methods=["GET", "POST"])
def edit_item(item_id):
    inventory = get_inventory()
    item = inventory.item_by_id(item_id)
    if item is None:
        abort(404)

    if request.method == "POST":
        draft, errors = parse_item_form(request.form)
        if errors:
            for message in errors:
                flash(message, "danger")
            return (
                render_template(
                    "inventory/item_form.html",
                    **_form_context(inventory, item=item, form=request.form),
                ),
                400,
            )
        try:
            updated = inventory.update_item(apply_draft(item, draft))
        except StoreError as exc:
            flash(f"Item could not be updated: {exc.message}", "danger")
            return redirect(url_for("inventory.edit_item", item_id=item_id))
        flash(f"Item {updated.name} updated successfully.", "success")
        return redirect(url_for("inventory.inventory_home"))

    return render_template(
        "inventory/item_form.html", **_form_context(inventory, item=item, form={})
    )


@bp.route("/item/<item_id>/delete", methods=["POST"])
def delete_item(item_id):
    inventory = get_inventory()
    item = inventory.item_by_id(item_id)
    if item is None:
        flash("Item not found.", "danger")
        return redirect(url_for("inventory.inventory_home"))

    current_app.extensions["quick_adjust"].forget(item_id)
    if not inventory.delete_item(item_id):
        flash(
            "Item removed locally but the database reported: "
            f"{inventory.state.error}",
            "warning",
        )
    else:
        flash(f"Item {item.name} deleted successfully.", "success")
    return redirect(url_for("inventory.inventory_home"))


############################
# STOCK
############################
@bp.route("/stock/update", methods=["GET", "POST"])
def stock_update():
    inventory = get_inventory()
    items = sorted(inventory.state.items, key=lambda item: item.name.lower())

    if request.method == "POST":
        form = request.form
        mode = (form.get("mode") or "").strip()
        if mode:
            return _manual_stock_change(inventory, form, mode)

        items_by_id = {item.id: item for item in items}
        update, errors = parse_stock_update_form(form, items_by_id)
        if errors:
            for message in errors:
                flash(message, "danger")
            return redirect(
                url_for(
                    "inventory.stock_update",
                    item_id=form.get("item_id") or None,
                    movement_type=form.get("movement_type") or None,
                )
            )
        try:
            movement = inventory.update_stock(
                update.item_id, update.delta, update.reason, notes=update.notes
            )
        except InventoryError as exc:
            _flash_stock_error(exc)
            return redirect(url_for("inventory.stock_update", item_id=update.item_id))

        item = inventory.item_by_id(update.item_id)
        flash(
            f"Stock updated: {movement.kind.value} of {format_quantity(movement.quantity)} "
            f"{item.unit if item else ''} for {item.name if item else update.item_id}.",
            "success",
        )
        return redirect(url_for("inventory.inventory_home"))

    movement_type = request.args.get("movement_type", "inbound")
    if movement_type not in {"inbound", "outbound"}:
        movement_type = "inbound"
    selected = inventory.item_by_id(request.args.get("item_id", ""))
    return render_template(
        "inventory/update_stock.html",
        items=items,
        selected=selected,
        movement_type=movement_type,
        reasons=reason_choices(movement_type),
        modes=STOCK_CHANGE_MODES,
    )


def _manual_stock_change(inventory, form, mode):
    item_id = (form.get("item_id") or "").strip()
    reason = (form.get("reason") or "").strip() or "Manual stock change"
    quantity = parse_decimal(form.get("quantity"))
    item = inventory.item_by_id(item_id)

    if item is None:
        flash("Item not found.", "danger")
        return redirect(url_for("inventory.stock_update"))
    if quantity is None or quantity < 0:
        flash("Please enter a valid quantity.", "danger")
        return redirect(url_for("inventory.stock_update", item_id=item_id))

    try:
        delta = compute_stock_change(mode, quantity, item.quantity)
    except ValueError as exc:
        flash(str(exc), "danger")
        return redirect(url_for("inventory.stock_update", item_id=item_id))

    if delta == 0:
        flash("Stock is already at that quantity.", "info")
        return redirect(url_for("inventory.inventory_home"))

    try:
        inventory.update_stock(item_id, delta, reason, notes=form.get("notes") or None)
    except InventoryError as exc:
        _flash_stock_error(exc)
        return redirect(url_for("inventory.stock_update", item_id=item_id))

    updated = inventory.item_by_id(item_id)
    flash(
        f"Stock for {item.name} is now {format_quantity(updated.quantity)} {item.unit}.",
        "success",
    )
    return redirect(url_for("inventory.inventory_home"))


@bp.route("/item/<item_id>/quick-adjust", methods=["POST"])
def quick_adjust(item_id):
    inventory = get_inventory()
    if inventory.item_by_id(item_id) is None:
        if request.is_json:
            return jsonify({"error": "Item not found"}), 404
        abort(404)

    payload = request.get_json(silent=True) or request.form
    if not hasattr(payload, "get"):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    amount = parse_decimal(payload.get("amount"))
    if amount is None or amount == 0:
        direction = str(payload.get("direction") or "").strip()
        amount = {"up": Decimal("1"), "down": Decimal("-1")}.get(direction)
    if amount is None:
        if request.is_json:
            return jsonify({"error": "amount or direction is required"}), 400
        flash("Choose + or - to adjust stock.", "danger")
        return redirect(url_for("inventory.inventory_home"))

    pending = current_app.extensions["quick_adjust"].tap(item_id, amount)
    if request.is_json:
        return jsonify({"item_id": item_id, "pending": format_quantity(pending)}), 202
    return redirect(url_for("inventory.inventory_home"))


############################
# MOVEMENTS
############################
@bp.route("/movements")
def movement_history():
    inventory = get_inventory()
    rows = []
    for movement in inventory.state.movements:
        item = inventory.item_by_id(movement.item_id)
        rows.append(
            {
                "movement": movement,
                "item_name": item.name if item else "Deleted item",
                "unit": item.unit if item else "",
            }
        )
    return render_template("inventory/movements.html", rows=rows)


@bp.route("/movements/clear", methods=["POST"])
def clear_history():
    inventory = get_inventory()
    try:
        deleted = inventory.clear_history()
    except StoreError as exc:
        flash(f"History could not be cleared: {exc.message}", "danger")
    else:
        flash(f"Movement history cleared ({deleted} entries).", "success")
    return redirect(url_for("inventory.movement_history"))


@bp.route("/export.csv")
def export_csv():
    inventory = get_inventory()
    rows = [
        {
            "name": item.name,
            "category": item.category,
            "quantity": item.quantity,
            "unit": item.unit,
            "min_stock": item.min_stock,
            "status": status_label(item),
            "location": item.location,
            "supplier": item.supplier,
            "unit_price": item.unit_price,
            "expiration_date": item.expiration_date,
        }
        for item in inventory.filtered_items()
    ]
    filename = f"inventory_{date.today():%Y_%m_%d}.csv"
    return export_rows_to_csv(rows, INVENTORY_COLUMNS, filename)
