import io
from datetime import date

from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    send_file,
    url_for,
)

from cleanstock.errors import DeliveryError, StoreError, ValidationError
from cleanstock.services import mailer
from cleanstock.services.inventory_container import get_inventory
from cleanstock.services.report_export import (
    STOCK_LEVELS,
    ExportFilters,
    filter_items,
    render_pdf,
    render_png,
    report_filename,
)

bp = Blueprint("reports", __name__, url_prefix="/reports")

MIMETYPES = {"pdf": "application/pdf", "png": "image/png"}


def _storage():
    return current_app.extensions["report_storage"]


def public_report_url(filename: str) -> str:
    return url_for("reports.report_file", name=filename, _external=True)


@bp.route("/")
def export_panel():
    inventory = get_inventory()
    storage = _storage()
    return render_template(
        "reports/export.html",
        categories=inventory.categories(),
        stock_levels=STOCK_LEVELS,
        item_count=len(inventory.state.items),
        latest_pdf=storage.latest("pdf"),
        latest_png=storage.latest("png"),
    )


def _export(kind: str):
    inventory = get_inventory()
    filters = ExportFilters.from_form(request.form)
    items = filter_items(inventory.state.items, filters)
    today = date.today()

    try:
        if kind == "pdf":
            data = render_pdf(
                items,
                generated_on=today,
                rows_per_page=int(current_app.config.get("REPORT_ROWS_PER_PAGE", 30)),
            )
        else:
            data = render_png(items, generated_on=today)
    except ValidationError as exc:
        flash(str(exc), "warning")
        return redirect(url_for("reports.export_panel"))

    filename = report_filename(kind, today)
    try:
        stored = _storage().save(filename, data)
    except StoreError as exc:
        flash(f"Report generated but could not be stored: {exc.message}", "warning")
    else:
        current_app.logger.info(
            "Exported %s report with %s items to %s", kind, len(items), stored.filename
        )
        flash(f"Exported {len(items)} items to {stored.filename}.", "success")

    return send_file(
        io.BytesIO(data),
        mimetype=MIMETYPES[kind],
        as_attachment=True,
        download_name=filename,
    )


@bp.route("/export/pdf", methods=["POST"])
def export_pdf():
    return _export("pdf")


@bp.route("/export/image", methods=["POST"])
def export_image():
    return _export("png")


@bp.route("/email", methods=["POST"])
def email_report():
    recipient = (request.form.get("recipient") or "").strip()
    if not recipient:
        flash("Enter an email address to send the report to.", "danger")
        return redirect(url_for("reports.export_panel"))

    latest = _storage().latest("pdf")
    if latest is None:
        flash("Export a PDF report before sending it by email.", "danger")
        return redirect(url_for("reports.export_panel"))

    try:
        mailer.send_report_email(recipient, public_report_url(latest.filename))
    except DeliveryError as exc:
        flash(f"Email could not be sent: {exc}", "danger")
    else:
        flash(f"Report sent to {recipient}.", "success")
    return redirect(url_for("reports.export_panel"))


@bp.route("/files/<name>")
def report_file(name):
    stored = _storage().find(name)
    if stored is None:
        abort(404)
    extension = stored.filename.rsplit(".", 1)[-1].lower()
    return send_file(
        stored.path,
        mimetype=MIMETYPES.get(extension, "application/octet-stream"),
        download_name=stored.filename,
    )
