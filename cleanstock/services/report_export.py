"""Inventory report rendering: paginated PDF table and PNG snapshot."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from PIL import Image, ImageDraw, ImageFont

from cleanstock.errors import ValidationError
from cleanstock.services.inventory_state import InventoryItem


REPORT_TITLE = "Cleaning Supplies Inventory"
STOCK_LEVELS = ("all", "low", "normal")

PDF_PAGE_SIZE = (827, 1169)  # A4 at 100 DPI
PDF_RESOLUTION = 100.0
PDF_MARGIN = 20
PDF_ROW_HEIGHT = 26
PDF_COLUMNS: tuple[tuple[str, int], ...] = (
    ("Name", 150),
    ("Category", 100),
    ("Quantity", 60),
    ("Unit", 60),
    ("Min. stock", 70),
    ("Status", 60),
    ("Location", 130),
    ("Supplier", 157),
)
HEADER_FILL = (59, 130, 246)
ALTERNATE_FILL = (248, 250, 252)
TEXT_COLOR = (17, 24, 39)

IMAGE_WIDTH = 800
IMAGE_PADDING = 20
IMAGE_LINE_HEIGHT = 24


@dataclass
class ExportFilters:
    selected_categories: list[str] = field(default_factory=list)
    stock_level: str = "all"
    include_out_of_stock: bool = True

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "ExportFilters":
        getlist = getattr(form, "getlist", None)
        if getlist is not None:
            categories = [value for value in getlist("categories") if value]
        else:
            categories = list(form.get("categories") or [])
        stock_level = (form.get("stock_level") or "all").strip()
        if stock_level not in STOCK_LEVELS:
            stock_level = "all"
        raw_include = form.get("include_out_of_stock")
        include = True if raw_include is None else str(raw_include).lower() in {
            "1",
            "true",
            "yes",
            "on",
        }
        return cls(
            selected_categories=categories,
            stock_level=stock_level,
            include_out_of_stock=include,
        )


def filter_items(
    items: Iterable[InventoryItem], filters: ExportFilters
) -> list[InventoryItem]:
    selected = []
    for item in items:
        if filters.selected_categories and item.category not in filters.selected_categories:
            continue
        if filters.stock_level == "low" and item.quantity > item.min_stock:
            continue
        if filters.stock_level == "normal" and item.quantity <= item.min_stock:
            continue
        if not filters.include_out_of_stock and item.quantity == 0:
            continue
        selected.append(item)
    return selected


def status_label(item: InventoryItem) -> str:
    return "Low" if item.quantity <= item.min_stock else "Normal"


def format_quantity(value: Decimal | None) -> str:
    if value is None:
        return "0"
    text = format(Decimal(value).normalize(), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def report_rows(items: Iterable[InventoryItem]) -> list[tuple[str, ...]]:
    return [
        (
            item.name or "N/A",
            item.category or "N/A",
            format_quantity(item.quantity),
            item.unit or "N/A",
            format_quantity(item.min_stock),
            status_label(item),
            item.location or "N/A",
            item.supplier or "N/A",
        )
        for item in items
    ]


def report_filename(extension: str, on: date | None = None) -> str:
    day = on or date.today()
    return f"inventory_{day:%Y_%m_%d}.{extension}"


def _load_fonts(size: int):
    try:
        return ImageFont.truetype("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", size)
    except OSError:
        try:
            return ImageFont.truetype("arial.ttf", size)
        except OSError:
            return ImageFont.load_default()


def _fit(draw: ImageDraw.ImageDraw, text: str, font, width: int) -> str:
    if draw.textlength(text, font=font) <= width:
        return text
    while text and draw.textlength(text + "...", font=font) > width:
        text = text[:-1]
    return text + "..."


def _ensure_rows(items: Sequence[InventoryItem]) -> None:
    if not items:
        raise ValidationError("No items match the selected filters.")


def render_pdf(
    items: Sequence[InventoryItem],
    *,
    generated_on: date | None = None,
    rows_per_page: int = 30,
    title: str = REPORT_TITLE,
) -> bytes:
    """Render the inventory table as a multi-page PDF document."""

    _ensure_rows(items)
    generated_on = generated_on or date.today()
    rows = report_rows(items)
    rows_per_page = max(1, rows_per_page)

    title_font = _load_fonts(24)
    body_font = _load_fonts(11)
    heading_font = _load_fonts(14)

    pages: list[Image.Image] = []
    for start in range(0, len(rows), rows_per_page):
        page = Image.new("RGB", PDF_PAGE_SIZE, color="white")
        draw = ImageDraw.Draw(page)
        y = PDF_MARGIN
        if not pages:
            draw.text((PDF_MARGIN, y), title, font=title_font, fill=TEXT_COLOR)
            y += 36
            draw.text(
                (PDF_MARGIN, y),
                f"Date: {generated_on.isoformat()}",
                font=heading_font,
                fill=TEXT_COLOR,
            )
            y += 30

        draw.rectangle(
            (PDF_MARGIN, y, PDF_PAGE_SIZE[0] - PDF_MARGIN, y + PDF_ROW_HEIGHT),
            fill=HEADER_FILL,
        )
        x = PDF_MARGIN
        for header, width in PDF_COLUMNS:
            draw.text((x + 4, y + 6), _fit(draw, header, body_font, width - 8), font=body_font, fill="white")
            x += width
        y += PDF_ROW_HEIGHT

        for index, row in enumerate(rows[start:start + rows_per_page]):
            if index % 2 == 1:
                draw.rectangle(
                    (PDF_MARGIN, y, PDF_PAGE_SIZE[0] - PDF_MARGIN, y + PDF_ROW_HEIGHT),
                    fill=ALTERNATE_FILL,
                )
            x = PDF_MARGIN
            for value, (_, width) in zip(row, PDF_COLUMNS):
                draw.text((x + 4, y + 6), _fit(draw, value, body_font, width - 8), font=body_font, fill=TEXT_COLOR)
                x += width
            y += PDF_ROW_HEIGHT

        footer = f"Page {len(pages) + 1}"
        draw.text(
            (PDF_MARGIN, PDF_PAGE_SIZE[1] - PDF_MARGIN - 14),
            footer,
            font=body_font,
            fill=TEXT_COLOR,
        )
        pages.append(page)

    buffer = io.BytesIO()
    pages[0].save(
        buffer,
        format="PDF",
        save_all=True,
        append_images=pages[1:],
        resolution=PDF_RESOLUTION,
    )
    return buffer.getvalue()


def render_png(
    items: Sequence[InventoryItem],
    *,
    generated_on: date | None = None,
    title: str = REPORT_TITLE,
) -> bytes:
    """Render a single-image summary list of the selected items."""

    _ensure_rows(items)
    generated_on = generated_on or date.today()
    title_font = _load_fonts(22)
    body_font = _load_fonts(14)

    height = IMAGE_PADDING * 2 + 70 + IMAGE_LINE_HEIGHT * len(items)
    image = Image.new("RGB", (IMAGE_WIDTH, height), color="white")
    draw = ImageDraw.Draw(image)

    y = IMAGE_PADDING
    draw.text((IMAGE_PADDING, y), title, font=title_font, fill=TEXT_COLOR)
    y += 34
    draw.text((IMAGE_PADDING, y), f"Date: {generated_on.isoformat()}", font=body_font, fill=TEXT_COLOR)
    y += 36

    for item in items:
        line = (
            f"- {item.name}: {format_quantity(item.quantity)} {item.unit} "
            f"({status_label(item)})"
        )
        draw.text(
            (IMAGE_PADDING, y),
            _fit(draw, line, body_font, IMAGE_WIDTH - IMAGE_PADDING * 2),
            font=body_font,
            fill=TEXT_COLOR,
        )
        y += IMAGE_LINE_HEIGHT

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
