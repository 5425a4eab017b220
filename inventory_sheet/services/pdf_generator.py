"""PDF technical sheet for a single inventory item.

Layout, top to bottom:

    header band + logo (text header when the logo cannot be loaded)
    entity table            ENTITY / TAX ID
    primary table           CODE/PLATE | ITEM | CATEGORY | LOCATION
    secondary table         BRAND | COLOR | CONDITION | FUNCTIONAL UNIT
    responsible table       RESPONSIBLE | LEGAL OWNERSHIP | USEFUL LIFE
    observation
    valuation (optional)
    photographs             always start on page 2 or later, 3 per row

Photos are downloaded concurrently before drawing starts; drawing itself is
strictly sequential.  Missing data and failed assets become placeholders.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from PIL import Image

from inventory_sheet.clients.photos import PhotoFetcher, PhotoResult, PhotoStatus
from inventory_sheet.config import settings
from inventory_sheet.models import EntityConfig, InventoryRecord
from inventory_sheet.services.canvas import Color, SheetCanvas, TextMeasurer
from inventory_sheet.services.sheet_formatter import (
    NO_RECORD,
    condition_color,
    condition_label,
    estimate_remaining_useful_life,
    first_present,
    format_currency,
    ownership_label,
    resolve_base_useful_life,
    resolve_category_name,
    resolve_code_or_plate,
    resolve_functional_unit_name,
    resolve_item_name,
    resolve_location_name,
    resolve_observation,
    resolve_responsible_name,
    resolve_sheet_code,
)

logger = logging.getLogger(__name__)

# Dedicated logger for per-document summaries (file handler set up by entry points)
render_logger = logging.getLogger("inventory_sheet.render")


class RendererBusyError(RuntimeError):
    """A renderer instance was asked for a second document concurrently."""


# ── Texts ─────────────────────────────────────────────────────────────────────

SHEET_TITLE = "Inventory Technical Sheet"
PHOTOS_TITLE = "PHOTOGRAPHS"
NO_PHOTOS = "No photographs available"
COULD_NOT_LOAD = "Could not load"
NOT_AVAILABLE = "Not available"

# ── Geometry (points) ─────────────────────────────────────────────────────────

MARGIN = 40
HEADER_BAND_HEIGHT = 120
LOGO_WIDTH = 280
LOGO_HEIGHT = 75
TITLE_RULE_WIDTH = 200

LABEL_COLUMN_WIDTH = 180
LABEL_ROW_HEIGHT = 28
LABEL_PADDING = 12

TABLE_HEADER_HEIGHT = 38
TABLE_ROW_HEIGHT = 40
TALL_ROW_HEIGHT = 70
CELL_PADDING = 10
ACCENT_WIDTH = 3

PHOTOS_PER_ROW = 3
PHOTO_HEIGHT = 240
PHOTO_SPACING = 10
PHOTO_BORDER = 3
PHOTO_SHADOW = 2
PHOTO_HEADER_HEIGHT = 42
MAX_PHOTO_PIXELS = (1600, 1200)


@dataclass(frozen=True)
class Palette:
    primary: Color = (37, 150, 190)
    primary_dark: Color = (26, 122, 154)
    primary_light: Color = (77, 184, 217)
    secondary: Color = (248, 249, 250)
    accent: Color = (227, 242, 253)
    text: Color = (33, 37, 41)
    text_light: Color = (108, 117, 125)
    border: Color = (222, 226, 230)
    border_light: Color = (233, 236, 239)
    white: Color = (255, 255, 255)
    black: Color = (0, 0, 0)
    brand: Color = (46, 125, 50)
    placeholder_line: Color = (204, 204, 204)
    placeholder_text: Color = (153, 153, 153)


@dataclass
class RenderContext:
    """Cursor state for the document being drawn."""

    page_width: float
    page_height: float
    margin: float
    y: float = 0.0
    palette: Palette = field(default_factory=Palette)

    @property
    def content_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def bottom(self) -> float:
        return self.page_height - self.margin


# ── Image helpers ─────────────────────────────────────────────────────────────


def _open_logo(path: Path) -> Optional[Image.Image]:
    try:
        img = Image.open(path)
        img.load()
        return img
    except (OSError, ValueError) as e:
        logger.warning(f"Logo not loaded from {path}, using text header: {e}")
        return None


def _decode_photo(data: bytes, name: str) -> Optional[Image.Image]:
    """Decode fetched bytes and shrink oversized photos before embedding."""
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning(f"Photo {name}: not a readable image: {e}")
        return None
    if img.mode not in ("RGB", "RGBA", "L"):
        img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
    img.thumbnail(MAX_PHOTO_PIXELS)
    return img


# ── Renderer ──────────────────────────────────────────────────────────────────


class TechnicalSheetRenderer:
    """Lays out one technical sheet per call.

    The instance keeps the cursor of the document in progress, so it can be
    reused for many records one after another but never for two at once.
    """

    def __init__(
        self,
        entity: EntityConfig = None,
        *,
        photo_fetcher: PhotoFetcher = None,
        logo_path: Path | str | None = None,
        font_dir: Path | None = None,
        show_valuation: bool = None,
        currency_symbol: str = None,
        thousands_sep: str = None,
        canvas_factory: Callable[..., SheetCanvas] = SheetCanvas,
    ) -> None:
        self.entity = entity or settings.entity
        self.photo_fetcher = photo_fetcher or PhotoFetcher()
        self.logo_path = Path(logo_path if logo_path is not None else settings.LOGO_PATH)
        self.font_dir = font_dir if font_dir is not None else settings.font_dir
        self.show_valuation = (
            settings.SHOW_VALUATION if show_valuation is None else show_valuation
        )
        self.currency_symbol = currency_symbol or settings.CURRENCY_SYMBOL
        self.thousands_sep = thousands_sep or settings.THOUSANDS_SEPARATOR
        self.canvas_factory = canvas_factory

        self.pdf: Optional[SheetCanvas] = None
        self.ctx: Optional[RenderContext] = None
        self.measurer: Optional[TextMeasurer] = None
        self._lock = threading.Lock()

    # ── entry points ──────────────────────────────────────────────────────

    async def generate(self, record: InventoryRecord | dict) -> bytes:
        """Fetch the record's photos, then draw the whole sheet."""
        record = InventoryRecord.from_api(record)
        self._acquire()
        try:
            results = await self.photo_fetcher.fetch_all(record.photos)
            return await asyncio.to_thread(self._draw, record, results)
        finally:
            self._lock.release()

    def render(
        self,
        record: InventoryRecord | dict,
        photo_results: Sequence[PhotoResult],
    ) -> bytes:
        """Draw the sheet from an already-fetched set of photos."""
        record = InventoryRecord.from_api(record)
        self._acquire()
        try:
            return self._draw(record, photo_results)
        finally:
            self._lock.release()

    def _acquire(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise RendererBusyError("Renderer is already generating a document")

    def _draw(self, record: InventoryRecord, photo_results: Sequence[PhotoResult]) -> bytes:
        self.start_document()

        self.add_header()
        self.add_table([
            ("ENTITY", self.entity.name),
            ("TAX ID", self.entity.tax_id),
        ])
        self.ctx.y += 15
        self._add_item_tables(record)
        self.ctx.y += 15
        self.add_table([("OBSERVATION", resolve_observation(record))])
        self.ctx.y += 10
        if self.show_valuation:
            self.add_valuation(record)
        self.add_photo_section(photo_results)

        data = self.pdf.to_bytes()
        placed = sum(1 for r in photo_results if r.ok)
        render_logger.info(
            f"Technical sheet {resolve_sheet_code(record)}: {self.pdf.page_count} pages, "
            f"{placed}/{len(photo_results)} photos fetched, {len(data)} bytes"
        )
        return data

    def start_document(self) -> SheetCanvas:
        """Open a fresh canvas and reset the cursor."""
        self.pdf = self.canvas_factory(
            title=SHEET_TITLE,
            author=self.entity.name,
            margin=MARGIN,
            font_dir=self.font_dir,
        )
        self.ctx = RenderContext(
            page_width=self.pdf.w,
            page_height=self.pdf.h,
            margin=MARGIN,
            y=MARGIN,
        )
        self.measurer = TextMeasurer(self.pdf)
        return self.pdf

    # ── cursor helpers ────────────────────────────────────────────────────

    def _new_page(self) -> None:
        self.pdf.new_page()
        self.ctx.y = self.ctx.margin

    def _ensure_space(self, height: float) -> bool:
        """Start a new page if ``height`` does not fit below the cursor."""
        if self.ctx.y + height > self.ctx.bottom and self.ctx.y > self.ctx.margin:
            self._new_page()
            return True
        return False

    # ── header ────────────────────────────────────────────────────────────

    def add_header(self) -> None:
        ctx, pdf, pal = self.ctx, self.pdf, self.ctx.palette

        pdf.fill_rect(0, 0, ctx.page_width, HEADER_BAND_HEIGHT, pal.accent, opacity=0.3)

        logo = _open_logo(self.logo_path)
        if logo is None:
            self._add_text_header()
            return

        logo_x = ctx.page_width - ctx.margin - LOGO_WIDTH
        pdf.place_image(logo, logo_x, ctx.margin + 5, LOGO_WIDTH, LOGO_HEIGHT)
        ctx.y += LOGO_HEIGHT - 20

        pdf.text_box(
            SHEET_TITLE, ctx.margin, ctx.y, ctx.content_width,
            size=24, bold=True, color=pal.text,
        )
        rule_y = ctx.y + 30
        rule_x = (ctx.page_width - TITLE_RULE_WIDTH) / 2
        pdf.stroke_line(rule_x, rule_y, rule_x + TITLE_RULE_WIDTH, rule_y, pal.primary, 3)
        ctx.y = rule_y + 20

    def _add_text_header(self) -> None:
        ctx, pdf, pal = self.ctx, self.pdf, self.ctx.palette
        top = ctx.y
        left_w = ctx.content_width * 0.55
        right_w = ctx.content_width - left_w

        brand = self.entity.short_name or self.entity.name
        brand_size = 24 if self.entity.short_name else 16
        pdf.text_box(
            brand, ctx.margin, top, left_w,
            size=brand_size, bold=True, color=pal.brand, align="L",
        )
        y = top + self.measurer.height_of(brand, left_w, brand_size, bold=True) + 4
        if self.entity.short_name:
            pdf.text_box(
                self.entity.name, ctx.margin, y, left_w,
                size=10, color=pal.black, align="L",
            )
            y += self.measurer.height_of(self.entity.name, left_w, 10)

        pdf.text_box(
            SHEET_TITLE, ctx.margin + left_w, top, right_w,
            size=16, bold=True, color=pal.black, align="R",
        )
        title_bottom = top + self.measurer.height_of(SHEET_TITLE, right_w, 16, bold=True)
        ctx.y = max(y, title_bottom) + 20

    # ── label / value table ───────────────────────────────────────────────

    def add_table(
        self,
        rows: Sequence[tuple[str, str]],
        column_widths: tuple[float, float] | None = None,
    ) -> None:
        ctx, pdf, pal = self.ctx, self.pdf, self.ctx.palette
        label_w, value_w = column_widths or (
            LABEL_COLUMN_WIDTH, ctx.content_width - LABEL_COLUMN_WIDTH,
        )
        x = ctx.margin
        inner_label = label_w - 2 * LABEL_PADDING
        inner_value = value_w - 2 * LABEL_PADDING

        for label, value in rows:
            value = value or NO_RECORD
            label_h = self.measurer.height_of(label, inner_label, bold=True)
            value_h = self.measurer.height_of(value, inner_value)
            rh = max(LABEL_ROW_HEIGHT, max(label_h, value_h) + 16)
            self._ensure_space(rh)
            y = ctx.y

            pdf.fill_rect(x, y, label_w, rh, pal.secondary)
            pdf.fill_rect(x + label_w, y, value_w, rh, pal.white)
            pdf.stroke_rect(x, y, label_w + value_w, rh, pal.border, 0.5)
            pdf.stroke_line(x + label_w, y, x + label_w, y + rh, pal.border_light, 0.5)

            pdf.text_box(
                label, x + LABEL_PADDING, y + (rh - label_h) / 2, inner_label,
                size=10, bold=True, color=pal.text,
            )
            pdf.text_box(
                value, x + label_w + LABEL_PADDING, y + (rh - value_h) / 2, inner_value,
                size=10, color=pal.text,
            )
            ctx.y += rh + 2

    # ── multi-column table ────────────────────────────────────────────────

    def _column_widths(self, n: int) -> list[float]:
        return [self.ctx.content_width / n] * n

    def _header_height(self, headers: Sequence[str], widths: Sequence[float]) -> float:
        tallest = max(
            self.measurer.height_of(h, w - CELL_PADDING, 9, bold=True)
            for h, w in zip(headers, widths)
        )
        return max(TABLE_HEADER_HEIGHT, tallest + 16)

    def _row_height(self, row: Sequence[str], widths: Sequence[float], minimum: float) -> float:
        tallest = max(
            self.measurer.height_of(cell or NO_RECORD, w - 2 * CELL_PADDING)
            for cell, w in zip(row, widths)
        )
        return max(minimum, tallest + 2 * CELL_PADDING)

    def _draw_table_header(self, headers: Sequence[str], widths: Sequence[float], hh: float) -> None:
        ctx, pdf, pal = self.ctx, self.pdf, self.ctx.palette
        x = ctx.margin
        for i, (header, w) in enumerate(zip(headers, widths)):
            pdf.fill_rect(x, ctx.y, w, hh, pal.primary)
            if i > 0:
                pdf.stroke_line(x, ctx.y, x, ctx.y + hh, pal.primary_dark, 0.5)
            th = self.measurer.height_of(header, w - CELL_PADDING, 9, bold=True)
            pdf.text_box(
                header, x + CELL_PADDING / 2, ctx.y + (hh - th) / 2, w - CELL_PADDING,
                size=9, bold=True, color=pal.white,
            )
            x += w
        pdf.stroke_rect(ctx.margin, ctx.y, sum(widths), hh, pal.primary_dark, 1)
        ctx.y += hh

    def _draw_row(
        self,
        row: Sequence[str],
        widths: Sequence[float],
        rh: float,
        background: Color,
        accents: Sequence[Optional[Color]] | None,
    ) -> None:
        ctx, pdf, pal = self.ctx, self.pdf, self.ctx.palette
        x = ctx.margin
        for i, (cell, w) in enumerate(zip(row, widths)):
            text = cell or NO_RECORD
            pdf.fill_rect(x, ctx.y, w, rh, background)
            pdf.stroke_rect(x, ctx.y, w, rh, pal.border, 0.5)
            if i > 0:
                pdf.stroke_line(x, ctx.y, x, ctx.y + rh, pal.border_light, 0.5)
            if accents and accents[i] is not None:
                pdf.fill_rect(x, ctx.y, ACCENT_WIDTH, rh, accents[i])

            inner = w - 2 * CELL_PADDING
            th = self.measurer.height_of(text, inner)
            pdf.text_box(
                text, x + CELL_PADDING, ctx.y + (rh - th) / 2, inner,
                size=10, color=pal.text,
            )
            x += w
        ctx.y += rh + 1

    def add_multi_column_table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        column_widths: Sequence[float] | None = None,
        row_height: float | None = None,
        accents: Sequence[Optional[Color]] | None = None,
    ) -> list[float]:
        """Draw a header row plus data rows; return the height of each data row.

        Each row is measured completely before any of its cells is drawn, and
        all cells of a row share the height of its tallest wrapped cell.
        """
        pal = self.ctx.palette
        widths = list(column_widths) if column_widths else self._column_widths(len(headers))
        minimum = row_height or TABLE_ROW_HEIGHT
        hh = self._header_height(headers, widths)

        heights: list[float] = []
        for idx, row in enumerate(rows):
            rh = self._row_height(row, widths, minimum)
            if idx == 0:
                self._ensure_space(hh + rh)
                self._draw_table_header(headers, widths, hh)
            elif self._ensure_space(rh):
                self._draw_table_header(headers, widths, hh)
            background = pal.white if idx % 2 == 0 else pal.accent
            self._draw_row(row, widths, rh, background, accents)
            heights.append(rh)

        if not rows:
            self._ensure_space(hh)
            self._draw_table_header(headers, widths, hh)
        return heights

    def _add_item_tables(self, record: InventoryRecord) -> None:
        self.add_multi_column_table(
            ["CODE/PLATE", "ITEM", "CATEGORY", "LOCATION"],
            [[
                resolve_code_or_plate(record),
                resolve_item_name(record),
                resolve_category_name(record),
                resolve_location_name(record),
            ]],
            row_height=TALL_ROW_HEIGHT,
        )
        self.ctx.y += 8

        self.add_multi_column_table(
            ["BRAND", "COLOR", "CONDITION", "FUNCTIONAL UNIT"],
            [[
                first_present(record.brand),
                first_present(record.color),
                condition_label(record.condition),
                resolve_functional_unit_name(record),
            ]],
            row_height=TALL_ROW_HEIGHT,
            accents=[None, None, condition_color(record.condition), None],
        )
        self.ctx.y += 8

        self.add_multi_column_table(
            ["RESPONSIBLE", "LEGAL OWNERSHIP", "USEFUL LIFE"],
            [[
                resolve_responsible_name(record),
                ownership_label(record.ownership),
                estimate_remaining_useful_life(
                    resolve_base_useful_life(record), record.condition
                ),
            ]],
        )

    # ── valuation ─────────────────────────────────────────────────────────

    def _money(self, value: Any) -> str:
        return format_currency(value, self.currency_symbol, self.thousands_sep)

    def add_valuation(self, record: InventoryRecord) -> None:
        self.add_multi_column_table(
            ["ACQUISITION VALUE", "INVOICE", "APPRAISAL"],
            [[
                self._money(record.acquisition_value),
                first_present(record.invoice_number),
                self._money(record.appraisal),
            ]],
        )
        if record.quotations:
            self.ctx.y += 8
            self.add_multi_column_table(
                ["QUOTATION", "APPRAISAL"],
                [
                    [first_present(q.number, q.legacy_number), self._money(q.appraisal)]
                    for q in record.quotations
                ],
            )
        self.ctx.y += 10

    # ── photographs ───────────────────────────────────────────────────────

    def add_photo_section(self, results: Sequence[PhotoResult]) -> None:
        ctx, pdf, pal = self.ctx, self.pdf, self.ctx.palette

        # photos never share the page with the data tables
        if pdf.page_count < 2:
            self._new_page()
        else:
            ctx.y += 20
            first_block = PHOTO_HEIGHT + PHOTO_BORDER if results else 20
            self._ensure_space(PHOTO_HEADER_HEIGHT + 15 + first_block)

        pdf.fill_rect(ctx.margin, ctx.y, ctx.content_width, PHOTO_HEADER_HEIGHT, pal.primary)
        pdf.stroke_line(
            ctx.margin, ctx.y, ctx.margin + ctx.content_width, ctx.y, pal.primary_light, 3,
        )
        th = self.measurer.height_of(PHOTOS_TITLE, ctx.content_width, 14, bold=True)
        pdf.text_box(
            PHOTOS_TITLE, ctx.margin, ctx.y + (PHOTO_HEADER_HEIGHT - th) / 2, ctx.content_width,
            size=14, bold=True, color=pal.white,
        )
        ctx.y += PHOTO_HEADER_HEIGHT + 15

        if not results:
            pdf.text_box(
                NO_PHOTOS, ctx.margin, ctx.y, ctx.content_width,
                size=10, color=pal.black, align="L",
            )
            ctx.y += 20
            return

        per_row = min(len(results), PHOTOS_PER_ROW)
        width = (
            ctx.content_width
            - PHOTO_SPACING * (per_row - 1)
            - PHOTO_BORDER * 2 * per_row
        ) / per_row
        step = width + PHOTO_BORDER * 2 + PHOTO_SPACING

        if ctx.y + PHOTO_HEIGHT + PHOTO_BORDER > ctx.bottom:
            self._new_page()

        x = ctx.margin + PHOTO_BORDER
        for i, result in enumerate(results):
            if i > 0 and i % PHOTOS_PER_ROW == 0:
                ctx.y += PHOTO_HEIGHT + PHOTO_BORDER * 2 + PHOTO_SPACING + 10
                x = ctx.margin + PHOTO_BORDER
                if ctx.y + PHOTO_HEIGHT + PHOTO_BORDER > ctx.bottom:
                    self._new_page()
            self._draw_photo(result, x, ctx.y, width, PHOTO_HEIGHT)
            x += step

        ctx.y += PHOTO_HEIGHT

    def _draw_photo(self, result: PhotoResult, x: float, y: float, w: float, h: float) -> None:
        pdf, pal = self.pdf, self.ctx.palette

        if result.ok:
            image = _decode_photo(result.content, result.photo.filename)
            if image is not None:
                pdf.fill_rect(x + PHOTO_SHADOW, y + PHOTO_SHADOW, w, h, pal.black, opacity=0.08)
                pdf.stroke_rect(
                    x - PHOTO_BORDER, y - PHOTO_BORDER,
                    w + PHOTO_BORDER * 2, h + PHOTO_BORDER * 2,
                    pal.primary, PHOTO_BORDER,
                )
                pdf.place_image(image, x, y, w, h)
                return
            message = COULD_NOT_LOAD
        elif result.status == PhotoStatus.EMPTY:
            message = NOT_AVAILABLE
        else:
            message = COULD_NOT_LOAD

        self._draw_photo_placeholder(x, y, w, h, message)

    def _draw_photo_placeholder(self, x: float, y: float, w: float, h: float, message: str) -> None:
        pdf, pal = self.pdf, self.ctx.palette
        pdf.stroke_rect(x, y, w, h, pal.placeholder_line, 1)
        th = self.measurer.height_of(message, w, 8)
        pdf.text_box(
            message, x, y + (h - th) / 2, w,
            size=8, color=pal.placeholder_text,
        )


# ── Public interface ─────────────────────────────────────────────────────────


async def generate_sheet_pdf(
    record: InventoryRecord | dict,
    entity: EntityConfig = None,
    **renderer_options: Any,
) -> bytes:
    """
    Render the technical sheet of one inventory record.

    Args:
        record: validated record or the raw API object.
        entity: organization shown in the header (defaults from settings).
        **renderer_options: forwarded to :class:`TechnicalSheetRenderer`.

    Returns:
        bytes of the finished PDF.
    """
    renderer = TechnicalSheetRenderer(entity, **renderer_options)
    return await renderer.generate(record)
