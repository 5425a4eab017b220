"""Drawing surface for technical sheets.

Thin layer over fpdf2: points as units, Letter paper, no automatic page
breaks (the layout engine decides where pages end).  Uses DejaVu Sans when
available for full Unicode coverage and falls back to the core Helvetica
font otherwise.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from fpdf import FPDF
from PIL import Image

logger = logging.getLogger(__name__)

Color = tuple[int, int, int]

LINE_HEIGHT_FACTOR = 1.2

# ── Font discovery ────────────────────────────────────────────────────────────

_FONT_DIRS = [
    Path(__file__).parent / "fonts",
    Path("/usr/share/fonts/truetype/dejavu"),
    Path("/usr/share/fonts/TTF"),
    Path("/usr/share/fonts/dejavu"),
    Path.home() / ".fonts",
    Path.home() / "Library" / "Fonts",
]


def find_font_dir(extra: Path | None = None) -> Path | None:
    candidates = ([extra] if extra else []) + _FONT_DIRS
    for d in candidates:
        if (d / "DejaVuSans.ttf").is_file() and (d / "DejaVuSans-Bold.ttf").is_file():
            return d
    return None


# ── Canvas ────────────────────────────────────────────────────────────────────


class SheetCanvas(FPDF):
    """Letter-sized PDF page surface with the primitives the layout needs."""

    def __init__(
        self,
        title: str = "",
        author: str = "",
        margin: float = 40,
        font_dir: Path | None = None,
    ) -> None:
        super().__init__("P", "pt", "Letter")
        self.set_margins(margin, margin, margin)
        self.set_auto_page_break(False, margin)
        self.set_compression(True)
        if title:
            self.set_title(title)
        if author:
            self.set_author(author)
        self.set_creator("inventory-sheet")

        fd = find_font_dir(font_dir)
        if fd is not None:
            self.add_font("DV", "", str(fd / "DejaVuSans.ttf"))
            self.add_font("DV", "B", str(fd / "DejaVuSans-Bold.ttf"))
            self.sheet_font = "DV"
            self.sheet_unicode = True
        else:
            logger.debug("DejaVu fonts not found, using core Helvetica")
            self.sheet_font = "Helvetica"
            self.sheet_unicode = False

        self.add_page()

    @property
    def page_count(self) -> int:
        return self.pages_count

    def new_page(self) -> None:
        self.add_page()

    def clean(self, text: object) -> str:
        """Make text representable in the active font."""
        s = "" if text is None else str(text)
        if self.sheet_unicode:
            return s
        return s.encode("latin-1", "replace").decode("latin-1")

    def use_font(self, size: float, bold: bool = False) -> None:
        self.set_font(self.sheet_font, "B" if bold else "", size)

    # ── shapes ────────────────────────────────────────────────────────────

    def fill_rect(
        self, x: float, y: float, w: float, h: float,
        color: Color, opacity: float | None = None,
    ) -> None:
        self.set_fill_color(*color)
        if opacity is None:
            self.rect(x, y, w, h, "F")
        else:
            with self.local_context(fill_opacity=opacity):
                self.rect(x, y, w, h, "F")

    def stroke_rect(
        self, x: float, y: float, w: float, h: float,
        color: Color, width: float = 0.5,
    ) -> None:
        self.set_draw_color(*color)
        self.set_line_width(width)
        self.rect(x, y, w, h, "D")

    def stroke_line(
        self, x1: float, y1: float, x2: float, y2: float,
        color: Color, width: float = 0.5,
    ) -> None:
        self.set_draw_color(*color)
        self.set_line_width(width)
        self.line(x1, y1, x2, y2)

    # ── text ──────────────────────────────────────────────────────────────

    def text_box(
        self,
        text: str,
        x: float,
        y: float,
        w: float,
        *,
        size: float = 10,
        bold: bool = False,
        color: Color = (0, 0, 0),
        align: str = "C",
    ) -> None:
        """Draw wrapped text whose top-left corner is (x, y)."""
        self.use_font(size, bold)
        self.set_text_color(*color)
        self.set_xy(x, y)
        self.multi_cell(
            w, size * LINE_HEIGHT_FACTOR, self.clean(text),
            align=align, new_x="LMARGIN", new_y="NEXT",
        )

    # ── images ────────────────────────────────────────────────────────────

    def place_image(
        self,
        image: Union[Image.Image, str, Path],
        x: float, y: float, w: float, h: float,
    ) -> None:
        """Fit an image inside the box, centered, keeping its aspect ratio."""
        self.image(image, x=x, y=y, w=w, h=h, keep_aspect_ratio=True)

    def to_bytes(self) -> bytes:
        return bytes(self.output())


class TextMeasurer:
    """Height that text will take once wrapped to a given width."""

    def __init__(self, canvas: SheetCanvas) -> None:
        self.canvas = canvas

    @staticmethod
    def line_height(size: float) -> float:
        return size * LINE_HEIGHT_FACTOR

    def line_count(self, text: str, width: float, size: float = 10, bold: bool = False) -> int:
        if not text:
            return 1
        self.canvas.use_font(size, bold)
        lines = self.canvas.multi_cell(
            width, self.line_height(size), self.canvas.clean(text),
            dry_run=True, output="LINES",
        )
        return max(1, len(lines))

    def height_of(self, text: str, width: float, size: float = 10, bold: bool = False) -> float:
        return self.line_count(text, width, size, bold) * self.line_height(size)
