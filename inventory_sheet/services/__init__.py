from .sheet_formatter import (
    NO_RECORD, format_currency, condition_label, condition_color,
    ownership_label, estimate_remaining_useful_life,
)
from .canvas import SheetCanvas, TextMeasurer
from .pdf_generator import (
    TechnicalSheetRenderer, RenderContext, RendererBusyError, generate_sheet_pdf,
)
from .sheet_service import TechnicalSheetService, sheet_filename

__all__ = [
    "NO_RECORD", "format_currency", "condition_label", "condition_color",
    "ownership_label", "estimate_remaining_useful_life",
    "SheetCanvas", "TextMeasurer",
    "TechnicalSheetRenderer", "RenderContext", "RendererBusyError", "generate_sheet_pdf",
    "TechnicalSheetService", "sheet_filename",
]
