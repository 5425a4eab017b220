import logging
import re
from pathlib import Path
from typing import Callable, Optional, Tuple

from inventory_sheet.clients import InventoryApiClient
from inventory_sheet.config import settings
from inventory_sheet.models import EntityConfig, InventoryRecord
from inventory_sheet.services.pdf_generator import TechnicalSheetRenderer
from inventory_sheet.services.sheet_formatter import resolve_sheet_code

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.-]", re.ASCII)


def sheet_filename(record: InventoryRecord) -> str:
    """File name for the sheet; safe as a path component and in an HTTP header."""
    code = _UNSAFE_FILENAME_CHARS.sub("_", resolve_sheet_code(record))
    return f"technical-sheet-{code}.pdf"


class TechnicalSheetService:
    """Fetch a record by code and turn it into a technical-sheet PDF"""

    def __init__(
        self,
        client: InventoryApiClient = None,
        entity: EntityConfig = None,
        renderer_factory: Callable[[EntityConfig], TechnicalSheetRenderer] = None,
    ):
        self.client = client or InventoryApiClient()
        self.entity = entity or settings.entity
        self.renderer_factory = renderer_factory or TechnicalSheetRenderer

    async def generate(self, record: InventoryRecord) -> bytes:
        # One renderer per document: renderer state is not shared between requests
        renderer = self.renderer_factory(self.entity)
        return await renderer.generate(record)

    async def generate_for_code(self, code: str) -> Tuple[InventoryRecord, bytes]:
        record = await self.client.fetch_record(code)
        pdf = await self.generate(record)
        logger.info(f"Generated technical sheet for {code} ({len(pdf)} bytes)")
        return record, pdf

    async def write(self, code: str, output_path: Optional[Path] = None) -> Path:
        """Generate the sheet for ``code`` and write it to disk."""
        record, pdf = await self.generate_for_code(code)
        path = Path(output_path) if output_path else Path(settings.OUTPUT_DIR) / sheet_filename(record)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(pdf)
        logger.info(f"Technical sheet written: {path}")
        return path
