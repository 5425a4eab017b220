import argparse
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from inventory_sheet.clients import RecordSourceError
from inventory_sheet.config import settings
from inventory_sheet.models import EntityConfig, RecordValidationError
from inventory_sheet.services import TechnicalSheetRenderer, TechnicalSheetService

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def setup_logging(log_dir: Path = None) -> None:
    """Console logging plus a rotating file for per-document render summaries"""
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)

    log_dir = Path(log_dir or settings.LOG_DIR)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"Render log disabled, cannot create {log_dir}: {e}")
        return

    render_logger = logging.getLogger('inventory_sheet.render')
    if any(isinstance(h, RotatingFileHandler) for h in render_logger.handlers):
        return

    # File handler with rotation (10MB max, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_dir / 'render.log',
        maxBytes=10*1024*1024,
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    render_logger.addHandler(file_handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='inventory-sheet',
        description='Generate the technical sheet PDF of an inventory item.',
    )
    parser.add_argument('code', help='item code, e.g. HUB-12325')
    parser.add_argument('-o', '--output', type=Path, help='output PDF path')
    parser.add_argument('--entity-name', default=settings.ENTITY_NAME)
    parser.add_argument('--tax-id', default=settings.ENTITY_TAX_ID)
    parser.add_argument(
        '--show-valuation', action='store_true', default=settings.SHOW_VALUATION,
        help='include acquisition value, appraisal and quotations',
    )
    return parser


async def main(argv=None) -> Path:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    entity = EntityConfig(
        name=args.entity_name,
        tax_id=args.tax_id,
        short_name=settings.ENTITY_SHORT_NAME or None,
    )
    service = TechnicalSheetService(
        entity=entity,
        renderer_factory=lambda e: TechnicalSheetRenderer(e, show_valuation=args.show_valuation),
    )

    logger.info(f"Fetching data for code: {args.code}...")
    return await service.write(args.code, args.output)


def run(argv=None) -> int:
    setup_logging()
    try:
        path = asyncio.run(main(argv))
    except (RecordSourceError, RecordValidationError, OSError) as e:
        logger.error(f"Error: {e}")
        return 1
    print(f"PDF generated: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(run())
