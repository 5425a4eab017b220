"""HTTP wrapper: returns the technical sheet PDF for an item code."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from inventory_sheet import __version__
from inventory_sheet.clients import RecordNotFoundError, RecordSourceError
from inventory_sheet.models import RecordValidationError
from inventory_sheet.services import TechnicalSheetService, sheet_filename

logger = logging.getLogger(__name__)

app = FastAPI(title="Inventory Technical Sheet", version=__version__)


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: Optional[str] = Field(default=None, alias="codigo")


def get_sheet_service() -> TechnicalSheetService:
    return TechnicalSheetService()


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"error": "Error generating the PDF", "message": message},
    )


async def _pdf_response(code: Optional[str], service: TechnicalSheetService) -> Response:
    code = (code or "").strip()
    if not code:
        return JSONResponse(status_code=400, content={"error": "The item code is required"})

    logger.info(f"Generating PDF for code: {code}")
    try:
        record, pdf = await service.generate_for_code(code)
    except RecordNotFoundError as e:
        return _error(404, str(e))
    except RecordValidationError as e:
        return _error(422, str(e))
    except RecordSourceError as e:
        logger.error(f"Record source failed for {code}: {e}")
        return _error(502, str(e))
    except Exception as e:
        logger.exception(f"PDF generation failed for {code}")
        return _error(500, str(e) or e.__class__.__name__)

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{sheet_filename(record)}"'},
    )


@app.get("/health")
def health():
    return {"status": "ok", "version": __version__}


@app.post("/api/generate-pdf")
async def generate_pdf(
    body: GenerateRequest,
    service: TechnicalSheetService = Depends(get_sheet_service),
):
    return await _pdf_response(body.code, service)


@app.get("/api/generate-pdf/{code}")
async def generate_pdf_by_code(
    code: str,
    service: TechnicalSheetService = Depends(get_sheet_service),
):
    return await _pdf_response(code, service)


def serve() -> None:
    import uvicorn

    from inventory_sheet.config import settings
    from inventory_sheet.main import setup_logging

    setup_logging()
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
