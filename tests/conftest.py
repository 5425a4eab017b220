from __future__ import annotations

import copy
from io import BytesIO

import httpx
import pytest
from PIL import Image

from inventory_sheet.clients import PhotoFetcher, PhotoResult, PhotoStatus
from inventory_sheet.models import EntityConfig, InventoryRecord, Photo
from inventory_sheet.services import SheetCanvas, TechnicalSheetRenderer

EXAMPLE_PAYLOAD = {
    "id": "45537",
    "codigo": "HUB-12325",
    "codigo_antiguo": "No Registra",
    "placa_actual": None,
    "ubicacion": "Hospitalizacion Medicina Interna 5°Piso",
    "estado": "5",
    "titularidad": "1",
    "numero_factura": None,
    "costo": None,
    "vida_util": None,
    "avaluo": None,
    "marca": "No Registra",
    "modelo": "No Registra",
    "serial": "No Registra",
    "color": "Negro",
    "proveedor": None,
    "observacion": "En Cuerina",
    "nombre_general": "Sofa Reclinable",
    "fecha_adquisicion": None,
    "valor_adquisicion": None,
    "id_dependencia": "1065",
    "id_unidad_funcional": "4",
    "created_at": "2025-11-28 15:44:31",
    "updated_at": "2025-11-28 16:58:11",
    "subcategoria": {
        "id": "485",
        "id_categoria": "13",
        "nombre": "Sofa Reclinable",
        "codigo_sub_categoria": "212-0073",
        "categoria": {"id": "13", "nombre": "EQUIPOS Y MAQ. DE OFICINA", "id_cliente": "131"},
    },
    "responsable": {"id": "123", "nombre": "Jose Francisco Zuñiga Cotes"},
    "fotos": [
        {"id": "37567", "nombre": "53020.jpg", "id_producto": "45537"},
        {"id": "37568", "nombre": "53021.jpg", "id_producto": "45537"},
    ],
    "cotizaciones": [
        {"id": "1", "numero_cotizacion": "1", "avaluo": "459900"},
        {"id": "2", "numero_cotizacion": "2", "avaluo": "326059"},
        {"id": "3", "numero_cotizacion": "3", "avaluo": "291029"},
    ],
    "grupo": {
        "id": "5",
        "nombre": "MUEBLES Y ENCERES Y EQUIPO DE OFICINA",
        "id_linea": "4",
        "codigo_linea": "03",
        "vida_util_niif_dias": "3650",
    },
    "dependencia": {
        "id": "1065",
        "nombre": "HOSPITALIZACION MEDICINA INTERNA 5°PISO HUJMB",
        "video": None,
        "id_piso": "5",
        "id_sucursal": "3",
        "id_consecutivo_codigo": "1",
        "deleted_at": None,
        "id_unidad_funcional": None,
    },
}


class RecordingCanvas(SheetCanvas):
    """Canvas that remembers what was drawn where."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.drawn_texts: list[tuple[int, str, float, float]] = []
        self.placed_images: list[tuple[int, float, float, float, float]] = []
        self.draw_log: list[tuple[str, str]] = []

    def text_box(self, text, x, y, w, **kwargs):
        self.drawn_texts.append((self.page_no(), text, x, y))
        self.draw_log.append(("draw", text))
        super().text_box(text, x, y, w, **kwargs)

    def multi_cell(self, *args, **kwargs):
        if kwargs.get("dry_run"):
            self.draw_log.append(("measure", args[2] if len(args) > 2 else kwargs.get("text")))
        return super().multi_cell(*args, **kwargs)

    def place_image(self, image, x, y, w, h):
        self.placed_images.append((self.page_no(), x, y, w, h))
        super().place_image(image, x, y, w, h)

    def pages_of(self, text: str) -> list[int]:
        return [page for page, t, _, _ in self.drawn_texts if t == text]

    def all_text(self) -> list[str]:
        return [t for _, t, _, _ in self.drawn_texts]


def make_png(size=(64, 48), color=(200, 30, 30)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def ok_results(n: int) -> list[PhotoResult]:
    png = make_png()
    return [
        PhotoResult(Photo(id=str(i), filename=f"{i}.png"), PhotoStatus.OK, content=png)
        for i in range(n)
    ]


@pytest.fixture
def photo_results():
    """Factory for n successfully fetched photos."""
    return ok_results


@pytest.fixture
def example_payload() -> dict:
    return copy.deepcopy(EXAMPLE_PAYLOAD)


@pytest.fixture
def example_record(example_payload) -> InventoryRecord:
    return InventoryRecord.from_api(example_payload)


@pytest.fixture
def entity() -> EntityConfig:
    return EntityConfig(name="Asociación de Bananeros del Magdalena y La Guajira", taxId="891.780.185-2")


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def image_transport(png_bytes) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=png_bytes, headers={"content-type": "image/png"})

    return httpx.MockTransport(handler)


@pytest.fixture
def make_renderer(entity, tmp_path, image_transport):
    """Renderer with a recording canvas, no logo and mocked photo storage."""

    def _make(**kwargs) -> TechnicalSheetRenderer:
        kwargs.setdefault("logo_path", tmp_path / "missing-logo.png")
        kwargs.setdefault(
            "photo_fetcher",
            PhotoFetcher(base_url="https://photos.test/fotos/", transport=image_transport),
        )
        kwargs.setdefault("canvas_factory", RecordingCanvas)
        kwargs.setdefault("show_valuation", False)
        return TechnicalSheetRenderer(entity, **kwargs)

    return _make
