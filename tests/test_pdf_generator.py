"""Tests for the technical sheet layout."""

from __future__ import annotations

import asyncio

import httpx
import pytest
from PIL import Image

from inventory_sheet.clients import PhotoFetcher, PhotoResult, PhotoStatus
from inventory_sheet.models import Photo, RecordValidationError
from inventory_sheet.services import RendererBusyError, generate_sheet_pdf
from inventory_sheet.services.pdf_generator import (
    COULD_NOT_LOAD,
    MARGIN,
    NO_PHOTOS,
    NOT_AVAILABLE,
    PHOTO_BORDER,
    PHOTO_HEIGHT,
    PHOTOS_TITLE,
    SHEET_TITLE,
    TABLE_ROW_HEIGHT,
)

LONG_TEXT = "Upholstery worn on both armrests, reclining lever stiff. " * 12


# -- whole document ----------------------------------------------------------


@pytest.mark.asyncio
async def test_example_record_sheet(make_renderer, example_record) -> None:
    renderer = make_renderer()
    pdf = await renderer.generate(example_record)
    canvas = renderer.pdf

    assert pdf.startswith(b"%PDF")
    assert canvas.page_count == 2
    assert canvas.pages_of("Very good (5/5)") == [1]
    assert canvas.pages_of("3650 days") == [1]
    assert canvas.pages_of("Owned") == [1]
    assert canvas.pages_of("En Cuerina") == [1]
    assert canvas.pages_of("891.780.185-2") == [1]
    assert canvas.pages_of(PHOTOS_TITLE) == [2]
    assert [page for page, *_ in canvas.placed_images] == [2, 2]


@pytest.mark.asyncio
async def test_generate_accepts_raw_payload(make_renderer, example_payload) -> None:
    renderer = make_renderer()
    pdf = await renderer.generate(example_payload)
    assert pdf.startswith(b"%PDF")
    assert "HUB-12325" in renderer.pdf.all_text()


@pytest.mark.asyncio
async def test_invalid_record_fails_before_any_fetch(entity, example_payload) -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, content=b"x")

    del example_payload["subcategoria"]
    fetcher = PhotoFetcher(base_url="https://photos.test/", transport=httpx.MockTransport(handler))
    with pytest.raises(RecordValidationError):
        await generate_sheet_pdf(example_payload, entity, photo_fetcher=fetcher)
    assert requests == []


@pytest.mark.asyncio
async def test_absent_record_is_rejected(entity) -> None:
    with pytest.raises(RecordValidationError):
        await generate_sheet_pdf(None, entity)


# -- header ------------------------------------------------------------------


def test_missing_logo_uses_text_header(make_renderer, example_record) -> None:
    renderer = make_renderer()
    renderer.render(example_record, [])
    canvas = renderer.pdf
    assert canvas.pages_of(SHEET_TITLE) == [1]
    assert renderer.entity.name in canvas.all_text()
    assert canvas.placed_images == []


def test_logo_is_placed_on_first_page(make_renderer, example_record, tmp_path) -> None:
    logo = tmp_path / "logo.png"
    Image.new("RGB", (560, 150), (37, 150, 190)).save(logo)
    renderer = make_renderer(logo_path=logo)
    renderer.render(example_record, [])
    canvas = renderer.pdf
    assert canvas.pages_of(SHEET_TITLE) == [1]
    assert len(canvas.placed_images) == 1
    assert canvas.placed_images[0][0] == 1


def test_corrupt_logo_falls_back_to_text(make_renderer, example_record, tmp_path) -> None:
    logo = tmp_path / "logo.png"
    logo.write_bytes(b"not a png")
    renderer = make_renderer(logo_path=logo)
    renderer.render(example_record, [])
    assert renderer.pdf.placed_images == []
    assert renderer.entity.name in renderer.pdf.all_text()


# -- tables ------------------------------------------------------------------


def test_short_row_keeps_minimum_height(make_renderer) -> None:
    renderer = make_renderer()
    renderer.start_document()
    heights = renderer.add_multi_column_table(["A", "B"], [["x", "y"]])
    assert heights == [TABLE_ROW_HEIGHT]


def test_row_grows_with_tallest_cell(make_renderer) -> None:
    renderer = make_renderer()
    renderer.start_document()
    heights = renderer.add_multi_column_table(["A", "B"], [["short", LONG_TEXT]])
    column = renderer.ctx.content_width / 2
    expected = renderer.measurer.height_of(LONG_TEXT, column - 20) + 20
    assert heights[0] > TABLE_ROW_HEIGHT
    assert heights[0] == pytest.approx(expected)


def test_row_is_measured_before_drawing(make_renderer, example_record) -> None:
    renderer = make_renderer()
    renderer.render(example_record, [])
    events = renderer.pdf.draw_log
    location = "HOSPITALIZACION MEDICINA INTERNA 5°PISO HUJMB"
    first_measure_of_last_cell = events.index(("measure", location))
    first_draw_of_first_cell = events.index(("draw", "HUB-12325"))
    assert first_measure_of_last_cell < first_draw_of_first_cell


def test_header_repeats_after_page_break(make_renderer) -> None:
    renderer = make_renderer()
    renderer.start_document()
    rows = [[f"item {i}", "value"] for i in range(30)]
    heights = renderer.add_multi_column_table(["NAME", "VALUE"], rows)
    canvas = renderer.pdf
    assert len(heights) == 30
    assert canvas.page_count == 2
    assert canvas.pages_of("NAME") == [1, 2]
    assert canvas.pages_of("item 29") == [2]


def test_empty_values_show_placeholder(make_renderer, example_payload) -> None:
    example_payload["marca"] = None
    example_payload["estado"] = None
    renderer = make_renderer()
    renderer.render(example_payload, [])
    texts = renderer.pdf.all_text()
    # brand and condition cells
    assert texts.count("No record") >= 2


def test_valuation_section(make_renderer, example_record) -> None:
    renderer = make_renderer(show_valuation=True)
    renderer.render(example_record, [])
    texts = renderer.pdf.all_text()
    assert "ACQUISITION VALUE" in texts
    assert "$ 459.900" in texts
    assert "$ 326.059" in texts
    assert "$ 291.029" in texts


def test_valuation_hidden_by_default(make_renderer, example_record) -> None:
    renderer = make_renderer()
    renderer.render(example_record, [])
    assert "ACQUISITION VALUE" not in renderer.pdf.all_text()


# -- photographs -------------------------------------------------------------


def test_no_photos_message(make_renderer, example_record) -> None:
    renderer = make_renderer()
    renderer.render(example_record, [])
    canvas = renderer.pdf
    assert canvas.pages_of(PHOTOS_TITLE) == [2]
    assert canvas.pages_of(NO_PHOTOS) == [2]
    assert canvas.placed_images == []


def test_four_photos_make_two_rows(make_renderer, example_record, photo_results) -> None:
    renderer = make_renderer()
    renderer.render(example_record, photo_results(4))
    canvas = renderer.pdf
    assert canvas.page_count == 2
    rows = sorted({y for _, _, y, _, _ in canvas.placed_images})
    assert len(rows) == 2
    assert [x for _, x, y, _, _ in canvas.placed_images if y == rows[0]][0] == MARGIN + PHOTO_BORDER


def test_photo_grid_fits_content_width(make_renderer, example_record, photo_results) -> None:
    renderer = make_renderer()
    renderer.render(example_record, photo_results(3))
    _, x, _, w, _ = renderer.pdf.placed_images[-1]
    assert x + w + PHOTO_BORDER <= renderer.ctx.page_width - MARGIN + 0.01


def test_seven_photos_spill_to_third_page(make_renderer, example_record, photo_results) -> None:
    renderer = make_renderer()
    renderer.render(example_record, photo_results(7))
    canvas = renderer.pdf
    assert canvas.page_count == 3
    assert [page for page, *_ in canvas.placed_images] == [2, 2, 2, 2, 2, 2, 3]
    assert canvas.placed_images[-1][2] == MARGIN


def test_photos_do_not_force_page_when_already_past_first(make_renderer, photo_results) -> None:
    renderer = make_renderer()
    renderer.start_document()
    renderer._new_page()
    renderer.ctx.y = 100
    renderer.add_photo_section(photo_results(2))
    assert renderer.pdf.page_count == 2
    assert renderer.pdf.pages_of(PHOTOS_TITLE) == [2]


def test_failed_photos_show_placeholders(make_renderer, example_record, png_bytes) -> None:
    results = [
        PhotoResult(Photo(filename="a.jpg"), PhotoStatus.OK, content=png_bytes),
        PhotoResult(Photo(filename="b.jpg"), PhotoStatus.FAILED, error="timeout"),
        PhotoResult(Photo(filename=""), PhotoStatus.EMPTY, error="no filename"),
        PhotoResult(Photo(filename="d.jpg"), PhotoStatus.OK, content=b"garbage"),
    ]
    renderer = make_renderer()
    renderer.render(example_record, results)
    canvas = renderer.pdf
    assert len(canvas.placed_images) == 1
    assert canvas.pages_of(COULD_NOT_LOAD) == [2, 2]
    assert canvas.pages_of(NOT_AVAILABLE) == [2]


@pytest.mark.asyncio
async def test_timed_out_photo_becomes_placeholder(make_renderer, example_record, png_bytes) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("53021.jpg"):
            await asyncio.sleep(5)
        return httpx.Response(200, content=png_bytes)

    fetcher = PhotoFetcher(
        base_url="https://photos.test/", timeout=0.1, transport=httpx.MockTransport(handler)
    )
    renderer = make_renderer(photo_fetcher=fetcher)
    await renderer.generate(example_record)
    assert len(renderer.pdf.placed_images) == 1
    assert renderer.pdf.pages_of(COULD_NOT_LOAD) == [2]


# -- renderer reuse ----------------------------------------------------------


@pytest.mark.asyncio
async def test_renderer_reuse_starts_fresh(make_renderer, example_record) -> None:
    renderer = make_renderer()
    first = await renderer.generate(example_record)
    first_canvas = renderer.pdf
    second = await renderer.generate(example_record)
    assert renderer.pdf is not first_canvas
    assert renderer.pdf.page_count == first_canvas.page_count
    assert len(second) == pytest.approx(len(first), rel=0.05)


@pytest.mark.asyncio
async def test_concurrent_use_of_one_renderer_is_rejected(
    make_renderer, example_record, png_bytes
) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.05)
        return httpx.Response(200, content=png_bytes)

    fetcher = PhotoFetcher(base_url="https://photos.test/", transport=httpx.MockTransport(handler))
    renderer = make_renderer(photo_fetcher=fetcher)
    results = await asyncio.gather(
        renderer.generate(example_record),
        renderer.generate(example_record),
        return_exceptions=True,
    )
    assert isinstance(results[0], bytes)
    assert isinstance(results[1], RendererBusyError)

    # usable again once the first document is done
    assert (await renderer.generate(example_record)).startswith(b"%PDF")


def test_photo_row_at_bottom_edge_moves_to_next_page(make_renderer, photo_results) -> None:
    renderer = make_renderer()
    renderer.start_document()
    renderer._new_page()
    # header plus photo height would end exactly on the bottom margin
    renderer.ctx.y = renderer.ctx.bottom - 20 - 57 - PHOTO_HEIGHT
    renderer.add_photo_section(photo_results(1))
    canvas = renderer.pdf
    bottom = renderer.ctx.page_height - MARGIN
    for _, _, y, _, h in canvas.placed_images:
        assert y + h + PHOTO_BORDER <= bottom
    (image_page,) = [page for page, *_ in canvas.placed_images]
    assert canvas.pages_of(PHOTOS_TITLE) == [image_page]


@pytest.mark.asyncio
async def test_render_is_rejected_while_generate_runs(make_renderer, example_record, png_bytes) -> None:
    rejected = []
    renderer = None

    async def handler(request: httpx.Request) -> httpx.Response:
        try:
            renderer.render(example_record, [])
        except RendererBusyError as e:
            rejected.append(e)
        return httpx.Response(200, content=png_bytes)

    fetcher = PhotoFetcher(base_url="https://photos.test/", transport=httpx.MockTransport(handler))
    renderer = make_renderer(photo_fetcher=fetcher)
    assert (await renderer.generate(example_record)).startswith(b"%PDF")
    assert len(rejected) == 2

    # released once the document is done
    assert renderer.render(example_record, []).startswith(b"%PDF")
