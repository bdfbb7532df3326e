from io import BytesIO

import pytest
from pypdf import PdfReader

from conftest import TEMPLATE_MARK
from exceptions import RenderError
from pdf_layout import DEFAULT_MARGINS, DocumentCanvas, LayoutCursor


def test_start_cursor_is_at_top_margin(template):
    doc = DocumentCanvas(template)
    cursor = doc.start()
    assert cursor == LayoutCursor(page=0, y=template.page_height - DEFAULT_MARGINS.top)


def test_reserve_keeps_cursor_when_block_fits(template):
    doc = DocumentCanvas(template)
    cursor = doc.start()
    assert doc.reserve(cursor, 100) is cursor
    assert doc.page_count == 1


def test_reserve_starts_new_page_before_drawing(template):
    doc = DocumentCanvas(template)
    low = LayoutCursor(page=0, y=DEFAULT_MARGINS.bottom + 10)

    cursor = doc.reserve(low, 30)

    assert cursor.page == 1
    assert cursor.y == doc.top_y
    assert doc.page_count == 2


def test_block_exactly_on_bottom_margin_fits(template):
    doc = DocumentCanvas(template)
    cursor = LayoutCursor(page=0, y=DEFAULT_MARGINS.bottom + 30)
    assert doc.reserve(cursor, 30) is cursor


def test_block_taller_than_page_is_render_error(template):
    doc = DocumentCanvas(template)
    with pytest.raises(RenderError):
        doc.reserve(doc.start(), doc.usable_height + 1)


def test_stale_cursor_is_render_error(template):
    doc = DocumentCanvas(template)
    old = doc.start()
    doc.new_page()
    with pytest.raises(RenderError):
        doc.reserve(old, 10)


def test_drawing_below_bottom_margin_is_refused(template):
    doc = DocumentCanvas(template)
    with pytest.raises(RenderError):
        doc.text(doc.left, DEFAULT_MARGINS.bottom - 5, "clipped")


def test_finish_stamps_every_page_on_a_pristine_letterhead(template):
    doc = DocumentCanvas(template)
    doc.text(doc.left, doc.top_y, "FIRST PAGE ONLY")
    cursor = doc.new_page()
    doc.text(doc.left, cursor.y, "SECOND PAGE")

    pdf_data, page_count = doc.finish()
    reader = PdfReader(BytesIO(pdf_data))

    assert page_count == 2
    assert len(reader.pages) == 2
    first, second = (page.extract_text() for page in reader.pages)
    assert TEMPLATE_MARK in first and TEMPLATE_MARK in second
    assert second.count(TEMPLATE_MARK) == 1
    assert "FIRST PAGE ONLY" in first
    assert "FIRST PAGE ONLY" not in second
    assert "SECOND PAGE" in second


def test_operations_are_recorded_per_page(template):
    doc = DocumentCanvas(template)
    doc.rect(doc.left, 500, 100, 35, fill="cream", tag="box")
    cursor = doc.new_page()
    doc.line(doc.left, cursor.y, doc.right, tag="rule")

    kinds = [(op.kind, op.page, op.tag) for op in doc.operations]
    assert kinds == [("rect", 0, "box"), ("line", 1, "rule")]
