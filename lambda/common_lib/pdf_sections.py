"""
Section renderers for letterhead documents

Every renderer has the shape render_x(doc, cursor, record, **options) and
returns the cursor positioned below what it drew. Renderers call
doc.reserve() before drawing a block so that page overflow happens before
content is placed, never after. A record missing something a renderer
needs raises RenderError; nothing is silently skipped.
"""

import re
from dataclasses import dataclass
from datetime import date

from babel.dates import format_date

import currency_utils as cur
from exceptions import RenderError
from invoice_models import BLOCK_HEADING, BLOCK_PARAGRAPH, DocumentBlock, VatInfo
from pdf_text_utils import truncate_to_width, wrap_text

TITLE_SIZE = 18
SUBTITLE_SIZE = 12
SECTION_LABEL_SIZE = 12
BODY_SIZE = 10
CELL_PADDING = 10

# Generic document body
DOC_LINE_HEIGHT = 16
DOC_PARAGRAPH_GAP = 24
DOC_SUBPARAGRAPH_GAP = 4
DOC_HEADING_SIZE = 12
DOC_HEADING_GAP_BEFORE = 10
DOC_HEADING_MIN_ROOM = 40

_HEADING_PREFIX = re.compile(r'^##\s*')
_PARAGRAPH_SPLIT = re.compile(r'\n\n+')


@dataclass(frozen=True)
class Column:
    key: str
    header: str
    width: float
    # Quantities sit further into their narrow column
    text_offset: float = CELL_PADDING


STANDARD_COLUMNS = (
    Column('description', 'Description', 250),
    Column('quantity', 'Qty', 50, text_offset=25),
    Column('unit_price', 'Unit Price', 100),
    Column('total', 'Total', 100),
)

PAID_COLUMNS = (
    Column('description', 'Description', 300),
    Column('status', 'Status', 100),
    Column('total', 'Amount', 100),
)


def _require(value, message, section):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise RenderError(message, section=section)
    return value


def format_issue_date(issue_date, locale='en'):
    return format_date(issue_date or date.today(), format='d MMM yyyy', locale=locale or 'en')


def _format_quantity(quantity):
    if quantity == quantity.to_integral_value():
        return str(int(quantity))
    return str(quantity.normalize())


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------

def render_header(doc, cursor, record, title_size=TITLE_SIZE, gap_after=40,
                  gap_after_subtitle=50, stamp=None):
    """Title, optional subtitle (event name) and optional stamp text at the top right"""
    title = _require(getattr(record, 'title', None), "Document title is required", 'header')
    cursor = doc.reserve(cursor, title_size)
    fonts = doc.fonts

    if stamp:
        doc.text(doc.right - 120, cursor.y, stamp, font=fonts.bold, size=40,
                 color='paid_green', tag='stamp')

    doc.text(doc.left, cursor.y, title, font=fonts.bold, size=title_size, color='navy', tag='title')

    subtitle = getattr(record, 'subtitle', None)
    if subtitle:
        doc.text(doc.left, cursor.y - 22, subtitle, font=fonts.body, size=SUBTITLE_SIZE,
                 color='navy', tag='subtitle')
        return cursor.down(gap_after_subtitle)
    return cursor.down(gap_after)


def render_document_heading(doc, cursor, record):
    """Generic document: title, optional date line and a divider rule"""
    title = _require(getattr(record, 'title', None), "Document title is required", 'heading')
    cursor = doc.reserve(cursor, TITLE_SIZE)
    fonts = doc.fonts

    doc.text(doc.left, cursor.y, title, font=fonts.bold, size=TITLE_SIZE, color='navy', tag='title')
    cursor = cursor.down(30)

    if record.date:
        doc.text(doc.left, cursor.y, record.date, font=fonts.body, size=BODY_SIZE, color='black', tag='date')
        cursor = cursor.down(25)

    doc.line(doc.left, cursor.y, doc.right, thickness=1, color='navy', tag='divider')
    return cursor.down(30)


# ---------------------------------------------------------------------------
# Bill-to / invoice meta
# ---------------------------------------------------------------------------

def render_bill_to(doc, cursor, record, line_height=18, address_max_width=250,
                   meta_offset=150, gap_after=45, name_size=BODY_SIZE):
    """
    Two columns: the wrapped recipient block on the left, invoice number,
    date and terms at a fixed x on the right.
    """
    bill_to = _require(getattr(record, 'bill_to', None), "Bill-to block is required", 'bill_to')
    _require(bill_to.name, "Bill-to name is required", 'bill_to')
    invoice_number = _require(record.invoice_number, "Invoice number is required", 'bill_to')
    fonts = doc.fonts

    left_lines = []
    for index, line in enumerate(bill_to.lines()):
        font = fonts.bold if index == 0 else fonts.body
        size = name_size if index == 0 else BODY_SIZE
        for wrapped in wrap_text(line, address_max_width, font, size):
            left_lines.append((wrapped, font, size))

    meta_lines = [
        (f"Invoice #: {invoice_number}", fonts.bold, 11),
        (f"Date: {format_issue_date(record.issue_date, record.locale)}", fonts.body, BODY_SIZE),
    ]
    meta_lines.extend((line, fonts.body, BODY_SIZE) for line in record.meta_lines)

    left_height = 20 + len(left_lines) * line_height
    meta_height = 16 * len(meta_lines)
    block_height = max(left_height, meta_height)
    cursor = doc.reserve(cursor, block_height)

    doc.text(doc.left, cursor.y, record.bill_to_label, font=fonts.bold, size=SECTION_LABEL_SIZE,
             color='navy', tag='bill_to_label')

    meta_x = doc.width - doc.margins.right - meta_offset
    for index, (line, font, size) in enumerate(meta_lines):
        doc.text(meta_x, cursor.y - index * 16, line, font=font, size=size, color='black', tag='meta')

    lines_y = cursor.y - 20
    for index, (line, font, size) in enumerate(left_lines):
        doc.text(doc.left, lines_y - index * line_height, line, font=font, size=size,
                 color='black', tag='bill_to')

    return cursor.down(block_height + gap_after)


# ---------------------------------------------------------------------------
# Line-item table
# ---------------------------------------------------------------------------

def _column_positions(doc, columns):
    positions = []
    x = doc.left
    for column in columns:
        positions.append(x)
        x += column.width
    return positions


def _draw_table_header(doc, cursor, columns, positions, header_height):
    fonts = doc.fonts
    doc.rect(doc.left, cursor.y - header_height, doc.content_width, header_height,
             fill='cream', tag='table-header')
    text_y = cursor.y - (header_height + 7) / 2
    for column, x in zip(columns, positions):
        doc.text(x + CELL_PADDING, text_y, column.header, font=fonts.bold, size=11,
                 color='navy', tag='table-header')


def _cell_text(item, column, record, spaced):
    if column.key == 'description':
        return item.description
    if column.key == 'status':
        return item.status or ''
    if item.is_discount:
        # Discount rows show only description and the negative total
        if column.key == 'total':
            return cur.format_currency(item.total.quantized(), item.total.currency,
                                       record.locale, spaced=spaced)
        return ''
    if column.key == 'quantity':
        return _format_quantity(item.quantity)
    if column.key == 'unit_price':
        return cur.format_currency(item.unit_price.quantized(), item.unit_price.currency,
                                   record.locale, spaced=spaced)
    if column.key == 'total':
        return cur.format_currency(item.total.quantized(), item.total.currency,
                                   record.locale, spaced=spaced)
    raise RenderError(f"Unknown table column: {column.key}", section='line_items')


def _check_line_item(item, columns):
    if not isinstance(getattr(item, 'description', None), str) or not item.description.strip():
        raise RenderError("Line item description is required", section='line_items')
    if item.total is None:
        raise RenderError(f"Line item '{item.description}' has no total", section='line_items')
    keys = {column.key for column in columns}
    if item.is_discount:
        if not item.total.is_negative:
            raise RenderError(f"Discount line '{item.description}' must have a negative total",
                              section='line_items')
        return
    if 'unit_price' in keys and item.unit_price is None:
        raise RenderError(f"Line item '{item.description}' has no unit price", section='line_items')
    if 'quantity' in keys and item.quantity is None:
        raise RenderError(f"Line item '{item.description}' has no quantity", section='line_items')


def render_line_items(doc, cursor, record, columns=STANDARD_COLUMNS, header_height=35,
                      row_height=30, header_gap=5, gap_after=20, spaced=True):
    """
    Fixed-width column table with a filled header row.

    Descriptions are clamped to their column, not wrapped. When the table
    runs past the bottom margin the header row is repeated on the new page.
    """
    items = getattr(record, 'line_items', None)
    if not items:
        raise RenderError("At least one line item is required", section='line_items')
    for item in items:
        _check_line_item(item, columns)

    fonts = doc.fonts
    positions = _column_positions(doc, columns)

    cursor = doc.reserve(cursor, header_height + header_gap + row_height)
    _draw_table_header(doc, cursor, columns, positions, header_height)
    cursor = cursor.down(header_height + header_gap)

    for item in items:
        row_cursor = doc.reserve(cursor, row_height)
        if row_cursor.page != cursor.page:
            _draw_table_header(doc, row_cursor, columns, positions, header_height)
            row_cursor = doc.reserve(row_cursor.down(header_height + header_gap), row_height)
        cursor = row_cursor

        base_color = 'discount_green' if item.is_discount else 'black'
        text_y = cursor.y - 15
        for column, x in zip(columns, positions):
            text = _cell_text(item, column, record, spaced)
            if not text:
                continue
            font, color = fonts.body, base_color
            if column.key == 'status':
                font, color = fonts.bold, 'paid_green'
            if column.key == 'description':
                text = truncate_to_width(text, column.width - 2 * CELL_PADDING, font, BODY_SIZE)
            doc.text(x + column.text_offset, text_y, text, font=font, size=BODY_SIZE,
                     color=color, tag=f"cell:{column.key}")
        cursor = cursor.down(row_height)

    return cursor.down(gap_after)


def render_subtotals(doc, cursor, record, columns=STANDARD_COLUMNS, line_height=18, gap_after=25):
    """Subtotal and VAT rows under the price columns, separated by a thin rule"""
    if not isinstance(record.vat, VatInfo):
        raise RenderError("Subtotal rows need a numeric VAT amount", section='subtotals')
    positions = _column_positions(doc, columns)
    label_x = positions[-2] + CELL_PADDING
    value_x = positions[-1] + CELL_PADDING
    fonts = doc.fonts

    block_height = 5 + 2 * line_height
    cursor = doc.reserve(cursor, block_height)

    rule_y = cursor.y - 5
    doc.line(positions[-2], rule_y, doc.right, thickness=0.5, color='navy', tag='subtotal-rule')

    subtotal_y = rule_y - line_height
    doc.text(label_x, subtotal_y, 'Subtotal:', font=fonts.body, size=BODY_SIZE, color='black')
    doc.text(value_x, subtotal_y, cur.format_currency(record.subtotal.quantized(), record.subtotal.currency,
                                                      record.locale), font=fonts.body, size=BODY_SIZE,
             color='black', tag='subtotal')

    vat_y = subtotal_y - line_height
    rate = record.vat.rate.normalize()
    doc.text(label_x, vat_y, f"VAT ({rate:f}%):", font=fonts.body, size=BODY_SIZE, color='black')
    doc.text(value_x, vat_y, cur.format_currency(record.vat.amount.quantized(), record.vat.amount.currency,
                                                 record.locale), font=fonts.body, size=BODY_SIZE,
             color='black', tag='vat')

    return cursor.down(block_height + gap_after)


# ---------------------------------------------------------------------------
# Totals box
# ---------------------------------------------------------------------------

def totals_box_height(record, single_height=35, dual_height=55):
    return dual_height if record.currency.is_dual else single_height


def render_totals_box(doc, cursor, record, width=320, single_height=35, dual_height=55,
                      label='Total Amount Due:', border_color='navy', amount_color='navy',
                      amount_offset=None, spaced=True, gap_after=45):
    """
    Bordered box at the right margin.

    Single currency: one "label amount" line. Dual currency: the EUR base
    amount on a small line, then the converted total in bold below it.
    """
    total = _require(getattr(record, 'total', None), "Invoice total is required", 'totals')
    height = totals_box_height(record, single_height, dual_height)
    cursor = doc.reserve(cursor, height)
    fonts = doc.fonts

    box_x = doc.right - width
    doc.rect(box_x, cursor.y - height, width, height, stroke=border_color, stroke_width=2,
             tag='totals-box')
    label_x = box_x + 15

    base_text = cur.format_currency(total.quantized(), total.currency, record.locale, spaced=spaced)

    if record.currency.is_dual:
        display = record.currency.display
        value_x = label_x + (amount_offset or 130)
        doc.text(label_x, cursor.y - 18, f"Base Amount ({total.currency}):", font=fonts.body,
                 size=11, color='navy')
        doc.text(value_x, cursor.y - 18, base_text, font=fonts.body, size=11, color='navy',
                 tag='total-base')
        doc.text(label_x, cursor.y - 38, label, font=fonts.bold, size=12, color='navy')
        converted_text = cur.format_currency(display.amount.quantized(), display.code,
                                             record.locale, spaced=spaced)
        doc.text(value_x, cursor.y - 38, converted_text, font=fonts.bold, size=13,
                 color=amount_color, tag='total-converted')
    else:
        text_y = cursor.y - (height / 2 + 4.5)
        doc.text(label_x, text_y, label, font=fonts.bold, size=12, color='navy')
        if amount_offset is None:
            value_x = label_x + doc.string_width(label, fonts.bold, 12) + 15
        else:
            value_x = label_x + amount_offset
        doc.text(value_x, text_y, base_text, font=fonts.bold, size=13, color=amount_color,
                 tag='total')

    return cursor.down(height + gap_after)


# ---------------------------------------------------------------------------
# Attendees
# ---------------------------------------------------------------------------

def render_attendees(doc, cursor, record, heading='Registered Attendees:', line_height=16,
                     size=9, gap_after=20):
    """Numbered attendee list: 'n. First Last - email'"""
    attendees = getattr(record, 'attendees', ())
    for attendee in attendees:
        _require(attendee.first_name, "Attendee first name is required", 'attendees')
        _require(attendee.last_name, "Attendee last name is required", 'attendees')
        _require(attendee.email, "Attendee email is required", 'attendees')
    fonts = doc.fonts

    cursor = doc.reserve(cursor, 20 + (line_height if attendees else 0))
    doc.text(doc.left, cursor.y, heading, font=fonts.bold, size=SECTION_LABEL_SIZE, color='navy',
             tag='attendees-heading')
    cursor = cursor.down(20)

    for index, attendee in enumerate(attendees, start=1):
        cursor = doc.reserve(cursor, 0)
        text = f"{index}. {attendee.first_name} {attendee.last_name} - {attendee.email}"
        doc.text(doc.left + 10, cursor.y, text, font=fonts.body, size=size, color='black', tag='attendee')
        cursor = cursor.down(line_height)

    return cursor.down(gap_after)


# ---------------------------------------------------------------------------
# Payment instructions / confirmation
# ---------------------------------------------------------------------------

def render_payment_instructions(doc, cursor, record, line_height=18, gap_after=30):
    """Divider, heading, then the caller's lines verbatim (no wrapping)"""
    lines = getattr(record, 'payment_instructions', ())
    if not lines:
        return cursor
    fonts = doc.fonts

    cursor = doc.reserve(cursor, 50)
    doc.line(doc.left, cursor.y - 10, doc.right, thickness=1, color='navy', tag='payment-divider')
    doc.text(doc.left, cursor.y - 30, record.payment_heading, font=fonts.bold,
             size=SECTION_LABEL_SIZE, color='navy', tag='payment-heading')
    cursor = cursor.down(50)

    for line in lines:
        if line is None:
            raise RenderError("Payment instruction lines must be strings", section='payment')
        cursor = doc.reserve(cursor, 0)
        if line:
            doc.text(doc.left, cursor.y, line, font=fonts.body, size=BODY_SIZE, color='black',
                     tag='payment-line')
        cursor = cursor.down(line_height)

    return cursor.down(gap_after - line_height)


# ---------------------------------------------------------------------------
# Free-form body text
# ---------------------------------------------------------------------------

def is_heading_paragraph(paragraph):
    """'## Title', or a short all-caps line without a period"""
    if paragraph.startswith('##'):
        return True
    return len(paragraph) < 60 and paragraph == paragraph.upper() and '.' not in paragraph


def parse_body_blocks(body):
    """Split free text on blank lines and classify each paragraph"""
    blocks = []
    for raw in _PARAGRAPH_SPLIT.split(body or ''):
        paragraph = raw.strip()
        if not paragraph:
            continue
        if is_heading_paragraph(paragraph):
            blocks.append(DocumentBlock(BLOCK_HEADING, _HEADING_PREFIX.sub('', paragraph)))
        else:
            blocks.append(DocumentBlock(BLOCK_PARAGRAPH, paragraph))
    return blocks


def render_blocks(doc, cursor, blocks, line_height=DOC_LINE_HEIGHT, paragraph_gap=DOC_PARAGRAPH_GAP):
    """
    Headings in bold, paragraphs word-wrapped to the content width.
    Newlines inside a paragraph start a new wrapped sub-paragraph.
    """
    fonts = doc.fonts
    for index, block in enumerate(blocks):
        if block.kind == BLOCK_HEADING:
            if index > 0:
                cursor = cursor.down(DOC_HEADING_GAP_BEFORE)
            cursor = doc.reserve(cursor, DOC_HEADING_MIN_ROOM)
            doc.text(doc.left, cursor.y, block.text, font=fonts.bold, size=DOC_HEADING_SIZE,
                     color='navy', tag='heading')
            cursor = cursor.down(line_height + 8)
        elif block.kind == BLOCK_PARAGRAPH:
            for sub_paragraph in block.text.split('\n'):
                for line in wrap_text(sub_paragraph.strip(), doc.content_width, fonts.body, BODY_SIZE):
                    cursor = doc.reserve(cursor, 0)
                    doc.text(doc.left, cursor.y, line, font=fonts.body, size=BODY_SIZE,
                             color='black', tag='body')
                    cursor = cursor.down(line_height)
                cursor = cursor.down(DOC_SUBPARAGRAPH_GAP)
        else:
            raise RenderError(f"Unknown block type: {block.kind}", section='body')
        cursor = cursor.down(paragraph_gap - line_height)
    return cursor


def render_body(doc, cursor, record):
    """Generic document body: explicit blocks when given, else parsed from free text"""
    blocks = list(record.blocks) if record.blocks else parse_body_blocks(record.body)
    if not blocks:
        raise RenderError("Document body is empty", section='body')
    return render_blocks(doc, cursor, blocks)


def render_closing(doc, cursor, record):
    """Optional closing paragraphs after the payment block"""
    if not record.closing:
        return cursor
    return render_blocks(doc, cursor, record.closing, line_height=18, paragraph_gap=18)
