"""
Layout cursor, drawing surface and page overflow control

Section renderers never hold a y coordinate of their own. They receive a
LayoutCursor, ask the DocumentCanvas to reserve room for the block they are
about to draw (which may start a new letterhead page), draw relative to the
cursor they get back and return the advanced cursor.

Drawing goes onto a reportlab overlay; on finish() every overlay page is
stamped onto a freshly parsed copy of the letterhead page with pypdf.
"""

import logging
from dataclasses import dataclass, replace
from io import BytesIO
from typing import Optional

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.pdfgen import canvas

from exceptions import RenderError

logger = logging.getLogger(__name__)

# Brand colors (RGB 0-1)
BRAND_COLORS = {
    'navy': (0.176, 0.333, 0.455),        # #2D5574
    'black': (0.137, 0.122, 0.125),       # #231F20
    'orange': (0.706, 0.416, 0.200),      # #B46A33
    'cream': (0.922, 0.910, 0.894),       # #EBE8E4
    'discount_green': (0.0, 0.6, 0.0),
    'paid_green': (0.133, 0.545, 0.133),
}

# Overlay coordinates are floats; anything closer than this to the bottom
# margin counts as on it
_EPSILON = 0.01


@dataclass(frozen=True)
class Margins:
    left: float = 50
    right: float = 50
    top: float = 150
    bottom: float = 80


DEFAULT_MARGINS = Margins()


@dataclass(frozen=True)
class LayoutCursor:
    page: int
    y: float

    def down(self, dy):
        return replace(self, y=self.y - dy)


@dataclass(frozen=True)
class DrawOp:
    """One primitive drawn on the overlay, kept for inspection after rendering"""
    kind: str
    page: int
    x: float
    y: float
    text: Optional[str] = None
    font: Optional[str] = None
    size: Optional[float] = None
    color: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None
    tag: Optional[str] = None


class DocumentCanvas:
    """
    Working document for one render call.

    Owns the reportlab overlay canvas and the page counter. reserve() is the
    page overflow controller: it is called before a block is drawn and
    returns either the same cursor or a cursor at the top of a new page.
    """

    def __init__(self, template, margins=DEFAULT_MARGINS, colors=None):
        self.template = template
        self.margins = margins
        self.colors = dict(BRAND_COLORS)
        if colors:
            self.colors.update(colors)
        self.fonts = template.fonts
        self.width = template.page_width
        self.height = template.page_height
        self.page_index = 0
        self.operations = []
        self._buffer = BytesIO()
        self._canvas = canvas.Canvas(self._buffer, pagesize=(self.width, self.height))

    @property
    def top_y(self):
        return self.height - self.margins.top

    @property
    def left(self):
        return self.margins.left

    @property
    def right(self):
        return self.width - self.margins.right

    @property
    def content_width(self):
        return self.width - self.margins.left - self.margins.right

    @property
    def usable_height(self):
        return self.top_y - self.margins.bottom

    @property
    def page_count(self):
        return self.page_index + 1

    def start(self):
        return LayoutCursor(page=0, y=self.top_y)

    def reserve(self, cursor, height):
        """
        Make sure a block of `height` points fits below cursor.y on the
        current page, starting a new page if it does not.
        """
        if cursor.page != self.page_index:
            raise RenderError(f"Cursor for page {cursor.page} used on page {self.page_index}")
        if height > self.usable_height + _EPSILON:
            raise RenderError(f"Block of {height}pt cannot fit on a page ({self.usable_height}pt usable)")
        if cursor.y - height < self.margins.bottom - _EPSILON:
            return self.new_page()
        return cursor

    def new_page(self):
        self._canvas.showPage()
        self.page_index += 1
        logger.debug(f"Started page {self.page_count}")
        return LayoutCursor(page=self.page_index, y=self.top_y)

    def _check_y(self, y):
        if y < self.margins.bottom - _EPSILON:
            raise RenderError(f"Drawing at y={y:.2f} would cross the bottom margin ({self.margins.bottom})")

    def text(self, x, y, text, font=None, size=10, color='black', align='left', tag=None):
        self._check_y(y)
        font = font or self.fonts.body
        c = self._canvas
        c.setFillColorRGB(*self.colors[color])
        c.setFont(font, size)
        if align == 'right':
            c.drawRightString(x, y, text)
        else:
            c.drawString(x, y, text)
        self.operations.append(DrawOp('text', self.page_index, x, y, text=text, font=font,
                                      size=size, color=color, tag=tag))

    def line(self, x1, y, x2, thickness=1, color='navy', tag=None):
        """Horizontal rule from x1 to x2 at y"""
        self._check_y(y)
        c = self._canvas
        c.setStrokeColorRGB(*self.colors[color])
        c.setLineWidth(thickness)
        c.line(x1, y, x2, y)
        self.operations.append(DrawOp('line', self.page_index, x1, y, color=color,
                                      width=x2 - x1, tag=tag))

    def rect(self, x, y, width, height, fill=None, stroke=None, stroke_width=1, tag=None):
        """Rectangle with its lower-left corner at (x, y)"""
        self._check_y(y)
        c = self._canvas
        if fill:
            c.setFillColorRGB(*self.colors[fill])
        if stroke:
            c.setStrokeColorRGB(*self.colors[stroke])
            c.setLineWidth(stroke_width)
        c.rect(x, y, width, height, fill=1 if fill else 0, stroke=1 if stroke else 0)
        self.operations.append(DrawOp('rect', self.page_index, x, y, color=fill or stroke,
                                      width=width, height=height, tag=tag))

    def string_width(self, text, font=None, size=10):
        return self._canvas.stringWidth(text, font or self.fonts.body, size)

    def finish(self):
        """
        Close the overlay and stamp each of its pages onto a pristine
        letterhead page.

        Returns:
            tuple: (pdf_bytes, page_count)
        """
        self._canvas.save()
        overlay_data = self._buffer.getvalue()
        self._buffer.close()

        try:
            overlay = PdfReader(BytesIO(overlay_data))
            writer = PdfWriter()
            for overlay_page in overlay.pages:
                page = self.template.fresh_page()
                page.merge_page(overlay_page)
                writer.add_page(page)

            output = BytesIO()
            writer.write(output)
        except PyPdfError as e:
            logger.error(f"Failed to merge overlay onto letterhead: {str(e)}", exc_info=True)
            raise RenderError(f"Failed to assemble PDF: {str(e)}")

        pdf_data = output.getvalue()
        if not pdf_data.startswith(b'%PDF-'):
            raise RenderError("PDF header missing")
        return pdf_data, len(overlay.pages)
