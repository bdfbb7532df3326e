"""
Letterhead template loader

The template is a single-page PDF whose page is used as the background of
every page of a generated document. It is read once per render and kept as
raw bytes so that each new page can be parsed from a pristine copy instead
of from a page that already carries drawn content.
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from io import BytesIO

from pypdf import PdfReader
from pypdf.errors import PyPdfError
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont

from exceptions import TemplateLoadError

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_PATH = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), 'assets', 'letterhead.pdf'
)

BODY_FONT = 'Helvetica'
BOLD_FONT = 'Helvetica-Bold'
BRAND_BODY_FONT = 'LetterheadBody'
BRAND_BOLD_FONT = 'LetterheadBold'


@dataclass(frozen=True)
class FontSet:
    body: str = BODY_FONT
    bold: str = BOLD_FONT


@dataclass(frozen=True)
class LetterheadTemplate:
    path: str
    data: bytes = field(repr=False)
    page_width: float
    page_height: float
    fonts: FontSet = field(default_factory=FontSet)

    def fresh_page(self):
        """Parse a new, untouched copy of the letterhead page"""
        return PdfReader(BytesIO(self.data)).pages[0]


def get_template_path():
    return os.environ.get('LETTERHEAD_TEMPLATE_PATH') or DEFAULT_TEMPLATE_PATH


@lru_cache(maxsize=None)
def register_font(name, path):
    """Register a TrueType font once per process; later renders reuse it"""
    try:
        pdfmetrics.registerFont(TTFont(name, path))
    except (TTFError, OSError) as e:
        logger.error(f"Failed to register font {name} from {path}: {str(e)}")
        raise TemplateLoadError(f"Font file unusable: {path}", path=path)
    logger.info(f"Registered font {name} from {path}")
    return name


def resolve_fonts():
    """Brand fonts when configured, otherwise the standard Helvetica pair"""
    body_path = os.environ.get('PDF_BODY_FONT_PATH')
    bold_path = os.environ.get('PDF_BOLD_FONT_PATH')
    body = register_font(BRAND_BODY_FONT, body_path) if body_path else BODY_FONT
    bold = register_font(BRAND_BOLD_FONT, bold_path) if bold_path else BOLD_FONT
    return FontSet(body=body, bold=bold)


def load_template(path=None, fonts=None):
    """
    Load the letterhead template and its page geometry

    Args:
        path (str, optional): template file; defaults to LETTERHEAD_TEMPLATE_PATH
        fonts (FontSet, optional): fonts to draw with; defaults to resolve_fonts()

    Returns:
        LetterheadTemplate

    Raises:
        TemplateLoadError: if the file is missing, unreadable or not a usable PDF
    """
    path = path or get_template_path()

    try:
        with open(path, 'rb') as f:
            data = f.read()
    except OSError as e:
        logger.error(f"Letterhead template unreadable at {path}: {str(e)}")
        raise TemplateLoadError(f"Letterhead template not found or unreadable: {path}", path=path)

    try:
        reader = PdfReader(BytesIO(data))
        if len(reader.pages) == 0:
            raise TemplateLoadError(f"Letterhead template has no pages: {path}", path=path)
        first_page = reader.pages[0]
        page_width = float(first_page.mediabox.width)
        page_height = float(first_page.mediabox.height)
    except TemplateLoadError:
        logger.error(f"Letterhead template has no pages: {path}")
        raise
    except (PyPdfError, ValueError, KeyError, TypeError) as e:
        logger.error(f"Letterhead template is corrupt at {path}: {str(e)}", exc_info=True)
        raise TemplateLoadError(f"Letterhead template is not a valid PDF: {path}", path=path)

    if page_width <= 0 or page_height <= 0:
        logger.error(f"Letterhead template has an empty page box: {path}")
        raise TemplateLoadError(f"Letterhead template has an empty page box: {path}", path=path)

    return LetterheadTemplate(
        path=path,
        data=data,
        page_width=page_width,
        page_height=page_height,
        fonts=fonts or resolve_fonts(),
    )
