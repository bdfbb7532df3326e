"""
Record types handed to the PDF layout engine and returned from it.

Everything here is immutable: a record is built once per request by
invoice_utils (or by a caller that already has structured data), rendered,
and thrown away. Money is Decimal end to end and is only quantized to two
places when it is formatted for display.
"""

import base64
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Tuple

TWO_PLACES = Decimal('0.01')
BASE_CURRENCY = 'EUR'
VAT_PENDING = 'pending'

BLOCK_HEADING = 'heading'
BLOCK_PARAGRAPH = 'paragraph'


def to_decimal(value):
    """Convert int/float/str/Decimal to Decimal via str() to avoid binary float noise"""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValueError(f"Not a numeric amount: {value!r}")
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not a numeric amount: {value!r}")


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str = BASE_CURRENCY

    @classmethod
    def of(cls, value, currency=BASE_CURRENCY):
        return cls(to_decimal(value), (currency or BASE_CURRENCY).upper())

    def __add__(self, other):
        if other.currency != self.currency:
            raise ValueError(f"Cannot add {other.currency} to {self.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __neg__(self):
        return Money(-self.amount, self.currency)

    def __abs__(self):
        return Money(abs(self.amount), self.currency)

    @property
    def is_negative(self):
        return self.amount < 0

    def quantized(self):
        return self.amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class BillTo:
    name: str
    address_lines: Tuple[str, ...] = ()
    country: str = ''

    def lines(self):
        """Recipient block in display order, blank entries dropped"""
        candidates = [self.name, *self.address_lines, self.country]
        return [line.strip() for line in candidates if line and line.strip()]


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: Decimal
    unit_price: Optional[Money]
    total: Optional[Money]
    is_discount: bool = False
    # Only the paid-invoice table has a status column
    status: Optional[str] = None


@dataclass(frozen=True)
class VatInfo:
    rate: Decimal
    amount: Money


@dataclass(frozen=True)
class DisplayCurrency:
    code: str
    amount: Money
    rate: Decimal


@dataclass(frozen=True)
class CurrencyInfo:
    base: str = BASE_CURRENCY
    display: Optional[DisplayCurrency] = None

    @property
    def is_dual(self):
        return self.display is not None and self.display.code != self.base


@dataclass(frozen=True)
class Attendee:
    first_name: str
    last_name: str
    email: str
    job_title: str = ''


@dataclass(frozen=True)
class DocumentBlock:
    kind: str
    text: str


@dataclass(frozen=True)
class InvoiceDocument:
    invoice_number: str
    bill_to: BillTo
    line_items: Tuple[LineItem, ...]
    subtotal: Money
    vat: object  # VatInfo or VAT_PENDING
    total: Money
    currency: CurrencyInfo = field(default_factory=CurrencyInfo)
    attendees: Tuple[Attendee, ...] = ()
    payment_instructions: Tuple[str, ...] = ()
    payment_heading: str = 'Payment Instructions:'
    title: str = 'INVOICE'
    subtitle: Optional[str] = None
    bill_to_label: str = 'Bill To:'
    issue_date: Optional[date] = None
    meta_lines: Tuple[str, ...] = ()
    closing: Tuple[DocumentBlock, ...] = ()
    paid: bool = False
    locale: str = 'en'

    @property
    def vat_is_pending(self):
        return isinstance(self.vat, str) and self.vat == VAT_PENDING

    @property
    def filename(self):
        suffix = '-PAID' if self.paid else ''
        return f"{self.invoice_number}{suffix}.pdf"


@dataclass(frozen=True)
class DocumentGenerationData:
    title: str
    body: str = ''
    date: Optional[str] = None
    blocks: Tuple[DocumentBlock, ...] = ()

    @property
    def filename(self):
        slug = ''.join(ch if ch.isalnum() else '-' for ch in self.title.lower()).strip('-')
        while '--' in slug:
            slug = slug.replace('--', '-')
        return f"{slug or 'document'}.pdf"


@dataclass(frozen=True)
class RenderedDocument:
    pdf_bytes: bytes
    invoice_number: Optional[str]
    filename: str
    page_count: int
    operations: tuple = ()

    @property
    def pdf_base64(self):
        return base64.b64encode(self.pdf_bytes).decode('ascii')

    def texts(self, page=None):
        """Text strings drawn on the overlay, in drawing order"""
        return [op.text for op in self.operations
                if op.kind == 'text' and (page is None or op.page == page)]

    def as_attachment(self):
        return {
            'filename': self.filename,
            'content': self.pdf_base64,
            'contentType': 'application/pdf',
        }
