import os
import random
from datetime import date, datetime
from decimal import Decimal

import currency_utils as cur
from exceptions import ValidationError
from invoice_models import (
    BASE_CURRENCY, BLOCK_HEADING, BLOCK_PARAGRAPH, VAT_PENDING,
    Attendee, BillTo, CurrencyInfo, DisplayCurrency, DocumentBlock,
    DocumentGenerationData, InvoiceDocument, LineItem, Money, VatInfo, to_decimal,
)
from pdf_sections import format_issue_date

# Environment variables
INVOICE_NUMBER_PREFIX = os.environ.get('INVOICE_NUMBER_PREFIX', 'FASE')

SUPPORTED_LOCALES = ('en', 'fr', 'de', 'es', 'it', 'nl')

MEMBERSHIP_DESCRIPTION = 'FASE Annual Membership (1/1/2026 - 1/1/2027)'
DEFAULT_DISCOUNT_REASON = 'Association Member Discount'
MULTI_ASSOCIATION_DISCOUNT_REASON = 'Multi-Association Member Discount (20%)'
MULTI_ASSOCIATION_DISCOUNT_RATE = Decimal('0.2')

STANDARD_META_LINES = ('Terms: Payment upon receipt', 'VAT Number Pending')
PREVIEW_TITLE = 'INVOICE (PREVIEW)'

RENDEZVOUS_EVENT_NAME = 'MGA Rendezvous 2026'
DEFAULT_RENDEZVOUS_VAT_RATE = Decimal('21')
ORGANIZATION_TYPE_LABELS = {
    'mga': 'MGA',
    'carrier_broker': 'Carrier/Broker',
    'service_provider': 'Service Provider',
}

CONTACT_EMAIL = 'info@fasemga.com'


def generate_invoice_number(suffix=None, year=None):
    """PREFIX-YEAR-SUFFIX when a suffix is given, otherwise PREFIX-NNNNN"""
    if suffix:
        return f"{INVOICE_NUMBER_PREFIX}-{year or date.today().year}-{suffix}"
    return f"{INVOICE_NUMBER_PREFIX}-{random.randint(10000, 99999)}"


def generate_paid_invoice_number(sequence=None, year=None):
    """PREFIX-PAID-YEAR-0001 for a known sequence, otherwise the random fallback"""
    if sequence is None:
        return generate_invoice_number()
    try:
        sequence = int(sequence)
    except (TypeError, ValueError):
        raise ValidationError("sequence must be an integer", field='sequence')
    return f"{INVOICE_NUMBER_PREFIX}-PAID-{year or date.today().year}-{sequence:04d}"


def resolve_locale(locale):
    return locale if locale in SUPPORTED_LOCALES else 'en'


def _amount(data, key, default=None):
    value = data.get(key)
    if value is None:
        value = default
    if value is None:
        raise ValidationError(f"{key} is required", field=key)
    try:
        return to_decimal(value)
    except ValueError:
        raise ValidationError(f"{key} must be a number", field=key)


def _text(value):
    return value.strip() if isinstance(value, str) else ''


def build_bill_to(name, contact_name=None, address=None):
    """Recipient block from an organization name and an address object"""
    address = address or {}
    city_line = ' '.join(part for part in (_text(address.get('city')), _text(address.get('postcode'))) if part)
    lines = (
        _text(contact_name),
        _text(address.get('line1')),
        _text(address.get('line2')),
        city_line,
    )
    return BillTo(
        name=_text(name),
        address_lines=tuple(line for line in lines if line),
        country=_text(address.get('country')),
    )


# ---------------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------------

def compute_discount_breakdown(price, quantity, discount_percent, subtotal=None):
    """
    Recover the pre-discount price from a discounted unit price

    The discount shown is derived from the subtotal
    (base_price * quantity - subtotal) rather than multiplied out from the
    percentage, so the rows always add back up to the subtotal.

    Returns:
        dict: base_price, base_total, discount_amount, subtotal
    """
    price = to_decimal(price)
    quantity = to_decimal(quantity)
    discount_percent = to_decimal(discount_percent)
    if not Decimal('0') <= discount_percent < Decimal('100'):
        raise ValidationError("discount must be between 0 and 100", field='discount')

    subtotal = price * quantity if subtotal is None else to_decimal(subtotal)
    if discount_percent > 0:
        base_price = price / (1 - discount_percent / 100)
    else:
        base_price = price
    base_total = base_price * quantity

    return {
        'base_price': base_price,
        'base_total': base_total,
        'discount_amount': base_total - subtotal,
        'subtotal': subtotal,
    }


def _discount_line(description, amount, currency=BASE_CURRENCY):
    discount = Money.of(-abs(to_decimal(amount)), currency)
    return LineItem(description, Decimal('1'), None, discount, is_discount=True)


def _line_items_from_payload(raw_items):
    items = []
    for index, raw in enumerate(raw_items):
        field = f"lineItems[{index}]"
        if not isinstance(raw, dict):
            raise ValidationError(f"{field} must be an object", field=field)
        description = _text(raw.get('description'))
        if not description:
            raise ValidationError(f"{field}.description is required", field=field)

        if raw.get('isDiscount'):
            amount = raw.get('total', raw.get('unitPrice'))
            if amount is None:
                raise ValidationError(f"{field}.total is required for a discount", field=field)
            discount = _amount(raw, 'total', amount)
            if discount == 0:
                raise ValidationError(f"{field}.total must not be zero for a discount", field=field)
            items.append(_discount_line(description, discount))
            continue

        quantity = _amount(raw, 'quantity', 1)
        unit_price = _amount(raw, 'unitPrice')
        total = _amount(raw, 'total', unit_price * quantity)
        items.append(LineItem(description, quantity, Money.of(unit_price), Money.of(total)))
    return items


def build_standard_line_items(data):
    """
    Membership line, optional discount line and optional custom line.
    An explicit lineItems list replaces all three.
    """
    if data.get('lineItems'):
        return _line_items_from_payload(data['lineItems'])

    items = []
    if data.get('invoiceType') != 'sponsorship':
        total_amount = _amount(data, 'totalAmount')
        original_amount = _amount(data, 'originalAmount', total_amount) or total_amount
        items.append(LineItem(MEMBERSHIP_DESCRIPTION, Decimal('1'), Money.of(original_amount), Money.of(original_amount)))

        discount_amount = _amount(data, 'discountAmount', 0)
        discount_reason = _text(data.get('discountReason'))
        if not discount_amount and data.get('hasOtherAssociations'):
            discount_amount = total_amount * MULTI_ASSOCIATION_DISCOUNT_RATE
            discount_reason = discount_reason or MULTI_ASSOCIATION_DISCOUNT_REASON
        if discount_amount > 0:
            items.append(_discount_line(discount_reason or DEFAULT_DISCOUNT_REASON, discount_amount))

    custom = data.get('customLineItem') or {}
    if custom.get('enabled') and _text(custom.get('description')):
        amount = _amount(custom, 'amount')
        items.append(LineItem(_text(custom['description']), Decimal('1'), Money.of(amount), Money.of(amount)))

    if not items:
        raise ValidationError("Invoice has no line items", field='lineItems')
    return items


def _sum(items, currency=BASE_CURRENCY):
    total = Money(Decimal('0'), currency)
    for item in items:
        total = total + item.total
    return total


# ---------------------------------------------------------------------------
# Currency
# ---------------------------------------------------------------------------

def build_currency_info(total, target_currency=None, rate_provider=None):
    """
    Convert the EUR total for display when another currency is requested.
    ConversionError propagates; there is no EUR-only fallback.

    Returns:
        tuple: (CurrencyInfo, CurrencyConversion)
    """
    target = (target_currency or BASE_CURRENCY).upper()
    conversion = cur.convert_currency(total.amount, target, rate_provider=rate_provider)
    if not conversion.is_converted:
        return CurrencyInfo(), conversion
    display = DisplayCurrency(
        code=conversion.currency,
        amount=Money(conversion.rounded_amount, conversion.currency),
        rate=conversion.rate,
    )
    return CurrencyInfo(display=display), conversion


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------

def build_standard_invoice(data, rate_provider=None, preview=False):
    """
    Build the standard invoice record from an API payload

    Returns:
        tuple: (InvoiceDocument, CurrencyConversion)
    """
    items = build_standard_line_items(data)
    subtotal = _sum(items)
    currency, conversion = build_currency_info(
        subtotal, data.get('forceCurrency') or data.get('currency'), rate_provider
    )

    invoice = InvoiceDocument(
        invoice_number=_text(data.get('invoiceNumber')) or generate_invoice_number(),
        bill_to=build_bill_to(data.get('organizationName'), data.get('fullName') or data.get('greeting'),
                              data.get('address')),
        line_items=tuple(items),
        subtotal=subtotal,
        vat=VAT_PENDING,
        total=subtotal,
        currency=currency,
        payment_instructions=tuple(cur.build_payment_instruction_lines(currency.display.code if currency.is_dual
                                                                       else BASE_CURRENCY)),
        title=PREVIEW_TITLE if preview else 'INVOICE',
        meta_lines=STANDARD_META_LINES,
        locale=resolve_locale(data.get('userLocale')),
    )
    return invoice, conversion


def _parse_paid_date(value):
    if not value:
        return date.today()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).date()
    except ValueError:
        raise ValidationError("paidAt must be an ISO 8601 date", field='paidAt')


def build_paid_invoice(data):
    """Payment confirmation record; the amount is shown in the currency it was paid in"""
    address = data.get('address') or {}
    currency_code = (_text(data.get('currency')) or cur.detect_currency(address.get('country'))).upper()
    amount = Money.of(_amount(data, 'amount'), currency_code)
    source = _text(data.get('source'))

    paid_date = _parse_paid_date(data.get('paidAt'))
    locale = resolve_locale(data.get('userLocale'))
    method = _text(data.get('paymentMethod')) or source
    reference = _text(data.get('reference')) or _text(data.get('transactionId'))

    payment_lines = [
        f"Payment Date: {format_issue_date(paid_date, locale)}",
        f"Payment Method: {method[:1].upper()}{method[1:]}",
    ]
    if reference:
        payment_lines.append(f"Reference: {reference}")

    description = _text(data.get('description')) or 'FASE Annual Membership'
    invoice_number = _text(data.get('invoiceNumber')) or generate_paid_invoice_number(data.get('sequence'))

    return InvoiceDocument(
        invoice_number=invoice_number,
        bill_to=build_bill_to(data.get('organizationName'), data.get('contactName'), address),
        line_items=(LineItem(description, Decimal('1'), amount, amount, status='PAID'),),
        subtotal=amount,
        vat=VAT_PENDING,
        total=amount,
        currency=CurrencyInfo(base=currency_code),
        payment_instructions=tuple(payment_lines),
        payment_heading='Payment Details',
        title='Payment Confirmation',
        bill_to_label='For:',
        closing=(
            DocumentBlock(BLOCK_HEADING, 'Thank you for your payment!'),
            DocumentBlock(BLOCK_PARAGRAPH, 'This document serves as confirmation of your payment.\n'
                                           f"If you have any questions, please contact us at {CONTACT_EMAIL}"),
        ),
        paid=True,
        locale=locale,
    )


def build_rendezvous_invoice(data):
    """Event registration invoice: pass line, discount, VAT and attendee list"""
    quantity = _amount(data, 'numberOfTickets')
    if quantity <= 0:
        raise ValidationError("numberOfTickets must be positive", field='numberOfTickets')
    price = _amount(data, 'pricePerTicket')
    discount = _amount(data, 'discount', 0)
    given_subtotal = None
    if data.get('subtotal') is not None:
        given_subtotal = _amount(data, 'subtotal')
        expected_subtotal = Money.of(price * quantity)
        if Money.of(given_subtotal).quantized() != expected_subtotal.quantized():
            raise ValidationError(
                f"subtotal {given_subtotal} does not equal pricePerTicket x numberOfTickets {expected_subtotal.quantized()}",
                field='subtotal'
            )
    breakdown = compute_discount_breakdown(price, quantity, discount, given_subtotal)

    org_type = _text(data.get('organizationType'))
    org_label = ORGANIZATION_TYPE_LABELS.get(org_type, org_type or 'MGA')
    items = [LineItem(
        f"MGA Rendezvous Pass ({org_label})",
        quantity,
        Money.of(breakdown['base_price']),
        Money.of(breakdown['base_total']),
    )]
    # A free pass has nothing to discount
    if discount > 0 and breakdown['discount_amount'] > 0:
        reason = _text(data.get('discountReason')) or f"FASE Member Discount ({discount.normalize():f}%)"
        items.append(_discount_line(reason, breakdown['discount_amount']))

    subtotal = Money.of(breakdown['subtotal'])
    vat_rate = _amount(data, 'vatRate', DEFAULT_RENDEZVOUS_VAT_RATE)
    if data.get('vatAmount') is not None:
        vat_amount = _amount(data, 'vatAmount')
    else:
        vat_amount = subtotal.amount * vat_rate / 100
    total = subtotal + Money.of(vat_amount)

    if data.get('totalPrice') is not None:
        given_total = Money.of(_amount(data, 'totalPrice'))
        if given_total.quantized() != total.quantized():
            raise ValidationError(
                f"totalPrice {given_total.quantized()} does not equal subtotal plus VAT {total.quantized()}",
                field='totalPrice'
            )

    attendees = []
    for raw in data.get('attendees') or []:
        attendees.append(Attendee(
            first_name=_text(raw.get('firstName')),
            last_name=_text(raw.get('lastName')),
            email=_text(raw.get('email')),
            job_title=_text(raw.get('jobTitle')),
        ))

    invoice_number = _text(data.get('invoiceNumber')) or generate_invoice_number()
    bill_to = BillTo(
        name=_text(data.get('companyName')),
        address_lines=tuple(line for line in (_text(data.get('billingEmail')), _text(data.get('address'))) if line),
        country=_text(data.get('country')),
    )

    return InvoiceDocument(
        invoice_number=invoice_number,
        bill_to=bill_to,
        line_items=tuple(items),
        subtotal=subtotal,
        vat=VatInfo(vat_rate, Money.of(vat_amount)),
        total=total,
        attendees=tuple(attendees),
        payment_instructions=(f"Reference: {invoice_number}", *cur.ASSOCIATION_BANK_LINES),
        subtitle=RENDEZVOUS_EVENT_NAME,
        meta_lines=('Terms: Payment upon receipt',),
        locale=resolve_locale(data.get('userLocale')),
    )


def build_document_data(data):
    """Generic document record; explicit blocks take precedence over free text"""
    blocks = []
    for index, raw in enumerate(data.get('blocks') or []):
        kind = raw.get('type') if isinstance(raw, dict) else None
        if kind not in (BLOCK_HEADING, BLOCK_PARAGRAPH):
            raise ValidationError(f"blocks[{index}].type must be 'heading' or 'paragraph'", field='blocks')
        text = _text(raw.get('text'))
        if not text:
            raise ValidationError(f"blocks[{index}].text is required", field='blocks')
        blocks.append(DocumentBlock(kind, text))

    return DocumentGenerationData(
        title=_text(data.get('title')),
        body=data.get('body') or '',
        date=_text(data.get('date')) or None,
        blocks=tuple(blocks),
    )


def invoice_response_fields(invoice, conversion=None):
    """Totals and conversion details returned alongside the PDF"""
    fields = {
        'invoiceNumber': invoice.invoice_number,
        'totalAmount': invoice.total.quantized(),
        'currency': invoice.total.currency,
    }
    if conversion is not None and conversion.is_converted:
        fields.update({
            'convertedCurrency': conversion.currency,
            'convertedAmount': conversion.rounded_amount,
            'exchangeRate': conversion.rate,
        })
    return fields
