import base64
import math
from datetime import date
from decimal import Decimal
from io import BytesIO

import pytest
from pypdf import PdfReader

import invoice_utils
from conftest import TEMPLATE_MARK
from exceptions import RenderError
from invoice_models import (
    VAT_PENDING, BillTo, CurrencyInfo, DocumentGenerationData, InvoiceDocument, LineItem, Money,
)
from pdf_layout import DEFAULT_MARGINS
from pdf_sections import is_heading_paragraph, parse_body_blocks
from pdf_text_utils import measure_width


def membership_invoice(**overrides):
    fields = dict(
        invoice_number="FASE-2026-0001",
        bill_to=BillTo("Acme Underwriting B.V.", ("Jane Doe", "Keizersgracht 100", "Amsterdam 1015"), "Netherlands"),
        line_items=(LineItem("FASE Annual Membership", Decimal("1"), Money.of(1500), Money.of(1500)),),
        subtotal=Money.of(1500),
        vat=VAT_PENDING,
        total=Money.of(1500),
        payment_instructions=("Reference: 560509", "IBAN: BE90 9057 9070 7732"),
        meta_lines=("Terms: Payment upon receipt",),
        issue_date=date(2026, 1, 15),
    )
    fields.update(overrides)
    return InvoiceDocument(**fields)


def ops_tagged(rendered, tag):
    return [op for op in rendered.operations if op.tag == tag]


def test_single_item_invoice_end_to_end(generator):
    rendered = generator.generate_invoice_pdf(membership_invoice())

    assert rendered.page_count == 1
    assert len(PdfReader(BytesIO(rendered.pdf_bytes)).pages) == 1
    assert rendered.pdf_bytes.startswith(b"%PDF-")
    assert len(ops_tagged(rendered, "cell:description")) == 1

    texts = rendered.texts()
    label_index = texts.index("Total Amount Due:")
    assert texts[label_index + 1] == "€ 1,500.00"
    [box] = ops_tagged(rendered, "totals-box")
    assert box.height == 35
    assert rendered.filename == "FASE-2026-0001.pdf"


def test_invoice_meta_and_dates(generator):
    rendered = generator.generate_invoice_pdf(membership_invoice())
    meta = [op.text for op in ops_tagged(rendered, "meta")]
    assert meta == ["Invoice #: FASE-2026-0001", "Date: 15 Jan 2026", "Terms: Payment upon receipt"]

    [first_meta] = [op for op in ops_tagged(rendered, "meta") if op.text.startswith("Invoice #")]
    assert first_meta.x == pytest.approx(generator.template.page_width - DEFAULT_MARGINS.right - 150)


def test_bill_to_address_wraps_within_column(generator):
    long_name = "The Extremely Long Named International Managing General Agency Cooperative U.A."
    invoice = membership_invoice(bill_to=BillTo(long_name, ("Street 1",), "Netherlands"))
    rendered = generator.generate_invoice_pdf(invoice)

    lines = ops_tagged(rendered, "bill_to")
    assert len(lines) > 3
    for op in lines:
        assert measure_width(op.font, op.size, op.text) <= 250 or " " not in op.text
    assert " ".join(op.text for op in lines if op.font == "Helvetica-Bold") == long_name


def test_dual_currency_totals_box(generator, fixed_rates):
    invoice, conversion = invoice_utils.build_standard_invoice(
        {"organizationName": "Acme", "totalAmount": 1500, "forceCurrency": "USD",
         "invoiceNumber": "FASE-2026-0002"},
        rate_provider=fixed_rates,
    )
    rendered = generator.generate_invoice_pdf(invoice)

    [box] = ops_tagged(rendered, "totals-box")
    assert box.height == 55
    assert [op.text for op in ops_tagged(rendered, "total-base")] == ["€ 1,500.00"]
    assert [op.text for op in ops_tagged(rendered, "total-converted")] == ["$ 1,620.00"]
    assert "Base Amount (EUR):" in rendered.texts()
    assert "ACH and Wire routing number: 101019628" in rendered.texts()


def test_eur_totals_box_is_single_line(generator, fixed_rates):
    invoice, _ = invoice_utils.build_standard_invoice(
        {"organizationName": "Acme", "totalAmount": 1500, "forceCurrency": "EUR"},
        rate_provider=fixed_rates,
    )
    rendered = generator.generate_invoice_pdf(invoice)
    [box] = ops_tagged(rendered, "totals-box")
    assert box.height == 35
    assert not ops_tagged(rendered, "total-converted")


def test_discount_rows_in_rendezvous_invoice(generator):
    invoice = invoice_utils.build_rendezvous_invoice({
        "invoiceNumber": "FASE-55555",
        "companyName": "Acme",
        "billingEmail": "billing@acme.example",
        "country": "Netherlands",
        "organizationType": "carrier_broker",
        "attendees": [{"firstName": "Jane", "lastName": "Doe", "email": "jane@acme.example"}],
        "pricePerTicket": 500,
        "numberOfTickets": 1,
        "discount": 20,
        "vatRate": 21,
    })
    rendered = generator.generate_rendezvous_invoice_pdf(invoice)

    descriptions = [op.text for op in ops_tagged(rendered, "cell:description")]
    assert descriptions == ["MGA Rendezvous Pass (Carrier/Broker)", "FASE Member Discount (20%)"]
    assert [op.text for op in ops_tagged(rendered, "cell:unit_price")] == ["€625.00"]
    assert [op.text for op in ops_tagged(rendered, "cell:total")] == ["€625.00", "-€125.00"]
    assert len(ops_tagged(rendered, "cell:quantity")) == 1

    discount_cells = [op for op in rendered.operations if op.text == "-€125.00"]
    assert all(op.color == "discount_green" for op in discount_cells)

    assert [op.text for op in ops_tagged(rendered, "subtotal")] == ["€500.00"]
    assert [op.text for op in ops_tagged(rendered, "vat")] == ["€105.00"]
    assert "VAT (21%):" in rendered.texts()
    assert [op.text for op in ops_tagged(rendered, "total")] == ["€605.00"]
    assert "MGA Rendezvous 2026" in rendered.texts()
    assert "1. Jane Doe - jane@acme.example" in rendered.texts()
    assert "Reference: FASE-55555" in rendered.texts()


def test_paid_invoice(generator):
    invoice = invoice_utils.build_paid_invoice({
        "transactionId": "pi_123",
        "source": "stripe",
        "organizationName": "Acme",
        "amount": 1500,
        "currency": "GBP",
        "paidAt": "2026-01-15T10:00:00Z",
        "invoiceNumber": "FASE-PAID-2026-0007",
    })
    rendered = generator.generate_paid_invoice_pdf(invoice)

    assert rendered.filename == "FASE-PAID-2026-0007-PAID.pdf"
    texts = rendered.texts()
    assert [op.text for op in ops_tagged(rendered, "stamp")] == ["PAID"]
    assert "Payment Confirmation" in texts
    assert "For:" in texts
    assert [op.text for op in ops_tagged(rendered, "cell:status")] == ["PAID"]
    assert "Total Paid:" in texts
    assert "£ 1,500.00" in texts
    assert "Payment Date: 15 Jan 2026" in texts
    assert "Payment Method: Stripe" in texts
    assert "Reference: pi_123" in texts
    assert "Thank you for your payment!" in texts
    assert "If you have any questions, please contact us at info@fasemga.com" in texts


def test_unpaid_record_is_refused_by_paid_generator(generator):
    with pytest.raises(RenderError):
        generator.generate_paid_invoice_pdf(membership_invoice())


def test_preview_invoice_title(generator, fixed_rates):
    invoice, _ = invoice_utils.build_standard_invoice({
        "organizationName": "Acme",
        "totalAmount": 1500,
        "address": {"line1": "Street 1", "city": "Amsterdam", "postcode": "1015", "country": "Netherlands"},
    }, rate_provider=fixed_rates, preview=True)
    rendered = generator.generate_test_invoice_pdf(invoice)
    assert [op.text for op in ops_tagged(rendered, "title")] == ["INVOICE (PREVIEW)"]


def test_line_item_without_total_is_render_error(generator):
    broken = LineItem("FASE Annual Membership", Decimal("1"), Money.of(1500), None)
    with pytest.raises(RenderError):
        generator.generate_invoice_pdf(membership_invoice(line_items=(broken,)))


def test_subtotal_mismatch_is_render_error(generator):
    with pytest.raises(RenderError):
        generator.generate_invoice_pdf(membership_invoice(subtotal=Money.of(1400), total=Money.of(1400)))


def test_missing_bill_to_name_is_render_error(generator):
    with pytest.raises(RenderError):
        generator.generate_invoice_pdf(membership_invoice(bill_to=BillTo("", (), "")))


def test_long_line_item_table_repeats_header_on_next_page(generator):
    items = tuple(
        LineItem(f"Sponsorship package {i}", Decimal("1"), Money.of(100), Money.of(100)) for i in range(30)
    )
    invoice = membership_invoice(line_items=items, subtotal=Money.of(3000), total=Money.of(3000))
    rendered = generator.generate_invoice_pdf(invoice)

    assert rendered.page_count > 1
    header_pages = {op.page for op in ops_tagged(rendered, "table-header") if op.kind == "rect"}
    assert header_pages == {0, 1}
    assert all(op.y >= DEFAULT_MARGINS.bottom for op in rendered.operations)


def test_currency_info_default_is_single_currency():
    assert not CurrencyInfo().is_dual


# ---------------------------------------------------------------------------
# Generic documents
# ---------------------------------------------------------------------------

def test_multi_page_document_resets_cursor(generator, template):
    body = "\n\n".join(f"Paragraph {i}" for i in range(1, 61))
    rendered = generator.generate_document_pdf(DocumentGenerationData(title="Board Minutes", body=body))

    # Title block leaves the first line at 632; each one-line paragraph takes 28pt
    assert rendered.page_count == 3
    assert len(PdfReader(BytesIO(rendered.pdf_bytes)).pages) == 3

    top_y = template.page_height - DEFAULT_MARGINS.top
    first_on_page_two = next(op for op in rendered.operations if op.page == 1)
    assert first_on_page_two.y == pytest.approx(top_y)
    assert first_on_page_two.text == "Paragraph 21"
    assert all(op.y >= DEFAULT_MARGINS.bottom for op in rendered.operations)


def test_page_count_follows_content(generator, template):
    body = "\n\n".join(f"Line {i}" for i in range(200))
    rendered = generator.generate_document_pdf(DocumentGenerationData(title="Register", body=body))

    # 20 paragraphs on the first page, 22 on each following page
    assert rendered.page_count == 1 + math.ceil(180 / 22)
    assert max(op.page for op in rendered.operations) == rendered.page_count - 1
    assert rendered.texts()[-1] == "Line 199"

    usable = template.page_height - DEFAULT_MARGINS.top - DEFAULT_MARGINS.bottom
    assert rendered.page_count == math.ceil((60 + 200 * 28) / usable)


def test_second_page_is_stamped_on_pristine_letterhead(generator):
    body = "\n\n".join(f"Paragraph {i}" for i in range(1, 61))
    rendered = generator.generate_document_pdf(DocumentGenerationData(title="Board Minutes", body=body))

    pages = PdfReader(BytesIO(rendered.pdf_bytes)).pages
    second = pages[1].extract_text()
    assert second.count(TEMPLATE_MARK) == 1
    assert "Board Minutes" not in second
    assert "Board Minutes" in pages[0].extract_text()


def test_document_headings_and_wrapping(generator, template):
    paragraph = " ".join(["Members are reminded that the annual general meeting takes place in May."] * 6)
    body = f"## Agenda\n\n{paragraph}\n\nFINANCIAL REPORT\n\nFirst line\nSecond line"
    rendered = generator.generate_document_pdf(
        DocumentGenerationData(title="Notice", body=body, date="15 January 2026")
    )

    assert [op.text for op in ops_tagged(rendered, "heading")] == ["Agenda", "FINANCIAL REPORT"]
    body_lines = ops_tagged(rendered, "body")
    width = template.page_width - DEFAULT_MARGINS.left - DEFAULT_MARGINS.right
    assert all(measure_width(op.font, op.size, op.text) <= width for op in body_lines)
    assert [op.text for op in body_lines][-2:] == ["First line", "Second line"]
    assert [op.text for op in ops_tagged(rendered, "date")] == ["15 January 2026"]
    assert rendered.filename == "notice.pdf"


def test_structured_blocks_skip_heuristic(generator):
    data = invoice_utils.build_document_data({
        "title": "Notice",
        "blocks": [
            {"type": "paragraph", "text": "NOT A HEADING"},
            {"type": "heading", "text": "A real heading."},
        ],
    })
    rendered = generator.generate_document_pdf(data)
    assert [op.text for op in ops_tagged(rendered, "heading")] == ["A real heading."]
    assert [op.text for op in ops_tagged(rendered, "body")] == ["NOT A HEADING"]


def test_empty_document_body_is_render_error(generator):
    with pytest.raises(RenderError):
        generator.generate_document_pdf(DocumentGenerationData(title="Empty", body="\n\n  \n\n"))


@pytest.mark.parametrize("paragraph, expected", [
    ("## Introduction", True),
    ("SECTION ONE", True),
    ("SECTION ONE.", False),
    ("Section one", False),
    ("A" * 60, False),
])
def test_heading_heuristic(paragraph, expected):
    assert is_heading_paragraph(paragraph) is expected


def test_parse_body_blocks_strips_heading_marker():
    blocks = parse_body_blocks("## Intro\n\n\n\nSome text. More text.")
    assert [(block.kind, block.text) for block in blocks] == [
        ("heading", "Intro"),
        ("paragraph", "Some text. More text."),
    ]


def test_rendered_document_as_email_attachment(generator):
    rendered = generator.generate_invoice_pdf(membership_invoice())
    attachment = rendered.as_attachment()

    assert attachment["filename"] == "FASE-2026-0001.pdf"
    assert attachment["contentType"] == "application/pdf"
    assert base64.b64decode(attachment["content"]) == rendered.pdf_bytes
