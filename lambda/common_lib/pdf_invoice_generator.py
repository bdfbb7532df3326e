#!/usr/bin/env python3

import logging
from dataclasses import dataclass, field
from typing import Callable, Tuple

import pdf_sections as sections
from exceptions import RenderError
from invoice_models import InvoiceDocument, RenderedDocument, VatInfo
from pdf_layout import DEFAULT_MARGINS, DocumentCanvas, Margins
from pdf_template import load_template

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SectionSpec:
    """One renderer call in a document layout, with its fixed options"""
    name: str
    renderer: Callable
    options: dict = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentSpec:
    """Ordered section layout for one kind of document"""
    name: str
    sections: Tuple[SectionSpec, ...]
    margins: Margins = DEFAULT_MARGINS
    checks_totals: bool = True


STANDARD_INVOICE = DocumentSpec('standard-invoice', (
    SectionSpec('header', sections.render_header),
    SectionSpec('bill_to', sections.render_bill_to),
    SectionSpec('line_items', sections.render_line_items),
    SectionSpec('totals', sections.render_totals_box),
    SectionSpec('payment', sections.render_payment_instructions),
    SectionSpec('closing', sections.render_closing),
))

PAID_INVOICE = DocumentSpec('paid-invoice', (
    SectionSpec('header', sections.render_header, {'title_size': 14, 'gap_after': 30, 'stamp': 'PAID'}),
    SectionSpec('bill_to', sections.render_bill_to, {'name_size': 11, 'gap_after': 30}),
    SectionSpec('line_items', sections.render_line_items, {
        'columns': sections.PAID_COLUMNS,
        'header_height': 35,
        'row_height': 30,
    }),
    SectionSpec('totals', sections.render_totals_box, {
        'width': 280,
        'single_height': 40,
        'dual_height': 60,
        'label': 'Total Paid:',
        'border_color': 'paid_green',
        'amount_color': 'paid_green',
        'amount_offset': 130,
        'gap_after': 20,
    }),
    SectionSpec('payment', sections.render_payment_instructions),
    SectionSpec('closing', sections.render_closing),
))

RENDEZVOUS_INVOICE = DocumentSpec('rendezvous-invoice', (
    SectionSpec('header', sections.render_header),
    SectionSpec('bill_to', sections.render_bill_to, {'line_height': 16, 'gap_after': 30}),
    SectionSpec('line_items', sections.render_line_items, {
        'header_height': 30,
        'row_height': 28,
        'gap_after': 0,
        'spaced': False,
    }),
    SectionSpec('subtotals', sections.render_subtotals),
    SectionSpec('totals', sections.render_totals_box, {
        'width': 200,
        'single_height': 30,
        'dual_height': 50,
        'label': 'Total Amount Due:',
        'amount_offset': 130,
        'spaced': False,
        'gap_after': 30,
    }),
    SectionSpec('attendees', sections.render_attendees),
    SectionSpec('payment', sections.render_payment_instructions, {'line_height': 16}),
))

GENERIC_DOCUMENT = DocumentSpec('generic-document', (
    SectionSpec('heading', sections.render_document_heading),
    SectionSpec('body', sections.render_body),
), checks_totals=False)


def check_invoice_totals(invoice):
    """
    Verify the arithmetic a reader of the invoice would check:
    subtotal is the sum of the line totals and, with numeric VAT,
    total is subtotal plus VAT.
    """
    if not invoice.line_items:
        raise RenderError("Invoice has no line items", section='totals')
    if any(item.total is None for item in invoice.line_items):
        raise RenderError("Line item missing total", section='line_items')

    try:
        line_sum = invoice.line_items[0].total
        for item in invoice.line_items[1:]:
            line_sum = line_sum + item.total
        if line_sum.currency != invoice.subtotal.currency:
            raise ValueError(f"Line items in {line_sum.currency}, subtotal in {invoice.subtotal.currency}")
        expected_total = invoice.subtotal
        if isinstance(invoice.vat, VatInfo):
            expected_total = invoice.subtotal + invoice.vat.amount
    except ValueError as e:
        raise RenderError(f"Mixed currencies on invoice {invoice.invoice_number}: {str(e)}", section='totals')

    if line_sum.quantized() != invoice.subtotal.quantized():
        raise RenderError(
            f"Subtotal {invoice.subtotal.amount} does not match line items {line_sum.amount}",
            section='totals'
        )
    if isinstance(invoice.vat, VatInfo) and expected_total.quantized() != invoice.total.quantized():
        raise RenderError(
            f"Total {invoice.total.amount} does not match subtotal plus VAT {expected_total.amount}",
            section='totals'
        )
    if not isinstance(invoice.vat, VatInfo) and not invoice.vat_is_pending:
        raise RenderError(f"Unsupported VAT value: {invoice.vat!r}", section='totals')


class InvoicePDFGenerator:
    """
    Letterhead PDF generator
    Draws invoices and generic documents onto the letterhead template.
    """

    def __init__(self, template=None, template_path=None):
        # A preloaded template is reused for every render; otherwise the file
        # is read once per render call
        self.template = template
        self.template_path = template_path

    def render(self, spec, record, invoice_number=None):
        """
        Run every section of the document spec in order and serialize the result

        Returns:
            RenderedDocument

        Raises:
            TemplateLoadError: letterhead missing or corrupt
            RenderError: record is malformed; no partial output is returned
        """
        if spec.checks_totals:
            check_invoice_totals(record)

        template = self.template or load_template(self.template_path)
        doc = DocumentCanvas(template, margins=spec.margins)

        logger.info(f"Rendering {spec.name} {invoice_number or ''}".rstrip())
        cursor = doc.start()
        for section in spec.sections:
            cursor = section.renderer(doc, cursor, record, **section.options)
            if cursor.page != doc.page_index:
                raise RenderError(f"Section {section.name} returned a stale cursor", section=section.name)

        pdf_data, page_count = doc.finish()
        logger.info(f"Generated {spec.name} PDF: {len(pdf_data)} bytes, {page_count} page(s)")

        return RenderedDocument(
            pdf_bytes=pdf_data,
            invoice_number=invoice_number,
            filename=record.filename,
            page_count=page_count,
            operations=tuple(doc.operations),
        )

    def generate_invoice_pdf(self, invoice):
        """Standard membership/sponsorship invoice with bank transfer instructions"""
        return self.render(STANDARD_INVOICE, invoice, invoice.invoice_number)

    def generate_test_invoice_pdf(self, invoice):
        """Preview of the standard invoice; the record carries the preview title"""
        if not isinstance(invoice, InvoiceDocument) or len(invoice.bill_to.lines()) < 2:
            raise RenderError("Preview invoices need a full billing address", section='bill_to')
        return self.render(STANDARD_INVOICE, invoice, invoice.invoice_number)

    def generate_paid_invoice_pdf(self, invoice):
        """Payment confirmation with PAID stamp"""
        if not invoice.paid:
            raise RenderError("Paid invoice record is not marked as paid", section='header')
        return self.render(PAID_INVOICE, invoice, invoice.invoice_number)

    def generate_rendezvous_invoice_pdf(self, invoice):
        """Event registration invoice with VAT rows and attendee list"""
        if not isinstance(invoice.vat, VatInfo):
            raise RenderError("Rendezvous invoices need a numeric VAT amount", section='subtotals')
        return self.render(RENDEZVOUS_INVOICE, invoice, invoice.invoice_number)

    def generate_document_pdf(self, data):
        """Multi-page free-text document on the letterhead"""
        return self.render(GENERIC_DOCUMENT, data)
