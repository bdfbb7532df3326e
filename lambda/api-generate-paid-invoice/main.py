import logging

import business_logic_utils as biz
import invoice_utils
import request_utils as req
import response_utils as resp
import s3_utils
import validation_utils as valid
from pdf_invoice_generator import InvoicePDFGenerator

# Set up logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)


@biz.handle_business_logic_error
@valid.handle_validation_error
def lambda_handler(event, context):
    """
    Generate a PAID confirmation invoice after a payment has settled

    Expected event body:
    {
        "transactionId": "pi_123",
        "source": "stripe",                 # payment provider, used as method when none given
        "organizationName": "Acme Underwriting B.V.",
        "amount": 1500,
        "currency": "EUR",                  # optional, detected from address.country
        "paidAt": "2026-01-15T10:00:00Z",   # optional, defaults to today
        "paymentMethod": "card",            # optional
        "description": "...",               # optional
        "sequence": 12,                     # optional, FASE-PAID-YEAR-0012
        "contactName": "Jane Doe",          # optional
        "address": {...},                   # optional
        "store": true                       # optional
    }
    """
    body = req.get_json_body(event)
    valid.validate_paid_invoice_request(body)

    invoice = invoice_utils.build_paid_invoice(body)
    logger.info(f"Generating paid invoice {invoice.invoice_number} for transaction {body['transactionId']}")

    rendered = InvoicePDFGenerator().generate_paid_invoice_pdf(invoice)

    fields = invoice_utils.invoice_response_fields(invoice)
    fields["transactionId"] = body["transactionId"]

    pdf_url = None
    if req.wants_storage(event):
        pdf_url = s3_utils.upload_invoice_pdf(rendered, invoice.bill_to.name)

    return resp.pdf_response(rendered, fields, pdf_url)
