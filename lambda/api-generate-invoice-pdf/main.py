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
    Generate a membership or sponsorship invoice PDF

    Expected event body:
    {
        "organizationName": "Acme Underwriting B.V.",
        "fullName": "Jane Doe",                       # optional
        "invoiceNumber": "FASE-2026-0001",            # optional, generated if missing
        "totalAmount": 1500,                          # legacy form
        "originalAmount": 1500,                       # optional
        "discountAmount": 300,                        # optional
        "discountReason": "...",                      # optional
        "hasOtherAssociations": false,                # optional, 20% discount
        "customLineItem": {"enabled": true, "description": "...", "amount": 250},
        "lineItems": [{"description": "...", "quantity": 1, "unitPrice": 1500}],  # replaces the above
        "address": {"line1": "...", "line2": "...", "city": "...", "postcode": "...", "country": "..."},
        "forceCurrency": "USD",                       # optional display currency
        "userLocale": "en",                           # optional number/date locale
        "store": true                                 # optional, upload to S3
    }
    """
    body = req.get_json_body(event)
    valid.validate_invoice_request(body)

    invoice, conversion = invoice_utils.build_standard_invoice(body)
    logger.info(f"Generating invoice {invoice.invoice_number} for {invoice.bill_to.name}")

    rendered = InvoicePDFGenerator().generate_invoice_pdf(invoice)

    pdf_url = None
    if req.wants_storage(event):
        pdf_url = s3_utils.upload_invoice_pdf(rendered, invoice.bill_to.name)

    return resp.pdf_response(rendered, invoice_utils.invoice_response_fields(invoice, conversion), pdf_url)
