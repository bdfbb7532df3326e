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
    Generate the invoice for an MGA Rendezvous registration

    Expected event body:
    {
        "companyName": "Acme Underwriting B.V.",
        "billingEmail": "billing@acme.example",
        "address": "Main Street 1, Amsterdam",   # optional, single line
        "country": "Netherlands",
        "organizationType": "mga",               # mga | carrier_broker | service_provider
        "attendees": [{"firstName": "...", "lastName": "...", "email": "...", "jobTitle": "..."}],
        "pricePerTicket": 500,                   # after discount
        "numberOfTickets": 2,
        "discount": 20,                          # optional, percent
        "discountReason": "...",                 # optional
        "vatRate": 21,                           # optional
        "vatAmount": 210,                        # optional, computed from vatRate
        "totalPrice": 1210,                      # optional, checked against subtotal + VAT
        "invoiceNumber": "FASE-12345",           # optional
        "store": true                            # optional
    }
    """
    body = req.get_json_body(event)
    valid.validate_rendezvous_invoice_request(body)

    invoice = invoice_utils.build_rendezvous_invoice(body)
    logger.info(f"Generating rendezvous invoice {invoice.invoice_number} "
                f"for {invoice.bill_to.name} ({len(invoice.attendees)} attendees)")

    rendered = InvoicePDFGenerator().generate_rendezvous_invoice_pdf(invoice)

    pdf_url = None
    if req.wants_storage(event):
        pdf_url = s3_utils.upload_invoice_pdf(rendered, invoice.bill_to.name)

    return resp.pdf_response(rendered, invoice_utils.invoice_response_fields(invoice), pdf_url)
