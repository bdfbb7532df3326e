import logging

import business_logic_utils as biz
import invoice_utils
import request_utils as req
import response_utils as resp
import validation_utils as valid
from pdf_invoice_generator import InvoicePDFGenerator

# Set up logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)


@biz.handle_business_logic_error
@valid.handle_validation_error
def lambda_handler(event, context):
    """
    Generate a preview invoice so an admin can check it before it is sent

    Same payload as api-generate-invoice-pdf, but "email" and a complete
    "address" (line1, city, postcode, country) are mandatory. Preview
    invoices are never stored.
    """
    body = req.get_json_body(event)
    valid.validate_test_invoice_request(body)

    invoice, conversion = invoice_utils.build_standard_invoice(body, preview=True)
    logger.info(f"Generating preview invoice {invoice.invoice_number} for {body['email']}")

    rendered = InvoicePDFGenerator().generate_test_invoice_pdf(invoice)

    fields = invoice_utils.invoice_response_fields(invoice, conversion)
    fields["preview"] = True
    return resp.pdf_response(rendered, fields)
