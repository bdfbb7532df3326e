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
    Render free text onto the letterhead, over as many pages as it needs

    Expected event body:
    {
        "title": "Board Resolution",
        "date": "15 January 2026",      # optional, printed under the title
        "body": "## Heading\\n\\nParagraph text...",
        "blocks": [{"type": "heading", "text": "..."}, {"type": "paragraph", "text": "..."}]
                                        # optional, replaces body
    }
    """
    body = req.get_json_body(event)
    valid.validate_document_request(body)

    document = invoice_utils.build_document_data(body)
    logger.info(f"Generating document '{document.title}'")

    rendered = InvoicePDFGenerator().generate_document_pdf(document)

    return resp.pdf_response(rendered, {"title": document.title})
