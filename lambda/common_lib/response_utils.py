"""
API Gateway proxy responses for the PDF endpoints
"""

import json
import logging
from decimal import Decimal

logger = logging.getLogger(__name__)

response_headers = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token,shared-api-key",
    "Access-Control-Allow-Methods": "OPTIONS,POST"
}


def convert_decimal(obj):
    """Money amounts leave the service as JSON numbers"""
    if isinstance(obj, dict):
        return {k: convert_decimal(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [convert_decimal(i) for i in obj]
    if isinstance(obj, Decimal):
        return float(obj)
    return obj


def _build(status_code, body):
    return {
        "statusCode": status_code,
        "headers": response_headers,
        "body": json.dumps(convert_decimal(body), default=str)
    }


def error_response(message, status_code=400):
    logger.info(f"Error response: {message} (status: {status_code})")
    return _build(status_code, {"success": False, "message": message})


def success_response(data, status_code=200):
    # Bodies carry base64 PDFs; log the keys only
    logger.info(f"Success response with fields: {sorted(data.keys())}")
    return _build(status_code, {"success": True, **data})


def pdf_response(rendered, fields=None, pdf_url=None):
    """
    Success body for a rendered document

    Args:
        rendered (RenderedDocument): generator output
        fields (dict, optional): endpoint specific fields (totals, title, ...)
        pdf_url (str, optional): public URL when the PDF was stored
    """
    data = dict(fields or {})
    data.update({
        "pdfBase64": rendered.pdf_base64,
        "filename": rendered.filename,
        "pageCount": rendered.page_count,
    })
    if pdf_url:
        data["pdfUrl"] = pdf_url
    logger.info(f"Returning {rendered.filename} ({rendered.page_count} page(s), {len(rendered.pdf_bytes)} bytes)")
    return success_response(data)
