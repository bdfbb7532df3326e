import base64
import json

from exceptions import ValidationError


def get_query_param(event, key, default=None):
    return (event.get('queryStringParameters') or {}).get(key, default)


def get_body(event, default=None):
    """Parsed JSON body; API Gateway may hand it over base64 encoded"""
    raw = event.get('body')
    if not raw:
        return default
    if event.get('isBase64Encoded'):
        try:
            raw = base64.b64decode(raw).decode('utf-8')
        except (ValueError, UnicodeDecodeError):
            return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return default


def get_json_body(event):
    """Request body as a dict; anything else is a validation failure"""
    body = get_body(event)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def wants_storage(event):
    """True when the caller asked for the PDF to be stored (body "store": true or ?store=true)"""
    body = get_body(event)
    if isinstance(body, dict) and body.get('store') is True:
        return True
    return str(get_query_param(event, 'store', '')).lower() == 'true'
