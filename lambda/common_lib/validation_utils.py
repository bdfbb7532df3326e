"""
Validation utilities for Lambda functions
Request payload checks for the PDF endpoints
"""

import functools
import logging
import re
from decimal import Decimal, InvalidOperation

from exceptions import ValidationError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
REQUIRED_ADDRESS_FIELDS = ('line1', 'city', 'postcode', 'country')


class DataValidator:
    """Common data validation patterns"""

    @staticmethod
    def validate_required_fields(data, required_fields):
        """
        Validate that all required fields are present and not empty

        Args:
            data (dict): Data to validate
            required_fields (list): List of required field names

        Raises:
            ValidationError: If any required field is missing or empty
        """
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")

        for field in required_fields:
            value = data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(f"Field '{field}' is required", field)

    @staticmethod
    def validate_email(email, field_name="email"):
        """Validate email format using regex"""
        if not email or not isinstance(email, str):
            raise ValidationError(f"{field_name} must be a valid string", field_name)
        if re.match(EMAIL_PATTERN, email.strip()) is None:
            raise ValidationError(f"{field_name} must be a valid email address", field_name)
        return True

    @staticmethod
    def validate_number(value, field_name="value", positive=False, allow_zero=True):
        """
        Validate a numeric amount without going through float

        Raises:
            ValidationError: If value is not a number or out of range
        """
        if value is None or isinstance(value, bool):
            raise ValidationError(f"{field_name} must be a valid number", field_name)
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field_name} must be a valid number", field_name)
        if not number.is_finite():
            raise ValidationError(f"{field_name} must be a valid number", field_name)
        if positive and number <= 0:
            raise ValidationError(f"{field_name} must be a positive number", field_name)
        if not allow_zero and number == 0:
            raise ValidationError(f"{field_name} cannot be zero", field_name)
        if number < 0:
            raise ValidationError(f"{field_name} cannot be negative", field_name)
        return number

    @staticmethod
    def validate_list_not_empty(value, field_name="value"):
        """Validate that value is a non-empty list"""
        if not isinstance(value, list):
            raise ValidationError(f"{field_name} must be a list", field_name)
        if not value:
            raise ValidationError(f"{field_name} cannot be empty", field_name)
        return True

    @staticmethod
    def validate_address(address, field_name="address"):
        """Full postal address: line1, city, postcode and country are all required"""
        if not isinstance(address, dict):
            raise ValidationError(f"{field_name} is required", field_name)
        for key in REQUIRED_ADDRESS_FIELDS:
            value = address.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{field_name}.{key} is required", f"{field_name}.{key}")
        return True


def validate_invoice_request(data):
    """Standard invoice: organization plus either lineItems or a positive totalAmount"""
    DataValidator.validate_required_fields(data, ['organizationName'])

    if data.get('lineItems') is not None:
        DataValidator.validate_list_not_empty(data['lineItems'], 'lineItems')
        for index, item in enumerate(data['lineItems']):
            if not isinstance(item, dict):
                raise ValidationError(f"lineItems[{index}] must be an object", 'lineItems')
            DataValidator.validate_required_fields(item, ['description'])
            if not item.get('isDiscount'):
                DataValidator.validate_number(item.get('unitPrice'), f"lineItems[{index}].unitPrice")
    elif data.get('invoiceType') == 'sponsorship':
        custom = data.get('customLineItem') or {}
        if not custom.get('enabled'):
            raise ValidationError("Sponsorship invoices need a customLineItem", 'customLineItem')
    else:
        DataValidator.validate_number(data.get('totalAmount'), 'totalAmount', positive=True)

    for key in ('originalAmount', 'discountAmount'):
        if data.get(key) is not None:
            DataValidator.validate_number(data[key], key)

    custom = data.get('customLineItem')
    if custom and custom.get('enabled'):
        DataValidator.validate_required_fields(custom, ['description', 'amount'])
        DataValidator.validate_number(custom['amount'], 'customLineItem.amount')
    return True


def validate_test_invoice_request(data):
    """Preview invoice: recipient email and a complete address are mandatory"""
    DataValidator.validate_required_fields(data, ['email', 'organizationName', 'totalAmount'])
    DataValidator.validate_email(data['email'])
    DataValidator.validate_number(data['totalAmount'], 'totalAmount', positive=True)
    DataValidator.validate_address(data.get('address'))
    return True


def validate_paid_invoice_request(data):
    DataValidator.validate_required_fields(data, ['transactionId', 'source', 'organizationName', 'amount'])
    DataValidator.validate_number(data['amount'], 'amount', positive=True)
    return True


def validate_rendezvous_invoice_request(data):
    DataValidator.validate_required_fields(
        data, ['companyName', 'billingEmail', 'attendees', 'pricePerTicket', 'numberOfTickets']
    )
    DataValidator.validate_email(data['billingEmail'], 'billingEmail')
    DataValidator.validate_number(data['pricePerTicket'], 'pricePerTicket')
    DataValidator.validate_number(data['numberOfTickets'], 'numberOfTickets', positive=True)
    for key in ('discount', 'vatRate', 'vatAmount', 'subtotal', 'totalPrice'):
        if data.get(key) is not None:
            DataValidator.validate_number(data[key], key)

    DataValidator.validate_list_not_empty(data['attendees'], 'attendees')
    for index, attendee in enumerate(data['attendees']):
        if not isinstance(attendee, dict):
            raise ValidationError(f"attendees[{index}] must be an object", 'attendees')
        DataValidator.validate_required_fields(attendee, ['firstName', 'lastName', 'email'])
    return True


def validate_document_request(data):
    """Generic document: a title and either body text or structured blocks"""
    DataValidator.validate_required_fields(data, ['title'])
    if data.get('blocks'):
        DataValidator.validate_list_not_empty(data['blocks'], 'blocks')
        return True
    DataValidator.validate_required_fields(data, ['body'])
    return True


def handle_validation_error(func):
    """
    Decorator to handle ValidationError exceptions and convert to proper responses
    """
    import response_utils as resp

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            logger.info(f"Validation failed in {func.__name__}: {e.message} (field: {e.field})")
            return resp.error_response(e.message, 400)

    return wrapper
