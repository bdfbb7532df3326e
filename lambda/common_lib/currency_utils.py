"""
Currency utilities for invoicing

Formats amounts for display, maps payer countries to billing currencies,
converts EUR totals into a display currency and supplies the bank-transfer
details printed in the payment instructions block.
"""

import http.client
import json
import logging
import os
import urllib.request
from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

from babel.numbers import format_decimal

from exceptions import ConversionError
from invoice_models import BASE_CURRENCY, TWO_PLACES, to_decimal

logger = logging.getLogger(__name__)

EXCHANGE_RATE_API_URL = os.environ.get(
    'EXCHANGE_RATE_API_URL', 'https://api.exchangerate-api.com/v4/latest/EUR'
)
EXCHANGE_RATE_TIMEOUT_SECONDS = float(os.environ.get('EXCHANGE_RATE_TIMEOUT_SECONDS', '5'))

CURRENCY_SYMBOLS = {
    'EUR': '€',
    'USD': '$',
    'GBP': '£',
}

# Country to currency mapping for USD, GBP, EUR
COUNTRY_CURRENCY_MAP = {
    # USD countries
    'US': 'USD', 'USA': 'USD', 'United States': 'USD',
    'CA': 'USD', 'Canada': 'USD',
    'MX': 'USD', 'Mexico': 'USD',

    # GBP countries
    'GB': 'GBP', 'UK': 'GBP', 'United Kingdom': 'GBP',
    'England': 'GBP', 'Scotland': 'GBP', 'Wales': 'GBP',
    'Northern Ireland': 'GBP', 'Britain': 'GBP',

    # EUR countries (Eurozone)
    'AT': 'EUR', 'Austria': 'EUR',
    'BE': 'EUR', 'Belgium': 'EUR',
    'CY': 'EUR', 'Cyprus': 'EUR',
    'EE': 'EUR', 'Estonia': 'EUR',
    'FI': 'EUR', 'Finland': 'EUR',
    'FR': 'EUR', 'France': 'EUR',
    'DE': 'EUR', 'Germany': 'EUR',
    'GR': 'EUR', 'Greece': 'EUR',
    'IE': 'EUR', 'Ireland': 'EUR',
    'IT': 'EUR', 'Italy': 'EUR',
    'LV': 'EUR', 'Latvia': 'EUR',
    'LT': 'EUR', 'Lithuania': 'EUR',
    'LU': 'EUR', 'Luxembourg': 'EUR',
    'MT': 'EUR', 'Malta': 'EUR',
    'NL': 'EUR', 'Netherlands': 'EUR',
    'PT': 'EUR', 'Portugal': 'EUR',
    'SK': 'EUR', 'Slovakia': 'EUR',
    'SI': 'EUR', 'Slovenia': 'EUR',
    'ES': 'EUR', 'Spain': 'EUR',
    'HR': 'EUR', 'Croatia': 'EUR',
}

_BANK_DETAILS_BASE = {
    'accountHolder': 'FASE B.V.',
    'reference': '560509',
}

_BANK_DETAILS = {
    'USD': {
        'routingNumber': '101019628',
        'accountNumber': '218936745391',
        'accountType': 'Checking',
        'bankName': 'Lead Bank',
        'address': ['1801 Main St.', 'Kansas City MO 64108', 'United States'],
    },
    'GBP': {
        'sortCode': '60-84-64',
        'accountNumber': '34068846',
        'iban': 'GB67 TRWI 6084 6434 0688 46',
        'bankName': 'Wise Payments Limited',
        'address': ['Worship Square, 65 Clifton Street', 'London', 'EC2A 4JE', 'United Kingdom'],
    },
    'EUR': {
        'bic': 'TRWIBEB1XXX',
        'iban': 'BE90 9057 9070 7732',
        'bankName': 'Wise',
        'address': ['Rue du Trône 100, 3rd floor', 'Brussels 1050', 'Belgium'],
    },
}

# Event registrations are paid into the foundation's own account
ASSOCIATION_BANK_LINES = (
    'Account holder: FASE Stichting',
    'BIC: BUNQNL2A',
    'IBAN: NL31 BUNQ 2122 4965 42',
    '',
    'Bank name and address:',
    'Bunq B.V.',
    'Naritaweg 131-133',
    '1043 BS Amsterdam',
    'Netherlands',
)


@dataclass(frozen=True)
class CurrencyConversion:
    original_amount: Decimal
    currency: str
    rate: Decimal
    converted_amount: Decimal
    rounded_amount: Decimal

    @property
    def is_converted(self):
        return self.currency != BASE_CURRENCY


def get_currency_symbol(currency_code):
    """Get currency symbol for display, or the raw code when unmapped"""
    code = (currency_code or BASE_CURRENCY).upper()
    return CURRENCY_SYMBOLS.get(code, code)


def format_amount(amount, locale='en'):
    """Two decimals with the locale's grouping and decimal separators"""
    value = to_decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return format_decimal(value, format='#,##0.00', locale=locale or 'en')


def format_currency(amount, currency_code=BASE_CURRENCY, locale='en', spaced=False):
    """
    Render an amount with its currency symbol

    format_currency(1234.5, 'EUR')              -> '€1,234.50'
    format_currency(1500, 'EUR', spaced=True)   -> '€ 1,500.00'
    format_currency(-125, 'EUR')                -> '-€125.00'
    format_currency(10, 'XYZ')                  -> 'XYZ 10.00'
    """
    code = (currency_code or BASE_CURRENCY).upper()
    value = to_decimal(amount)
    sign = '-' if value < 0 else ''
    number = format_amount(abs(value), locale)
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {number}"
    separator = ' ' if spaced else ''
    return f"{sign}{symbol}{separator}{number}"


def detect_currency(country):
    """
    Detect billing currency from a country name or code.
    Exact match first, then case-insensitive; anything unmapped bills in EUR.
    """
    if not country:
        return BASE_CURRENCY

    country = country.strip()
    currency = COUNTRY_CURRENCY_MAP.get(country)
    if currency:
        return currency

    upper_country = country.upper()
    for key, value in COUNTRY_CURRENCY_MAP.items():
        if key.upper() == upper_country:
            return value

    return BASE_CURRENCY


def round_converted_amount(amount, rate):
    """Round the converted amount down to the nearest 10 units, never below 1"""
    converted = to_decimal(amount) * to_decimal(rate)
    rounded = (converted / 10).to_integral_value(rounding=ROUND_FLOOR) * 10
    return max(Decimal('1'), rounded)


def fetch_exchange_rates(url=None, timeout=None):
    """
    Fetch live EUR-based exchange rates

    Raises:
        ConversionError: on network failure, timeout or a malformed payload
    """
    url = url or EXCHANGE_RATE_API_URL
    timeout = EXCHANGE_RATE_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            payload = json.loads(response.read().decode('utf-8'))
    except (OSError, http.client.HTTPException) as e:
        logger.error(f"Exchange rate request failed: {str(e)}")
        raise ConversionError(f"Exchange rate service unavailable: {str(e)}")
    except ValueError as e:
        raise ConversionError(f"Exchange rate service returned invalid JSON: {str(e)}")

    rates = payload.get('rates') if isinstance(payload, dict) else None
    if not isinstance(rates, dict):
        raise ConversionError("Exchange rate service returned no rates")
    return rates


def convert_currency(eur_amount, target_currency, rate_provider=None):
    """
    Convert a EUR amount into the target display currency

    Args:
        eur_amount: Amount in EUR
        target_currency (str): ISO code of the display currency
        rate_provider (callable, optional): returns a {code: rate} mapping;
            defaults to fetch_exchange_rates

    Returns:
        CurrencyConversion

    Raises:
        ConversionError: if the rate lookup fails or has no rate for the code
    """
    amount = to_decimal(eur_amount)
    code = (target_currency or BASE_CURRENCY).upper()

    if code == BASE_CURRENCY:
        return CurrencyConversion(amount, BASE_CURRENCY, Decimal('1'), amount, amount)

    provider = rate_provider or fetch_exchange_rates
    rates = provider()
    raw_rate = rates.get(code) if rates else None
    if raw_rate is None:
        raise ConversionError(f"No exchange rate available for {code}", currency=code)

    try:
        rate = to_decimal(raw_rate)
    except ValueError:
        raise ConversionError(f"Invalid exchange rate for {code}: {raw_rate!r}", currency=code)
    if rate <= 0:
        raise ConversionError(f"Invalid exchange rate for {code}: {raw_rate!r}", currency=code)

    converted = amount * rate
    rounded = round_converted_amount(amount, rate)
    logger.info(f"Converted EUR {amount} to {code} at {rate}: {rounded}")
    return CurrencyConversion(amount, code, rate, converted, rounded)


def get_bank_details(currency_code):
    """Get the bank account details for the given payment currency (EUR by default)"""
    code = (currency_code or BASE_CURRENCY).upper()
    details = dict(_BANK_DETAILS_BASE)
    details.update(_BANK_DETAILS.get(code, _BANK_DETAILS[BASE_CURRENCY]))
    return details


def build_payment_instruction_lines(currency_code, reference=None):
    """Bank-transfer lines for the payment instructions block, one string per line"""
    code = (currency_code or BASE_CURRENCY).upper()
    details = get_bank_details(code)

    lines = [
        f"Reference: {reference or details['reference']}",
        f"Account holder: {details['accountHolder']}",
    ]

    if code == 'USD':
        lines.extend([
            f"ACH and Wire routing number: {details['routingNumber']}",
            f"Account number: {details['accountNumber']}",
            f"Account type: {details['accountType']}",
        ])
    elif code == 'GBP':
        lines.extend([
            f"Sort code: {details['sortCode']}",
            f"Account number: {details['accountNumber']}",
            f"IBAN: {details['iban']}",
        ])
    else:
        lines.extend([
            f"BIC: {details['bic']}",
            f"IBAN: {details['iban']}",
        ])

    lines.extend(['', 'Bank name and address:', details['bankName'], *details['address']])
    return lines
