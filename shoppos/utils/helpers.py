"""
Helper Utilities
Common utility functions used across the application
"""

import random
import secrets
import string
from decimal import Decimal, ROUND_HALF_UP


def generate_order_number():
    """
    Generate order number

    Format: R + 9 random digits

    Returns:
        str: Order number
    """
    return 'R' + ''.join(random.choices(string.digits, k=9))


def generate_shipment_number():
    """
    Generate shipment number

    Format: H + 11 random digits

    Returns:
        str: Shipment number
    """
    return 'H' + ''.join(random.choices(string.digits, k=11))


def generate_random_password(length=16):
    """Random password for accounts created at the counter"""
    return secrets.token_urlsafe(length)[:length]


def to_money(amount):
    """Coerce a number (or None) to a Decimal rounded to cents"""
    return Decimal(str(amount or 0)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def format_currency(amount, currency_symbol='$'):
    """
    Format amount as currency

    Args:
        amount: Numeric amount
        currency_symbol: Currency symbol

    Returns:
        str: Formatted currency string
    """
    return f"{currency_symbol} {to_money(amount):,.2f}"
