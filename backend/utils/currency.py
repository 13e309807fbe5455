"""Currency helpers: conversion between API dollars and stored cents, and formatting."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from utils.errors import ValidationError


CURRENCY_SYMBOL = "$"

# Split sums may differ from the expense total by at most one cent
SPLIT_TOLERANCE_CENTS = 1

# Largest amount accepted for an expense or a share: $10,000,000.00
MAX_AMOUNT_CENTS = 1_000_000_000


def to_cents(amount) -> int:
    """
    Convert a dollar amount from the API into integer cents.

    Goes through ``str`` so that floats such as 0.1 + 0.2 round the way a
    person reading the number expects, then rounds half-up to the cent.

    Args:
        amount: Dollar amount as int, float, str or Decimal (e.g. 12.345)

    Returns:
        Amount in cents (e.g. 1235)

    Raises:
        ValidationError: for NaN, infinities, non-numeric input, or amounts
            beyond MAX_AMOUNT_CENTS in either direction
    """
    try:
        value = Decimal(str(amount))
        if not value.is_finite():
            raise ValidationError(f"Amount must be a finite number, got {amount}")
        if abs(value) * 100 > MAX_AMOUNT_CENTS:
            raise ValidationError(f"Amount cannot exceed {format_currency(MAX_AMOUNT_CENTS)}")
        return int(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP) * 100)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {amount}")


def to_dollars(amount_cents: int) -> float:
    """Convert stored cents back into the dollar figure the API returns."""
    return amount_cents / 100


def format_currency(amount_cents: int) -> str:
    """
    Format an amount in cents as a currency string with symbol.

    Args:
        amount_cents: Amount in cents (e.g., 1234 for $12.34)

    Returns:
        Formatted string with symbol (e.g., "$12.34", "-$5.00")
    """
    amount = amount_cents / 100

    # Handle negative amounts
    if amount < 0:
        return f"-{CURRENCY_SYMBOL}{abs(amount):.2f}"
    else:
        return f"{CURRENCY_SYMBOL}{amount:.2f}"
