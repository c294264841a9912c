"""Conversions between PayPal's wire formats and Python values."""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any


def parse_paypal_datetime(value: str | None) -> datetime | None:
    """
    Convert a PayPal RFC 3339 timestamp (e.g. "2023-11-16T20:10:17Z") to an
    aware datetime in UTC.

    Returns:
        None for a missing or unparseable value
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_decimal(value: Any) -> Decimal | None:
    """Convert a PayPal amount string to Decimal; None when absent or invalid."""
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def amount_value(amount: Any) -> Any:
    """The ``value`` of a PayPal ``{currency_code, value}`` money object."""
    return amount.get("value") if isinstance(amount, dict) else None


def amount_currency(amount: Any) -> str:
    """The ``currency_code`` of a PayPal money object, '' when absent."""
    if isinstance(amount, dict):
        return str(amount.get("currency_code", ""))
    return ""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Currencies PayPal accepts only in whole units.
ZERO_DECIMAL_CURRENCIES = frozenset({"HUF", "JPY", "TWD"})


def format_amount(value: Any, currency_code: str) -> str:
    """Format an amount the way PayPal expects it for ``currency_code``."""
    amount = to_decimal(value)
    if amount is None or not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    exponent = Decimal("1") if currency_code in ZERO_DECIMAL_CURRENCIES else Decimal("0.01")
    return str(amount.quantize(exponent))
