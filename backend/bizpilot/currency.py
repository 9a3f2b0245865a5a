# backend/bizpilot/currency.py
"""
Currency display formatting.

Formatting is presentation only: nothing produced here is ever written back
to a stored amount. Each currency carries its own separators, symbol
placement and precision so amounts render the way the business's customers
expect (e.g. "R 1 234,56", "$1,234.56", "1.234,56 €").

parse_currency(format_currency(x, code)) == x rounded to the currency's
decimal places.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any


@dataclass(frozen=True)
class CurrencyConfig:
    code: str
    symbol: str
    name: str
    decimal_places: int
    thousands_separator: str
    decimal_separator: str
    symbol_position: str  # 'before' | 'after'
    symbol_spacing: bool


DEFAULT_CURRENCY = "ZAR"

CURRENCY_CONFIGS: dict[str, CurrencyConfig] = {
    "ZAR": CurrencyConfig("ZAR", "R", "South African Rand", 2, " ", ",", "before", True),
    "USD": CurrencyConfig("USD", "$", "US Dollar", 2, ",", ".", "before", False),
    "EUR": CurrencyConfig("EUR", "€", "Euro", 2, ".", ",", "after", True),
    "GBP": CurrencyConfig("GBP", "£", "British Pound", 2, ",", ".", "before", False),
    "JPY": CurrencyConfig("JPY", "¥", "Japanese Yen", 0, ",", "", "before", False),
    "CNY": CurrencyConfig("CNY", "¥", "Chinese Yuan", 2, ",", ".", "before", False),
    "INR": CurrencyConfig("INR", "₹", "Indian Rupee", 2, ",", ".", "before", True),
    "BRL": CurrencyConfig("BRL", "R$", "Brazilian Real", 2, ".", ",", "before", True),
    "CAD": CurrencyConfig("CAD", "$", "Canadian Dollar", 2, ",", ".", "before", False),
    "AUD": CurrencyConfig("AUD", "$", "Australian Dollar", 2, ",", ".", "before", False),
    "CHF": CurrencyConfig("CHF", "CHF", "Swiss Franc", 2, "'", ".", "before", True),
}


def get_currency_config(code: str | None) -> CurrencyConfig:
    """Config for `code`; unknown or empty codes fall back to DEFAULT_CURRENCY."""
    if code:
        config = CURRENCY_CONFIGS.get(code.upper())
        if config is not None:
            return config
    return CURRENCY_CONFIGS[DEFAULT_CURRENCY]


def _to_decimal(amount: Any) -> Decimal:
    if isinstance(amount, bool) or amount is None:
        return Decimal(0)
    try:
        dec = Decimal(str(amount).strip()) if not isinstance(amount, Decimal) else amount
    except InvalidOperation:
        return Decimal(0)
    return dec if dec.is_finite() else Decimal(0)


def _group_thousands(digits: str, separator: str) -> str:
    if not separator:
        return digits
    groups = []
    while len(digits) > 3:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    groups.insert(0, digits)
    return separator.join(groups)


def format_currency(
    amount: Any,
    currency_code: str | None = None,
    *,
    show_symbol: bool = True,
    show_code: bool = False,
) -> str:
    """
    Render an amount in the given currency.

    Non-numeric input renders as zero rather than raising, so a half-typed
    form value never breaks a preview.
    """
    config = get_currency_config(currency_code)
    value = _to_decimal(amount)

    quantum = Decimal(1).scaleb(-config.decimal_places)
    rounded = value.quantize(quantum, rounding=ROUND_HALF_UP)

    sign = "-" if rounded < 0 else ""
    integer_part, _, fraction_part = format(abs(rounded), "f").partition(".")

    text = _group_thousands(integer_part, config.thousands_separator)
    if config.decimal_places > 0:
        text = f"{text}{config.decimal_separator}{fraction_part}"

    if show_symbol:
        gap = " " if config.symbol_spacing else ""
        if config.symbol_position == "before":
            text = f"{config.symbol}{gap}{text}"
        else:
            text = f"{text}{gap}{config.symbol}"
    text = f"{sign}{text}"

    if show_code:
        text = f"{text} {config.code}"
    return text


_NON_NUMERIC = re.compile(r"[^\d.,\-]")


def parse_currency(text: str | None) -> Decimal:
    """
    Parse a display string back into an amount.

    The decimal separator is whichever of '.' or ',' occurs last; the other is
    treated as a thousands separator. A lone separator followed by exactly
    three digits is read as thousands grouping ("1.234" in EUR, "1,234" in
    USD). Unparseable input returns 0.
    """
    if not text:
        return Decimal(0)

    # Currency codes/symbols may contain dots or digits (e.g. "R$", "CHF")
    cleaned = _NON_NUMERIC.sub("", text.replace("'", "").replace(" ", ""))
    negative = cleaned.startswith("-") or text.strip().startswith("-")
    cleaned = cleaned.replace("-", "")
    if not cleaned:
        return Decimal(0)

    last_comma = cleaned.rfind(",")
    last_dot = cleaned.rfind(".")
    decimal_pos = max(last_comma, last_dot)

    if decimal_pos == -1:
        normalized = cleaned
    else:
        separator = cleaned[decimal_pos]
        tail = cleaned[decimal_pos + 1:]
        only_one_kind = (",." if separator == "," else ".,")[1] not in cleaned
        if only_one_kind and cleaned.count(separator) > 1:
            # "1,234,567" - repeated separator can only be grouping
            normalized = cleaned.replace(separator, "")
        elif only_one_kind and len(tail) == 3:
            normalized = cleaned.replace(separator, "")
        else:
            integer_part = cleaned[:decimal_pos].replace(",", "").replace(".", "")
            normalized = f"{integer_part}.{tail}"

    try:
        value = Decimal(normalized)
    except InvalidOperation:
        return Decimal(0)
    return -value if negative else value


def format_percentage(value: Any, places: int = 1) -> str:
    dec = _to_decimal(value)
    quantum = Decimal(1).scaleb(-places)
    return f"{dec.quantize(quantum, rounding=ROUND_HALF_UP)}%"
