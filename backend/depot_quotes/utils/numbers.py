"""Parsing of provider-formatted numeric strings.

Providers and exports mix European ("1.234,56") and US ("1,234.56") notation,
sometimes with a trailing percent sign.
"""
import re

_STRIP_CHARS = re.compile(r"[\s'\"€$% ]")


def parse_localized_number(value: str | int | float | None, *, strict: bool = True) -> float:
    """Parse a number written in either European or US notation.

    Rules:
    - whitespace, quotes, currency signs and ``%`` are removed first
    - when both ``,`` and ``.`` occur, the one that appears last is the
      decimal separator and the other is a thousands separator
    - a lone ``,`` is a decimal comma unless it groups exactly three digits
      more than once (``1,234,567``)
    - several ``.`` with no ``,`` are thousands separators (``1.234.567``)

    Args:
        value: Raw value from the provider
        strict: Raise ValueError on empty/unparseable input instead of returning 0.0

    Returns:
        Parsed float

    Raises:
        ValueError: If strict and the value cannot be parsed
    """
    if value is None:
        if strict:
            raise ValueError("Cannot parse empty value")
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)

    cleaned = _STRIP_CHARS.sub("", value)
    if not cleaned:
        if strict:
            raise ValueError(f"Cannot parse empty value: {value!r}")
        return 0.0

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        if cleaned.count(",") > 1:
            cleaned = cleaned.replace(",", "")
        else:
            cleaned = cleaned.replace(",", ".")
    elif cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")

    try:
        return float(cleaned)
    except ValueError:
        if strict:
            raise ValueError(f"Cannot parse number: {value!r}") from None
        return 0.0


def parse_localized_int(value: str | int | float | None, *, strict: bool = True) -> int:
    """Parse an integer count (e.g. volume) using the same notation rules."""
    return int(round(parse_localized_number(value, strict=strict)))
