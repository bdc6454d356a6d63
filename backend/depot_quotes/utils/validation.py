"""Symbol and ISIN validation utilities."""
import re

MAX_SYMBOL_LENGTH = 12

ISIN_PATTERN = re.compile(r"^[A-Z]{2}[A-Z0-9]{10}$")


def is_valid_symbol(symbol: str) -> bool:
    """
    Validate ticker symbol format.

    Allows:
    - Alphanumeric characters (A-Z, 0-9)
    - Periods (.) for exchange suffixes and class shares (e.g., MBG.DE, BRK.B)
    - Hyphens (-) for some tickers
    - Caret (^) for index symbols (e.g., ^GDAXI)

    Args:
        symbol: The symbol to validate (should already be uppercase/stripped)

    Returns:
        True if symbol format is valid, False otherwise
    """
    if not symbol or len(symbol) > MAX_SYMBOL_LENGTH:
        return False
    cleaned = symbol.replace("^", "").replace(".", "").replace("-", "")
    return cleaned.isalnum() and cleaned.isascii()


def normalize_symbol(symbol: str) -> str:
    """
    Normalize a symbol to uppercase and stripped.

    Args:
        symbol: The symbol to normalize

    Returns:
        Uppercase, stripped symbol
    """
    return symbol.upper().strip()


def is_isin(value: str) -> bool:
    """Check whether a value has the shape of an ISIN (e.g. IE00B4L5Y983)."""
    return bool(ISIN_PATTERN.match(value.upper().strip()))


def looks_like_ticker(value: str, allow_lowercase: bool = False) -> bool:
    """Decide whether raw input can go straight to the quote provider.

    Ticker-shaped input is a single token that passes ``is_valid_symbol`` once
    uppercased. ISINs are excluded because providers do not accept them as
    symbols; they go through resolution like free-text names.

    Args:
        value: Raw user input (symbol, ISIN or company name)
        allow_lowercase: Accept an all-lowercase token (e.g. 'aapl') when the
            input is known to be meant as a symbol

    Returns:
        True if the input can be used as a provider symbol without resolution
    """
    stripped = value.strip()
    if not stripped or any(ch.isspace() for ch in stripped):
        return False
    if is_isin(stripped):
        return False
    # Names typed in lower/mixed case ("Mercedes") are not tickers
    if stripped != stripped.upper() and not (allow_lowercase and stripped == stripped.lower()):
        return False
    return is_valid_symbol(normalize_symbol(stripped))
