"""
Numeric normalization for PRTG "lastvalue" strings.

PRTG formats values for display: units are appended ("12.5 kWh", "99 %"),
and depending on the server locale the decimal separator may be a comma
("12,5") or commas may group thousands ("1,234.5").
"""
import math
from typing import Any, Optional

_NUMBER_CHARS = frozenset("0123456789.,-+")


def parse_number(text: Optional[str]) -> Optional[float]:
    """
    Parse the leading number out of a loosely formatted string.

    Only the prefix made of digits, ``.``, ``,``, ``-`` and ``+`` is
    considered. A comma without a dot is a decimal comma; commas next to a
    dot are thousands separators.

    >>> parse_number("12.5 kWh")
    12.5
    >>> parse_number("1,234.5")
    1234.5
    >>> parse_number("12,5")
    12.5
    >>> parse_number("abc") is None
    True

    Returns:
        The parsed float, or None when no number can be read
    """
    if text is None:
        return None

    s = text.strip()
    end = 0
    while end < len(s) and s[end] in _NUMBER_CHARS:
        end += 1
    if end == 0:
        return None

    num = s[:end]
    if "," in num and "." not in num:
        num = num.replace(",", ".")
    elif "," in num:
        num = num.replace(",", "")

    try:
        return float(num)
    except ValueError:
        return None


def coerce_number(raw: Any) -> Optional[float]:
    """
    Convert a typed JSON value (``lastvalue_raw``) to float.

    Accepts ints, floats and plain decimal strings. Booleans, containers,
    non-finite values and Python-only spellings ("inf", "1_000") yield None.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        try:
            value = float(raw)
        except OverflowError:
            return None
    elif isinstance(raw, str):
        if "_" in raw:
            return None
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None
