"""Value coercion helpers shared by the document parsers.

All helpers return ``None`` for absent or empty input so the parsers can leave
missing fields unset in the ParsedDocument.
"""

import math
import re
from typing import Any, Optional
from xml.etree.ElementTree import Element

_NUMERIC_NOISE = re.compile(r"[^\d.\-]")
_TRUE_VALUES = {"true", "yes", "y", "1", "on"}
_FALSE_VALUES = {"false", "no", "n", "0", "off"}


def text_value(value: Any) -> Optional[str]:
    """Return stripped text for a string or XML element, or None when empty."""
    if value is None:
        return None
    if isinstance(value, Element):
        value = "".join(value.itertext())
    text = str(value).strip()
    return text or None


def numeric_value(value: Any) -> Optional[float]:
    """
    Coerce currency-style text into a float.

    Currency symbols, thousands separators and other non-numeric characters are
    dropped before conversion, so ``"$1,234.50"`` becomes ``1234.5``. Text that
    still fails to convert, or overflows to infinity, yields None.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
    else:
        text = text_value(value)
        if text is None:
            return None
        cleaned = _NUMERIC_NOISE.sub("", text)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def int_value(value: Any) -> Optional[int]:
    number = numeric_value(value)
    if number is None:
        return None
    try:
        return int(number)
    except (OverflowError, ValueError):
        return None


def bool_value(value: Any) -> Optional[bool]:
    text = text_value(value)
    if text is None:
        return None
    lowered = text.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


def format_phone(value: Any) -> Optional[str]:
    """Format 10-digit North American numbers as ``(XXX) XXX-XXXX``.

    A leading country code ``1`` on an 11-digit number is dropped. Anything
    else is returned as the original stripped text.
    """
    phone = text_value(value)
    if phone is None:
        return None
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return phone


def first_present(*values: Any) -> Any:
    """Return the first value that is neither None nor an empty string."""
    for value in values:
        if value is not None and value != "":
            return value
    return None
