"""Tenant key normalization.

Tenant foreign keys arrive as strings from one store and numbers (or
zero-padded / differently-cased strings) from the other. normalize() maps
every representation of the same tenant onto one canonical string so that
comparisons never depend on the raw type.

    normalize(7) == normalize("7") == normalize(" 007 ") == "7"
    normalize("A1B2-...") == normalize("a1b2-...")
    normalize(None) is None
"""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation

from reconciliation.models import RawTenantKey

# Plain decimal literal with optional fraction/exponent. Hex, underscores and
# thousands separators are not numeric here.
_NUMERIC_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")

_MAX_PLAIN_DIGITS = 1000


def normalize(raw_key: RawTenantKey | object) -> str | None:
    """Return the canonical key for a raw tenant key, or None when unassigned.

    Never raises. Input that is neither a string nor a number is returned as
    its trimmed string form.
    """
    if raw_key is None:
        return None

    if isinstance(raw_key, bool):
        return _fallback(raw_key)

    if isinstance(raw_key, (int, float, Decimal)):
        return _normalize_number(raw_key)

    if isinstance(raw_key, str):
        text = raw_key.strip()
        if not text:
            return None
        if _NUMERIC_RE.match(text):
            return _normalize_number(Decimal(text))
        return text.casefold()

    return _fallback(raw_key)


def is_well_formed_key(raw_key: object) -> bool:
    """True for None, strings and finite numbers. Booleans, containers and NaN are malformed."""
    if raw_key is None or isinstance(raw_key, str):
        return True
    if isinstance(raw_key, bool):
        return False
    if isinstance(raw_key, int):
        return True
    if isinstance(raw_key, float):
        return math.isfinite(raw_key)
    if isinstance(raw_key, Decimal):
        return raw_key.is_finite()
    return False


def key_type(raw_key: object) -> str:
    """Coarse type label used to compare raw keys across stores."""
    if raw_key is None:
        return "null"
    if isinstance(raw_key, str):
        return "string"
    if isinstance(raw_key, bool):
        return "boolean"
    if isinstance(raw_key, (int, float, Decimal)):
        return "number"
    return type(raw_key).__name__


def _normalize_number(value: int | float | Decimal) -> str:
    try:
        if isinstance(value, float):
            # repr() is the shortest round-tripping form, so 0.1 stays 0.1
            number = Decimal(repr(value))
        elif isinstance(value, int):
            number = Decimal(value)
        else:
            number = value
    except (InvalidOperation, ValueError):
        return _fallback(value) or ""

    if not number.is_finite():
        return str(value).strip().casefold()

    # Past this many digits a plain rendering is too costly (or hits the
    # int/str digit limit); such keys use coefficient-exponent form instead.
    if abs(number.adjusted()) > _MAX_PLAIN_DIGITS:
        return _exponent_form(number)

    try:
        if number == number.to_integral_value():
            # int() drops leading zeros and the sign of -0
            return str(int(number))
        text = format(number, "f")
    except (InvalidOperation, ValueError):
        return _exponent_form(number)

    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _exponent_form(number: Decimal) -> str:
    """``<coefficient>e<exponent>`` with trailing zeros moved into the exponent.

    ``1e5000``, ``10E4999`` and ``Decimal("1.0e5000")`` all become ``1e5000``.
    """
    sign, digits, exponent = number.as_tuple()
    coefficient = "".join(str(d) for d in digits)
    stripped = coefficient.rstrip("0")
    if not stripped:
        return "0"
    exponent += len(coefficient) - len(stripped)
    return f"{'-' if sign else ''}{stripped}e{exponent}"


def _fallback(raw_key: object) -> str | None:
    try:
        text = str(raw_key).strip()
    except Exception:
        return None
    return text or None
