"""
Numeric Literal Helpers
=======================

Rendering and recognition of numbers shared by the scanner (canonical
number-table text) and the interpreter (literal instructions, readln
input, writeln output).

Float Rendering
---------------
| Value     | Text       |
|-----------|------------|
| 3.5       | 3.5        |
| 150.0     | 150        |
| 1e20      | 1E+20      |
| 1.5e-05   | 1.5E-05    |
| inf       | Infinity   |
"""

import math
import re
from typing import Optional, Union

Number = Union[int, float]

# Signed 64-bit range of machine-width integers
INT_MIN = -(2 ** 63)
INT_MAX = 2 ** 63 - 1

_INTEGER_LITERAL = re.compile(r"^[+-]?\d+$")
_FLOAT_LITERAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def format_float(value: float) -> str:
    """
    Render a float in shortest round-trip form.

    Integral values lose their fraction, exponents are written with an
    upper-case 'E', an explicit sign and at least two digits.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"

    text = repr(value)
    if "e" in text:
        mantissa, exponent = text.split("e")
        sign = "-" if exponent.startswith("-") else "+"
        digits = exponent.lstrip("+-").zfill(2)
        return f"{mantissa}E{sign}{digits}"

    if text.endswith(".0"):
        text = text[:-2]
    return text


def canonical_float_literal(literal: str) -> Optional[str]:
    """
    Canonical number-table text of a fractional/exponent literal.

    The result always keeps a visible fraction or exponent so that the
    number stays typed as float ('987.' -> '987.0', '1E5' -> '100000.0').
    Returns None when the literal does not denote a finite float.
    """
    try:
        value = float(literal)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None

    text = format_float(value)
    if "." not in text and "E" not in text:
        text += ".0"
    return text


def is_float_text(text: str) -> bool:
    """Return True if number-table text denotes a float ('.' or exponent)."""
    return "." in text or "e" in text.lower()


def parse_number(text: str) -> Optional[Number]:
    """
    Parse literal instruction text.

    Returns an int when the value has no fractional remainder, a float
    otherwise, or None if the text is not a numeric literal.
    """
    if _INTEGER_LITERAL.match(text):
        return int(text)
    if not _FLOAT_LITERAL.match(text):
        return None
    value = float(text)
    if value.is_integer() and INT_MIN <= value <= INT_MAX:
        return int(value)
    return value


def narrow(value: float) -> Number:
    """Re-narrow an arithmetic result to int when it is integral and in range."""
    if math.isfinite(value) and value.is_integer() and INT_MIN <= value <= INT_MAX:
        return int(value)
    return value


def classify_input(line: str) -> Union[int, float, bool]:
    """
    Classify one line of readln input.

    Tries integer, then float, then boolean; unparseable input reads as
    integer zero.
    """
    text = line.strip()

    if _INTEGER_LITERAL.match(text):
        value = int(text)
        if INT_MIN <= value <= INT_MAX:
            return value

    if _FLOAT_LITERAL.match(text):
        return float(text)

    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return 0
