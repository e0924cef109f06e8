"""
Context values - the small closed set of types a context map may hold.

Hosts hand the learner loosely typed maps (sensor readings, screen facts,
game counters). Everything downstream reads them through these accessors so
that a missing or mistyped field turns into a default instead of an error.
"""

import math
import re
from typing import Any, Dict, Mapping, Optional, Union

Value = Union[bool, int, float, str]
Context = Dict[str, Value]

INT_TEXT = re.compile(r"[+-]?\d+")
FLOAT_TEXT = re.compile(r"[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?")


def is_number(value: Any) -> bool:
    """True for int/float values, excluding bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_value(value: Any) -> bool:
    """Supported context value; NaN and infinities are not."""
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, (bool, int, str))


def same_kind(a: Any, b: Any) -> bool:
    """Whether two values share a concrete type (int vs float counts as different)."""
    return type(a) is type(b)


def values_equal(a: Any, b: Any) -> bool:
    """Equality that never confuses True with 1."""
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def get_number(context: Optional[Mapping[str, Any]], key: str,
               default: float = 0.0) -> float:
    if not context or key not in context:
        return default
    value = context[key]
    if is_number(value):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default


def get_int(context: Optional[Mapping[str, Any]], key: str,
            default: int = 0) -> int:
    if not context or key not in context:
        return default
    value = context[key]
    if is_number(value):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default


def get_string(context: Optional[Mapping[str, Any]], key: str,
               default: str = "") -> str:
    if not context or key not in context or context[key] is None:
        return default
    return render_value(context[key])


def get_bool(context: Optional[Mapping[str, Any]], key: str,
             default: bool = False) -> bool:
    if not context or key not in context:
        return default
    value = context[key]
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    if is_number(value):
        return value != 0
    return default


def render_value(value: Any) -> str:
    """Canonical text form used in state hashes and rule conditions."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value)) if abs(value) < 1e15 else repr(value)
    return str(value)


def parse_value(text: str) -> Value:
    """
    Inverse of render_value for effect assignments: integers and decimals
    come back as numbers, everything else stays a string.
    """
    stripped = text.strip()
    if INT_TEXT.fullmatch(stripped):
        return int(stripped)
    if FLOAT_TEXT.fullmatch(stripped):
        return float(stripped)
    return text


def clean_context(context: Optional[Mapping[str, Any]]) -> Context:
    """
    Copy a host map keeping only str keys with supported values. Anything
    that is not a mapping counts as an empty context.
    """
    if not isinstance(context, Mapping) or not context:
        return {}
    cleaned: Context = {}
    for key, value in context.items():
        if isinstance(key, str) and is_value(value):
            cleaned[key] = value
    return cleaned
