"""Helpers for reading loosely-typed collaborator output.

Collaborators may hand back mappings (camelCase or snake_case keys) or plain
objects. These helpers read either shape and coerce numbers the same way the
sanitizer and validator expect.
"""
import math
import numbers
import numpy as np
import pandas as pd
from typing import Any, Iterable, List, Mapping, Optional


_MISSING = object()


def read_field(raw: Any, *names: str, default: Any = None) -> Any:
    """Return the first present attribute/key among `names`, else `default`."""
    if raw is None:
        return default
    for name in names:
        if isinstance(raw, Mapping):
            value = raw.get(name, _MISSING)
        else:
            value = getattr(raw, name, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return default


def coerce_number(value: Any) -> Optional[float]:
    """Coerce a raw numeric-ish value to float (None/NaN/bool/non-numeric -> None).

    Infinities are kept so callers can clamp them to the nearest bound.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (numbers.Real, np.number)):
        try:
            number = float(value)
        except OverflowError:
            number = math.inf if value > 0 else -math.inf
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if pd.isna(number):
        return None
    return number


def clamp(value: float, low: float, high: float) -> float:
    """Clamp to [low, high] and return a plain float."""
    return float(np.clip(value, low, high))


def is_in_range(value: Any, low: float, high: float) -> bool:
    """True when value is a finite number within [low, high]."""
    number = coerce_number(value)
    return number is not None and bool(np.isfinite(number)) and low <= number <= high


def as_list(value: Any) -> List[Any]:
    """Return `value` as a list when it is a list/tuple, else an empty list."""
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def text_of(value: Any) -> str:
    """Stringify scalars; containers and None become ''."""
    if value is None or isinstance(value, (Mapping, list, tuple, set)):
        return ""
    return str(value).strip()


def unique(items: Iterable[str]) -> List[str]:
    """Order-preserving de-duplication."""
    return list(dict.fromkeys(items))
