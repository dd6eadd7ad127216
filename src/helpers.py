# src/helpers.py
"""
General-purpose helpers shared across the pipeline.

This module centralizes small utilities that are agnostic to the cohort logic:
- Field cleaning and best-effort integer coercion for tokenized text fields.
- Positional row scaffolding from a sparse set of CSV columns.
- Filename suffix manipulation.

Quoting is resolved by the CSV reader (pandas) before any of these helpers see
a field; nothing here interprets quote characters.

All functions are pure and side-effect free, facilitating reuse and unit testing.

IMPORTANT: This module does not import project-specific modules to avoid circular
dependencies. Callers must supply any configuration defaults they need.
"""
from __future__ import annotations

import os
import re
import pandas as pd

_LEADING_INT = re.compile(r"^[+-]?\d+")

# ---------------------------------------------------------------------------
# Field coercions
# ---------------------------------------------------------------------------

def _clean_field(x) -> str:
    """
    Strip surrounding whitespace from a tokenized field.

    Parameters
    ----------
    x : Any
        Field value; non-strings are converted with ``str``. Missing values
        (``None``, NaN padding from short CSV rows) give ''.

    Returns
    -------
    str
    """
    if x is None:
        return ""
    if not isinstance(x, str) and pd.isna(x):
        return ""
    return str(x).strip()


def _coerce_int(x):
    """
    Best-effort integer parse of a text field.

    Rules
    -----
    - Surrounding whitespace is ignored.
    - The leading signed run of digits is used: '120' -> 120, '120.0' -> 120,
      '  -3 people' -> -3.
    - No leading digits (empty, 'abc', 'nan', '.5') -> None.

    Parameters
    ----------
    x : Any

    Returns
    -------
    int | None
    """
    s = _clean_field(x)
    m = _LEADING_INT.match(s)
    if m is None:
        return None
    return int(m.group(0))


def _is_single_char(x) -> bool:
    return isinstance(x, str) and len(x) == 1


# ---------------------------------------------------------------------------
# Row scaffolding
# ---------------------------------------------------------------------------

def _used_columns(*indices: int) -> list[int]:
    """Sorted, de-duplicated field positions to request from the CSV reader."""
    return sorted(set(int(i) for i in indices))


def _positional_row(values, columns: list[int]) -> list:
    """
    Spread ``values`` (one per entry of ``columns``) back to their field
    positions; positions that were not read are None.

    Example
    -------
    _positional_row(("2016", "A", "100"), [0, 1, 3]) -> ["2016", "A", None, "100"]
    """
    row = [None] * (columns[-1] + 1 if columns else 0)
    for i, v in zip(columns, values):
        row[i] = v
    return row


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------

def _with_suffix(fname: str, suffix: str) -> str:
    """
    Insert a suffix before the file extension.

    Example
    -------
    _with_suffix("ranking.csv", "_2016_2021") -> "ranking_2016_2021.csv"
    """
    if not suffix:
        return fname
    base, ext = os.path.splitext(fname)
    return f"{base}{suffix}{ext}"
