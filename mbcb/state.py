"""Simple in-memory storage for the reference weight table."""
from __future__ import annotations

import logging

import pandas as pd
from django.conf import settings

from .reference_table import load_reference_table

logger = logging.getLogger(__name__)

_STORE: dict[str, pd.DataFrame] = {}
_KEY = "reference_table"


def set_reference_table(table: pd.DataFrame) -> None:
    """Replace the in-memory reference table."""
    _STORE[_KEY] = table


def clear_reference_table() -> None:
    _STORE.pop(_KEY, None)


def get_reference_table() -> pd.DataFrame | None:
    """Return the loaded table, reading ``MBCB_REFERENCE_TABLE_PATH`` on first use."""
    table = _STORE.get(_KEY)
    if table is not None:
        return table

    path = getattr(settings, "MBCB_REFERENCE_TABLE_PATH", "")
    if not path:
        return None

    logger.info("Loading reference weight table from %s", path)
    table = load_reference_table(path)
    set_reference_table(table)
    return table
