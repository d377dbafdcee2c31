"""Tabulated reference weights for barrier components.

The table is a CSV export of the plant's weight sheet, one row per
material code with black-material and zinc weights already worked out.
"""
from __future__ import annotations

import io
import logging
from typing import IO, List

import numpy as np
import pandas as pd

from .domain_models import ComponentKind, ComponentSpec, ComponentWeightResult

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {
    "material_code",
    "section",
    "material_description",
    "thickness",
    "length",
    "coating_gsm",
    "weight_black_material",
    "weight_zinc_added",
}

NUMERIC_COLUMNS = ["thickness", "length", "coating_gsm", "weight_black_material", "weight_zinc_added"]
LOOKUP_FIELDS = {"thickness", "length", "coating_gsm"}


class ReferenceTableError(Exception):
    """Raised when a reference weight table cannot be parsed."""


def _require_columns(df: pd.DataFrame, required: set[str]) -> None:
    missing = required - set(df.columns)
    if missing:
        raise ReferenceTableError(f"CSV is missing required columns: {', '.join(sorted(missing))}")


def normalize_description(description: str) -> ComponentKind | None:
    text = str(description)
    if "Thrie" in text:
        return ComponentKind.THRIE_BEAM
    if "W-Beam" in text:
        return ComponentKind.W_BEAM
    if "Post" in text:
        return ComponentKind.POST
    if "Spacer" in text:
        return ComponentKind.SPACER
    return None


def load_reference_table(source: str | IO) -> pd.DataFrame:
    """Read a reference table from a path or an uploaded file object."""

    try:
        if hasattr(source, "read"):
            content = source.read()
            if isinstance(content, bytes):
                content = content.decode("utf-8")
            source = io.StringIO(content)
        data = pd.read_csv(source)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise ReferenceTableError(f"Could not read reference table: {exc}") from exc

    data.columns = [str(column).strip() for column in data.columns]
    _require_columns(data, REQUIRED_COLUMNS)

    for column in NUMERIC_COLUMNS:
        data[column] = pd.to_numeric(data[column], errors="coerce")

    invalid = data[["thickness", "coating_gsm", "weight_black_material", "weight_zinc_added"]].isna().any(axis=1)
    if invalid.any():
        first_bad = int(invalid.idxmax()) + 2
        raise ReferenceTableError(f"Row {first_bad}: thickness, coating and weights must be numbers")

    data["section"] = data["section"].fillna("").astype(str).str.strip()
    data["kind"] = data["material_description"].map(normalize_description)
    data = data.dropna(subset=["kind"]).reset_index(drop=True)

    if data.empty:
        raise ReferenceTableError("CSV contains no barrier component rows")

    logger.info("Loaded reference weight table with %d rows", len(data))
    return data


def _rows_for_kind(table: pd.DataFrame, kind: ComponentKind, section: str | None) -> pd.DataFrame:
    mask = table["kind"] == kind
    if section:
        mask &= table["section"] == section
    return table[mask]


def find_reference_row(
    table: pd.DataFrame,
    kind: ComponentKind,
    thickness: float,
    coating_gsm: float,
    length: float | None = None,
    section: str | None = None,
) -> pd.Series | None:
    """Return the first row matching the component, or ``None``.

    Length only takes part in the match when one is given.
    """

    rows = _rows_for_kind(table, kind, section)
    mask = np.isclose(rows["thickness"].to_numpy(dtype=float), thickness) & np.isclose(
        rows["coating_gsm"].to_numpy(dtype=float), coating_gsm
    )
    if length is not None:
        mask &= np.isclose(rows["length"].to_numpy(dtype=float), length)

    matches = rows[mask]
    if matches.empty:
        return None
    return matches.iloc[0]


def reference_component_weight(
    table: pd.DataFrame,
    kind: ComponentKind,
    spec: ComponentSpec,
    section: str | None = None,
) -> ComponentWeightResult | None:
    row = find_reference_row(
        table,
        kind,
        thickness=spec.thickness_mm,
        coating_gsm=spec.coating_gsm,
        length=None if kind.is_rail else spec.length_mm,
        section=section,
    )
    if row is None:
        return None
    return ComponentWeightResult(
        black_material_weight_kg=float(row["weight_black_material"]),
        zinc_weight_kg=float(row["weight_zinc_added"]),
    )


def distinct_values(
    table: pd.DataFrame,
    kind: ComponentKind,
    field: str,
    section: str | None = None,
) -> List[float]:
    """Sorted distinct non-empty values of ``field`` for one component kind."""

    if field not in LOOKUP_FIELDS:
        raise ValueError(f"Unsupported field: {field}")

    values = _rows_for_kind(table, kind, section)[field].dropna().unique()
    return sorted(float(value) for value in values)


__all__ = [
    "ReferenceTableError",
    "load_reference_table",
    "find_reference_row",
    "reference_component_weight",
    "distinct_values",
    "normalize_description",
]
