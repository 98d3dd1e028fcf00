# scoring/rows.py
# ============================================================
# BiomarkerRow construction.
#
# Scoring consumes BiomarkerRow only. Rows come from two places:
#
#   1. parsed records paired with the reference dataset
#      (rows_from_records): the row carries the qualitative
#      level computed by reference.evaluator.
#
#   2. stored / imported payloads that already carry numeric
#      bounds. Three payload shapes are accepted, each with its
#      own explicit conversion, resolved once at the boundary:
#
#        RowList        [{"name": "Glucosa", "value": 92,
#                         "reference": "(70 - 99)"}, ...]
#        KeyedRecord    {"Glucosa": {"value": 92, "unit": "mg/dL",
#                                    "refLow": 70, "refHigh": 99}}
#                       (a scalar entry such as "Urea": 31 is a bare value)
#        FlatScalarMap  {"Glucosa": 92, "Urea": 31}
#
# Rows without a name or without a finite numeric value are
# dropped; they cannot be scored.
# ============================================================

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from engine.schema import BiomarkerRecord
from reference.dataset import ReferenceData
from reference.evaluator import compute_level, reference_display

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BiomarkerRow:
    name: str
    value: float
    unit: Optional[str] = None
    ref_low: Optional[float] = None
    ref_high: Optional[float] = None
    category: Optional[str] = None
    level: Optional[str] = None
    reference_text: Optional[str] = None


# ------------------------------------------------------------
# Payload variants
# ------------------------------------------------------------

@dataclass(frozen=True)
class RowList:
    items: Sequence[Mapping[str, Any]]


@dataclass(frozen=True)
class KeyedRecord:
    items: Mapping[str, Any]


@dataclass(frozen=True)
class FlatScalarMap:
    items: Mapping[str, Any]


RowPayload = Union[RowList, KeyedRecord, FlatScalarMap]


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------

def number_or_none(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        num = float(v)
    else:
        s = str(v).strip().replace(",", ".")
        if not s:
            return None
        try:
            num = float(s)
        except ValueError:
            return None
    return num if math.isfinite(num) else None


def _first(obj: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        v = obj.get(k)
        if v is not None:
            return v
    return None


_NUM = r"(-?\d+(?:\.\d+)?)"
_RANGE_RE = re.compile(_NUM + r"\s*(?:–|-|\ba\b|\bto\b)\s*" + _NUM, re.IGNORECASE)
_INF_RE = re.compile(r"Inf\.?\s*" + _NUM, re.IGNORECASE)
_SUP_RE = re.compile(r"Sup\.?\s*" + _NUM, re.IGNORECASE)
_LE_RE = re.compile(r"(?:<=|≤)\s*" + _NUM)
_GE_RE = re.compile(r"(?:>=|≥)\s*" + _NUM)
_LT_RE = re.compile(r"<\s*" + _NUM)
_GT_RE = re.compile(r">\s*" + _NUM)


def parse_reference_range(text: Any) -> Tuple[Optional[float], Optional[float]]:
    """
    Bounds from a printed reference range:
      "(12 - 18)", "12-18", "12 a 18", "12 to 18"  → (12, 18)
      "Inf. 5.7"                                  → (5.7, None)
      "Sup. 150"                                  → (None, 150)
      "< 20", "<= 20"                             → (None, 20)
      "> 30", ">= 30"                             → (30, None)
    """
    if text is None:
        return None, None
    s = str(text).replace(",", ".").strip()

    m = _RANGE_RE.search(s)
    if m:
        a, b = float(m.group(1)), float(m.group(2))
        return min(a, b), max(a, b)

    m = _INF_RE.search(s)
    if m:
        return float(m.group(1)), None
    m = _SUP_RE.search(s)
    if m:
        return None, float(m.group(1))

    for rx, is_upper in ((_LE_RE, True), (_GE_RE, False), (_LT_RE, True), (_GT_RE, False)):
        m = rx.search(s)
        if m:
            num = float(m.group(1))
            return (None, num) if is_upper else (num, None)
    return None, None


def _bounds(obj: Mapping[str, Any]) -> Tuple[Optional[float], Optional[float]]:
    low = number_or_none(_first(obj, "refLow", "ref_low", "min", "low"))
    high = number_or_none(_first(obj, "refHigh", "ref_high", "max", "high"))
    if low is None or high is None:
        text = _first(obj, "reference", "Rango de Referencia")
        if text is not None:
            p_low, p_high = parse_reference_range(text)
            low = low if low is not None else p_low
            high = high if high is not None else p_high
    return low, high


# ------------------------------------------------------------
# Conversions
# ------------------------------------------------------------

def rows_from_row_list(payload: RowList) -> List[BiomarkerRow]:
    out = []
    for item in payload.items:
        if not isinstance(item, Mapping):
            continue
        name = _first(item, "name", "Prueba", "biomarker", "marker")
        value = number_or_none(_first(item, "value", "Resultado", "val"))
        if not name or value is None:
            continue
        low, high = _bounds(item)
        out.append(BiomarkerRow(
            name=str(name),
            value=value,
            unit=_first(item, "unit", "Unidades", "unitSymbol", "units"),
            ref_low=low,
            ref_high=high,
            category=_first(item, "category", "categoria", "group"),
            reference_text=_first(item, "reference", "Rango de Referencia"),
        ))
    return out


def rows_from_keyed_record(payload: KeyedRecord) -> List[BiomarkerRow]:
    out = []
    for key, item in payload.items.items():
        # scalar entries next to object entries are bare values
        if not isinstance(item, Mapping):
            num = number_or_none(item)
            if num is not None:
                out.append(BiomarkerRow(name=str(key), value=num))
            continue
        value = number_or_none(_first(item, "value", "val", "result"))
        if value is None:
            continue
        low, high = _bounds(item)
        out.append(BiomarkerRow(
            name=str(item.get("name") or key),
            value=value,
            unit=_first(item, "unit", "units"),
            ref_low=low,
            ref_high=high,
            category=_first(item, "category", "categoria"),
            reference_text=item.get("reference"),
        ))
    return out


def rows_from_flat_map(payload: FlatScalarMap) -> List[BiomarkerRow]:
    out = []
    for key, v in payload.items.items():
        num = number_or_none(v)
        if num is not None:
            out.append(BiomarkerRow(name=str(key), value=num))
    return out


def to_rows(payload: RowPayload) -> List[BiomarkerRow]:
    if isinstance(payload, RowList):
        return rows_from_row_list(payload)
    if isinstance(payload, KeyedRecord):
        return rows_from_keyed_record(payload)
    if isinstance(payload, FlatScalarMap):
        return rows_from_flat_map(payload)
    raise TypeError(f"unsupported row payload: {type(payload).__name__}")


def classify_payload(obj: Any) -> Optional[RowPayload]:
    """
    Pick the payload variant of a decoded JSON document:
      list                        → RowList
      dict with any object values → KeyedRecord (scalar entries kept)
      other dict                  → FlatScalarMap
    """
    if isinstance(obj, list):
        return RowList(obj)
    if isinstance(obj, Mapping):
        if any(isinstance(v, Mapping) for v in obj.values()):
            return KeyedRecord(obj)
        return FlatScalarMap(obj)
    return None


# ------------------------------------------------------------
# Records + reference dataset
# ------------------------------------------------------------

def rows_from_records(
    records: Iterable[BiomarkerRecord],
    reference: Optional[ReferenceData] = None,
    sex: str = "unisex",
) -> List[BiomarkerRow]:
    """
    Numeric records become rows. When the reference dataset knows
    the biomarker, the row gets its level, category and display
    reference; otherwise it stays unbounded (neutral score).
    """
    out = []
    for rec in records:
        value = number_or_none(rec.value) if rec.is_numeric else None
        if value is None:
            continue

        entry = reference.lookup(rec.biomarker) if reference else None
        if entry is None:
            out.append(BiomarkerRow(
                name=rec.biomarker,
                value=value,
                unit=rec.units,
                category=rec.category,
            ))
            continue

        level = compute_level(entry, value, sex)
        if level is None:
            logger.warning("%s = %s matches no %s rule in %s", rec.biomarker, value, sex, entry.id)

        out.append(BiomarkerRow(
            name=rec.biomarker,
            value=value,
            unit=rec.units or entry.units,
            category=rec.category or entry.category,
            level=level,
            reference_text=reference_display(entry),
        ))
    return out
