# engine/schema.py
# ------------------------------------------------------------
# Core record schema shared by the parser, the reference
# evaluator and the scorer.
# ------------------------------------------------------------

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

# ============================
# CORE ENUMERATIONS
# ============================

CATEGORIES: Tuple[str, ...] = (
    "cardiovascular",
    "metabolic",
    "immune",
    "hormonal",
    "general",
)
DEFAULT_CATEGORY = "general"

# best → worst
LEVELS: Tuple[str, ...] = ("excelente", "bueno", "regular", "malo")
WORST_LEVEL = "malo"

LEVEL_SCORE: Dict[str, float] = {
    "excelente": 1.0,
    "bueno": 0.85,
    "regular": 0.6,
    "malo": 0.2,
}

SEXES: Tuple[str, ...] = ("unisex", "male", "female")

Value = Union[float, str]


# ============================
# RECORD
# ============================

@dataclass(frozen=True)
class BiomarkerRecord:
    biomarker: str
    value: Value
    units: Optional[str] = None
    date: Optional[str] = None
    category: Optional[str] = None

    @property
    def is_numeric(self) -> bool:
        return isinstance(self.value, (int, float)) and not isinstance(self.value, bool)

    def to_dict(self) -> Dict[str, Any]:
        """Output contract: optional keys are omitted, not null."""
        out: Dict[str, Any] = {"biomarker": self.biomarker, "value": self.value}
        if self.units:
            out["units"] = self.units
        if self.date:
            out["date"] = self.date
        if self.category:
            out["category"] = self.category
        return out

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "BiomarkerRecord":
        value = obj.get("value")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = float(value)
        elif value is not None:
            value = str(value)
        return cls(
            biomarker=str(obj.get("biomarker", "")),
            value=value if value is not None else "",
            units=obj.get("units"),
            date=obj.get("date"),
            category=obj.get("category"),
        )


def coerce_value(token: str) -> Value:
    """Number when the captured token parses, else the raw token."""
    try:
        num = float(token)
    except (TypeError, ValueError):
        return token
    if math.isnan(num) or math.isinf(num):
        return token
    return num


# ============================================================
# VALIDATION
# ============================================================

def validate_record(rec: Dict[str, Any]) -> Tuple[bool, List[str]]:
    issues = []
    if not rec.get("biomarker"):
        issues.append("biomarker: missing")

    val = rec.get("value")
    if val is None or (isinstance(val, str) and not val.strip()):
        issues.append("value: missing")
    elif not isinstance(val, (int, float, str)) or isinstance(val, bool):
        issues.append(f"value: '{val}' invalid")

    cat = rec.get("category")
    if cat is not None and cat not in CATEGORIES:
        issues.append(f"category: '{cat}' invalid")

    for key in ("units", "date"):
        if key in rec and rec[key] is not None and not isinstance(rec[key], str):
            issues.append(f"{key}: '{rec[key]}' invalid")
    return (len(issues) == 0), issues
