# scoring/row_scorer.py
# ============================================================
# Row Scorer: in-range score per row + category aggregation
#
# PURPOSE:
#   - Turn each BiomarkerRow into a score in [0, 1]
#       1.0 = in range, or nothing to judge against
#       → 0 as the value moves away from the range
#   - Average per dashboard category and overall
#   - Bucket scores into a severity/colour for display
#
# SCORE:
#   - precomputed level → LEVEL_SCORE (numeric distance ignored)
#   - no bounds          → 1
#   - inside [low, high] → 1   (missing bound = ±inf)
#   - outside            → max(0, 1 - dist / width)
#       width = high - low           when both bounds exist
#             = 20% of |value|       otherwise
#       (never below 1e-9)
#
# OUTPUT CONTRACT (compute_scores):
# {
#   "overall": float,
#   "cat_scores": [
#       {"category": "cardiovascular", "score": float},
#       {"category": "metabolic", ...},
#       {"category": "immune", ...},
#       {"category": "hormonal", ...},
#       {"category": "general", ...},
#   ]
# }
# ============================================================

from __future__ import annotations

import math
from typing import Any, Dict, List, Sequence

import numpy as np

from engine.schema import CATEGORIES, DEFAULT_CATEGORY, LEVEL_SCORE, WORST_LEVEL
from scoring.rows import BiomarkerRow

MIN_WIDTH = 1e-9
MAGNITUDE_WIDTH_FRACTION = 0.2

GOOD_THRESHOLD = 0.85
WARNING_THRESHOLD = 0.6

SEVERITY_COLORS = {
    "good": "#16a34a",
    "warning": "#f59e0b",
    "bad": "#e11d48",
}


def _bounds(row: BiomarkerRow):
    low = row.ref_low if row.ref_low is not None else -math.inf
    high = row.ref_high if row.ref_high is not None else math.inf
    return low, high


def in_bounds(row: BiomarkerRow) -> bool:
    low, high = _bounds(row)
    return low <= row.value <= high


def row_score(row: BiomarkerRow) -> float:
    if row.level in LEVEL_SCORE:
        return LEVEL_SCORE[row.level]

    if row.ref_low is None and row.ref_high is None:
        return 1.0
    if not math.isfinite(row.value):
        return 1.0

    low, high = _bounds(row)
    v = row.value
    if low <= v <= high:
        return 1.0

    if math.isfinite(low) and math.isfinite(high):
        width = max(MIN_WIDTH, high - low)
    else:
        width = max(MIN_WIDTH, abs(v) * MAGNITUDE_WIDTH_FRACTION)

    dist = low - v if v < low else v - high
    return max(0.0, 1.0 - dist / width)


def color_by_score(score: float) -> Dict[str, str]:
    if score >= GOOD_THRESHOLD:
        severity = "good"
    elif score >= WARNING_THRESHOLD:
        severity = "warning"
    else:
        severity = "bad"
    return {"severity": severity, "color": SEVERITY_COLORS[severity]}


def _category_key(row: BiomarkerRow) -> str:
    key = (row.category or "").strip().lower()
    return key if key in CATEGORIES else DEFAULT_CATEGORY


def compute_scores(rows: Sequence[BiomarkerRow]) -> Dict[str, Any]:
    """
    Mean row score per category (fixed order) and overall.
    Empty categories and an empty row list score 1.
    """
    scores = np.array([row_score(r) for r in rows], dtype=float)
    keys = [_category_key(r) for r in rows]

    cat_scores: List[Dict[str, Any]] = []
    for cat in CATEGORIES:
        mask = np.array([k == cat for k in keys], dtype=bool)
        score = float(scores[mask].mean()) if mask.any() else 1.0
        cat_scores.append({"category": cat, "score": score})

    overall = float(scores.mean()) if scores.size else 1.0
    return {"overall": overall, "cat_scores": cat_scores}


# ------------------------------------------------------------
# Summaries
# ------------------------------------------------------------

def is_good(row: BiomarkerRow) -> bool:
    """Level other than "malo"; rows without level: within bounds."""
    if row.level is not None:
        return row.level != WORST_LEVEL
    return in_bounds(row)


def summarize_rows(rows: Sequence[BiomarkerRow]) -> Dict[str, int]:
    good = sum(1 for r in rows if is_good(r))
    return {"total": len(rows), "good": good, "bad": len(rows) - good}


def flag_out_of_range(rows: Sequence[BiomarkerRow]) -> List[BiomarkerRow]:
    """Rows with a bound and a score below 1, worst first."""
    flagged = [
        r for r in rows
        if (r.ref_low is not None or r.ref_high is not None) and row_score(r) < 1
    ]
    flagged.sort(key=row_score)
    return flagged
