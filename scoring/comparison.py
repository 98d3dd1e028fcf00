# scoring/comparison.py
# ============================================================
# Cross-analysis comparison of saved analyses.
#
# For each selected biomarker:
#   - one value per analysis, in analysis order (None when the
#     analysis does not contain the biomarker)
#   - a display reference: reference dataset first, else the
#     first numeric bounds found in the analyses' rows
#   - delta = last value - first value, over analyses that have
#     a value; None with fewer than two values
#
# OUTPUT CONTRACT (compare_analyses):
# [
#   {
#     "biomarker": "Glucosa",
#     "unit": "mg/dL" | None,
#     "reference": "70 - 90" | None,
#     "values": [
#       {"analysis_id": "...", "analysis_name": "...", "value": 92.0 | None},
#       ...
#     ],
#     "delta": float | None,
#   },
#   ...
# ]
# ============================================================

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from engine.storage import Analysis
from engine.text_normalizer import normalize_text
from reference.dataset import ReferenceData
from reference.evaluator import reference_display
from scoring.rows import BiomarkerRow, classify_payload, to_rows


def analysis_rows(analysis: Analysis) -> List[BiomarkerRow]:
    """Rows of one stored analysis, whatever payload shape it was saved in."""
    payload = classify_payload(analysis.data)
    return to_rows(payload) if payload is not None else []


def _fmt_bound(v: Optional[float]) -> str:
    if v is None:
        return ""
    return str(int(v)) if float(v).is_integer() else str(v)


def _reference_from_rows(rows: Sequence[Optional[BiomarkerRow]]) -> Optional[str]:
    for r in rows:
        if r is not None and (r.ref_low is not None or r.ref_high is not None):
            return f"{_fmt_bound(r.ref_low)} - {_fmt_bound(r.ref_high)}".strip()
    return None


def biomarker_options(rows_by_analysis: Sequence[Sequence[BiomarkerRow]]) -> List[str]:
    """Every biomarker name seen in any analysis, sorted accent-insensitively."""
    names = {r.name for rows in rows_by_analysis for r in rows}
    return sorted(names, key=lambda n: (normalize_text(n), n))


def compare_analyses(
    analyses: Sequence[Analysis],
    biomarkers: Optional[Sequence[str]] = None,
    reference: Optional[ReferenceData] = None,
) -> List[Dict[str, Any]]:
    rows_by_analysis = [analysis_rows(a) for a in analyses]
    names = list(biomarkers) if biomarkers is not None else biomarker_options(rows_by_analysis)
    labels = [a.name or f"Analítica {i + 1}" for i, a in enumerate(analyses)]

    out = []
    for name in names:
        hits: List[Optional[BiomarkerRow]] = [
            next((r for r in rows if r.name == name), None) for rows in rows_by_analysis
        ]

        entry = reference.lookup(name) if reference is not None else None
        ref_text = reference_display(entry) if entry is not None else None
        if ref_text is None:
            ref_text = _reference_from_rows(hits)

        unit = next((h.unit for h in hits if h is not None and h.unit), None)
        values = [h.value for h in hits if h is not None]
        delta = values[-1] - values[0] if len(values) >= 2 else None

        out.append({
            "biomarker": name,
            "unit": unit,
            "reference": ref_text,
            "values": [
                {
                    "analysis_id": a.id,
                    "analysis_name": label,
                    "value": h.value if h is not None else None,
                }
                for a, label, h in zip(analyses, labels, hits)
            ],
            "delta": delta,
        })
    return out
