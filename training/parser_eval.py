# training/parser_eval.py
# ------------------------------------------------------------
# Parser evaluation against gold report snippets.
#
# Gold file (training/gold_tests.json):
#   [
#     {
#       "name": "hemograma basico",
#       "input": "Hemoglobina 14,2 g/dL\nLeucocitos 6.1 10^3/µL",
#       "expected": {"Hemoglobina": 14.2, "Leucocitos": 6.1}
#     },
#     ...
#   ]
#
# Fields compared per biomarker:
#   - numbers with an absolute tolerance of 1e-6
#   - text values case-insensitively
#   - biomarkers that were parsed but not expected are reported
#     as "unexpected" and do not count toward accuracy
# ------------------------------------------------------------

from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Any, Dict, List, Optional

import pandas as pd

from engine.catalog import DEFAULT_CATALOG, BiomarkerCatalog, load_catalog
from engine.parser_rules import parse_biomarkers_from_text

logger = logging.getLogger(__name__)

GOLD_PATH = os.path.join("training", "gold_tests.json")
TOLERANCE = 1e-6


def _load_gold_tests(path: str) -> List[Dict[str, Any]]:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Gold tests not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError("gold_tests.json must be a list")
    return data


def _same_value(expected: Any, got: Any) -> bool:
    if isinstance(expected, (int, float)) and isinstance(got, (int, float)):
        return abs(float(expected) - float(got)) <= TOLERANCE
    return str(expected).strip().lower() == str(got).strip().lower()


def evaluate_single_test(
    test: Dict[str, Any],
    catalog: BiomarkerCatalog = DEFAULT_CATALOG,
) -> Dict[str, Any]:
    text = test.get("input", "")
    expected = test.get("expected", {}) or {}

    parsed = {r.biomarker: r.value for r in parse_biomarkers_from_text(text, catalog=catalog)}

    correct = 0
    wrong = {}
    for biomarker, exp_val in expected.items():
        got = parsed.get(biomarker)
        if got is not None and _same_value(exp_val, got):
            correct += 1
        else:
            wrong[biomarker] = {"expected": exp_val, "got": got}

    unexpected = sorted(set(parsed) - set(expected))
    total = len(expected)
    return {
        "correct": correct,
        "total": total,
        "accuracy": correct / total if total else 0.0,
        "wrong": wrong,
        "unexpected": unexpected,
        "parsed": parsed,
    }


def run_parser_eval(
    gold_path: str = GOLD_PATH,
    catalog: BiomarkerCatalog = DEFAULT_CATALOG,
) -> Dict[str, Any]:
    gold = _load_gold_tests(gold_path)

    wrong_cases = []
    total_correct = 0
    total_fields = 0

    for test in gold:
        out = evaluate_single_test(test, catalog)
        total_correct += out["correct"]
        total_fields += out["total"]

        if out["wrong"] or out["unexpected"]:
            wrong_cases.append({
                "name": test.get("name", "Unnamed"),
                "wrong": out["wrong"],
                "unexpected": out["unexpected"],
                "parsed": out["parsed"],
            })

    summary = {
        "tests": len(gold),
        "total_correct": total_correct,
        "total_fields": total_fields,
        "overall_accuracy": total_correct / total_fields if total_fields else 0.0,
        "wrong_cases": wrong_cases,
    }
    logger.info(
        "gold eval: %d/%d fields (%.1f%%)",
        total_correct, total_fields, 100.0 * summary["overall_accuracy"],
    )
    return summary


def wrong_cases_frame(summary: Dict[str, Any]) -> pd.DataFrame:
    """One row per wrong field, for eyeballing regressions."""
    rows = []
    for case in summary.get("wrong_cases", []):
        for biomarker, diff in case["wrong"].items():
            rows.append({
                "test": case["name"],
                "biomarker": biomarker,
                "expected": diff["expected"],
                "got": diff["got"],
            })
    return pd.DataFrame(rows, columns=["test", "biomarker", "expected", "got"])


# ------------------------------------------------------------
# CLI
# ------------------------------------------------------------

def _parse_args(argv=None):
    p = argparse.ArgumentParser(description="Evaluate the biomarker parser on gold tests")
    p.add_argument("--gold", type=str, default=GOLD_PATH)
    p.add_argument("--catalog", type=str, default=None, help="JSON catalog (default: built-in)")
    p.add_argument("--table", action="store_true", help="print wrong fields as a table")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    catalog: Optional[BiomarkerCatalog] = load_catalog(args.catalog) if args.catalog else DEFAULT_CATALOG
    summary = run_parser_eval(args.gold, catalog)
    if args.table:
        frame = wrong_cases_frame(summary)
        print(frame.to_string(index=False) if not frame.empty else "no wrong fields")
    else:
        print(json.dumps(summary, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
