# app.py
# ============================================================
# labreport: lab report → biomarkers → dashboard scores
#
# - Reads a plain-text lab report (file path or "-" for stdin)
# - Rule parser extracts one record per biomarker
# - Records are paired with the reference dataset when one is
#   available (explicit --reference, local cache, or the HF Hub)
# - Prints records, scored rows and category scores as pandas
#   tables, or a single JSON document with --json
# - --save persists the parsed records as a named analysis
#
# EXIT CODES:
#   0  ok
#   1  unreadable report, unusable reference dataset, or a
#      failed Hub download
# ============================================================

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from huggingface_hub.utils import HfHubHTTPError

from engine.errors import InvalidConfigurationError
from engine.parser_rules import parse_text_rules
from engine.schema import SEXES, BiomarkerRecord
from engine.storage import DEFAULT_ANALYSES_PATH, AnalysisStore
from reference.dataset import load_reference_data
from scoring.row_scorer import color_by_score, compute_scores, row_score, summarize_rows
from scoring.rows import BiomarkerRow, rows_from_records

logger = logging.getLogger("labreport")


# ============================================================
# TABLES
# ============================================================

def records_to_frame(records: Sequence[BiomarkerRecord]) -> pd.DataFrame:
    cols = ["biomarker", "value", "units", "category", "date"]
    return pd.DataFrame([r.to_dict() for r in records], columns=cols)


def rows_to_frame(rows: Sequence[BiomarkerRow]) -> pd.DataFrame:
    data = []
    for r in rows:
        score = row_score(r)
        data.append({
            "name": r.name,
            "value": r.value,
            "unit": r.unit,
            "level": r.level,
            "reference": r.reference_text,
            "score": round(score, 3),
            "severity": color_by_score(score)["severity"],
        })
    cols = ["name", "value", "unit", "level", "reference", "score", "severity"]
    return pd.DataFrame(data, columns=cols)


def scores_to_frame(scores: Dict[str, Any]) -> pd.DataFrame:
    frame = pd.DataFrame(scores["cat_scores"], columns=["category", "score"])
    frame["score"] = frame["score"].round(3)
    return frame


# ============================================================
# PIPELINE
# ============================================================

def _read_report(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def analyse_report(
    text: str,
    date: Optional[str] = None,
    sex: str = "unisex",
    reference_path: Optional[str] = None,
    fetch: bool = True,
) -> Dict[str, Any]:
    """
    Full run over one report text.

    Returns:
      {
        "records":   [BiomarkerRecord, ...],
        "discarded": [...],
        "rows":      [BiomarkerRow, ...],
        "scores":    {"overall": float, "cat_scores": [...]},
        "summary":   {"total", "good", "bad"},
        "reference": "<version>" | None,
      }
    """
    parsed = parse_text_rules(text, date=date)
    reference = load_reference_data(reference_path, fetch=fetch)
    if reference is None:
        logger.warning("no reference dataset; rows are scored without levels")

    rows = rows_from_records(parsed["records"], reference, sex=sex)
    return {
        "records": parsed["records"],
        "discarded": parsed["discarded"],
        "rows": rows,
        "scores": compute_scores(rows),
        "summary": summarize_rows(rows),
        "reference": str(reference.version) if reference is not None else None,
    }


def _to_json(result: Dict[str, Any], saved_id: Optional[str]) -> str:
    out = {
        "records": [r.to_dict() for r in result["records"]],
        "discarded": result["discarded"],
        "rows": [dict(asdict(r), score=row_score(r)) for r in result["rows"]],
        "scores": result["scores"],
        "summary": result["summary"],
        "reference_version": result["reference"],
    }
    if saved_id:
        out["saved_id"] = saved_id
    return json.dumps(out, indent=2, ensure_ascii=False)


def _print_tables(result: Dict[str, Any], saved_id: Optional[str]) -> None:
    records = result["records"]
    if not records:
        print("No biomarkers found.")
        return

    print("=== Biomarkers ===")
    print(records_to_frame(records).to_string(index=False))

    print("\n=== Scored rows ===")
    print(rows_to_frame(result["rows"]).to_string(index=False))

    scores = result["scores"]
    summary = result["summary"]
    print("\n=== Category scores ===")
    print(scores_to_frame(scores).to_string(index=False))
    print(
        f"\nOverall: {scores['overall']:.3f} "
        f"({summary['good']}/{summary['total']} good)"
    )
    if saved_id:
        print(f"Saved analysis {saved_id}")


# ============================================================
# CLI
# ============================================================

def _parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(
        prog="labreport",
        description="Extract biomarkers from a lab report and score them",
    )
    p.add_argument("report", help="report text file, or - for stdin")
    p.add_argument("--date", type=str, default=None, help="date attached to every record")
    p.add_argument("--sex", choices=SEXES, default="unisex")
    p.add_argument("--reference", type=str, default=None, help="reference dataset JSON")
    p.add_argument("--no-fetch", action="store_true", help="never download the reference dataset")
    p.add_argument("--save", action="store_true", help="store the parsed records as an analysis")
    p.add_argument("--store", type=str, default=DEFAULT_ANALYSES_PATH)
    p.add_argument("--json", action="store_true", help="print one JSON document")
    p.add_argument("--verbose", "-v", action="store_true")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        text = _read_report(args.report)
        result = analyse_report(
            text,
            date=args.date,
            sex=args.sex,
            reference_path=args.reference,
            fetch=not args.no_fetch,
        )
    except (InvalidConfigurationError, HfHubHTTPError, OSError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    saved_id = None
    if args.save and result["records"]:
        saved_id = AnalysisStore(args.store).save(result["records"]).id

    if args.json:
        print(_to_json(result, saved_id))
    else:
        _print_tables(result, saved_id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
