# engine/parser_rules.py
# ------------------------------------------------------------
# Rule-based biomarker parser for free-text lab reports.
#
# text → lines → parser_lines.extract_from_line → records
#
# - One record per canonical biomarker per document: the first
#   occurrence in document order wins. Later occurrences (even
#   with a different value) are dropped and listed under
#   "discarded" so the caller can audit them.
# - The same `date` is attached to every record of one run.
# - Values: float when the captured token parses, otherwise the
#   raw token is kept as text.
# - Category comes from the catalog entry.
#
# Line splitting accepts \n, \r\n and \r. Lines that normalise
# to nothing are dropped before extraction.
# ------------------------------------------------------------

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Set

from engine.catalog import DEFAULT_CATALOG, BiomarkerCatalog
from engine.parser_lines import LineMatch, extract_from_line, prepare_line
from engine.schema import BiomarkerRecord, coerce_value

logger = logging.getLogger(__name__)

_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")


def split_lines(text: str) -> List[str]:
    if not text:
        return []
    return _LINE_SPLIT_RE.split(text)


def _build_record(
    match: LineMatch,
    date: Optional[str],
    catalog: BiomarkerCatalog,
) -> BiomarkerRecord:
    return BiomarkerRecord(
        biomarker=match.canonical,
        value=coerce_value(match.value),
        units=match.units or None,
        date=date,
        category=catalog.category_of(match.canonical),
    )


def parse_lines(
    lines: Iterable[str],
    date: Optional[str] = None,
    catalog: BiomarkerCatalog = DEFAULT_CATALOG,
) -> Dict[str, Any]:
    """
    Run the extractor over `lines` in order.

    Returns:
      {
        "records":   [BiomarkerRecord, ...],      # document order
        "discarded": [{"line", "biomarker", "value", "units"}, ...],
        "source":    "rules",
      }
    """
    records: List[BiomarkerRecord] = []
    discarded: List[Dict[str, Any]] = []
    seen: Set[str] = set()

    for line_no, raw in enumerate(lines):
        line = prepare_line(raw)
        if not line:
            continue

        match = extract_from_line(line, catalog)
        if match is None:
            continue

        if match.canonical in seen:
            discarded.append({
                "line": line_no,
                "biomarker": match.canonical,
                "value": coerce_value(match.value),
                "units": match.units,
            })
            logger.debug("line %d: repeated %s dropped", line_no, match.canonical)
            match = extract_from_line(line, catalog, seen)
            if match is None:
                continue

        seen.add(match.canonical)
        records.append(_build_record(match, date, catalog))

    return {
        "records": records,
        "discarded": discarded,
        "source": "rules",
    }


def parse_text_rules(
    text: str,
    date: Optional[str] = None,
    catalog: BiomarkerCatalog = DEFAULT_CATALOG,
) -> Dict[str, Any]:
    orig = text or ""
    if not orig.strip():
        return {"records": [], "discarded": [], "source": "rules", "raw": orig}

    out = parse_lines(split_lines(orig), date=date, catalog=catalog)
    out["raw"] = orig
    logger.info(
        "parsed %d biomarkers (%d repeats discarded)",
        len(out["records"]), len(out["discarded"]),
    )
    return out


def parse_biomarkers_from_text(
    text: str,
    date: Optional[str] = None,
    catalog: BiomarkerCatalog = DEFAULT_CATALOG,
) -> List[BiomarkerRecord]:
    """Ordered list of BiomarkerRecord found in `text`."""
    return parse_text_rules(text, date=date, catalog=catalog)["records"]
