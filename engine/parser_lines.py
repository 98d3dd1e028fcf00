# engine/parser_lines.py
# ------------------------------------------------------------
# Line extractor: biomarker alias → value + unit, one line at
# a time.
#
# - Aliases are tried longest first and only accepted at token
#   boundaries ("glucosa: 92" yes, "glucosamina: 92" no).
# - The value is searched ONLY after the alias, so table
#   indices / page numbers in front of the name are ignored
#   ("3 glucosa 92 mg/dl" → 92).
# - Value candidates are rejected when they look like part of a
#   reference expression rather than a patient reading:
#     • attached unit with "^" (10^9/L style cell counts)
#     • attached unit that is just "/"
#     • next / previous token is a dash  ("150 - 200")
#     • next token starts a second bound  ("4/", "10^")
#     • previous token is a qualifier word ("hasta", "desde",
#       "inf", "sup", "max", "min", ...); trailing dots are
#       ignored so "Inf." counts
#     • previous token is a comparator ("<", ">=", "≤", ...)
#   A comparator glued to the number ("<0.5") never parses as
#   a value either.
# - Unit: attached suffix ("92mg/dl"), else next token, else
#   previous token when it is not a number itself.
#
# Lines are the case-preserving output of prepare_line(); the
# alias search runs on its lowercase view, values and units are
# sliced from the cased text ("mg/dL" keeps its case).
# ------------------------------------------------------------

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Tuple

from engine.catalog import BiomarkerCatalog
from engine.text_normalizer import COMPARATOR_CHARS, fold_text

logger = logging.getLogger(__name__)

RANGE_DASHES = {"-", "–"}
QUALIFIER_WORDS = {"hasta", "ate", "to", "a", "sup", "inf", "max", "min", "desde"}
COMPARATOR_TOKENS = {"<", ">", "<=", ">=", "=<", "=>", "≤", "≥"}

# characters the extractor keeps on top of the normaliser's set
EXTRACTOR_KEEP = COMPARATOR_CHARS + "–"

_ALNUM_RE = re.compile(r"[a-z0-9]")
_PLAIN_NUMBER_RE = re.compile(r"^[-+]?[0-9]+(?:\.[0-9]+)?$")
_ATTACHED_RE = re.compile(r"^([-+]?[0-9]+(?:[.,][0-9]+)?)([a-z%/µμ·\-]+)$", re.IGNORECASE)
_SECOND_BOUND_RE = re.compile(r"^[0-9]+(?:[/^]|x10)")
_LETTER_RE = re.compile(r"[a-z]", re.IGNORECASE)


@dataclass(frozen=True)
class ValueCandidate:
    value: str
    units: Optional[str] = None


@dataclass(frozen=True)
class LineMatch:
    canonical: str
    alias: str
    value: str
    units: Optional[str] = None


# ------------------------------------------------------------
# Alias matching
# ------------------------------------------------------------

def prepare_line(raw: str) -> str:
    """Case-preserving normalised line, comparators and en-dashes kept."""
    return fold_text((raw or "").strip(), keep=EXTRACTOR_KEEP)


def _is_boundary(ch: Optional[str]) -> bool:
    if not ch:
        return True
    return not _ALNUM_RE.match(ch)


def find_alias_match(line: str, alias: str) -> Optional[Tuple[int, int]]:
    """
    First (start, end) of `alias` in `line` with a boundary on both
    sides; both arguments are expected lowercase.
    """
    if not alias:
        return None
    start = 0
    while start <= len(line):
        idx = line.find(alias, start)
        if idx == -1:
            return None
        end = idx + len(alias)
        before = line[idx - 1] if idx > 0 else None
        after = line[end] if end < len(line) else None
        if _is_boundary(before) and _is_boundary(after):
            return idx, end
        start = idx + 1
    return None


# ------------------------------------------------------------
# Value search
# ------------------------------------------------------------

def parse_numeric_token(token: str) -> Optional[ValueCandidate]:
    normalized = token.replace(",", ".")
    if _PLAIN_NUMBER_RE.match(normalized):
        return ValueCandidate(value=normalized)
    m = _ATTACHED_RE.match(token)
    if m:
        return ValueCandidate(value=m.group(1).replace(",", "."), units=m.group(2))
    return None


def looks_like_unit_token(token: str) -> bool:
    if not token:
        return False
    t = token.lower()
    if len(t) < 2 and "%" not in t:
        return False
    return bool(_LETTER_RE.search(t)) or any(sym in t for sym in ("/", "·", "%", "µ", "μ"))


def _reject_reason(cand: ValueCandidate, prev: str, nxt: str) -> Optional[str]:
    if cand.units and "^" in cand.units:
        return "exponent unit"
    if cand.units and len(cand.units) <= 1 and not _LETTER_RE.search(cand.units) and "/" in cand.units:
        return "division artifact"
    if nxt in RANGE_DASHES:
        return "starts a range"
    if prev in RANGE_DASHES:
        return "ends a range"
    if _SECOND_BOUND_RE.match(nxt) and not _LETTER_RE.search(nxt):
        return "second range bound follows"
    if prev.rstrip(".") in QUALIFIER_WORDS:
        return "qualifier word"
    if prev in COMPARATOR_TOKENS:
        return "comparator"
    return None


def find_value_candidate(text: str) -> Optional[ValueCandidate]:
    """First acceptable numeric token in `text`, with its unit."""
    tokens: List[str] = text.split()
    for i, token in enumerate(tokens):
        cand = parse_numeric_token(token)
        if cand is None:
            continue

        nxt = tokens[i + 1] if i + 1 < len(tokens) else ""
        prev = tokens[i - 1] if i > 0 else ""

        reason = _reject_reason(cand, prev.lower(), nxt.lower())
        if reason:
            logger.debug("skip %r (%s)", token, reason)
            continue

        units = cand.units
        if not units:
            if looks_like_unit_token(nxt):
                units = nxt
            elif looks_like_unit_token(prev) and parse_numeric_token(prev) is None:
                units = prev

        return ValueCandidate(value=cand.value, units=units.strip() if units else None)
    return None


# ------------------------------------------------------------
# Line extraction
# ------------------------------------------------------------

def extract_from_line(
    line: str,
    catalog: BiomarkerCatalog,
    seen: AbstractSet[str] = frozenset(),
) -> Optional[LineMatch]:
    """
    Find the first biomarker on `line` (longest alias first) that has
    an acceptable value after it and is not in `seen`.

    A hit on a biomarker already in `seen` does not end the line:
    other biomarkers written on the same line can still be picked up.
    """
    if not line:
        return None
    folded = line.lower()

    for alias, canonical in catalog.alias_pairs:
        span = find_alias_match(folded, alias)
        if span is None:
            continue
        if catalog.should_skip(canonical, folded):
            logger.debug("exclusion rule suppressed %s on %r", canonical, folded)
            continue

        cand = find_value_candidate(line[span[1]:])
        if cand is None:
            continue
        if canonical in seen:
            logger.debug("%s already recorded; scanning on", canonical)
            continue
        return LineMatch(canonical=canonical, alias=alias, value=cand.value, units=cand.units)
    return None
