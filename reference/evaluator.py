# reference/evaluator.py
# ------------------------------------------------------------
# Qualitative level of a value against a ReferenceEntry.
#
# Rule texts are small expressions, one per level and sex:
#   "70 - 99"          inclusive range (dash or en-dash)
#   "< 70", ">= 30"    comparators  (< > <= >= ≤ ≥)
#   "100"              exact value
#   "< 70 o > 125"     OR across "o" / "/" / ";"
#
# Levels are tried best → worst; the first match wins. When
# nothing matched, the worst level ("malo") is checked once more
# on its own before giving up with None.
# ------------------------------------------------------------

from __future__ import annotations

import re
from typing import List, Optional

from engine.schema import LEVELS, WORST_LEVEL
from reference.dataset import ReferenceEntry

_OR_SPLIT_RE = re.compile(r"\s*\bo\b\s*|\s*/\s*|\s*;\s*", re.IGNORECASE)
_RANGE_RE = re.compile(r"^(-?\d+(?:\.\d+)?)\s*[-–]\s*(-?\d+(?:\.\d+)?)")
_CMP_RE = re.compile(r"^(<=|>=|<|>|≤|≥)\s*(-?\d+(?:\.\d+)?)")
_EXACT_RE = re.compile(r"^(-?\d+(?:\.\d+)?)$")


def split_rule(rule: str) -> List[str]:
    return [p.strip() for p in _OR_SPLIT_RE.split(rule) if p and p.strip()]


def match_single_rule(rule: str, value: float) -> bool:
    r = rule.replace(",", ".").strip()

    m = _RANGE_RE.match(r)
    if m:
        a, b = float(m.group(1)), float(m.group(2))
        return min(a, b) <= value <= max(a, b)

    m = _CMP_RE.match(r)
    if m:
        op, num = m.group(1), float(m.group(2))
        if op == "<":
            return value < num
        if op == ">":
            return value > num
        if op in ("<=", "≤"):
            return value <= num
        return value >= num

    m = _EXACT_RE.match(r)
    if m:
        return value == float(m.group(1))

    return False


def match_rule(rule: Optional[str], value: float) -> bool:
    if not rule:
        return False
    return any(match_single_rule(part, value) for part in split_rule(rule))


def pick_sex_rule(entry: ReferenceEntry, level: str, sex: str = "unisex") -> Optional[str]:
    rules = entry.levels.get(level)
    if rules is None:
        return None
    if sex == "male" and rules.male:
        return rules.male
    if sex == "female" and rules.female:
        return rules.female
    return rules.unisex or rules.male or rules.female


def compute_level(entry: ReferenceEntry, value: float, sex: str = "unisex") -> Optional[str]:
    for lvl in LEVELS:
        rule = pick_sex_rule(entry, lvl, sex)
        if rule and match_rule(rule, value):
            return lvl

    bad = pick_sex_rule(entry, WORST_LEVEL, sex)
    if bad and match_rule(bad, value):
        return WORST_LEVEL
    return None


def reference_display(entry: ReferenceEntry) -> Optional[str]:
    """Text shown as "the" reference of an entry."""
    for lvl in LEVELS:
        rules = entry.levels.get(lvl)
        if rules and rules.unisex:
            return rules.unisex
    for lvl in LEVELS:
        if entry.raw.get(lvl):
            return entry.raw[lvl]
    return None
