# engine/text_normalizer.py
# ------------------------------------------------------------
# Text normalisation shared by the alias index and the line
# extractor.
#
# - NFD + drop combining marks ("Hemoglobina Glicósilada"
#   → "Hemoglobina Glicosilada")
# - keep ASCII letters, digits, whitespace and the symbols
#   used in units / ranges:  / % . , - µ μ ^ ·
# - everything else → single space, whitespace collapsed
#
# fold_text() preserves case, normalize_text() lowercases.
# Both outputs have the same length for the same input, so an
# offset found in the lowercase view addresses the cased view.
# ------------------------------------------------------------

from __future__ import annotations

import re
import unicodedata

UNIT_SYMBOLS = "/%.,-µμ^·"

# Comparator glyphs the extractor keeps so that "< 100" is seen
# as a bound expression and not as a bare number.
COMPARATOR_CHARS = "<>=≤≥"

_WS_RE = re.compile(r"\s+")
_SLUG_RE = re.compile(r"[^a-zA-Z0-9]+")


def _strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _is_allowed(ch: str, keep: str) -> bool:
    if ch.isascii() and ch.isalnum():
        return True
    return ch in UNIT_SYMBOLS or ch in keep or ch.isspace()


def fold_text(text: str, keep: str = "") -> str:
    """
    Case-preserving normalisation.

    `keep` lists extra characters allowed through on top of the
    default unit/range symbol set.
    """
    if not text:
        return ""
    s = _strip_diacritics(text)
    s = "".join(ch if _is_allowed(ch, keep) else " " for ch in s)
    return _WS_RE.sub(" ", s).strip()


def normalize_text(text: str, keep: str = "") -> str:
    """Lowercase, diacritic-free, whitespace-collapsed form of `text`."""
    return fold_text(text, keep).lower()


def slugify(name: str) -> str:
    """Reference-dataset id of a biomarker name ("Colesterol Total" → "colesterol_total")."""
    if not name:
        return ""
    s = unicodedata.normalize("NFKD", name)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = _SLUG_RE.sub("_", s)
    return s.strip("_").lower()
