# engine/catalog.py
# ------------------------------------------------------------
# Biomarker catalog + alias index
#
# - SUPPORTED_BIOMARKERS: static table of canonical biomarker
#   names, the aliases that appear in Spanish / Portuguese lab
#   reports, and the dashboard category of each one.
# - EXCLUSION_PATTERNS: per-biomarker regexes; a line matching
#   one of them never yields that biomarker (known false
#   positives, e.g. "Transferrina" on a saturation line).
# - build_catalog(): validates the table and builds the alias
#   index once. The result is an immutable BiomarkerCatalog that
#   callers pass explicitly into the parser.
#
# Alias index:
#   • every alias AND the canonical name itself, normalised
#   • sorted by descending alias length (longest match first)
#   • the same alias claimed by two biomarkers is a load-time
#     InvalidConfigurationError, never a parse-time surprise
# ------------------------------------------------------------

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from engine.errors import InvalidConfigurationError
from engine.schema import CATEGORIES
from engine.text_normalizer import normalize_text

logger = logging.getLogger(__name__)

LinePredicate = Callable[[str], bool]

# ============================================================
# STATIC TABLE
# ============================================================

SUPPORTED_BIOMARKERS: Dict[str, Dict[str, Any]] = {
    # --- cardiovascular ---
    "Colesterol Total": {
        "aliases": ["colesterol", "colesterol total", "colesterol serico", "ct"],
        "category": "cardiovascular",
    },
    "Colesterol HDL": {
        "aliases": ["hdl", "hdl colesterol", "colesterol hdl", "c-hdl", "hdl-c"],
        "category": "cardiovascular",
    },
    "Colesterol LDL": {
        "aliases": ["ldl", "ldl colesterol", "colesterol ldl", "c-ldl", "ldl-c", "ldl calculado"],
        "category": "cardiovascular",
    },
    "Triglicéridos": {
        "aliases": ["trigliceridos", "triglicerides", "tg"],
        "category": "cardiovascular",
    },
    "Homocisteína": {
        "aliases": ["homocisteina", "homocisteina total"],
        "category": "cardiovascular",
    },
    "Apolipoproteína B": {
        "aliases": ["apolipoproteina b", "apo b", "apob"],
        "category": "cardiovascular",
    },
    "Lipoproteína (a)": {
        "aliases": ["lipoproteina a", "lp a"],
        "category": "cardiovascular",
    },

    # --- metabolic ---
    "Glucosa": {
        "aliases": ["glucosa", "glucosa basal", "glucosa en ayunas", "glucemia", "glicemia", "glicose"],
        "category": "metabolic",
    },
    "Hemoglobina Glicosilada": {
        "aliases": ["hemoglobina glicosilada", "hemoglobina glicada", "hba1c", "hb a1c", "a1c"],
        "category": "metabolic",
    },
    "Insulina": {
        "aliases": ["insulina", "insulina basal"],
        "category": "metabolic",
    },
    "Ácido Úrico": {
        "aliases": ["acido urico", "urato", "uricemia"],
        "category": "metabolic",
    },
    "Creatinina": {
        "aliases": ["creatinina", "creatinina serica"],
        "category": "metabolic",
    },
    "Urea": {
        "aliases": ["urea", "ureia"],
        "category": "metabolic",
    },
    "ALT": {
        "aliases": ["alt", "gpt", "alat", "alanina aminotransferasa", "alt/gpt", "gpt/alt"],
        "category": "metabolic",
    },
    "AST": {
        "aliases": ["ast", "got", "asat", "aspartato aminotransferasa", "ast/got", "got/ast"],
        "category": "metabolic",
    },
    "GGT": {
        "aliases": ["ggt", "gamma gt", "gamma glutamil transferasa", "gamma-glutamiltransferasa"],
        "category": "metabolic",
    },
    "Bilirrubina Total": {
        "aliases": ["bilirrubina", "bilirrubina total"],
        "category": "metabolic",
    },
    "Fosfatasa Alcalina": {
        "aliases": ["fosfatasa alcalina", "fal"],
        "category": "metabolic",
    },
    "Albúmina": {
        "aliases": ["albumina", "albumina serica"],
        "category": "metabolic",
    },

    # --- immune ---
    "Leucocitos": {
        "aliases": ["leucocitos", "leucocitos totales", "globulos blancos", "wbc"],
        "category": "immune",
    },
    "Neutrófilos": {
        "aliases": ["neutrofilos", "neutrofilos totales", "segmentados"],
        "category": "immune",
    },
    "Linfocitos": {
        "aliases": ["linfocitos", "linfocitos totales"],
        "category": "immune",
    },
    "Monocitos": {
        "aliases": ["monocitos"],
        "category": "immune",
    },
    "Eosinófilos": {
        "aliases": ["eosinofilos"],
        "category": "immune",
    },
    "Basófilos": {
        "aliases": ["basofilos"],
        "category": "immune",
    },
    "PCR": {
        "aliases": ["pcr", "proteina c reactiva", "proteina c-reactiva", "pcr ultrasensible"],
        "category": "immune",
    },
    "VSG": {
        "aliases": ["vsg", "velocidad de sedimentacion", "velocidad de sedimentacion globular"],
        "category": "immune",
    },

    # --- hormonal ---
    "TSH": {
        "aliases": ["tsh", "tirotropina", "hormona estimulante del tiroides"],
        "category": "hormonal",
    },
    "T4 Libre": {
        "aliases": ["t4 libre", "tiroxina libre", "ft4", "t4l"],
        "category": "hormonal",
    },
    "T3 Libre": {
        "aliases": ["t3 libre", "triyodotironina libre", "ft3", "t3l"],
        "category": "hormonal",
    },
    "Testosterona": {
        "aliases": ["testosterona", "testosterona total"],
        "category": "hormonal",
    },
    "Estradiol": {
        "aliases": ["estradiol", "17 beta estradiol"],
        "category": "hormonal",
    },
    "Cortisol": {
        "aliases": ["cortisol", "cortisol basal"],
        "category": "hormonal",
    },
    "Vitamina D": {
        "aliases": ["vitamina d", "25 oh vitamina d", "25-oh vitamina d", "vitamina d3", "calcidiol"],
        "category": "hormonal",
    },

    # --- general ---
    "Hemoglobina": {
        "aliases": ["hemoglobina", "hb", "hgb"],
        "category": "general",
    },
    "Hematíes": {
        "aliases": ["hematies", "eritrocitos", "globulos rojos", "rbc"],
        "category": "general",
    },
    "Hematocrito": {
        "aliases": ["hematocrito", "hto", "hct"],
        "category": "general",
    },
    "VCM": {
        "aliases": ["vcm", "volumen corpuscular medio", "mcv"],
        "category": "general",
    },
    "HCM": {
        "aliases": ["hcm", "hemoglobina corpuscular media", "mch"],
        "category": "general",
    },
    "Plaquetas": {
        "aliases": ["plaquetas", "recuento de plaquetas", "plt"],
        "category": "general",
    },
    "Hierro": {
        "aliases": ["hierro", "hierro serico", "sideremia", "ferro"],
        "category": "general",
    },
    "Ferritina": {
        "aliases": ["ferritina"],
        "category": "general",
    },
    "Transferrina": {
        "aliases": ["transferrina"],
        "category": "general",
    },
    "Saturación de Transferrina": {
        "aliases": [
            "saturacion de transferrina",
            "indice de saturacion de transferrina",
            "ist",
        ],
        "category": "general",
    },
    "Vitamina B12": {
        "aliases": ["vitamina b12", "cobalamina", "cianocobalamina"],
        "category": "general",
    },
    "Ácido Fólico": {
        "aliases": ["acido folico", "folato", "folatos"],
        "category": "general",
    },
    "Sodio": {
        "aliases": ["sodio", "sodio serico"],
        "category": "general",
    },
    "Potasio": {
        "aliases": ["potasio", "potasio serico"],
        "category": "general",
    },
    "Calcio": {
        "aliases": ["calcio", "calcio total"],
        "category": "general",
    },
    "Magnesio": {
        "aliases": ["magnesio"],
        "category": "general",
    },
}

# canonical → regexes evaluated against the normalised line
EXCLUSION_PATTERNS: Dict[str, List[str]] = {
    "Transferrina": [r"\bsaturacion\b"],
}

# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class BiomarkerCatalogEntry:
    name: str
    aliases: Tuple[str, ...]
    category: Optional[str] = None


@dataclass(frozen=True)
class BiomarkerCatalog:
    entries: Mapping[str, BiomarkerCatalogEntry]
    alias_pairs: Tuple[Tuple[str, str], ...]
    exclusions: Mapping[str, LinePredicate]

    def category_of(self, canonical: str) -> Optional[str]:
        entry = self.entries.get(canonical)
        return entry.category if entry else None

    def should_skip(self, canonical: str, line: str) -> bool:
        predicate = self.exclusions.get(canonical)
        return bool(predicate and predicate(line))

    def __len__(self) -> int:
        return len(self.entries)


# ============================================================
# BUILDERS
# ============================================================

def regex_exclusion(*patterns: str) -> LinePredicate:
    """Predicate that is true when any pattern matches the normalised line."""
    compiled = [re.compile(p) for p in patterns]

    def _predicate(line: str) -> bool:
        return any(rx.search(line) for rx in compiled)

    return _predicate


def build_alias_index(
    entries: Mapping[str, BiomarkerCatalogEntry],
    source: Optional[str] = None,
) -> Tuple[Tuple[str, str], ...]:
    """
    Map every normalised alias (and canonical name) to its canonical
    biomarker and return the pairs longest alias first.
    """
    alias_to_name: Dict[str, str] = {}
    for name, entry in entries.items():
        for alias in list(entry.aliases) + [name]:
            key = normalize_text(alias)
            if not key:
                raise InvalidConfigurationError(
                    f"alias {alias!r} of {name!r} is empty after normalisation",
                    source,
                )
            owner = alias_to_name.get(key)
            if owner is not None and owner != name:
                raise InvalidConfigurationError(
                    f"alias {key!r} maps to both {owner!r} and {name!r}",
                    source,
                )
            alias_to_name[key] = name

    pairs = sorted(alias_to_name.items(), key=lambda kv: len(kv[0]), reverse=True)
    return tuple(pairs)


def _coerce_entry(name: str, meta: Any, source: Optional[str]) -> BiomarkerCatalogEntry:
    if not isinstance(meta, dict):
        raise InvalidConfigurationError(f"entry {name!r} must be an object", source)

    aliases = meta.get("aliases", [])
    if isinstance(aliases, str) or not all(isinstance(a, str) for a in aliases):
        raise InvalidConfigurationError(f"aliases of {name!r} must be a list of strings", source)

    category = meta.get("category")
    if category is not None and category not in CATEGORIES:
        raise InvalidConfigurationError(
            f"category {category!r} of {name!r} is not one of {', '.join(CATEGORIES)}",
            source,
        )
    return BiomarkerCatalogEntry(name=name, aliases=tuple(aliases), category=category)


def build_catalog(
    table: Mapping[str, Mapping[str, Any]],
    exclusions: Optional[Mapping[str, LinePredicate]] = None,
    source: Optional[str] = None,
) -> BiomarkerCatalog:
    """
    Validate a {canonical: {aliases, category}} table and freeze it
    into a BiomarkerCatalog.
    """
    entries: Dict[str, BiomarkerCatalogEntry] = {}
    for name, meta in table.items():
        if not isinstance(name, str) or not name.strip():
            raise InvalidConfigurationError("biomarker names must be non-empty strings", source)
        entries[name] = _coerce_entry(name, meta, source)

    preds: Dict[str, LinePredicate] = {}
    for name, predicate in (exclusions or {}).items():
        if name not in entries:
            raise InvalidConfigurationError(f"exclusion rule for unknown biomarker {name!r}", source)
        if not callable(predicate):
            raise InvalidConfigurationError(f"exclusion rule for {name!r} is not callable", source)
        preds[name] = predicate

    pairs = build_alias_index(entries, source)
    logger.debug("alias index built: %d biomarkers, %d aliases", len(entries), len(pairs))

    return BiomarkerCatalog(
        entries=MappingProxyType(entries),
        alias_pairs=pairs,
        exclusions=MappingProxyType(preds),
    )


def load_catalog(path: str) -> BiomarkerCatalog:
    """
    Load a catalog from JSON:

      {
        "Glucosa": {"aliases": ["glucemia"], "category": "metabolic"},
        "Transferrina": {"aliases": [], "exclude_if": ["\\bsaturacion\\b"]}
      }
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Biomarker catalog not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            obj = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidConfigurationError(f"invalid JSON ({e})", path) from e

    if not isinstance(obj, dict):
        raise InvalidConfigurationError("catalog must be a JSON object", path)

    exclusions: Dict[str, LinePredicate] = {}
    for name, meta in obj.items():
        patterns = meta.get("exclude_if") if isinstance(meta, dict) else None
        if not patterns:
            continue
        if isinstance(patterns, str):
            patterns = [patterns]
        try:
            exclusions[name] = regex_exclusion(*patterns)
        except (re.error, TypeError) as e:
            raise InvalidConfigurationError(f"bad exclude_if for {name!r} ({e})", path) from e

    return build_catalog(obj, exclusions, source=path)


DEFAULT_CATALOG: BiomarkerCatalog = build_catalog(
    SUPPORTED_BIOMARKERS,
    {name: regex_exclusion(*patterns) for name, patterns in EXCLUSION_PATTERNS.items()},
    source="SUPPORTED_BIOMARKERS",
)
