# reference/dataset.py
# ------------------------------------------------------------
# Reference dataset: qualitative level rules per biomarker.
#
# File layout (reference_ranges.dashboard.json):
#   {
#     "version": 3,
#     "generated_at": "2025-05-02T10:00:00Z",
#     "biomarkers": [
#       {
#         "id": "glucosa",
#         "name": "Glucosa",
#         "units": "mg/dL",
#         "category": "metabolic",
#         "levels": {
#           "excelente": {"unisex": "70 - 90", "male": null, "female": null},
#           "bueno":     {"unisex": "91 - 99", ...},
#           "regular":   {...},
#           "malo":      {"unisex": "< 70 o > 125", ...}
#         },
#         "raw": {"excelente": "70-90 mg/dL", ...}
#       }
#     ],
#     "by_id": {...}            # optional, rebuilt from "biomarkers"
#   }
#
# Loading order:
#   1. explicit path (if given)
#   2. local cache (LABREPORT_REFERENCE_CACHE)
#   3. download from the Hugging Face dataset repo named by
#      LABREPORT_REFERENCE_REPO_ID, persisted to the cache path
#
# Parsed data is immutable. Structural problems raise
# InvalidConfigurationError at load time.
# ------------------------------------------------------------

from __future__ import annotations

import json
import logging
import os
import shutil
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from huggingface_hub import hf_hub_download

from engine.errors import InvalidConfigurationError
from engine.schema import CATEGORIES, DEFAULT_CATEGORY, LEVELS
from engine.text_normalizer import slugify

logger = logging.getLogger(__name__)

REFERENCE_FILENAME = os.getenv("LABREPORT_REFERENCE_FILENAME", "reference_ranges.dashboard.json")
REFERENCE_CACHE_PATH = os.getenv(
    "LABREPORT_REFERENCE_CACHE", os.path.join("data", REFERENCE_FILENAME)
)
REFERENCE_REPO_ID = os.getenv("LABREPORT_REFERENCE_REPO_ID")


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class SexRules:
    unisex: Optional[str] = None
    male: Optional[str] = None
    female: Optional[str] = None


@dataclass(frozen=True)
class ReferenceEntry:
    id: str
    name: str
    units: Optional[str] = None
    category: str = DEFAULT_CATEGORY
    levels: Mapping[str, SexRules] = field(default_factory=dict)
    raw: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ReferenceData:
    version: int
    generated_at: str
    biomarkers: Tuple[ReferenceEntry, ...]
    by_id: Mapping[str, ReferenceEntry]

    def lookup(self, name: str) -> Optional[ReferenceEntry]:
        """Entry for a biomarker name or id (slugified)."""
        return self.by_id.get(slugify(name))

    def __len__(self) -> int:
        return len(self.biomarkers)


# ============================================================
# PARSING / VALIDATION
# ============================================================

def _opt_str(v: Any, what: str, source: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    if not isinstance(v, str):
        raise InvalidConfigurationError(f"{what} must be a string or null", source)
    v = v.strip()
    return v or None


def _parse_sex_rules(v: Any, what: str, source: Optional[str]) -> SexRules:
    # a bare string is a sex-neutral rule
    if v is None or isinstance(v, str):
        return SexRules(unisex=_opt_str(v, what, source))
    if not isinstance(v, dict):
        raise InvalidConfigurationError(f"{what} must be an object", source)
    return SexRules(
        unisex=_opt_str(v.get("unisex"), f"{what}.unisex", source),
        male=_opt_str(v.get("male"), f"{what}.male", source),
        female=_opt_str(v.get("female"), f"{what}.female", source),
    )


def parse_reference_entry(obj: Any, source: Optional[str] = None) -> ReferenceEntry:
    if not isinstance(obj, dict):
        raise InvalidConfigurationError("biomarker entries must be objects", source)

    name = obj.get("name")
    if not isinstance(name, str) or not name.strip():
        raise InvalidConfigurationError("biomarker entry without 'name'", source)
    name = name.strip()

    entry_id = obj.get("id") or slugify(name)
    if not isinstance(entry_id, str):
        raise InvalidConfigurationError(f"id of {name!r} must be a string", source)

    levels_obj = obj.get("levels")
    if not isinstance(levels_obj, dict):
        raise InvalidConfigurationError(f"{name!r} has no 'levels' object", source)
    unknown = set(levels_obj) - set(LEVELS)
    if unknown:
        raise InvalidConfigurationError(
            f"{name!r} has unknown levels {sorted(unknown)}", source
        )
    levels = {
        lvl: _parse_sex_rules(levels_obj.get(lvl), f"{name}.levels.{lvl}", source)
        for lvl in LEVELS
    }

    raw_obj = obj.get("raw") or {}
    if not isinstance(raw_obj, dict):
        raise InvalidConfigurationError(f"'raw' of {name!r} must be an object", source)
    raw = {
        lvl: str(raw_obj[lvl]) for lvl in LEVELS
        if raw_obj.get(lvl) not in (None, "")
    }

    category = obj.get("category") or DEFAULT_CATEGORY
    if category not in CATEGORIES:
        logger.warning("%s: category %r folded into %r", name, category, DEFAULT_CATEGORY)
        category = DEFAULT_CATEGORY

    return ReferenceEntry(
        id=entry_id,
        name=name,
        units=_opt_str(obj.get("units"), f"{name}.units", source),
        category=category,
        levels=MappingProxyType(levels),
        raw=MappingProxyType(raw),
    )


def parse_reference_data(obj: Any, source: Optional[str] = None) -> ReferenceData:
    """Validate a decoded reference JSON document."""
    if not isinstance(obj, dict):
        raise InvalidConfigurationError("reference dataset must be a JSON object", source)

    version = obj.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise InvalidConfigurationError("'version' must be an integer", source)

    biomarkers = obj.get("biomarkers")
    if not isinstance(biomarkers, list):
        raise InvalidConfigurationError("'biomarkers' must be a list", source)

    generated_at = obj.get("generated_at") or ""
    if not isinstance(generated_at, str):
        raise InvalidConfigurationError("'generated_at' must be a string", source)

    entries = tuple(parse_reference_entry(b, source) for b in biomarkers)
    by_id: Dict[str, ReferenceEntry] = {}
    for e in entries:
        if e.id in by_id:
            raise InvalidConfigurationError(f"duplicate biomarker id {e.id!r}", source)
        by_id[e.id] = e

    return ReferenceData(
        version=version,
        generated_at=generated_at,
        biomarkers=entries,
        by_id=MappingProxyType(by_id),
    )


# ============================================================
# FILE / REMOTE LOADING
# ============================================================

def read_reference_file(path: str) -> ReferenceData:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Reference dataset not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            obj = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidConfigurationError(f"invalid JSON ({e})", path) from e
    return parse_reference_data(obj, source=path)


def fetch_reference_file(
    repo_id: Optional[str] = None,
    filename: str = REFERENCE_FILENAME,
    cache_path: str = REFERENCE_CACHE_PATH,
) -> str:
    """
    Download the dataset file from the Hugging Face Hub and persist
    it at `cache_path`. Returns the cache path.
    """
    repo_id = repo_id or REFERENCE_REPO_ID
    if not repo_id:
        raise InvalidConfigurationError(
            "Missing LABREPORT_REFERENCE_REPO_ID environment variable."
        )

    logger.info("downloading %s from %s", filename, repo_id)
    downloaded = hf_hub_download(
        repo_id=repo_id,
        filename=filename,
        repo_type="dataset",
        token=os.getenv("HF_TOKEN"),
    )

    out_dir = os.path.dirname(cache_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    shutil.copyfile(downloaded, cache_path)
    return cache_path


def load_reference_data(
    path: Optional[str] = None,
    fetch: bool = True,
    cache_path: str = REFERENCE_CACHE_PATH,
) -> Optional[ReferenceData]:
    """
    Reference data from `path`, else the local cache, else the Hub.

    Returns None when nothing is cached and fetching is disabled or
    not configured: scoring then falls back to raw bounds.
    """
    if path:
        return read_reference_file(path)

    if os.path.exists(cache_path):
        logger.info("reference dataset from cache %s", cache_path)
        return read_reference_file(cache_path)

    if not fetch or not REFERENCE_REPO_ID:
        logger.info("no reference dataset available (cache %s missing)", cache_path)
        return None

    return read_reference_file(fetch_reference_file(cache_path=cache_path))


def reload_reference_data(cache_path: str = REFERENCE_CACHE_PATH) -> ReferenceData:
    """Force a fresh download, replacing the cached copy."""
    return read_reference_file(fetch_reference_file(cache_path=cache_path))
