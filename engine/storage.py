# engine/storage.py
# ------------------------------------------------------------
# Analysis store (persistence sink).
#
# Saved analyses are kept in one JSON file:
#   [
#     {"id": "<uuid4>", "name": "Analítica 18/10/2026",
#      "created_at": "...", "data": [record, ...]},
#     ...
#   ]
#
# "data" is not interpreted by the store: it holds the
# record dicts produced by BiomarkerRecord.to_dict().
# ------------------------------------------------------------

from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from engine.schema import BiomarkerRecord, validate_record

logger = logging.getLogger(__name__)

DEFAULT_ANALYSES_PATH = os.getenv(
    "LABREPORT_ANALYSES_PATH", os.path.join("data", "analyses.json")
)


@dataclass
class Analysis:
    id: str
    name: str
    data: List[Dict[str, Any]] = field(default_factory=list)
    created_at: Optional[str] = None

    def records(self) -> List[BiomarkerRecord]:
        """Stored record dicts that pass validate_record; others are logged and skipped."""
        out = []
        for i, d in enumerate(self.data):
            if not isinstance(d, dict):
                logger.warning("analysis %s: entry %d is not an object", self.id, i)
                continue
            ok, issues = validate_record(d)
            if not ok:
                logger.warning("analysis %s: entry %d skipped (%s)", self.id, i, "; ".join(issues))
                continue
            out.append(BiomarkerRecord.from_dict(d))
        return out


def default_analysis_name(when: Optional[datetime] = None) -> str:
    when = when or datetime.now()
    return f"Analítica {when.strftime('%d/%m/%Y')}"


class AnalysisStore:
    def __init__(self, path: str = DEFAULT_ANALYSES_PATH):
        self.path = path

    # ---------- io ----------

    def _read(self) -> List[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError:
                logger.warning("analysis store %s is not valid JSON; starting empty", self.path)
                return []
        return data if isinstance(data, list) else []

    def _write(self, items: List[Dict[str, Any]]) -> None:
        out_dir = os.path.dirname(self.path)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(items, f, indent=2, ensure_ascii=False)
        os.replace(tmp, self.path)

    # ---------- api ----------

    def analyses(self) -> List[Analysis]:
        out = []
        for item in self._read():
            if not isinstance(item, dict) or "id" not in item:
                continue
            out.append(Analysis(
                id=str(item["id"]),
                name=str(item.get("name", "")),
                data=list(item.get("data") or []),
                created_at=item.get("created_at"),
            ))
        return out

    def get(self, analysis_id: str) -> Optional[Analysis]:
        return next((a for a in self.analyses() if a.id == analysis_id), None)

    def save(
        self,
        records: Iterable[BiomarkerRecord],
        name: Optional[str] = None,
    ) -> Analysis:
        now = datetime.now()
        analysis = Analysis(
            id=str(uuid.uuid4()),
            name=name or default_analysis_name(now),
            data=[r.to_dict() for r in records],
            created_at=now.isoformat(timespec="seconds"),
        )
        items = self._read()
        items.append(asdict(analysis))
        self._write(items)
        logger.info("saved analysis %s (%d records) to %s", analysis.id, len(analysis.data), self.path)
        return analysis

    def remove(self, analysis_id: str) -> bool:
        items = self._read()
        kept = [i for i in items if not (isinstance(i, dict) and i.get("id") == analysis_id)]
        if len(kept) == len(items):
            return False
        self._write(kept)
        return True
