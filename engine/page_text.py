# engine/page_text.py
# ------------------------------------------------------------
# Page text supplier adapter.
#
# PDF readers hand out positioned text fragments. A report
# table row is split into several fragments that share the same
# vertical coordinate, so lines are rebuilt by:
#   • grouping fragments on round(y)
#   • keeping reading order inside a group
#   • joining the fragments of one visual line with "||"
#   • ordering groups by ascending y
#
# PDF decoding itself happens outside this package; the parser
# only needs "a sequence of raw text lines".
# ------------------------------------------------------------

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Sequence, Tuple

FRAGMENT_SEPARATOR = "||"

Fragment = Tuple[str, float]


def reconstruct_page_lines(fragments: Iterable[Fragment]) -> List[str]:
    """[(text, y), ...] → visual lines of one page."""
    groups: Dict[int, List[str]] = defaultdict(list)
    for text, y in fragments:
        s = " ".join((text or "").split())
        if s:
            groups[int(round(y))].append(s)
    return [FRAGMENT_SEPARATOR.join(groups[y]) for y in sorted(groups)]


def join_pages(pages: Sequence[Sequence[str]]) -> str:
    """Lines of every page → one text blob ready for the parser."""
    return "\n".join("\n".join(lines) for lines in pages)
