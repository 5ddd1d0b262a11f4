"""Per-item candidate retrieval, type-token rerank and cross-item dedupe.

Vector similarity mixes up attribute similarity (a 3/4" fitting looks like
any other 3/4" part) with product identity. The rerank puts candidates whose
name or alternate names carry the item's type word first, then each item
keeps only a handful of candidates before the sets are merged.
"""

import logging
import re
from typing import Callable, Optional, Sequence

from .models import Candidate, LineItem
from .quantities import strip_quantity_expression
from .rules_loader import DomainRules

logger = logging.getLogger(__name__)


def extract_type_token(text: str, rules: Optional[DomainRules] = None) -> str:
    """Last word longer than 3 characters of the item's descriptive text, else its last word.

    The quantity expression is dropped first, and size tokens (``3/4``,
    ``1-1/2``) don't count as words.
    """
    descriptive = strip_quantity_expression(text, rules)
    tokens = [t.strip("\"',.;:()") for t in descriptive.split()]
    words = [t for t in tokens if re.search(r"[A-Za-z]", t)]
    if not words:
        words = [t for t in tokens if t]
    if not words:
        return ""
    for word in reversed(words):
        if len(word) > 3:
            return word
    return words[-1]


def rerank_by_type(candidates: Sequence[Candidate], type_token: str,
                   cap: Optional[int] = None) -> list[Candidate]:
    """Stable partition: type-token matches first, then the rest; optionally capped."""
    if type_token:
        matched = [c for c in candidates if c.record.matches_type(type_token)]
        others = [c for c in candidates if not c.record.matches_type(type_token)]
        ranked = matched + others
    else:
        ranked = list(candidates)
    if cap is not None:
        ranked = ranked[:cap]
    return ranked


def dedupe_candidates(candidates: Sequence[Candidate]) -> list[Candidate]:
    """Keep the first occurrence of each record id, in first-seen order."""
    seen = set()
    unique = []
    for cand in candidates:
        if cand.record_id in seen:
            continue
        seen.add(cand.record_id)
        unique.append(cand)
    return unique


class EmbeddingRetriever:
    """embed → vector search for one line item.

    Both collaborators are plain callables so tests can pass fakes:
    ``embed(text) -> list[float]`` and ``search(vector, top_k) -> list[Candidate]``.
    Failures from either propagate unchanged.
    """

    def __init__(self, embed: Callable[[str], list[float]],
                 search: Callable[[list[float], int], list[Candidate]],
                 top_k: int = 20):
        self.embed = embed
        self.search = search
        self.top_k = top_k

    def retrieve(self, item: LineItem) -> list[Candidate]:
        vector = self.embed(item.text)
        matches = self.search(vector, self.top_k)
        logger.debug(f"Item {item.index} '{item.text}': {len(matches)} matches")
        return [Candidate(record=m.record, score=m.score, origin=item) for m in matches]
