"""Keyword-overlap scoring over catalog rows.

Fully local and deterministic: this is the retrieval path that still works
when the embedding service or the vector index is down or not configured.
"""

import re
from typing import Optional, Sequence

from .models import CatalogRecord
from .rules_loader import DomainRules, get_rules

_TOKEN_RE = re.compile(r"[a-z0-9#][a-z0-9/#.\-]*")


def score_row(text: str, terms: Sequence[str]) -> int:
    """Σ over terms found as substrings: 2 for terms longer than 2 chars, else 1."""
    text = (text or "").lower()
    score = 0
    for term in terms:
        if term and term in text:
            score += 2 if len(term) > 2 else 1
    return score


def select_rows(
    rows: Sequence[str],
    terms: Sequence[str],
    max_results: int = 200,
    min_results: int = 50,
    empty_prefix: int = 100,
) -> list[int]:
    """Return indices of the rows to keep, best first.

    Args:
        rows: Row texts in catalog order
        terms: Lower-cased search terms
        max_results: Hard cap on returned rows
        min_results: Floor reached by padding from the start of the catalog
        empty_prefix: Rows returned when there are no terms

    Returns:
        Row indices, never more than max_results and never repeated
    """
    terms = [t for t in terms if t]
    if max_results <= 0:
        return []
    if not terms:
        return list(range(min(empty_prefix, max_results, len(rows))))

    scored = [(i, score_row(row, terms)) for i, row in enumerate(rows)]
    hits = [(i, s) for i, s in scored if s > 0]
    hits.sort(key=lambda pair: pair[1], reverse=True)  # stable: ties keep catalog order
    selected = [i for i, _ in hits[:max_results]]

    floor = min(min_results, max_results)
    if len(selected) < floor:
        chosen = set(selected)
        for i in range(len(rows)):
            if len(selected) >= floor:
                break
            if i not in chosen:
                selected.append(i)
                chosen.add(i)
    return selected


def lexical_search(
    records: Sequence[CatalogRecord],
    terms: Sequence[str],
    max_results: int = 200,
    min_results: int = 50,
    empty_prefix: int = 100,
) -> list[CatalogRecord]:
    """select_rows() over catalog records' search text."""
    indices = select_rows(
        [r.search_text for r in records], terms,
        max_results=max_results, min_results=min_results, empty_prefix=empty_prefix,
    )
    return [records[i] for i in indices]


def extract_search_terms(text: str, rules: Optional[DomainRules] = None) -> list[str]:
    """Lower-cased search terms from request text.

    Stopwords, quantity words (cuts, rolls, boxes, ft...) and bare integers
    are dropped; sizes such as ``3/4`` or ``#12`` are kept.
    """
    rules = rules or get_rules()
    noise = set(w.lower() for w in rules.stopwords)
    noise.update(w.lower() for w in rules.quantity.run_words)
    noise.update(w.lower() for w in rules.quantity.container_words)
    noise.update(w.lower() for w in rules.quantity.length_units)

    terms: list[str] = []
    seen = set()
    for token in _TOKEN_RE.findall((text or "").lower()):
        token = token.rstrip(".-")
        if not token or token in noise or token.isdigit():
            continue
        if token not in seen:
            seen.add(token)
            terms.append(token)
    return terms
