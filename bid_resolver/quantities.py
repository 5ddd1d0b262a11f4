"""Quantity normalization for requested line items.

Rules (all results are non-negative integers, fractions round UP):
- Footage:          200'               → 200
- Cuts / rolls:     2 cuts × 400'      → 800
- Containers:       3 boxes + "24 per box" in the record's properties → 72
- Bare count:       10 3/4" connectors → 10

An expression none of these recognise is unparseable: ``normalize_quantity``
returns None and the caller renders the NO-BID sentinel with quantity 1.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Optional

from .rules_loader import DomainRules, get_rules

_NUM = r"(\d[\d,]*(?:\.\d+)?)"
_MULT = r"\s*(?:x|×|\*|@|of|at)?\s*"
_BOUNDARY = r"(?<![\w/.\-×'])"  # not inside a size like 8x8x6 or 3/4
_PAREN_NUM = _BOUNDARY + r"\(?\s*" + _NUM + r"(?![\d,.])\s*\)?"

_LEADING_NOISE_RE = re.compile(r"^(?:[\s,:;\-–]+|(?:of|x|×|@)\s+)+", re.IGNORECASE)


@dataclass(frozen=True)
class QuantityExpression:
    kind: str                       # "runs" | "containers" | "footage" | "count"
    count: float = 0.0
    length: float = 0.0
    span: tuple[int, int] = (0, 0)


def _to_number(raw: str) -> Optional[float]:
    try:
        return float(raw.replace(",", ""))
    except (ValueError, AttributeError):
        return None


def _alternation(words: list[str]) -> str:
    """Regex alternation; alphabetic words get a trailing word boundary."""
    parts = []
    for w in sorted(set(words), key=len, reverse=True):
        if re.fullmatch(r"[A-Za-z]+", w):
            parts.append(re.escape(w) + r"\b\.?")
        else:
            parts.append(re.escape(w))
    return "(?:" + "|".join(parts) + ")"


def _normalize_marks(text: str) -> str:
    # Curly quotes and primes are common in pasted takeoffs.
    return (text or "").replace("’", "'").replace("′", "'").replace("‘", "'")


def _patterns(rules: DomainRules) -> dict[str, list[re.Pattern]]:
    unit = _alternation(rules.quantity.length_units)
    runs = _alternation(rules.quantity.run_words)
    boxes = _alternation(rules.quantity.container_words)
    flags = re.IGNORECASE
    return {
        "runs": [
            # 2 cuts × 400'   /   2 rolls of 500ft
            re.compile(_PAREN_NUM + r"\s*" + runs + _MULT + _NUM + r"\s*" + unit, flags),
            # (2) 500' rolls  /   2 x 500' cuts
            re.compile(_PAREN_NUM + r"\s*(?:x|×|\*|-)?\s*" + _NUM + r"\s*" + unit + r"\s*" + runs, flags),
        ],
        "runs_reversed": [
            # 500' x 2 cuts
            re.compile(_BOUNDARY + _NUM + r"\s*" + unit + _MULT + _NUM + r"\s*" + runs, flags),
        ],
        "containers": [
            re.compile(_PAREN_NUM + r"\s*" + boxes, flags),
        ],
        "footage": [
            re.compile(_BOUNDARY + _NUM + r"\s*" + unit, flags),
        ],
        "count": [
            re.compile(r"^\s*\(?\s*(\d[\d,]*)\s*\)?(?![\d/.'\-])", flags),
            re.compile(r"\bqty\.?\s*:?\s*(\d[\d,]*)\b", flags),
            re.compile(r"\b(\d[\d,]*)\s*(?:pcs|pc|ea|each|pieces)\b", flags),
        ],
    }


def parse_quantity_expression(text: str, rules: Optional[DomainRules] = None) -> Optional[QuantityExpression]:
    """Find the quantity expression in a line item, most specific form first."""
    rules = rules or get_rules()
    text = _normalize_marks(text)
    pats = _patterns(rules)

    for pat in pats["runs"]:
        m = pat.search(text)
        if m:
            count, length = _to_number(m.group(1)), _to_number(m.group(2))
            if count is not None and length is not None:
                return QuantityExpression("runs", count=count, length=length, span=m.span())
    for pat in pats["runs_reversed"]:
        m = pat.search(text)
        if m:
            length, count = _to_number(m.group(1)), _to_number(m.group(2))
            if count is not None and length is not None:
                return QuantityExpression("runs", count=count, length=length, span=m.span())
    for pat in pats["containers"]:
        m = pat.search(text)
        if m and _to_number(m.group(1)) is not None:
            return QuantityExpression("containers", count=_to_number(m.group(1)), span=m.span())
    for pat in pats["footage"]:
        m = pat.search(text)
        if m and _to_number(m.group(1)) is not None:
            return QuantityExpression("footage", length=_to_number(m.group(1)), span=m.span())
    for pat in pats["count"]:
        m = pat.search(text)
        if m and _to_number(m.group(1)) is not None:
            return QuantityExpression("count", count=_to_number(m.group(1)), span=m.span())
    return None


def strip_quantity_expression(text: str, rules: Optional[DomainRules] = None) -> str:
    """Descriptive part of a line item: the quantity expression and leading connectors removed."""
    text = _normalize_marks(text)
    expr = parse_quantity_expression(text, rules)
    if expr:
        start, end = expr.span
        text = f"{text[:start]} {text[end:]}"
    text = _LEADING_NOISE_RE.sub("", text.strip())
    return re.sub(r"\s+", " ", text).strip()


def parse_per_container(properties: str, rules: Optional[DomainRules] = None) -> Optional[int]:
    """Per-box count declared in a record's properties ("24 per box", "25/bx", "box of 50")."""
    rules = rules or get_rules()
    if not properties:
        return None
    boxes = _alternation(rules.quantity.container_words)
    patterns = [
        _NUM + r"\s*(?:/|per|a|each|in\s+a)\s*" + boxes,
        _NUM + r"\s*(?:pcs|pieces|pc|ea|ct|count)\.?\s*(?:/|per|a|in\s+a)\s*" + boxes,
        r"\b" + boxes + r"\s*(?:of|qty|quantity|count)\s*[:=]?\s*" + _NUM,
    ]
    for p in patterns:
        m = re.search(p, properties, re.IGNORECASE)
        if m:
            value = _to_number(m.group(1))
            if value and value > 0:
                return int(math.ceil(value))
    return None


def normalize_quantity(expression: str, properties: str = "",
                       rules: Optional[DomainRules] = None) -> Optional[int]:
    """Integer quantity for a requested expression, or None when unparseable."""
    rules = rules or get_rules()
    expr = parse_quantity_expression(expression, rules)
    if expr is None:
        return None

    if expr.kind == "runs":
        value = expr.count * expr.length
    elif expr.kind == "containers":
        per_box = parse_per_container(properties, rules)
        # No declared box size: the request is taken as a plain count.
        value = expr.count * per_box if per_box else expr.count
    elif expr.kind == "footage":
        value = expr.length
    else:
        value = expr.count

    if value < 0:
        return None
    return int(math.ceil(value))
