"""Code resolution: matched catalog record + requested attributes → output code.

A record is addressed in exactly one of three ways, checked in this order:

1. Static code      ``code = "E34"``                       → ``E34``
2. Code template    ``code_template = "=ASE(SIZE)X(SIZE)X(SIZE)*"``
                    with sizes 8, 8, 6                     → ``=ASE8X8X6*``
3. Notes template   ``code = "TEMPLATE"``, notes carry ``=165(COLOR)4A`` and a
                    ``GREEN: GR`` table, colour GREEN      → ``=165GR4A*``

Anything else is unresolved (None) and renders as the NO-BID sentinel.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .models import Candidate, CatalogRecord
from .quantities import strip_quantity_expression
from .rules_loader import DomainRules, get_rules

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\(([A-Z][A-Z0-9_ ]*)\)")
_NOTES_TEMPLATE_RE = re.compile(r"=[^\s,;]*\([A-Z][A-Z0-9_ ]*\)[^\s,;]*")
_MAPPING_PAIR_RE = re.compile(r"^\s*([A-Za-z][A-Za-z0-9 \-]*?)\s*[:=]\s*([^\s:=()]+)\s*$")
_SIZE_RE = re.compile(
    r"(?<![\w/.#\-])"
    r"(#?\d+(?:-\d+/\d+|/\d+|\.\d+)?(?:\s*[x×]\s*\d+(?:-\d+/\d+|/\d+|\.\d+)?)*)"
    r"(?=$|[^\w/.]|(?:in|mm|awg|ga)\b)",
    re.IGNORECASE,
)

# Placeholders filled from the requested size tokens, left to right.
SIZE_PLACEHOLDERS = {"SIZE", "DIM", "DIMENSION", "WIDTH", "HEIGHT", "DEPTH", "LENGTH", "DIAMETER"}


@dataclass
class RequestedAttributes:
    """Size tokens in order of appearance, named values (COLOR, ...) and the descriptive text."""
    sizes: list[str] = field(default_factory=list)
    values: dict[str, str] = field(default_factory=dict)
    text: str = ""


def extract_attributes(text: str, rules: Optional[DomainRules] = None) -> RequestedAttributes:
    """Pull size tokens and a colour out of a line item's descriptive text.

    ``8x8x6`` yields three sizes; ``3/4``, ``1-1/2`` and ``#12`` one each. The
    quantity expression is removed first so ``200'`` is never read as a size.
    The colour is the first known colour word in text order.
    """
    rules = rules or get_rules()
    descriptive = strip_quantity_expression(text, rules)

    sizes: list[str] = []
    for m in _SIZE_RE.finditer(descriptive):
        for part in re.split(r"\s*[x×]\s*", m.group(1), flags=re.IGNORECASE):
            part = part.lstrip("#")
            if part:
                sizes.append(part)

    values: dict[str, str] = {}
    colors = set(rules.colors)
    for word in re.findall(r"[A-Z]+", descriptive.upper()):
        if word in colors:
            values["COLOR"] = word
            break
    return RequestedAttributes(sizes=sizes, values=values, text=descriptive)


def parse_mapping_table(notes: str) -> dict[str, str]:
    """``KEY: value`` pairs from special notes, keys upper-cased.

    Pairs may sit on separate lines or be separated by commas / semicolons.
    Template strings are never taken as mapping values.
    """
    mapping: dict[str, str] = {}
    for segment in re.split(r"[\n,;]", notes or ""):
        m = _MAPPING_PAIR_RE.match(segment)
        if not m:
            continue
        key, value = m.group(1).strip().upper(), m.group(2).strip()
        if value.startswith("="):
            continue
        mapping.setdefault(key, value)
    return mapping


def find_notes_template(notes: str) -> Optional[str]:
    m = _NOTES_TEMPLATE_RE.search(notes or "")
    return m.group(0).rstrip(".") if m else None


def _mapping_key_in_text(mapping: dict[str, str], text: str, used: set) -> Optional[str]:
    """First unused mapping key found as a whole word in ``text``, by position."""
    best = None
    for key in mapping:
        if key in used:
            continue
        m = re.search(r"(?<![A-Za-z0-9])" + re.escape(key) + r"(?![A-Za-z0-9])", text or "", re.IGNORECASE)
        if m and (best is None or m.start() < best[0]):
            best = (m.start(), key)
    return best[1] if best else None


def fill_template(template: str, attributes: RequestedAttributes,
                  mapping: Optional[dict[str, str]] = None,
                  wildcard: str = "*") -> Optional[str]:
    """Substitute placeholders left to right; None when one cannot be filled.

    Size placeholders take the requested sizes in order. Any other placeholder
    takes its named value, or else the mapping key that appears earliest in
    the item text.
    """
    mapping = mapping or {}
    sizes = iter(attributes.sizes)
    used: set = set()
    parts: list[str] = []
    pos = 0
    for m in _PLACEHOLDER_RE.finditer(template):
        name = m.group(1).strip().replace(" ", "_")
        if name == "COLOUR":
            name = "COLOR"
        if name in SIZE_PLACEHOLDERS:
            raw = next(sizes, None)
        elif name in attributes.values:
            raw = attributes.values[name]
        else:
            raw = _mapping_key_in_text(mapping, attributes.text, used)
            if raw is not None:
                used.add(raw)
        if raw is None:
            logger.debug(f"Template {template}: no value for ({name})")
            return None
        parts.append(template[pos:m.start()])
        parts.append(mapping.get(raw.upper(), raw))
        pos = m.end()
    parts.append(template[pos:])

    code = "".join(parts)
    if wildcard and not code.endswith(wildcard):
        code += wildcard
    return code


def resolve_code(record: CatalogRecord, attributes: RequestedAttributes,
                 rules: Optional[DomainRules] = None) -> Optional[str]:
    """Output code for a matched record, or None when it cannot be resolved."""
    rules = rules or get_rules()
    sentinel = rules.sentinels.template_code
    wildcard = rules.sentinels.wildcard_suffix
    code = (record.code or "").strip()

    if code and code.upper() != sentinel.upper():
        return code

    mapping = parse_mapping_table(record.special_notes)
    if record.code_template.strip():
        return fill_template(record.code_template.strip(), attributes, mapping, wildcard)

    if code.upper() == sentinel.upper():
        template = find_notes_template(record.special_notes)
        if template:
            return fill_template(template, attributes, mapping, wildcard)
        logger.warning(f"Record {record.record_id} is a TEMPLATE with no template in its notes")
    return None


def _normalize_name(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").strip().lower())


def select_candidate(item_name: str, type_token: str, candidates: Sequence[Candidate],
                     threshold: float = 0.7) -> Optional[Candidate]:
    """Pick the record a line item refers to.

    An exact display-name match wins outright. Otherwise the first candidate
    whose name or alternate names contain the type token, with a similarity
    score (when it has one) at or above the threshold. Attribute overlap
    alone never selects a record.
    """
    wanted = _normalize_name(item_name)
    if wanted:
        for cand in candidates:
            if _normalize_name(cand.record.name) == wanted:
                return cand

    if not (type_token or "").strip():
        return None
    for cand in candidates:
        if not cand.record.matches_type(type_token):
            continue
        if cand.score is not None and cand.score < threshold:
            continue
        return cand
    return None
