"""Defensive parsing of reasoning-service output.

Completions are free text. The code list may be wrapped in a code fence,
preceded by working-out, use pipes or commas instead of tabs, or be followed
by notes. Only the first contiguous block of ``code <sep> quantity`` lines is
taken as the list; text after it becomes notes.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field

from .models import ResolvedLine

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```[\w-]*\s*$")
_BULLET_RE = re.compile(r"^\s*(?:[-*•]\s+|\d+[.)]\s+)")
_LIST_LINE_RES = [
    # E34<TAB>800  /  E34 | 800  /  E34, 800  /  NO BID    1
    re.compile(r"^(?P<code>\S(?:.*?\S)?)\s*(?:\t|\|| ,|,|\s{2,})\s*(?P<qty>\d[\d,]*(?:\.\d+)?)$"),
    # E34 800
    re.compile(r"^(?P<code>[^\s,|]+)\s+(?P<qty>\d[\d,]*(?:\.\d+)?)$"),
]
_HEADER_RE = re.compile(r"^(?:gbid|code)s?\s*(?:\t|\||,|\s)\s*(?:qty|quantity)\b", re.IGNORECASE)


@dataclass
class ParsedOutput:
    lines: list[ResolvedLine] = field(default_factory=list)
    notes: str = ""


def strip_code_fences(text: str) -> str:
    return "\n".join(line for line in (text or "").splitlines() if not _FENCE_RE.match(line))


def parse_list_line(line: str, no_bid: str = "NO BID"):
    """ResolvedLine for one list line, or None when the line is not a list entry."""
    cleaned = _BULLET_RE.sub("", line.strip()).strip().strip("|").strip()
    cleaned = cleaned.replace("**", "").replace("`", "")
    if not cleaned or _HEADER_RE.match(cleaned):
        return None

    if cleaned.upper().startswith(no_bid.upper()):
        rest = cleaned[len(no_bid):].strip(" \t|,")
        if not rest:
            return ResolvedLine(no_bid, 1)
        if re.fullmatch(r"\d[\d,]*", rest):
            return ResolvedLine(no_bid, int(rest.replace(",", "")))
        return None

    for pattern in _LIST_LINE_RES:
        m = pattern.match(cleaned)
        if m:
            code = m.group("code").strip().strip("|,").strip()
            try:
                qty = float(m.group("qty").replace(",", ""))
            except ValueError:
                return None
            if not code or qty < 0:
                return None
            return ResolvedLine(code, int(math.ceil(qty)))
    return None


def parse_reasoning_output(text: str, no_bid: str = "NO BID") -> ParsedOutput:
    """Split a completion into list lines and trailing notes.

    Text before the list is working-out and is dropped. An empty ``lines``
    means the completion had no usable list; the caller decides what that
    means.
    """
    raw_lines = strip_code_fences(text).splitlines()

    # Tab-separated lines are the requested format; prefer them as the list start.
    start = None
    for i, line in enumerate(raw_lines):
        if "\t" in line and parse_list_line(line, no_bid) is not None:
            start = i
            break
    if start is None:
        for i, line in enumerate(raw_lines):
            if parse_list_line(line, no_bid) is not None:
                start = i
                break
    if start is None:
        return ParsedOutput(lines=[], notes=(text or "").strip())
    if start:
        logger.debug(f"Dropped {start} preamble lines from reasoning output")

    lines: list[ResolvedLine] = []
    end = len(raw_lines)
    for i in range(start, len(raw_lines)):
        parsed = parse_list_line(raw_lines[i], no_bid)
        if parsed is None:
            end = i
            break
        lines.append(parsed)

    notes = "\n".join(raw_lines[end:]).strip()
    return ParsedOutput(lines=lines, notes=notes)


def split_request(text: str) -> list[str]:
    """Deterministic line-item split: newlines and semicolons, bullets removed."""
    items = []
    for part in re.split(r"[\n;]", text or ""):
        part = _BULLET_RE.sub("", part).strip()
        if part:
            items.append(part)
    return items


def parse_line_items(text: str) -> list[str]:
    """Line items from a decomposition completion.

    Accepts ``{"items": [...]}``, a bare JSON list, or a plain bulleted list.
    Returns [] when nothing usable is found.
    """
    body = strip_code_fences(text).strip()
    try:
        data = json.loads(body)
    except ValueError:
        m = re.search(r"(\{.*\}|\[.*\])", body, re.DOTALL)
        data = None
        if m:
            try:
                data = json.loads(m.group(1))
            except ValueError:
                data = None

    if isinstance(data, dict):
        data = data.get("items") or data.get("line_items")
    if isinstance(data, list):
        return [str(x).strip() for x in data if isinstance(x, (str, int, float)) and str(x).strip()]
    if data is None and body and not body.startswith(("{", "[")):
        return split_request(body)
    return []
