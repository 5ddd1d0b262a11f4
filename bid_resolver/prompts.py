"""LLM prompt templates for material request resolution."""

from typing import Sequence

from .models import DraftLine
from .rules_loader import DomainRules, get_rules

DECOMPOSE_PROMPT = """Split the following material request into its individual line items.

A line item is one distinct product with its own quantity, e.g. "2 cuts of 400' of 3/4 EMT" or
"3 boxes of 4x4 deep box". Keep each item's text exactly as written (sizes, colours, quantities,
units). Do not merge items, do not invent items, and do not resolve codes.

MATERIAL REQUEST:
{request}

Respond with a JSON object in this exact format:
{{"items": ["first line item", "second line item"]}}

Respond ONLY with the JSON object, no additional text."""


CONVERSION_PROMPT = """You convert material requests into {code_label} codes and quantities using a catalog extract.

MATERIAL REQUEST:
{request}

CATALOG CANDIDATES ({row_count} rows, delimited with "{delimiter}"):
{table}

PRE-RESOLVED LINES (deterministic first pass, one per requested item; verify each against the catalog):
{drafts}

Rules:
- One output line per requested item, in request order.
- Footage = qty ({footage_example}).
- Cuts or rolls × length = total qty (2 cuts × 400' = 800, 2 rolls × 500' = 1000).
- Boxes: multiply the box count by the per-box count in Properties (3 boxes at "24 per box" = 72).
- Bare counts are used as given. Round fractions up.
- A static {code_label} always wins over a {code_label} Template.
- {template_sentinel} rows: the template is in Special Notes; use its mapping table for colours
  and similar values (GREEN: GR → GR).
- Templates: fill each (SIZE) placeholder with the requested sizes left to right and end the
  code with "{wildcard}" (=ASE(SIZE)X(SIZE)X(SIZE)* for 8x8x6 → =ASE8X8X6*).
- An exact product name match wins outright. Never pick a row on size or colour alone when
  its name or alternate names do not describe the requested product type.
- Check Alternate Names and Special Notes before giving up.
- If not found: {no_bid}[tab]1
- Output format: {code_label}[tab]QTY

FINAL LIST:
Write the list lines first, one per item, nothing else on those lines. Any notes go after a blank line."""


def build_decompose_prompt(request: str) -> str:
    return DECOMPOSE_PROMPT.format(request=request.strip())


def format_drafts(drafts: Sequence[DraftLine]) -> str:
    """Numbered draft lines; ``draft:`` carries the tab-separated code and quantity."""
    if not drafts:
        return "(none)"
    lines = []
    for n, draft in enumerate(drafts, start=1):
        matched = f" ({draft.record.name})" if draft.record else ""
        reason = f"  [{draft.reason}]" if draft.reason else ""
        lines.append(f"{n}. {draft.item.text}")
        lines.append(f"   draft: {draft.resolved.render()}{matched}{reason}")
    return "\n".join(lines)


def build_conversion_prompt(request: str, table_text: str, row_count: int,
                            drafts: Sequence[DraftLine], rules: DomainRules = None) -> str:
    rules = rules or get_rules()
    return CONVERSION_PROMPT.format(
        request=request.strip(),
        row_count=row_count,
        delimiter=rules.projection.delimiter,
        table=table_text,
        drafts=format_drafts(drafts),
        code_label=rules.projection.label_for("code"),
        footage_example="200' = 200",
        template_sentinel=rules.sentinels.template_code,
        wildcard=rules.sentinels.wildcard_suffix,
        no_bid=rules.sentinels.no_bid,
    )
