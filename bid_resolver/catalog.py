"""Catalog source: spreadsheet fetch and CSV → CatalogRecord parsing.

Public sheets are read through the CSV export endpoint, so no Google
credentials are needed; the sheet must be shared as "Anyone with the link can
view".
"""

import csv
import io
import logging
from typing import Any, Mapping, Optional

import httpx

from .errors import SourceUnavailableError
from .models import CatalogRecord
from .rules_loader import DomainRules, get_rules

logger = logging.getLogger(__name__)

SHEET_EXPORT_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv&gid=0"


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------

def fetch_catalog_text(sheet_id: str, timeout: float = 30.0) -> str:
    """Fetch the catalog spreadsheet as CSV text.

    Raises:
        SourceUnavailableError: sheet missing, access denied, transport
            failure or an empty body.
    """
    if not sheet_id or not sheet_id.strip():
        raise SourceUnavailableError("Sheet ID is required", status_code=400)

    url = SHEET_EXPORT_URL.format(sheet_id=sheet_id.strip())
    try:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
    except httpx.HTTPError as e:
        logger.error(f"Sheet fetch failed for {sheet_id}: {e}")
        raise SourceUnavailableError(f"Failed to fetch sheet: {e}") from e

    if response.status_code == 404:
        raise SourceUnavailableError(
            "Sheet not found. Make sure the sheet is public and the ID is correct.",
            status_code=404,
        )
    if response.status_code in (401, 403):
        raise SourceUnavailableError(
            'Access denied. Make sure the sheet is set to "Anyone with the link can view".',
            status_code=403,
        )
    if response.status_code != 200:
        raise SourceUnavailableError(
            f"Failed to fetch sheet: {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
        )

    text = response.text
    if not text.strip():
        raise SourceUnavailableError("Sheet is empty", status_code=502)
    # A private sheet redirects to the Google sign-in page with a 200.
    if text.lstrip().lower().startswith(("<!doctype html", "<html")):
        raise SourceUnavailableError(
            'Access denied. Make sure the sheet is set to "Anyone with the link can view".',
            status_code=403,
        )

    logger.info(f"Fetched sheet {sheet_id}: {len(text):,} chars")
    return text


def count_rows(csv_text: str) -> int:
    """Number of non-empty lines, header included (matches the sheet proxy)."""
    return len([line for line in csv_text.strip().splitlines() if line.strip()])


# ---------------------------------------------------------------------------
# Parse
# ---------------------------------------------------------------------------

def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def record_from_mapping(mapping: Mapping[str, Any], record_id: str,
                        rules: Optional[DomainRules] = None) -> CatalogRecord:
    """Build a CatalogRecord from a header→value mapping (CSV row or index metadata)."""
    rules = rules or get_rules()
    values: dict[str, str] = {}
    for header, raw in mapping.items():
        field_name = rules.match_column(header)
        if field_name and field_name not in values:
            values[field_name] = _clean(raw)

    rid = values.pop("record_id", "") or record_id
    return CatalogRecord(record_id=rid, **values)


def parse_catalog(csv_text: str, rules: Optional[DomainRules] = None) -> list[CatalogRecord]:
    """Parse catalog CSV into records, in sheet order.

    Columns are matched to fields through the rules' header aliases. When no
    header is recognized, the first column is taken as the name and the whole
    row as description so the lexical scorer still has text to work with.
    """
    rules = rules or get_rules()
    reader = csv.reader(io.StringIO(csv_text or ""))
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if not rows:
        return []

    header = rows[0]
    recognized = [h for h in header if rules.match_column(h)]
    records: list[CatalogRecord] = []

    if not recognized:
        logger.warning("Catalog header not recognized; using positional fallback")
        for n, row in enumerate(rows, start=1):
            records.append(CatalogRecord(
                record_id=f"row-{n}",
                name=_clean(row[0]),
                description=" ".join(_clean(c) for c in row[1:] if _clean(c)),
            ))
        return records

    for n, row in enumerate(rows[1:], start=1):
        mapping = {h: (row[i] if i < len(row) else "") for i, h in enumerate(header)}
        records.append(record_from_mapping(mapping, record_id=f"row-{n}", rules=rules))
    return records
