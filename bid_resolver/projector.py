"""Candidate records → compact delimited table for the reasoning prompt."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .models import Candidate
from .rules_loader import DomainRules, get_rules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectedTable:
    text: str
    row_count: int            # data rows, header excluded

    @property
    def size(self) -> int:
        return len(self.text)


def escape_field(value: str, delimiter: str = ",") -> str:
    """Quote a value holding the delimiter, a quote or a newline; double inner quotes."""
    value = "" if value is None else str(value)
    if delimiter in value or '"' in value or "\n" in value or "\r" in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def project_records(
    candidates: Sequence[Candidate],
    columns: Optional[Sequence[str]] = None,
    delimiter: Optional[str] = None,
    budget: Optional[int] = None,
    rules: Optional[DomainRules] = None,
) -> ProjectedTable:
    """Header row plus one row per candidate, in candidate order.

    Every row has one cell per column; missing fields are empty cells. Rows
    are never dropped here; a table over ``budget`` characters is logged.
    """
    rules = rules or get_rules()
    columns = list(columns or rules.projection.columns)
    delimiter = delimiter or rules.projection.delimiter

    lines = [delimiter.join(escape_field(rules.projection.label_for(c), delimiter) for c in columns)]
    for cand in candidates:
        record = cand.record
        lines.append(delimiter.join(escape_field(record.field_value(c), delimiter) for c in columns))

    table = ProjectedTable(text="\n".join(lines), row_count=len(candidates))
    if budget is not None and table.size > budget:
        logger.warning(
            f"Projected table is {table.size:,} chars for {table.row_count} rows, "
            f"over the {budget:,} char budget"
        )
    return table
