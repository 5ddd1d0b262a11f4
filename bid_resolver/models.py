"""Data models for the resolution pipeline and the HTTP API.

Core pipeline entities are plain dataclasses (request-scoped, never
persisted). Request/response bodies are pydantic schemas.
"""

from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# PIPELINE ENTITIES
# =============================================================================

@dataclass(frozen=True)
class CatalogRecord:
    record_id: str
    name: str = ""
    code: str = ""               # static GBID, or the "TEMPLATE" sentinel
    code_template: str = ""      # e.g. "=ASE(SIZE)X(SIZE)X(SIZE)*"
    description: str = ""
    properties: str = ""         # may carry "24 per box"
    alternate_names: str = ""
    special_notes: str = ""      # may embed a template + "KEY: value" table

    def field_value(self, name: str) -> str:
        value = getattr(self, name, "")
        return "" if value is None else str(value)

    @property
    def search_text(self) -> str:
        """Lower-cased text used for lexical scoring."""
        parts = (self.code, self.name, self.code_template, self.description,
                 self.properties, self.alternate_names, self.special_notes)
        return " ".join(p for p in parts if p).lower()

    @property
    def identity_text(self) -> str:
        """Name + alias text, the only fields that establish product type."""
        return f"{self.name} {self.alternate_names}".lower()

    def matches_type(self, token: str) -> bool:
        """Name or alternate names contain the type token, or its singular."""
        token = (token or "").strip().lower()
        if not token:
            return False
        text = self.identity_text
        if token in text:
            return True
        return len(token) > 3 and token.endswith("s") and token[:-1] in text


@dataclass(frozen=True)
class LineItem:
    index: int                   # position in the original request
    text: str


@dataclass
class Candidate:
    record: CatalogRecord
    score: Optional[float] = None        # None for lexical hits
    origin: Optional[LineItem] = None

    @property
    def record_id(self) -> str:
        return self.record.record_id


@dataclass(frozen=True)
class ResolvedLine:
    code: str
    quantity: int

    def render(self, delimiter: str = "\t") -> str:
        return f"{self.code}{delimiter}{self.quantity}"


@dataclass
class DraftLine:
    """Deterministic pre-resolution of one line item, shown to the reasoning call."""
    item: LineItem
    resolved: ResolvedLine
    record: Optional[CatalogRecord] = None
    reason: str = ""


@dataclass
class ConversionResult:
    lines: list[ResolvedLine]
    notes: str = ""
    strategy: str = "semantic"           # "semantic" | "lexical"
    line_items: list[LineItem] = field(default_factory=list)
    drafts: list[DraftLine] = field(default_factory=list)
    candidate_count: int = 0

    def render(self) -> str:
        """List lines first, then notes."""
        body = "\n".join(line.render() for line in self.lines)
        if self.notes:
            return f"{body}\n\n{self.notes}"
        return body


# =============================================================================
# API SCHEMAS
# =============================================================================

class ConvertRequest(BaseModel):
    material_input: str = Field(..., min_length=1, description="Free-text material request")
    sheet_id: Optional[str] = Field(None, description="Catalog spreadsheet id (lexical fallback)")


class ResolvedLineOut(BaseModel):
    code: str
    quantity: int


class ConvertResponse(BaseModel):
    result: str
    lines: list[ResolvedLineOut]
    notes: str = ""
    strategy: str
    line_items: list[str] = Field(default_factory=list)


class SheetRequest(BaseModel):
    sheet_id: str = Field(..., min_length=1)


class SheetResponse(BaseModel):
    csv_data: str
    row_count: int
    message: str = "Catalog data retrieved successfully"


class IndexStats(BaseModel):
    total_vector_count: int = 0
    dimension: int = 0
    index_fullness: float = 0.0
    namespaces: dict = Field(default_factory=dict)
