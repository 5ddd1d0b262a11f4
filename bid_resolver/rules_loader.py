"""Domain rules loader.

Catalog column aliases, the projected column allowlist, sentinels, quantity
unit words and colour names live in ``rules.yaml`` next to this module. The
file is parsed with PyYAML and validated with pydantic so a typo fails at
startup instead of mid-request.
"""

import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator


CATALOG_FIELDS = (
    "record_id",
    "code",
    "code_template",
    "name",
    "description",
    "properties",
    "alternate_names",
    "special_notes",
)

_RULES_PATH = Path(__file__).parent / "rules.yaml"


# =============================================================================
# PYDANTIC MODELS FOR RULE VALIDATION
# =============================================================================

class DomainMeta(BaseModel):
    id: str = ""
    name: str = ""
    description: str = ""
    version: str = "1.0"


class Sentinels(BaseModel):
    """Reserved output / catalog values."""
    no_bid: str = "NO BID"
    template_code: str = "TEMPLATE"
    wildcard_suffix: str = "*"


class CatalogRules(BaseModel):
    column_aliases: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("column_aliases")
    @classmethod
    def _known_fields(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        unknown = set(value) - set(CATALOG_FIELDS)
        if unknown:
            raise ValueError(f"Unknown catalog fields in column_aliases: {sorted(unknown)}")
        return value


class ProjectionRules(BaseModel):
    """Column allowlist for the table handed to the reasoning call."""
    delimiter: str = ","
    columns: list[str] = Field(default_factory=lambda: ["code", "name", "code_template"])
    labels: dict[str, str] = Field(default_factory=dict)

    @field_validator("columns")
    @classmethod
    def _known_columns(cls, value: list[str]) -> list[str]:
        unknown = [c for c in value if c not in CATALOG_FIELDS]
        if unknown:
            raise ValueError(f"Unknown projection columns: {unknown}")
        if not value:
            raise ValueError("Projection needs at least one column")
        return value

    @field_validator("delimiter")
    @classmethod
    def _single_char(cls, value: str) -> str:
        if len(value) != 1 or value in ('"', "\n"):
            raise ValueError(f"Invalid projection delimiter: {value!r}")
        return value

    def label_for(self, column: str) -> str:
        return self.labels.get(column, column)


class QuantityRules(BaseModel):
    length_units: list[str] = Field(default_factory=lambda: ["'", "ft", "feet"])
    run_words: list[str] = Field(default_factory=lambda: ["cuts", "cut", "rolls", "roll"])
    container_words: list[str] = Field(default_factory=lambda: ["boxes", "box"])


class DomainRules(BaseModel):
    domain: DomainMeta = Field(default_factory=DomainMeta)
    sentinels: Sentinels = Field(default_factory=Sentinels)
    catalog: CatalogRules = Field(default_factory=CatalogRules)
    projection: ProjectionRules = Field(default_factory=ProjectionRules)
    quantity: QuantityRules = Field(default_factory=QuantityRules)
    colors: list[str] = Field(default_factory=list)
    stopwords: list[str] = Field(default_factory=list)

    @field_validator("colors")
    @classmethod
    def _upper_colors(cls, value: list[str]) -> list[str]:
        return [c.strip().upper() for c in value if c and c.strip()]

    def match_column(self, header: str) -> Optional[str]:
        """Map a spreadsheet / metadata header to a catalog field name."""
        h = normalize_header(header)
        for field, aliases in self.catalog.column_aliases.items():
            if h == normalize_header(field) or h in (normalize_header(a) for a in aliases):
                return field
        return None


def normalize_header(header: str) -> str:
    return re.sub(r"[\s_]+", " ", str(header or "")).strip().lower()


# =============================================================================
# LOADING
# =============================================================================

def load_rules(rules_path: Optional[str] = None) -> DomainRules:
    """Load and validate domain rules from YAML.

    Args:
        rules_path: Path to a rules file. Defaults to the bundled rules.yaml.

    Returns:
        Validated DomainRules object
    """
    path = Path(rules_path) if rules_path else _RULES_PATH
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return DomainRules(**raw)


_rules: Optional[DomainRules] = None


def get_rules() -> DomainRules:
    """Get the loaded rules, loading the bundled file on first use."""
    global _rules
    if _rules is None:
        _rules = load_rules()
    return _rules


def reload_rules(rules_path: Optional[str] = None) -> DomainRules:
    """Force reload of the rules file."""
    global _rules
    _rules = load_rules(rules_path)
    return _rules
