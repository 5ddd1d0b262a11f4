"""Shared fixtures for the resolver test suite.

Loads the REAL bundled rules.yaml (pins actual aliases, sentinels, unit words).
External collaborators (reasoning, embedding, vector index, spreadsheet) are
replaced with MagicMock fakes; nothing here touches the network.
"""

import json
import re
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Ensure the package is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from bid_resolver.config import ServiceConfig
from bid_resolver.models import Candidate, CatalogRecord
from bid_resolver.pipeline import Collaborators
from bid_resolver.rules_loader import get_rules


# =============================================================================
# RULES / CONFIG FIXTURES
# =============================================================================

@pytest.fixture
def rules():
    """Bundled DomainRules (not mocked)."""
    return get_rules()


@pytest.fixture
def lexical_config():
    """No vector index: lexical retrieval only."""
    return ServiceConfig(max_concurrency=2)


@pytest.fixture
def semantic_config():
    return ServiceConfig(vector_host="https://test-index.svc.pinecone.io", top_k=10, max_concurrency=2)


# =============================================================================
# CATALOG FIXTURES
# =============================================================================

CATALOG_CSV = (
    "GBID,Name,GBID Template,Properties,Alternate Names,Special Notes\n"
    "E34,EMT Conduit,,,Thinwall,\n"
    "C34,EMT Connector,,\"Set screw, steel\",Set Screw Connector,\n"
    ",Junction Box,=ASE(SIZE)X(SIZE)X(SIZE)*,,JB,\n"
    "W12,THHN Wire #12,,,Building Wire,\n"
    "TEMPLATE,Tape,,,Electrical Tape,\"Template: =165(COLOR)4A\nGREEN: GR\nRED: RD\"\n"
    "B44,4x4 Deep Box,,24 per box,Square Box,\n"
)


@pytest.fixture
def catalog_csv():
    return CATALOG_CSV


@pytest.fixture
def emt_conduit():
    return CatalogRecord(record_id="rec-emt", name="EMT Conduit", code="E34")


@pytest.fixture
def emt_connector():
    return CatalogRecord(record_id="rec-conn", name="EMT Connector", code="C34",
                         alternate_names="3/4 EMT Conn")


@pytest.fixture
def junction_box():
    return CatalogRecord(record_id="rec-jb", name="Junction Box",
                         code_template="=ASE(SIZE)X(SIZE)X(SIZE)*")


@pytest.fixture
def tape_template():
    return CatalogRecord(
        record_id="rec-tape",
        name="Tape",
        code="TEMPLATE",
        special_notes="Template: =165(COLOR)4A\nGREEN: GR\nRED: RD",
    )


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

def echo_drafts(prompt: str, max_output_tokens: int) -> str:
    """Reasoning fake: answers decomposition with one item per line, otherwise echoes the draft lines."""
    if prompt.startswith("Split the following"):
        request = prompt.split("MATERIAL REQUEST:\n", 1)[1].split("\n\nRespond", 1)[0]
        items = [line.strip() for line in request.splitlines() if line.strip()]
        return json.dumps({"items": items})
    pairs = re.findall(r"draft: ([^\t\n]+)\t(\d+)", prompt)
    return "GBID\tQTY\n" + "\n".join(f"{code}\t{qty}" for code, qty in pairs)


@pytest.fixture
def echo_reasoner():
    return MagicMock(side_effect=echo_drafts)


@pytest.fixture
def lexical_collaborators(echo_reasoner, catalog_csv):
    return Collaborators(
        reason=echo_reasoner,
        fetch_catalog=MagicMock(return_value=catalog_csv),
    )


@pytest.fixture
def make_semantic_collaborators(echo_reasoner, catalog_csv):
    """Factory: semantic collaborators whose index returns ``matches`` for every query."""
    def _make(matches: list[Candidate]):
        return Collaborators(
            reason=echo_reasoner,
            fetch_catalog=MagicMock(return_value=catalog_csv),
            embed=MagicMock(return_value=[0.1, 0.2, 0.3]),
            vector_search=MagicMock(return_value=list(matches)),
        )
    return _make
