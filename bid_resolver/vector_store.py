"""Vector index client (Pinecone REST data plane).

Only the two read calls the pipeline needs: nearest-neighbour ``query`` and
``describe_index_stats``. Match metadata is mapped onto CatalogRecord with
the same header aliases as the spreadsheet catalog.
"""

import logging
from typing import Optional

import httpx

from .catalog import record_from_mapping
from .errors import ConfigurationError, RetrievalError
from .models import Candidate, IndexStats
from .rules_loader import DomainRules

logger = logging.getLogger(__name__)


class VectorIndex:
    """Thin httpx client for one index host."""

    def __init__(self, host: str, api_key: str, namespace: Optional[str] = None,
                 timeout: float = 30.0, rules: Optional[DomainRules] = None):
        if not host or not api_key:
            raise ConfigurationError("Vector index host and API key are both required")
        self.host = host.rstrip("/")
        self.namespace = namespace
        self.timeout = timeout
        self.rules = rules
        self._headers = {
            "Api-Key": api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.host}{path}"
        try:
            response = httpx.post(url, json=payload, headers=self._headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error(f"Vector index request to {path} failed: {e}")
            raise RetrievalError(f"Vector index unreachable: {e}") from e

        if response.status_code != 200:
            logger.error(f"Vector index {path} returned {response.status_code}: {response.text[:300]}")
            raise RetrievalError(f"Vector index error: {response.status_code} - {response.text[:300]}")
        try:
            return response.json()
        except ValueError as e:
            raise RetrievalError(f"Vector index returned invalid JSON from {path}") from e

    def query(self, vector: list[float], top_k: int) -> list[Candidate]:
        """Nearest neighbours of ``vector``, most similar first.

        An empty list means nothing is close, not a failure.
        """
        payload: dict = {
            "vector": vector,
            "topK": top_k,
            "includeMetadata": True,
            "includeValues": False,
        }
        if self.namespace:
            payload["namespace"] = self.namespace

        data = self._post("/query", payload)
        candidates = []
        for match in data.get("matches") or []:
            metadata = match.get("metadata") or {}
            record = record_from_mapping(metadata, record_id=str(match.get("id", "")), rules=self.rules)
            score = match.get("score")
            candidates.append(Candidate(
                record=record,
                score=float(score) if score is not None else None,
            ))
        logger.info(f"Vector query returned {len(candidates)} matches (topK={top_k})")
        return candidates

    def describe_index_stats(self) -> IndexStats:
        data = self._post("/describe_index_stats", {})
        return IndexStats(
            total_vector_count=data.get("totalVectorCount", 0) or 0,
            dimension=data.get("dimension", 0) or 0,
            index_fullness=data.get("indexFullness", 0.0) or 0.0,
            namespaces=data.get("namespaces") or {},
        )
