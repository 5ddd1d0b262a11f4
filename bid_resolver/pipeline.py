"""Resolution pipeline: material request → code/quantity list.

    Decompose → Retrieve (per item) → Rerank → Dedupe → Project → Delegate

Retrieval is semantic (embed + vector query, concurrent across items) when a
vector index is configured, and lexical over the spreadsheet catalog
otherwise or when the semantic path fails. Every item also gets a
deterministic draft (code resolver + quantity normalizer) that is handed to
the final reasoning call together with the projected candidate table.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .api_keys import ApiKeysManager, api_keys_manager
from .catalog import fetch_catalog_text, parse_catalog
from .codes import extract_attributes, resolve_code, select_candidate
from .config import ServiceConfig
from .embeddings import generate_embedding
from .errors import ConfigurationError, EmbeddingError, ReasoningError, RetrievalError
from .lexical import extract_search_terms, lexical_search, score_row
from .llm_router import reason as llm_reason
from .models import Candidate, ConversionResult, DraftLine, LineItem, ResolvedLine
from .projector import project_records
from .prompts import build_conversion_prompt, build_decompose_prompt
from .quantities import normalize_quantity, strip_quantity_expression
from .result_parser import parse_line_items, parse_reasoning_output, split_request
from .retriever import EmbeddingRetriever, dedupe_candidates, extract_type_token, rerank_by_type
from .retry import call_with_retry
from .rules_loader import DomainRules, get_rules
from .vector_store import VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class Collaborators:
    """External services the pipeline talks to, as plain callables."""
    reason: Callable[[str, int], str]
    fetch_catalog: Callable[[str], str]
    embed: Optional[Callable[[str], list[float]]] = None
    vector_search: Optional[Callable[[list[float], int], list[Candidate]]] = None
    index: Optional[VectorIndex] = None

    @property
    def semantic_available(self) -> bool:
        return self.embed is not None and self.vector_search is not None

    @classmethod
    def from_config(cls, config: ServiceConfig,
                    keys: ApiKeysManager = api_keys_manager) -> "Collaborators":
        """Real collaborators, each wrapped in the configured bounded retry."""
        def _retrying(func):
            return call_with_retry(func, config.max_retries, config.retry_backoff_s)

        def reason(prompt: str, max_output_tokens: int) -> str:
            return _retrying(lambda: llm_reason(prompt, max_output_tokens, model=config.reasoning_model))

        def fetch_catalog(sheet_id: str) -> str:
            return _retrying(lambda: fetch_catalog_text(sheet_id, timeout=config.http_timeout_s))

        if not config.semantic_enabled:
            return cls(reason=reason, fetch_catalog=fetch_catalog)

        index = VectorIndex(
            config.vector_host,
            keys.get_key("pinecone"),
            namespace=config.vector_namespace,
            timeout=config.http_timeout_s,
        )

        def embed(text: str) -> list[float]:
            return _retrying(lambda: generate_embedding(
                text, model=config.embedding_model, dimensions=config.embedding_dimensions,
            ))

        def vector_search(vector: list[float], top_k: int) -> list[Candidate]:
            return _retrying(lambda: index.query(vector, top_k))

        return cls(reason=reason, fetch_catalog=fetch_catalog, embed=embed,
                   vector_search=vector_search, index=index)


class ResolutionPipeline:
    """One configured pipeline; ``convert()`` is safe to call concurrently."""

    def __init__(self, config: ServiceConfig, collaborators: Collaborators,
                 rules: Optional[DomainRules] = None):
        self.config = config
        self.collaborators = collaborators
        self.rules = rules or get_rules()
        self.retriever = None
        if collaborators.semantic_available:
            self.retriever = EmbeddingRetriever(
                collaborators.embed, collaborators.vector_search, top_k=config.top_k,
            )

    # ------------------------------------------------------------------
    # Decompose
    # ------------------------------------------------------------------

    async def decompose(self, request_text: str) -> list[LineItem]:
        """Line items in request order.

        Single-line requests are one item. Multi-line requests go to the
        reasoning service when decomposition is enabled; malformed output
        falls back to the newline / semicolon split.
        """
        parts = split_request(request_text)
        if len(parts) <= 1:
            text = parts[0] if parts else request_text.strip()
            return [LineItem(index=0, text=text)]
        if not self.config.decompose:
            return [LineItem(index=i, text=t) for i, t in enumerate(parts)]

        loop = asyncio.get_running_loop()
        completion = await loop.run_in_executor(
            None, self.collaborators.reason,
            build_decompose_prompt(request_text), self.config.max_output_tokens,
        )
        texts = parse_line_items(completion)
        if not texts:
            logger.warning("Decomposition output unusable; splitting request on lines")
            texts = parts
        return [LineItem(index=i, text=t) for i, t in enumerate(texts)]

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def _retrieve_item(self, item: LineItem) -> list[Candidate]:
        matches = self.retriever.retrieve(item)
        type_token = extract_type_token(item.text, self.rules)
        return rerank_by_type(matches, type_token, cap=self.config.per_item_cap)

    async def retrieve_semantic(self, items: list[LineItem]) -> dict[int, list[Candidate]]:
        """Per-item reranked, capped candidates; items run concurrently up to max_concurrency.

        The first failure abandons the request: items still waiting for a slot
        never call the embedding or vector services.
        """
        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        abandoned = asyncio.Event()
        loop = asyncio.get_running_loop()

        async def _one(item: LineItem) -> list[Candidate]:
            async with semaphore:
                if abandoned.is_set():
                    return []
                try:
                    return await loop.run_in_executor(None, self._retrieve_item, item)
                except Exception:
                    # Set before the slot is released so waiters see it.
                    abandoned.set()
                    raise

        tasks = [asyncio.ensure_future(_one(item)) for item in items]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            raise
        return {item.index: cands for item, cands in zip(items, results)}

    async def retrieve_lexical(self, request_text: str, sheet_id: str) -> list[Candidate]:
        """Keyword-scored catalog rows for the whole request."""
        loop = asyncio.get_running_loop()
        csv_text = await loop.run_in_executor(None, self.collaborators.fetch_catalog, sheet_id)
        records = parse_catalog(csv_text, self.rules)
        terms = extract_search_terms(request_text, self.rules)
        selected = lexical_search(
            records, terms,
            max_results=self.config.lexical_max_results,
            min_results=self.config.lexical_min_results,
            empty_prefix=self.config.lexical_empty_prefix,
        )
        logger.info(f"Lexical search: {len(terms)} terms, {len(selected)}/{len(records)} rows kept")
        return [Candidate(record=r) for r in selected]

    def _item_candidates_lexical(self, item: LineItem, candidates: list[Candidate]) -> list[Candidate]:
        terms = extract_search_terms(item.text, self.rules)
        scored = [(c, score_row(c.record.search_text, terms)) for c in candidates]
        ranked = [c for c, s in sorted(scored, key=lambda pair: pair[1], reverse=True) if s > 0]
        return rerank_by_type(ranked, extract_type_token(item.text, self.rules))

    # ------------------------------------------------------------------
    # Draft
    # ------------------------------------------------------------------

    def draft_line(self, item: LineItem, candidates: list[Candidate]) -> DraftLine:
        """Deterministic resolution of one item; NO BID / 1 when anything is unresolved."""
        no_bid = ResolvedLine(self.rules.sentinels.no_bid, 1)
        descriptive = strip_quantity_expression(item.text, self.rules)
        type_token = extract_type_token(item.text, self.rules)

        chosen = select_candidate(descriptive, type_token, candidates, self.config.similarity_threshold)
        if chosen is None:
            return DraftLine(item, no_bid, reason=f"no candidate named like '{type_token}'")

        record = chosen.record
        code = resolve_code(record, extract_attributes(item.text, self.rules), self.rules)
        if code is None:
            return DraftLine(item, no_bid, record=record, reason="code could not be resolved")

        quantity = normalize_quantity(item.text, record.properties, self.rules)
        if quantity is None:
            return DraftLine(item, no_bid, record=record, reason="quantity not understood")
        return DraftLine(item, ResolvedLine(code, quantity), record=record)

    # ------------------------------------------------------------------
    # Convert
    # ------------------------------------------------------------------

    async def convert(self, request_text: str, sheet_id: Optional[str] = None) -> ConversionResult:
        """Run the full pipeline for one request.

        Raises:
            ConfigurationError: no catalog source available
            SourceUnavailableError: catalog fetch failed
            EmbeddingError / RetrievalError: semantic path failed with no lexical fallback
            ReasoningError: reasoning call failed or returned no list
        """
        sheet_id = sheet_id or self.config.default_sheet_id
        if self.retriever is None and not sheet_id:
            raise ConfigurationError("No catalog source: configure a vector index or provide a sheet id")

        items = await self.decompose(request_text)
        logger.info(f"Converting request with {len(items)} line item(s)")

        per_item: dict[int, list[Candidate]] = {}
        strategy = "semantic"
        merged: list[Candidate] = []
        if self.retriever is not None:
            try:
                per_item = await self.retrieve_semantic(items)
                merged = dedupe_candidates([c for item in items for c in per_item[item.index]])
            except (EmbeddingError, RetrievalError) as e:
                if not sheet_id or not extract_search_terms(request_text, self.rules):
                    raise
                logger.warning(f"Semantic retrieval failed, falling back to lexical: {e}")
                per_item = {}

        if not per_item:
            strategy = "lexical"
            merged = dedupe_candidates(await self.retrieve_lexical(request_text, sheet_id))
            per_item = {item.index: self._item_candidates_lexical(item, merged) for item in items}

        drafts = [self.draft_line(item, per_item.get(item.index, [])) for item in items]
        table = project_records(
            merged, budget=self.config.projection_budget_chars, rules=self.rules,
        )
        logger.info(f"Projected {table.row_count} candidates ({table.size:,} chars), strategy={strategy}")

        prompt = build_conversion_prompt(request_text, table.text, table.row_count, drafts, self.rules)
        loop = asyncio.get_running_loop()
        completion = await loop.run_in_executor(
            None, self.collaborators.reason, prompt, self.config.max_output_tokens,
        )
        parsed = parse_reasoning_output(completion, self.rules.sentinels.no_bid)
        if not parsed.lines:
            logger.warning(f"Reasoning output had no list lines: {completion[:200]!r}")
            raise ReasoningError("Reasoning service returned no code/quantity lines")

        return ConversionResult(
            lines=parsed.lines,
            notes=parsed.notes,
            strategy=strategy,
            line_items=items,
            drafts=drafts,
            candidate_count=table.row_count,
        )
