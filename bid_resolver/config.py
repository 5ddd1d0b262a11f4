"""Service configuration.

Everything environment-derived is read once by ``load_config()`` into a frozen
ServiceConfig and checked once by ``validate()``. The orchestrator receives
the validated object; nothing downstream reads the environment for settings.

Environment variables:
    REASONING_MODEL, EMBEDDING_MODEL, EMBEDDING_DIMENSIONS,
    PINECONE_HOST, PINECONE_NAMESPACE, GOOGLE_SHEET_ID,
    RETRIEVAL_TOP_K, PER_ITEM_CAP, MAX_CONCURRENCY,
    LEXICAL_MAX_RESULTS, LEXICAL_MIN_RESULTS, LEXICAL_EMPTY_PREFIX,
    PROJECTION_BUDGET_CHARS, SIMILARITY_THRESHOLD, MAX_OUTPUT_TOKENS,
    MAX_RETRIES, RETRY_BACKOFF_S, REQUEST_TIMEOUT_S, HTTP_TIMEOUT_S,
    DECOMPOSE_REQUESTS
Provider keys (ANTHROPIC_API_KEY, OPENAI_API_KEY, GEMINI_API_KEY,
PINECONE_API_KEY) are read through api_keys.api_keys_manager.
"""

import os
from dataclasses import dataclass
from typing import Optional

from .api_keys import ApiKeysManager, api_keys_manager
from .embeddings import DEFAULT_EMBEDDING_MODEL, embedding_provider
from .errors import ConfigurationError
from .llm_router import DEFAULT_MODEL, reasoning_provider


@dataclass(frozen=True)
class ServiceConfig:
    """Configuration for one pipeline instance."""
    reasoning_model: str = DEFAULT_MODEL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_dimensions: Optional[int] = None
    vector_host: Optional[str] = None
    vector_namespace: Optional[str] = None
    default_sheet_id: Optional[str] = None

    top_k: int = 20
    per_item_cap: int = 5
    max_concurrency: int = 4

    lexical_max_results: int = 200
    lexical_min_results: int = 50
    lexical_empty_prefix: int = 100

    projection_budget_chars: int = 60_000
    similarity_threshold: float = 0.7
    max_output_tokens: int = 4000

    max_retries: int = 0
    retry_backoff_s: float = 0.5
    request_timeout_s: float = 120.0
    http_timeout_s: float = 30.0

    decompose: bool = True

    @property
    def semantic_enabled(self) -> bool:
        """Semantic retrieval is used only when the vector index is configured."""
        return bool(self.vector_host)

    def validate(self, keys: ApiKeysManager = api_keys_manager) -> "ServiceConfig":
        """Check credentials and limits once, at startup.

        Raises:
            ConfigurationError: on the first missing credential or bad limit.
        """
        provider = reasoning_provider(self.reasoning_model)
        if not keys.get_key(provider):
            raise ConfigurationError(
                f"{keys.env_var_for(provider)} is required for reasoning model '{self.reasoning_model}'"
            )

        if self.semantic_enabled:
            if not keys.get_key("pinecone"):
                raise ConfigurationError("PINECONE_HOST is set but PINECONE_API_KEY is missing")
            embed_provider = embedding_provider(self.embedding_model)
            if not keys.get_key(embed_provider):
                raise ConfigurationError(
                    f"{keys.env_var_for(embed_provider)} is required for embedding model '{self.embedding_model}'"
                )
        elif keys.get_key("pinecone"):
            raise ConfigurationError("PINECONE_API_KEY is set but PINECONE_HOST is missing")

        for name in ("top_k", "per_item_cap", "max_concurrency", "lexical_max_results",
                     "max_output_tokens", "projection_budget_chars"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.lexical_min_results < 0 or self.lexical_min_results > self.lexical_max_results:
            raise ConfigurationError(
                f"lexical_min_results must be between 0 and lexical_max_results ({self.lexical_max_results})"
            )
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ConfigurationError(f"similarity_threshold must be in [0, 1], got {self.similarity_threshold}")
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0, got {self.max_retries}")
        return self


def _env_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    return value.strip() if value and value.strip() else None


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'") from e


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'") from e


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_str(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def normalize_host(host: Optional[str]) -> Optional[str]:
    """Index hosts are copied from dashboards with or without a scheme."""
    if not host:
        return None
    host = host.strip().rstrip("/")
    if not host.startswith(("http://", "https://")):
        host = f"https://{host}"
    return host


def load_config() -> ServiceConfig:
    """Build a ServiceConfig from environment variables and defaults."""
    dims = _env_int("EMBEDDING_DIMENSIONS", 0)
    return ServiceConfig(
        reasoning_model=_env_str("REASONING_MODEL") or DEFAULT_MODEL,
        embedding_model=_env_str("EMBEDDING_MODEL") or DEFAULT_EMBEDDING_MODEL,
        embedding_dimensions=dims or None,
        vector_host=normalize_host(_env_str("PINECONE_HOST")),
        vector_namespace=_env_str("PINECONE_NAMESPACE"),
        default_sheet_id=_env_str("GOOGLE_SHEET_ID"),
        top_k=_env_int("RETRIEVAL_TOP_K", 20),
        per_item_cap=_env_int("PER_ITEM_CAP", 5),
        max_concurrency=_env_int("MAX_CONCURRENCY", 4),
        lexical_max_results=_env_int("LEXICAL_MAX_RESULTS", 200),
        lexical_min_results=_env_int("LEXICAL_MIN_RESULTS", 50),
        lexical_empty_prefix=_env_int("LEXICAL_EMPTY_PREFIX", 100),
        projection_budget_chars=_env_int("PROJECTION_BUDGET_CHARS", 60_000),
        similarity_threshold=_env_float("SIMILARITY_THRESHOLD", 0.7),
        max_output_tokens=_env_int("MAX_OUTPUT_TOKENS", 4000),
        max_retries=_env_int("MAX_RETRIES", 0),
        retry_backoff_s=_env_float("RETRY_BACKOFF_S", 0.5),
        request_timeout_s=_env_float("REQUEST_TIMEOUT_S", 120.0),
        http_timeout_s=_env_float("HTTP_TIMEOUT_S", 30.0),
        decompose=_env_bool("DECOMPOSE_REQUESTS", True),
    )
