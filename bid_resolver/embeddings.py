"""Embedding generation for request fragments.

Gemini's embedding model is the default; ``text-embedding-*`` model ids are
routed to OpenAI. The model must match the one the vector index was built
with, so it is configured, not chosen here.
"""

import logging
from typing import Optional

from .api_keys import api_keys_manager
from .errors import EmbeddingError

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "gemini-embedding-001"

_gemini_client = None
_openai_client = None


def embedding_provider(model: str) -> str:
    return "openai" if model.startswith("text-embedding") else "gemini"


def _get_gemini_client():
    global _gemini_client
    if _gemini_client is None:
        from google import genai
        _gemini_client = genai.Client(api_key=api_keys_manager.get_key("gemini"))
    return _gemini_client


def _get_openai_client():
    global _openai_client
    if _openai_client is None:
        from openai import OpenAI
        _openai_client = OpenAI(api_key=api_keys_manager.get_key("openai"))
    return _openai_client


def generate_embedding(text: str, model: str = DEFAULT_EMBEDDING_MODEL,
                       dimensions: Optional[int] = None) -> list[float]:
    """Generate an embedding for a single text.

    Args:
        text: The text to embed
        model: Embedding model id
        dimensions: Optional output dimensionality (must match the index)

    Returns:
        A list of floats representing the embedding vector

    Raises:
        EmbeddingError: on any provider failure or an empty vector
    """
    if not text or not text.strip():
        raise EmbeddingError("Cannot embed empty text")

    provider = embedding_provider(model)
    if not api_keys_manager.get_key(provider):
        raise EmbeddingError(f"{api_keys_manager.env_var_for(provider)} not set")

    try:
        if provider == "openai":
            kwargs: dict = {"model": model, "input": text}
            if dimensions:
                kwargs["dimensions"] = dimensions
            result = _get_openai_client().embeddings.create(**kwargs)
            vector = list(result.data[0].embedding)
        else:
            from google.genai import types
            config = types.EmbedContentConfig(output_dimensionality=dimensions) if dimensions else None
            result = _get_gemini_client().models.embed_content(
                model=model,
                contents=text,
                config=config,
            )
            vector = list(result.embeddings[0].values)
    except Exception as e:
        logger.error(f"Embedding API error ({model}): {e}")
        raise EmbeddingError(f"Embedding failed ({model}): {e}") from e

    if not vector:
        raise EmbeddingError(f"Embedding service returned an empty vector ({model})")
    return vector
