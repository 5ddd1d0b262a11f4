"""Error taxonomy for the resolution pipeline.

Only I/O collaborators raise these. Pure scoring / resolution functions return
an unresolved or default outcome instead of raising.
"""

from typing import Optional


class ResolverError(Exception):
    """Base class for every request-level failure."""


class ConfigurationError(ResolverError):
    """Required service credentials or addresses are missing. Fatal, no fallback."""


class SourceUnavailableError(ResolverError):
    """The catalog spreadsheet could not be fetched or access was denied."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EmbeddingError(ResolverError):
    """The embedding service returned a non-success response."""


class RetrievalError(ResolverError):
    """The vector index returned a non-success response."""


class ReasoningError(ResolverError):
    """The reasoning service failed or produced no usable code list."""
