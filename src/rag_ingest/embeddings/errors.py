"""Exception hierarchy for the embedding client."""

from __future__ import annotations


class EmbeddingError(Exception):
    """Base class for every embedding failure."""


class EmbeddingInputError(EmbeddingError, ValueError):
    """The input cannot be embedded (e.g. empty text).  Never retried."""


class EmbeddingConfigurationError(EmbeddingError):
    """No usable provider credential, or an unknown provider was requested."""


class EmbeddingRemoteError(EmbeddingError):
    """The embedding service failed for a reason other than rate limiting."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmbeddingRetriesExhaustedError(EmbeddingError):
    """Rate limiting persisted through every retry attempt."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        detail = str(last_error) if last_error is not None else "unknown error"
        super().__init__(f"Failed to generate embedding after {attempts} attempts: {detail}")
