"""Error taxonomy shared by the pipeline and its collaborator adapters."""

from __future__ import annotations

import openai


class CiteRagError(Exception):
    """Base class for all pipeline errors."""

    kind = "backend"


class InputValidationError(CiteRagError, ValueError):
    """Required input is empty or out of range; raised before any external call."""

    kind = "validation"


class BackendError(CiteRagError):
    """A collaborator call failed."""


class RetryableBackendError(BackendError):
    """Rate limit, exhausted quota or unavailable model; the next model may succeed."""


class FatalBackendError(BackendError):
    """Any other backend failure; no further fallback is attempted."""


class AllModelsFailedError(CiteRagError):
    """Every model in the fallback list failed with a retryable error."""

    def __init__(self, models: list[str], last_error: BaseException) -> None:
        super().__init__(f"All models failed. Last error: {last_error}")
        self.models = list(models)
        self.last_error = last_error


_RETRYABLE_STATUS = {404, 429}
_RETRYABLE_CODES = {
    "model_not_found",
    "model_not_supported",
    "unsupported_model",
    "insufficient_quota",
    "rate_limit_exceeded",
}


def classify_backend_error(exc: BaseException) -> type[BackendError]:
    """Map a provider exception to the retryable or fatal side of the taxonomy.

    Rate limits, exhausted quota and missing or unsupported models are
    retryable, whether signalled by exception type, HTTP status or the
    provider's error code. Everything else is fatal.
    """
    if isinstance(exc, BackendError):
        return type(exc)
    if isinstance(exc, (openai.RateLimitError, openai.NotFoundError)):
        return RetryableBackendError
    if getattr(exc, "status_code", None) in _RETRYABLE_STATUS:
        return RetryableBackendError
    code = getattr(exc, "code", None)
    if isinstance(code, int) and code in _RETRYABLE_STATUS:
        return RetryableBackendError
    if isinstance(code, str) and code in _RETRYABLE_CODES:
        return RetryableBackendError
    return FatalBackendError
