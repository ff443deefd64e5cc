"""Shared utilities for adapter implementations."""

import logging
from typing import Any, Optional

import openai
import requests
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from docqa.exceptions import ProviderAuthError, ProviderError, ProviderTransientError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0

AUTH_STATUS_CODES = {401, 403}
TRANSIENT_STATUS_CODES = {408, 409, 429}


def create_session_with_pooling(
    pool_connections: int = 10,
    pool_maxsize: int = 20,
    max_retries: int = 0,
) -> requests.Session:
    """Create a requests Session with connection pooling.

    Retries are left to the caller's retry policy, so the transport
    adapter does not retry on its own by default.

    Args:
        pool_connections: Number of connection pools to cache.
        pool_maxsize: Maximum number of connections to save per pool.
        max_retries: Maximum number of retries per connection.

    Returns:
        Configured requests Session.
    """
    session = requests.Session()
    adapter = requests.adapters.HTTPAdapter(
        pool_connections=pool_connections,
        pool_maxsize=pool_maxsize,
        max_retries=max_retries,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def build_retrying(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> Retrying:
    """Retry policy for provider calls.

    Only ``ProviderTransientError`` is retried; the wait starts at
    ``initial_delay`` and doubles up to ``max_delay``. The last error is
    re-raised once ``max_attempts`` is exhausted.
    """
    return Retrying(
        retry=retry_if_exception_type(ProviderTransientError),
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=initial_delay, min=initial_delay, max=max_delay),
        before_sleep=lambda retry_state: logger.warning(
            f"Provider call failed ({retry_state.outcome.exception()}), "
            f"retry {retry_state.attempt_number}/{max_attempts}"
        ),
        reraise=True,
    )


def error_for_status(
    status_code: Optional[int],
    message: str,
    provider: Optional[str] = None,
) -> ProviderError:
    """Map an HTTP status code to the matching provider error."""
    if status_code in AUTH_STATUS_CODES:
        return ProviderAuthError(message, provider=provider, status_code=status_code)
    if status_code is not None and (
        status_code in TRANSIENT_STATUS_CODES or status_code >= 500
    ):
        return ProviderTransientError(message, provider=provider, status_code=status_code)
    return ProviderError(message, provider=provider, status_code=status_code)


def translate_openai_error(error: openai.OpenAIError, provider: str = "openai") -> ProviderError:
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ProviderAuthError(
            str(error), provider=provider, status_code=getattr(error, "status_code", None)
        )
    if isinstance(
        error,
        (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError),
    ):
        return ProviderTransientError(
            str(error), provider=provider, status_code=getattr(error, "status_code", None)
        )
    if isinstance(error, openai.APIStatusError):
        return error_for_status(error.status_code, str(error), provider)
    return ProviderError(str(error), provider=provider)


def translate_requests_error(
    error: requests.RequestException, provider: str
) -> ProviderError:
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return ProviderTransientError(str(error), provider=provider)
    response = getattr(error, "response", None)
    status_code = response.status_code if response is not None else None
    return error_for_status(status_code, str(error), provider)


def post_json(
    session: requests.Session,
    url: str,
    payload: dict[str, Any],
    timeout: float,
    provider: str,
    stream: bool = False,
) -> requests.Response:
    """POST ``payload`` and raise a provider error on any failure."""
    try:
        response = session.post(url, json=payload, timeout=timeout, stream=stream)
        response.raise_for_status()
    except requests.RequestException as e:
        raise translate_requests_error(e, provider) from e
    return response
