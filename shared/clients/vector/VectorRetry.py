"""Retry-with-backoff for calls against a remote vector store."""

import asyncio
import logging
import random
import re
from typing import Any, Awaitable, Callable, TypeVar

from shared.clients.vector.VectorStoreError import VectorStoreError

T = TypeVar("T")

MAX_ATTEMPTS = 3
INITIAL_BACKOFF_MS = 100
MAX_BACKOFF_MS = 1000
MAX_JITTER_RATIO = 0.1

_TRANSIENT_MESSAGE_MARKERS = (
    "econnrefused",
    "econnreset",
    "etimedout",
    "ehostunreach",
    "connection refused",
    "connection reset",
    "host unreachable",
    "network",
    "timeout",
    "timed out",
)
_TRANSIENT_STATUS_CODE = re.compile(r"\b(?:429|500|502|503|504)\b")

_default_logger = logging.getLogger(__name__)


def is_retryable_error(error: BaseException) -> bool:
    """Decide whether a failed vector store call may succeed on a later attempt.

    VectorStoreError carries its own classification, taken from the HTTP status
    or transport failure at the client boundary. Anything else is classified
    from its message.
    """
    if isinstance(error, VectorStoreError):
        return error.transient

    message = str(error).lower()
    if any(marker in message for marker in _TRANSIENT_MESSAGE_MARKERS):
        return True
    return _TRANSIENT_STATUS_CODE.search(message) is not None


def compute_backoff_seconds(attempt: int) -> float:
    """Delay before the retry following the given zero-based attempt."""
    backoff = INITIAL_BACKOFF_MS * (2 ** attempt)
    jitter = random.random() * MAX_JITTER_RATIO * backoff
    return min(backoff + jitter, MAX_BACKOFF_MS) / 1000


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    context: str = "vector operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    logger: Any = None,
) -> T:
    """Run an async operation, retrying transient failures with exponential backoff.

    At most MAX_ATTEMPTS attempts are made. Non-retryable errors are raised at once,
    and after the last attempt the last error is raised unchanged.

    Args:
        operation (Callable[[], Awaitable[T]]): Zero-argument factory for the awaitable to run.
        context (str): Short description used in log messages.
        sleep (Callable[[float], Awaitable[None]]): Sleep coroutine, replaceable in tests.
        logger (Any): Logger for retry warnings, the caller's ColorLogger or Logger.

    Returns:
        T: The result of the first successful attempt.
    """
    log = logger or _default_logger
    for attempt in range(MAX_ATTEMPTS):
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable_error(exc) or attempt == MAX_ATTEMPTS - 1:
                raise
            delay = compute_backoff_seconds(attempt)
            log.warning(
                "%s failed (attempt %d of %d): %s. Retrying in %.0f ms.",
                context, attempt + 1, MAX_ATTEMPTS, exc, delay * 1000,
            )
            await sleep(delay)

    # unreachable, the loop either returns or raises
    raise RuntimeError(f"{context} failed after {MAX_ATTEMPTS} attempts")
