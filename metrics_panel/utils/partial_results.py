"""
Partial results handling for best-effort concurrent calls.

Provides utilities for collecting successful results while tracking failures,
so one failed label-value lookup never cancels or fails its siblings.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

import httpx
from pydantic import ValidationError

from ..domain.errors import PanelError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class FailureInfo:
    """
    Information about a failed operation.

    Attributes
    ----------
    identifier : str
        Identifier for the failed operation (e.g., variable name)
    error : str
        Error message
    error_type : str
        Type of error (e.g., "http_error", "timeout", "parse_error")
    retryable : bool
        Whether the operation might succeed if retried
    """

    identifier: str
    error: str
    error_type: str
    retryable: bool = False


@dataclass
class PartialResult:
    """
    Result container for operations that may partially fail.

    Attributes
    ----------
    successes : Dict[str, Any]
        Successful results keyed by operation identifier
    failures : List[FailureInfo]
        Information about failed operations
    """

    successes: Dict[str, Any] = field(default_factory=dict)
    failures: List[FailureInfo] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Calculate success rate (0.0-1.0)."""
        total = len(self.successes) + len(self.failures)
        if total == 0:
            return 0.0
        return len(self.successes) / total

    @property
    def has_failures(self) -> bool:
        """Check if any operations failed."""
        return len(self.failures) > 0

    @property
    def all_succeeded(self) -> bool:
        """Check if all operations succeeded."""
        return len(self.failures) == 0 and len(self.successes) > 0

    @property
    def all_failed(self) -> bool:
        """Check if all operations failed."""
        return len(self.successes) == 0 and len(self.failures) > 0


async def gather_partial(
    operations: Dict[str, Awaitable[T]],
    operation_type: str = "operation",
    timeout: Optional[float] = None,
) -> PartialResult:
    """
    Execute multiple async operations and collect partial results.

    Continues execution even if some operations fail, returning all
    successful results along with failure information.

    Parameters
    ----------
    operations : Dict[str, Awaitable[T]]
        Dictionary mapping identifiers to async operations
    operation_type : str
        Human-readable type of operation (for logging)
    timeout : float, optional
        Per-operation timeout in seconds

    Returns
    -------
    PartialResult
        Container with successes and failures

    Raises
    ------
    ValueError
        If operations dict is empty

    Examples
    --------
    >>> result = await gather_partial(
    ...     {"instance": lookup("instance"), "ifName": lookup("ifName")},
    ...     "label_values",
    ... )
    >>> sorted(result.successes)
    ['ifName', 'instance']
    """
    if not operations:
        raise ValueError("operations dictionary cannot be empty")

    results = PartialResult()

    tasks: Dict[str, "asyncio.Task[Any]"] = {
        identifier: asyncio.ensure_future(
            operation if timeout is None else asyncio.wait_for(operation, timeout)
        )
        for identifier, operation in operations.items()
    }

    completed = await asyncio.gather(*tasks.values(), return_exceptions=True)

    for identifier, result in zip(tasks.keys(), completed):
        if isinstance(result, Exception):
            error_type = classify_error(result)
            retryable = _is_retryable(error_type)

            failure = FailureInfo(
                identifier=identifier,
                error=str(result) or type(result).__name__,
                error_type=error_type,
                retryable=retryable,
            )
            results.failures.append(failure)

            logger.warning(
                f"partial_results.{operation_type}.failed",
                extra={
                    "identifier": identifier,
                    "error_kind": (
                        result.kind.value
                        if isinstance(result, PanelError)
                        else error_type
                    ),
                    "error_type": error_type,
                    "retryable": retryable,
                    "error": failure.error,
                },
            )
        else:
            results.successes[identifier] = result

    logger.info(
        f"partial_results.{operation_type}.complete",
        extra={
            "total": len(operations),
            "successes": len(results.successes),
            "failures": len(results.failures),
            "success_rate": results.success_rate,
        },
    )

    return results


def classify_error(exc: BaseException) -> str:
    """Classify an exception into a coarse error type."""
    error_type = "unknown_error"

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status >= 500:
            error_type = "server_error"
        elif status == 429:
            error_type = "rate_limited"
        elif status == 404:
            error_type = "not_found"
        else:
            error_type = "client_error"
    elif isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        error_type = "timeout"
    elif isinstance(exc, httpx.HTTPError):
        error_type = "network_error"
    elif isinstance(exc, PanelError):
        error_type = exc.kind.value
    elif isinstance(exc, (ValueError, KeyError, TypeError, ValidationError)):
        error_type = "parse_error"

    return error_type


def _is_retryable(error_type: str) -> bool:
    """Determine if an error type is retryable."""
    return error_type in {"server_error", "rate_limited", "timeout", "network_error"}
