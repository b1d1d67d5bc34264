"""Failure taxonomy for the metrics pipeline.

Only transport, query and timeout failures reach the user-visible error state.
Lookup and partial-source failures are absorbed where they happen and only
show up in logs, tagged with their ``error_kind``.
"""

from __future__ import annotations

from typing import Optional

from ..schemas.query_contract import ErrorKind

NETWORK_ERROR_MESSAGE = "Network error"
QUERY_FAILED_MESSAGE = "Query failed"
TIMEOUT_MESSAGE = "Query timed out"


class PanelError(Exception):
    """Base class for pipeline failures.

    Attributes
    ----------
    message: str
        Text suitable for the presentation layer.
    kind: ErrorKind
        Classification used in logs and in the view state.
    """

    kind: ErrorKind = ErrorKind.TRANSPORT_FAILURE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransportFailure(PanelError):
    """The query or lookup call itself failed (network, JSON, schema)."""

    kind = ErrorKind.TRANSPORT_FAILURE

    def __init__(self, cause: Optional[BaseException] = None) -> None:
        super().__init__(NETWORK_ERROR_MESSAGE)
        self.cause = cause


class QueryFailed(PanelError):
    """The console answered with a non-200 ``code``."""

    kind = ErrorKind.QUERY_FAILURE

    def __init__(self, server_message: Optional[str] = None, code: int = 0) -> None:
        super().__init__(server_message or QUERY_FAILED_MESSAGE)
        self.server_message = server_message
        self.code = code


class QueryTimeout(PanelError):
    """A query call did not complete within the configured timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(TIMEOUT_MESSAGE)
        self.timeout_seconds = timeout_seconds


class LookupFailure(PanelError):
    """A label-value lookup failed; the variable stays unbound."""

    kind = ErrorKind.LOOKUP_FAILURE

    def __init__(self, label_name: str, reason: str) -> None:
        super().__init__(f"label values for {label_name!r} unavailable: {reason}")
        self.label_name = label_name
        self.reason = reason
