"""
Tests for partial results handling utilities.
"""

import asyncio
from unittest.mock import MagicMock

import httpx
import pytest

from metrics_panel.domain.errors import LookupFailure
from metrics_panel.utils.partial_results import (
    FailureInfo,
    PartialResult,
    classify_error,
    gather_partial,
)


@pytest.mark.asyncio
async def test_gather_partial_all_succeed():
    """Test gathering when all operations succeed."""

    async def success_op(value):
        await asyncio.sleep(0.01)
        return value

    operations = {
        "op1": success_op("result1"),
        "op2": success_op("result2"),
    }

    result = await gather_partial(operations, "test_operation")

    assert result.all_succeeded
    assert not result.has_failures
    assert result.successes == {"op1": "result1", "op2": "result2"}
    assert result.success_rate == 1.0


@pytest.mark.asyncio
async def test_gather_partial_failure_does_not_cancel_siblings():
    """A failed operation leaves the others to complete."""
    finished = []

    async def slow_success():
        await asyncio.sleep(0.02)
        finished.append("slow")
        return "ok"

    async def fail_fast():
        raise LookupFailure("instance", "unexpected response code 500")

    result = await gather_partial(
        {"instance": fail_fast(), "ifName": slow_success()}, "label_values"
    )

    assert finished == ["slow"]
    assert result.successes == {"ifName": "ok"}
    (failure,) = result.failures
    assert failure.identifier == "instance"
    assert failure.error_type == "lookup_failure"
    assert failure.retryable is False


@pytest.mark.asyncio
async def test_gather_partial_timeout():
    """Per-operation timeouts are reported as retryable failures."""

    async def hang():
        await asyncio.sleep(1)

    result = await gather_partial({"op": hang()}, "test", timeout=0.01)
    assert result.all_failed
    assert result.failures[0].error_type == "timeout"
    assert result.failures[0].retryable is True


@pytest.mark.asyncio
async def test_gather_partial_empty_raises():
    with pytest.raises(ValueError):
        await gather_partial({}, "test")


def test_partial_result_rates():
    empty = PartialResult()
    assert empty.success_rate == 0.0
    assert not empty.all_succeeded
    mixed = PartialResult(
        successes={"a": 1}, failures=[FailureInfo("b", "x", "timeout")]
    )
    assert mixed.success_rate == 0.5
    assert mixed.has_failures


def test_classify_error():
    response = MagicMock()
    response.status_code = 503
    status_error = httpx.HTTPStatusError("boom", request=MagicMock(), response=response)
    assert classify_error(status_error) == "server_error"

    response.status_code = 429
    assert classify_error(status_error) == "rate_limited"
    response.status_code = 404
    assert classify_error(status_error) == "not_found"
    response.status_code = 400
    assert classify_error(status_error) == "client_error"

    assert classify_error(httpx.ReadTimeout("slow")) == "timeout"
    assert classify_error(asyncio.TimeoutError()) == "timeout"
    assert classify_error(httpx.ConnectError("down")) == "network_error"
    assert classify_error(ValueError("bad")) == "parse_error"
    assert classify_error(RuntimeError("?")) == "unknown_error"
