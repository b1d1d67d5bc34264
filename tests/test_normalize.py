"""Tests for envelope normalization."""

import logging

import pytest

from conftest import envelope, ok_source
from metrics_panel.domain.errors import QueryFailed, TransportFailure
from metrics_panel.domain.models import Series
from metrics_panel.domain.normalize import normalize_envelope
from metrics_panel.schemas.query_contract import QueryEnvelope, QueryKind


def test_instant_results_become_one_sample_series():
    payload = envelope(ok_source({"metric": {"__name__": "up"}, "value": [1000, "1"]}))
    series = normalize_envelope(payload, QueryKind.INSTANT)
    assert series == [Series(labels={"__name__": "up"}, samples=((1000, "1"),))]
    assert series[0].metric_name == "up"


def test_range_results_keep_sample_order():
    payload = envelope(
        ok_source({"metric": {"job": "a"}, "values": [[0, "1"], [60, "2"]]})
    )
    (series,) = normalize_envelope(payload, QueryKind.RANGE)
    assert series.samples == ((0, "1"), (60, "2"))
    assert series.metric_name == ""


def test_datasource_order_then_response_order():
    payload = envelope(
        ok_source(
            {"metric": {"n": "1"}, "values": []},
            {"metric": {"n": "2"}, "values": []},
        ),
        ok_source({"metric": {"n": "1"}, "values": []}),
    )
    series = normalize_envelope(payload, QueryKind.RANGE)
    assert [s.labels["n"] for s in series] == ["1", "2", "1"]


def test_failed_and_empty_sources_are_skipped(caplog):
    payload = envelope(
        {"status": "error", "errorType": "bad_data", "error": "boom"},
        ok_source(),
        {"status": "success"},
        ok_source({"metric": {"__name__": "up"}, "value": [1, "1"]}),
    )
    with caplog.at_level(logging.INFO, logger="metrics_panel.domain.normalize"):
        series = normalize_envelope(payload, QueryKind.INSTANT)
    assert len(series) == 1
    skipped = [r for r in caplog.records if r.getMessage() == "normalize.source_skipped"]
    assert len(skipped) == 3
    assert all(r.error_kind == "partial_source_failure" for r in skipped)


def test_all_sources_failed_is_empty_not_error():
    payload = envelope({"status": "error"}, {"status": "error"})
    assert normalize_envelope(payload, QueryKind.INSTANT) == []


def test_non_200_code_raises_query_failed_with_server_message():
    with pytest.raises(QueryFailed) as excinfo:
        normalize_envelope(
            {"code": 500, "msg": "datasource unreachable"}, QueryKind.INSTANT
        )
    assert excinfo.value.message == "datasource unreachable"
    assert excinfo.value.code == 500


def test_non_200_code_without_message():
    with pytest.raises(QueryFailed) as excinfo:
        normalize_envelope(QueryEnvelope(code=400), QueryKind.RANGE)
    assert excinfo.value.message == "Query failed"


def test_schema_mismatch_is_transport_failure():
    with pytest.raises(TransportFailure):
        normalize_envelope({"data": "nope"}, QueryKind.INSTANT)


def test_result_entry_of_the_wrong_shape_is_transport_failure():
    # A range entry has no single "value", so it cannot be an instant sample.
    payload = envelope(ok_source({"metric": {"job": "a"}, "values": [[0, "1"]]}))
    with pytest.raises(TransportFailure):
        normalize_envelope(payload, QueryKind.INSTANT)


def test_normalized_input_is_returned_unchanged():
    series = [Series(labels={"a": "b"}, samples=((1, "2"),))]
    assert normalize_envelope(series, QueryKind.RANGE) == series
    assert normalize_envelope([], QueryKind.RANGE) == []


def test_numeric_sample_values_are_coerced_to_strings():
    payload = envelope(ok_source({"metric": {"a": 1}, "values": [[0, 1.5], [1, None]]}))
    (series,) = normalize_envelope(payload, QueryKind.RANGE)
    assert series.labels == {"a": "1"}
    assert series.samples == ((0, "1.5"), (1, ""))
