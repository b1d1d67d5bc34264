"""Flatten multi-datasource query envelopes into a list of series.

A console envelope carries one sub-result per datasource. Sub-results that
did not succeed, or that succeeded with no series, are dropped here and only
logged; a non-200 envelope code is the one failure this layer raises.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Sequence, Union

from pydantic import TypeAdapter, ValidationError

from ..schemas.query_contract import ErrorKind, QueryEnvelope, QueryKind
from ..utils.correlation import get_request_id
from .errors import QueryFailed, TransportFailure
from .models import InstantSeries, RangeSeries, RawSeries, Series

logger = logging.getLogger(__name__)

_RAW_SERIES = TypeAdapter(RawSeries)

NormalizerInput = Union[QueryEnvelope, Mapping[str, Any], Sequence[Series]]


def _to_series(item: Mapping[str, Any], kind: QueryKind) -> Series:
    # Tag the entry so the discriminated union picks the right shape.
    raw: Union[InstantSeries, RangeSeries] = _RAW_SERIES.validate_python(
        {**item, "kind": kind.value}
    )
    return raw.to_series()


def normalize_envelope(payload: NormalizerInput, kind: QueryKind) -> List[Series]:
    """Return the flattened series of every successful, non-empty sub-result.

    Parameters
    ----------
    payload: QueryEnvelope | Mapping | Sequence[Series]
        A console envelope (validated or raw JSON), or an already
        normalized list, which is returned unchanged.
    kind: QueryKind
        Whether result entries carry ``value`` (instant) or ``values``
        (range).

    Returns
    -------
    List[Series]
        Datasource order, then intra-response order. No deduplication.

    Raises
    ------
    QueryFailed
        If the envelope ``code`` is not 200.
    TransportFailure
        If the payload does not match the envelope schema.
    """
    if isinstance(payload, (list, tuple)):
        return list(payload)

    if isinstance(payload, QueryEnvelope):
        envelope = payload
    else:
        try:
            envelope = QueryEnvelope.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "normalize.envelope_invalid",
                extra={
                    "req_id": get_request_id(),
                    "error_kind": ErrorKind.TRANSPORT_FAILURE.value,
                    "kind": kind.value,
                    "error": str(exc),
                },
            )
            raise TransportFailure(exc) from exc

    if not envelope.ok:
        logger.warning(
            "normalize.query_failed",
            extra={
                "req_id": get_request_id(),
                "error_kind": ErrorKind.QUERY_FAILURE.value,
                "kind": kind.value,
                "code": envelope.code,
                "msg": envelope.msg,
            },
        )
        raise QueryFailed(envelope.msg, code=envelope.code)

    series: List[Series] = []
    for index, item in enumerate(envelope.data):
        if not item.succeeded or not item.results:
            logger.info(
                "normalize.source_skipped",
                extra={
                    "req_id": get_request_id(),
                    "error_kind": ErrorKind.PARTIAL_SOURCE_FAILURE.value,
                    "kind": kind.value,
                    "source_index": index,
                    "status": item.status,
                    "error": item.error,
                },
            )
            continue
        try:
            series.extend(_to_series(entry, kind) for entry in item.results)
        except ValidationError as exc:
            logger.warning(
                "normalize.result_invalid",
                extra={
                    "req_id": get_request_id(),
                    "error_kind": ErrorKind.TRANSPORT_FAILURE.value,
                    "kind": kind.value,
                    "source_index": index,
                    "error": str(exc),
                },
            )
            raise TransportFailure(exc) from exc

    logger.debug(
        "normalize.done",
        extra={
            "req_id": get_request_id(),
            "kind": kind.value,
            "sources": len(envelope.data),
            "series": len(series),
        },
    )
    return series
