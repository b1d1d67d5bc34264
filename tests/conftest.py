"""Pytest configuration for test suite.

Ensures the project root is on ``sys.path`` so ``import metrics_panel``
resolves correctly regardless of the working directory pytest chooses, and
provides fake query backends shared by the controller and HTTP tests.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pytest


def _ensure_project_root_on_syspath() -> None:
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        # Prepend to prefer local sources over site-packages
        sys.path.insert(0, project_root_str)


_ensure_project_root_on_syspath()


@pytest.fixture(autouse=True)
def reset_adapter_registry():
    """Reset adapter registry before each test to avoid cross-test leakage."""
    from metrics_panel.adapters import reset_adapters

    reset_adapters()
    yield
    reset_adapters()


def envelope(*sources: Dict[str, Any], code: int = 200, msg: Optional[str] = None):
    """Build a console query envelope from per-datasource blocks."""
    payload: Dict[str, Any] = {"code": code, "data": list(sources)}
    if msg is not None:
        payload["msg"] = msg
    return payload


def ok_source(*results: Dict[str, Any]) -> Dict[str, Any]:
    """A successful datasource block."""
    return {"status": "success", "data": {"resultType": "matrix", "result": list(results)}}


class FakeBackend:
    """In-memory query backend recording every call.

    Responses are raw JSON mappings (validated by the normalizer) or
    exceptions, which are raised from the call.
    """

    def __init__(
        self,
        instant: Any = None,
        range_: Any = None,
        labels: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.instant = instant if instant is not None else envelope()
        self.range = range_ if range_ is not None else envelope()
        self.labels: Dict[str, Any] = dict(labels or {})
        self.instant_calls: List[Dict[str, Any]] = []
        self.range_calls: List[Dict[str, Any]] = []
        self.label_calls: List[Any] = []

    @staticmethod
    def _answer(value: Any) -> Any:
        if isinstance(value, BaseException):
            raise value
        return value

    async def instant_query(self, params):
        self.instant_calls.append(dict(params))
        return self._answer(self.instant)

    async def range_query(self, params):
        self.range_calls.append(dict(params))
        return self._answer(self.range)

    async def label_values(self, req):
        from metrics_panel.schemas.query_contract import LabelValuesResponse

        self.label_calls.append(req)
        value = self._answer(self.labels.get(req.label_name, {"code": 200, "data": []}))
        return LabelValuesResponse.model_validate(value)


@pytest.fixture
def fake_backend() -> FakeBackend:
    """A backend answering with empty envelopes until configured."""
    return FakeBackend()
