"""Live smoke test against a real console (manual enable).

This test is skipped by default in CI. To run it against a console, set
`CONSOLE_URL` (e.g., http://localhost:9001) and `CONSOLE_DATASOURCE_ID`, and
optionally:

- `CONSOLE_TOKEN` (Bearer token if the console requires one)
- `CONSOLE_QUERY` (defaults to `up`)
"""

from __future__ import annotations

import os

import pytest

from metrics_panel.adapters.console_api import ConsoleApiAdapter
from metrics_panel.domain.models import ViewStatus
from metrics_panel.panel.controller import ViewController

pytestmark = pytest.mark.skipif(
    not (os.environ.get("CONSOLE_URL") and os.environ.get("CONSOLE_DATASOURCE_ID")),
    reason="Skipped unless CONSOLE_URL and CONSOLE_DATASOURCE_ID are set",
)


@pytest.mark.asyncio
async def test_console_query_reaches_a_final_state() -> None:
    """One fetch against the live console ends in ready, empty or error."""
    adapter = ConsoleApiAdapter(
        os.environ["CONSOLE_URL"], os.environ.get("CONSOLE_TOKEN"), timeout=10
    )
    try:
        controller = ViewController(adapter, timeout_seconds=10)
        state = await controller.set_inputs(
            template=os.environ.get("CONSOLE_QUERY", "up"),
            datasources=[os.environ["CONSOLE_DATASOURCE_ID"]],
        )
    finally:
        await adapter.aclose()
    assert state.status in (ViewStatus.READY, ViewStatus.EMPTY, ViewStatus.ERROR)
    if state.status is ViewStatus.READY:
        assert len(state.rows) == len(state.chart)
