"""CLI argument handling and startup wiring."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from metrics_panel.server import cli


def test_effective_log_level_precedence() -> None:
    parser = cli._build_parser()
    with patch.dict(os.environ, {"METRICS_PANEL_LOG_LEVEL": "warning"}):
        assert cli.effective_log_level(parser.parse_args([])) == "WARNING"
        assert cli.effective_log_level(parser.parse_args(["-v"])) == "DEBUG"
        args = parser.parse_args(["-v", "--log-level", "ERROR"])
        assert cli.effective_log_level(args) == "ERROR"


def test_main_serves_app_with_config(tmp_path: Path) -> None:
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text(json.dumps({"panel": {"page_size": 25}}))
    uvicorn = MagicMock()
    with patch.dict(sys.modules, {"uvicorn": uvicorn}), patch.object(
        cli, "create_app", return_value="app"
    ) as create_app, patch.object(cli, "setup_logging"):
        cli.main(
            ["--config", str(cfg_path), "--port", "9090", "--log-level", "DEBUG"]
        )

    (config,), _ = create_app.call_args
    assert config.panel.page_size == 25
    uvicorn.run.assert_called_once_with(
        "app", host="127.0.0.1", port=9090, log_level="debug"
    )


def test_main_rejects_missing_config(tmp_path: Path) -> None:
    with patch.object(cli, "setup_logging"), pytest.raises(SystemExit):
        cli.main(["--config", str(tmp_path / "absent.json")])
