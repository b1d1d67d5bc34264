"""Command-line interface to start the metrics panel HTTP service.

The CLI loads the application configuration, configures logging, and serves
the FastAPI app with uvicorn in the foreground.

Usage
-----
    metrics-panel --config config.json
    python -m metrics_panel.server.cli --config config.json --port 9090
"""

from __future__ import annotations

import argparse
import importlib
import os
from pathlib import Path
from typing import List, Optional

from ..config.models import AppConfig
from ..observability import setup_logging
from .http import create_app


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Metrics panel service")
    parser.add_argument("--config", help="Path to JSON app config")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=[
            "CRITICAL",
            "ERROR",
            "WARNING",
            "INFO",
            "DEBUG",
        ],
        help="Logging level (overrides environment)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (once sets DEBUG)",
    )
    parser.add_argument(
        "--host", default="127.0.0.1", help="HTTP bind host (default 127.0.0.1)"
    )
    parser.add_argument("--port", type=int, default=8080, help="HTTP port")
    return parser


def effective_log_level(args: argparse.Namespace) -> str:
    """Resolve the log level: flag, then ``-v``, then environment."""
    env_level = os.environ.get("METRICS_PANEL_LOG_LEVEL", "INFO").upper()
    return args.log_level or ("DEBUG" if args.verbose > 0 else env_level)


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entrypoint for running the metrics panel service."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    level = effective_log_level(args)
    # Apply early so subsequent imports use configured level
    setup_logging(level)

    config: Optional[AppConfig] = None
    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            parser.error(f"config file not found: {config_path}")
        config = AppConfig.load(config_path)

    uvicorn = importlib.import_module("uvicorn")
    app = create_app(config)
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=level.lower(),
    )


if __name__ == "__main__":
    main()
