"""Transports for the metrics panel: HTTP service and CLI."""
