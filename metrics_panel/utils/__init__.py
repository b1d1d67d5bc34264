"""Shared async and caching helpers."""
