"""Configuration models for files and environment."""
