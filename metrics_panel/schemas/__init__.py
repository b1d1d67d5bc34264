"""Wire contract schemas for the console query API."""
