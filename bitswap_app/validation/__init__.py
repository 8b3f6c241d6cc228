"""Wire schema validation."""
