"""Local HTTP API over the semantic index."""
