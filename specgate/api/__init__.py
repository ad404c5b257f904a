"""Command-line interface for specgate."""
