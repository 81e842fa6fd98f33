"""Command-line interface for scraps."""
