"""Command-line interface for litmeta."""
