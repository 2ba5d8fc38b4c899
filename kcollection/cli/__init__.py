"""Command-line interface for kcollection."""
