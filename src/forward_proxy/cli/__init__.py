"""Command-line interface for the forward proxy."""
