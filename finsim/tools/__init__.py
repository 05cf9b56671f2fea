"""Command-line tools built on the analytics engine."""
