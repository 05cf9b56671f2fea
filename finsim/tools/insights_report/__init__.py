"""Insights report and grouping CLI."""
