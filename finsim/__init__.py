"""Classroom analytics and student grouping for graded role-play submissions."""

__version__ = "0.1.0"
