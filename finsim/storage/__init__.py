"""Storage collaborators for the analytics engine."""

from .base import AnalyticsStore
from .memory import InMemoryStore
from .yaml_store import YamlStore

__all__ = [
    'AnalyticsStore',
    'InMemoryStore',
    'YamlStore',
]
