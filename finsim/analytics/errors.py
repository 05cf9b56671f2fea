"""Exception taxonomy for the analytics and grouping engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .cascade import CascadeResult


class AnalyticsError(Exception):
    """Base class for errors raised by the engine."""


class ValidationError(AnalyticsError):
    """Caller supplied a blank required field or an invalid definition."""


class ResolutionError(AnalyticsError):
    """The assignment or class context for an operation could not be resolved."""


class NotFoundError(AnalyticsError):
    """A group, assignment, student or task id no longer exists."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class PartialFailure(AnalyticsError):
    """A multi-step operation failed after some of its steps succeeded.

    Nothing is rolled back. ``result`` lists every step with its outcome so the
    caller can refresh state and re-issue only what failed.
    """

    def __init__(self, result: "CascadeResult"):
        failed = ", ".join(f"{s.action}({s.target_id})" for s in result.failed)
        super().__init__(
            f"{result.operation}: {len(result.failed)} of {len(result.steps)} steps failed: {failed}"
        )
        self.result = result

    @property
    def succeeded(self):
        return self.result.succeeded

    @property
    def failed(self):
        return self.result.failed
