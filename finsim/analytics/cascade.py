"""Sequential multi-step writes with per-step outcomes.

The store offers no transactions. A cascade runs every step in order, records
what happened to each one and never rolls back, so partial failure can be
inspected and the remaining steps re-issued.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Tuple

from .errors import PartialFailure

LOG = logging.getLogger(__name__)


@dataclass
class CascadeStep:
    """Outcome of one write inside a cascade."""
    action: str
    target_id: str
    ok: bool = False
    error: Optional[str] = None
    value: Any = None

    def to_dict(self) -> dict:
        data = {'action': self.action, 'target_id': self.target_id, 'ok': self.ok}
        if self.error:
            data['error'] = self.error
        return data


@dataclass
class CascadeResult:
    """Ordered record of every step a cascade attempted."""
    operation: str
    steps: List[CascadeStep] = field(default_factory=list)

    @property
    def succeeded(self) -> List[CascadeStep]:
        return [s for s in self.steps if s.ok]

    @property
    def failed(self) -> List[CascadeStep]:
        return [s for s in self.steps if not s.ok]

    @property
    def ok(self) -> bool:
        return not self.failed

    def remaining_targets(self) -> List[Tuple[str, str]]:
        """(action, target_id) pairs that still need to be re-issued."""
        return [(s.action, s.target_id) for s in self.failed]

    def raise_for_failure(self) -> "CascadeResult":
        if not self.ok:
            raise PartialFailure(self)
        return self


StepSpec = Tuple[str, str, Callable[[], Any]]


def run_steps(operation: str, steps: Iterable[StepSpec]) -> CascadeResult:
    """
    Execute each step in order and record its outcome.

    A failing step is logged and recorded; later steps still run.

    Args:
        operation: Name of the cascade, used in logs and errors
        steps: (action, target_id, callable) triples

    Returns:
        CascadeResult with one CascadeStep per input step
    """
    result = CascadeResult(operation=operation)
    for action, target_id, fn in steps:
        step = CascadeStep(action=action, target_id=target_id)
        try:
            step.value = fn()
            step.ok = True
        except Exception as e:
            step.error = str(e)
            LOG.error(f"{operation}: {action}({target_id}) failed: {e}")
        result.steps.append(step)

    LOG.info(f"{operation}: {len(result.succeeded)}/{len(result.steps)} steps succeeded")
    return result
