"""Store persisted to a single YAML document."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Dict, Optional

import yaml

from finsim.analytics.models import Student, StudentGroup, Submission, Task, TaskAssignment
from .memory import InMemoryStore

LOG = logging.getLogger(__name__)


class YamlStore(InMemoryStore):
    """
    Keeps all collections in one YAML file.

    The file holds top-level lists ``tasks``, ``submissions``, ``groups``,
    ``assignments`` and ``students``. It is rewritten after every write.
    """

    def __init__(self, yaml_path: Path, clock: Optional[Callable[[], int]] = None):
        self.yaml_path = Path(yaml_path)
        data = self._load_yaml()
        super().__init__(
            tasks=[Task.model_validate(t) for t in data.get('tasks') or []],
            submissions=[Submission.model_validate(s) for s in data.get('submissions') or []],
            groups=[StudentGroup.model_validate(g) for g in data.get('groups') or []],
            assignments=[TaskAssignment.model_validate(a) for a in data.get('assignments') or []],
            students=[Student.model_validate(s) for s in data.get('students') or []],
            clock=clock,
        )
        LOG.debug(f"Loaded store from {self.yaml_path}")

    def _load_yaml(self) -> Dict:
        """Load collections from YAML; a missing file is an empty store."""
        if not self.yaml_path.exists():
            return {}
        with open(self.yaml_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise TypeError(f"YAML store {self.yaml_path} must be a mapping")
        return data

    def to_dict(self) -> Dict[str, list]:
        return {
            'tasks': [t.model_dump(mode='json') for t in self._tasks.values()],
            'submissions': [s.model_dump(mode='json') for s in self._submissions.values()],
            'groups': [g.model_dump(mode='json') for g in self._groups.values()],
            'assignments': [a.model_dump(mode='json') for a in self._assignments.values()],
            'students': [s.model_dump(mode='json') for s in self._students.values()],
        }

    def _persist(self) -> None:
        """Write to a temp file beside the store, then swap it in, so a failed write leaves the old file."""
        self.yaml_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.yaml_path.parent, prefix=f".{self.yaml_path.name}.", suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False, allow_unicode=True)
            os.replace(tmp_path, self.yaml_path)
        except Exception:
            os.unlink(tmp_path)
            raise
