"""Dictionary-backed store used by tests and as the base of the YAML store."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional

from finsim.analytics.errors import NotFoundError
from finsim.analytics.models import (
    AssignmentDraft,
    GroupDraft,
    Student,
    StudentGroup,
    Submission,
    Task,
    TaskAssignment,
)
from .base import AnalyticsStore

LOG = logging.getLogger(__name__)

_DELETE = object()


def now_ms() -> int:
    return int(time.time() * 1000)


class InMemoryStore(AnalyticsStore):
    """Keeps every collection in memory and hands out copies."""

    def __init__(
        self,
        tasks: Iterable[Task] = (),
        submissions: Iterable[Submission] = (),
        groups: Iterable[StudentGroup] = (),
        assignments: Iterable[TaskAssignment] = (),
        students: Iterable[Student] = (),
        clock: Optional[Callable[[], int]] = None,
    ):
        self.clock = clock or now_ms
        self._tasks: Dict[str, Task] = {t.id: t for t in tasks}
        self._submissions: Dict[str, Submission] = {s.id: s for s in submissions}
        self._groups: Dict[str, StudentGroup] = {g.id: g for g in groups}
        self._assignments: Dict[str, TaskAssignment] = {a.id: a for a in assignments}
        self._students: Dict[str, Student] = {s.id: s for s in students}

    def _persist(self) -> None:
        """Called after every change; raising undoes the change."""

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    # --- reads ---

    def list_tasks(self, teacher_id: Optional[str] = None) -> List[Task]:
        tasks = [t for t in self._tasks.values() if teacher_id is None or t.teacher_id == teacher_id]
        tasks.sort(key=lambda t: t.updated_at, reverse=True)
        return [t.model_copy(deep=True) for t in tasks]

    def get_task(self, task_id: str) -> Task:
        if task_id not in self._tasks:
            raise NotFoundError('task', task_id)
        return self._tasks[task_id].model_copy(deep=True)

    def list_submissions(self, teacher_id: Optional[str] = None,
                         student_id: Optional[str] = None) -> List[Submission]:
        subs = [
            s for s in self._submissions.values()
            if (teacher_id is None or s.teacher_id == teacher_id)
            and (student_id is None or s.student_id == student_id)
        ]
        subs.sort(key=lambda s: s.submitted_at, reverse=True)
        return [s.model_copy(deep=True) for s in subs]

    def list_groups(self, teacher_id: Optional[str] = None,
                    student_id: Optional[str] = None) -> List[StudentGroup]:
        groups = [
            g for g in self._groups.values()
            if (teacher_id is None or g.teacher_id == teacher_id)
            and (student_id is None or student_id in g.student_ids)
        ]
        return [g.model_copy(deep=True) for g in groups]

    def get_group(self, group_id: str) -> StudentGroup:
        if group_id not in self._groups:
            raise NotFoundError('group', group_id)
        return self._groups[group_id].model_copy(deep=True)

    def list_assignments(self, teacher_id: Optional[str] = None) -> List[TaskAssignment]:
        assignments = [
            a for a in self._assignments.values()
            if teacher_id is None or a.teacher_id == teacher_id
        ]
        assignments.sort(key=lambda a: a.created_at, reverse=True)
        return [a.model_copy(deep=True) for a in assignments]

    def get_assignment(self, assignment_id: str) -> TaskAssignment:
        if assignment_id not in self._assignments:
            raise NotFoundError('assignment', assignment_id)
        return self._assignments[assignment_id].model_copy(deep=True)

    def list_students(self, role: str = 'student') -> List[Student]:
        return [s.model_copy() for s in self._students.values() if s.role == role]

    # --- writes ---

    def _apply(self, collection: Dict[str, Any], key: str, value: Any = _DELETE) -> None:
        """Change one entry and persist; the entry is restored if persisting fails."""
        existed = key in collection
        previous = collection.get(key)
        if value is _DELETE:
            del collection[key]
        else:
            collection[key] = value
        try:
            self._persist()
        except Exception:
            LOG.warning(f"Persisting failed, reverted change to {key}")
            if existed:
                collection[key] = previous
            else:
                collection.pop(key, None)
            raise

    def add_submission(self, submission: Submission) -> Submission:
        if not submission.id:
            submission = submission.model_copy(update={'id': self._new_id()})
        self._apply(self._submissions, submission.id, submission.model_copy(deep=True))
        return submission

    def create_group(self, draft: GroupDraft) -> StudentGroup:
        group = StudentGroup(id=self._new_id(), created_at=self.clock(), **draft.model_dump())
        self._apply(self._groups, group.id, group)
        return group.model_copy(deep=True)

    def update_group(self, group_id: str, partial: Dict[str, Any]) -> StudentGroup:
        if group_id not in self._groups:
            raise NotFoundError('group', group_id)
        fields = {k: v for k, v in partial.items() if k not in ('id', 'created_at')}
        data = self._groups[group_id].model_dump()
        data.update(fields)
        group = StudentGroup.model_validate(data)
        self._apply(self._groups, group_id, group)
        return group.model_copy(deep=True)

    def delete_group(self, group_id: str) -> None:
        if group_id not in self._groups:
            raise NotFoundError('group', group_id)
        self._apply(self._groups, group_id)

    def create_assignment(self, draft: AssignmentDraft) -> TaskAssignment:
        assignment = TaskAssignment(id=self._new_id(), created_at=self.clock(), **draft.model_dump())
        self._apply(self._assignments, assignment.id, assignment)
        return assignment.model_copy(deep=True)

    def update_student_class(self, student_id: str, class_name: str) -> None:
        if student_id not in self._students:
            raise NotFoundError('student', student_id)
        self._apply(
            self._students, student_id,
            self._students[student_id].model_copy(update={'class_name': class_name}),
        )
