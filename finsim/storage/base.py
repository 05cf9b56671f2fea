"""Read/write contract the analytics engine expects from storage."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from finsim.analytics.models import (
    AssignmentDraft,
    GroupDraft,
    Student,
    StudentGroup,
    Submission,
    Task,
    TaskAssignment,
)


class AnalyticsStore:
    """Extension point for document stores.

    Every write is a single request with no retry. Lookups of unknown ids
    raise ``NotFoundError``.
    """

    # --- reads ---

    def list_tasks(self, teacher_id: Optional[str] = None) -> List[Task]:
        raise NotImplementedError

    def get_task(self, task_id: str) -> Task:
        raise NotImplementedError

    def list_submissions(self, teacher_id: Optional[str] = None,
                         student_id: Optional[str] = None) -> List[Submission]:
        raise NotImplementedError

    def list_groups(self, teacher_id: Optional[str] = None,
                    student_id: Optional[str] = None) -> List[StudentGroup]:
        """Groups owned by ``teacher_id`` and/or containing ``student_id``."""
        raise NotImplementedError

    def get_group(self, group_id: str) -> StudentGroup:
        raise NotImplementedError

    def list_assignments(self, teacher_id: Optional[str] = None) -> List[TaskAssignment]:
        raise NotImplementedError

    def get_assignment(self, assignment_id: str) -> TaskAssignment:
        raise NotImplementedError

    def list_students(self, role: str = 'student') -> List[Student]:
        raise NotImplementedError

    # --- writes ---

    def add_submission(self, submission: Submission) -> Submission:
        raise NotImplementedError

    def create_group(self, draft: GroupDraft) -> StudentGroup:
        raise NotImplementedError

    def update_group(self, group_id: str, partial: Dict[str, Any]) -> StudentGroup:
        raise NotImplementedError

    def delete_group(self, group_id: str) -> None:
        raise NotImplementedError

    def create_assignment(self, draft: AssignmentDraft) -> TaskAssignment:
        raise NotImplementedError

    def update_student_class(self, student_id: str, class_name: str) -> None:
        raise NotImplementedError
