"""Assignment targeting: which submissions and students an assignment covers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence

from .errors import ValidationError
from .models import AssignmentDraft, Student, StudentGroup, Submission, TaskAssignment

if TYPE_CHECKING:
    from finsim.storage.base import AnalyticsStore

LOG = logging.getLogger(__name__)


def in_scope(assignment: TaskAssignment, submission: Submission) -> bool:
    """
    Decide whether a submission counts toward an assignment's results.

    A submission stamped with the assignment's id always counts, even if the
    student has since moved class. Unstamped (legacy) submissions must match
    the class, and when the assignment targets groups, the groups the student
    was in *when submitting* must intersect them. Live membership is never
    consulted, so regrouping after publishing does not change past results.
    """
    if submission.assignment_id:
        return submission.assignment_id == assignment.id
    if submission.class_name != assignment.class_name:
        return False
    if assignment.targets_whole_class:
        return True
    return bool(set(submission.group_ids_at_submission) & set(assignment.group_ids))


def resolve_scope(
    assignment: TaskAssignment,
    submissions: Sequence[Submission],
    groups: Optional[Sequence[StudentGroup]] = None,
) -> List[Submission]:
    """Submissions in scope for the assignment, in input order.

    ``groups`` is accepted for parity with the other resolvers; scoping relies
    on each submission's frozen group snapshot only.
    """
    return [s for s in submissions if in_scope(assignment, s)]


def current_groups_of(student_id: str, groups: Iterable[StudentGroup]) -> List[StudentGroup]:
    """Groups the student belongs to right now."""
    return [g for g in groups if student_id in g.member_ids]


def targeted_students(
    assignment: TaskAssignment,
    students: Sequence[Student],
    groups: Sequence[StudentGroup],
) -> List[Student]:
    """Students an assignment reaches today, using live class and group membership."""
    roster = [s for s in students if s.class_name == assignment.class_name]
    if assignment.targets_whole_class:
        return roster
    targeted = {g.id for g in groups if g.id in assignment.group_ids}
    member_ids = set()
    for g in groups:
        if g.id in targeted:
            member_ids.update(g.member_ids)
    return [s for s in roster if s.id in member_ids]


def publish_assignment(
    store: "AnalyticsStore",
    task_id: str,
    teacher_id: str,
    class_name: str,
    group_ids: Sequence[str] = (),
    title: Optional[str] = None,
) -> TaskAssignment:
    """
    Publish a task to a class, or to some of its groups.

    Args:
        store: Storage collaborator
        task_id: Task being published (must exist)
        teacher_id: Publishing teacher
        class_name: Target class
        group_ids: Groups inside the class; empty targets the entire class
        title: Optional display title override

    Returns:
        The stored TaskAssignment

    Raises:
        ValidationError: Blank class, or a group from another class
        NotFoundError: Unknown task or group id
    """
    class_name = (class_name or "").strip()
    if not class_name:
        raise ValidationError("An assignment needs a class name")

    store.get_task(task_id)
    unique_group_ids = list(dict.fromkeys(group_ids))
    for group_id in unique_group_ids:
        group = store.get_group(group_id)
        if group.class_name != class_name:
            raise ValidationError(
                f"Group {group.name!r} belongs to class {group.class_name!r}, not {class_name!r}"
            )

    assignment = store.create_assignment(AssignmentDraft(
        task_id=task_id,
        teacher_id=teacher_id,
        class_name=class_name,
        group_ids=unique_group_ids,
        title=title,
    ))
    LOG.info(
        f"Published task {task_id} to {class_name}"
        + (f" groups {unique_group_ids}" if unique_group_ids else " (whole class)")
    )
    return assignment
