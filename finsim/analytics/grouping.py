"""Grouping engine: manual groups, score-tier groups and class cascades."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from finsim.libs.config_loader import ConfigType, get_config
from .cascade import CascadeResult, run_steps
from .errors import NotFoundError, ResolutionError, ValidationError
from .models import GroupDraft, GroupType, ScoreRange, Student, StudentGroup, Submission, TaskAssignment
from .snapshot import latest_per_student
from .targeting import resolve_scope

if TYPE_CHECKING:
    from finsim.storage.base import AnalyticsStore

LOG = logging.getLogger(__name__)

UNASSIGNED_VIEW = '__unassigned__'
DEFAULT_FALLBACK_CLASS = 'General'

RangeLike = Union[ScoreRange, Mapping[str, Any]]


# --- roster queries ---------------------------------------------------------

def class_list(students: Iterable[Student]) -> List[str]:
    """Distinct non-empty class names, sorted."""
    return sorted({s.class_name for s in students if s.class_name})


def class_students(class_name: str, students: Iterable[Student]) -> List[Student]:
    """Students of a class sorted by name; UNASSIGNED_VIEW lists students without a class."""
    if class_name == UNASSIGNED_VIEW:
        roster = [s for s in students if not s.class_name]
    else:
        roster = [s for s in students if s.class_name == class_name]
    return sorted(roster, key=lambda s: s.name)


def ungrouped_students(class_name: str, students: Iterable[Student],
                       groups: Iterable[StudentGroup]) -> List[Student]:
    grouped = set()
    for g in groups:
        if g.class_name == class_name:
            grouped.update(g.member_ids)
    return [s for s in class_students(class_name, students) if s.id not in grouped]


def stale_members(group: StudentGroup, students: Iterable[Student]) -> List[str]:
    """Member ids no longer on the group's class roster (moved or unknown students)."""
    roster = {s.id for s in students if s.class_name == group.class_name}
    return [m for m in group.member_ids if m not in roster]


# --- score ranges -------------------------------------------------------------

def normalize_ranges(ranges: Sequence[RangeLike]) -> List[ScoreRange]:
    """
    Validate score ranges, filling an omitted lower bound from the previous range.

    Raises:
        ValidationError: Empty list, malformed entry, blank name, min >= max,
            or overlapping ranges
    """
    if not ranges:
        raise ValidationError("At least one score range is required")

    normalized: List[ScoreRange] = []
    previous_max = 0.0
    for r in ranges:
        if not isinstance(r, ScoreRange):
            try:
                r = ScoreRange.model_validate(r)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid score range {r!r}: {e}") from e
        if r.min is None:
            r = r.model_copy(update={'min': previous_max})
        if not r.name.strip():
            raise ValidationError("Score range name must not be blank")
        if r.min >= r.max:
            raise ValidationError(f"Score range {r.name!r} has min {r.min} >= max {r.max}")
        normalized.append(r)
        previous_max = r.max

    ordered = sorted(normalized, key=lambda r: r.min)
    for lower, upper in zip(ordered, ordered[1:]):
        if upper.min < lower.max:
            raise ValidationError(f"Score ranges {lower.name!r} and {upper.name!r} overlap")
    return normalized


def range_index(score: float, ranges: Sequence[ScoreRange]) -> Optional[int]:
    """Index of the half-open range holding the score.

    The top range also accepts a score equal to its max, so a perfect score
    lands in it exactly once.
    """
    for i, r in enumerate(ranges):
        if r.min <= score < r.max:
            return i
    top = max(range(len(ranges)), key=lambda i: ranges[i].max)
    if score == ranges[top].max:
        return top
    return None


def partition_by_ranges(submissions: Sequence[Submission],
                        ranges: Sequence[ScoreRange]) -> List[Tuple[ScoreRange, List[str]]]:
    """Student ids per range, de-duplicated, in range order."""
    members: List[List[str]] = [[] for _ in ranges]
    for sub in submissions:
        idx = range_index(sub.grade.total_score, ranges)
        if idx is None:
            LOG.debug(f"Score {sub.grade.total_score} of {sub.student_id} is outside every range")
            continue
        if sub.student_id not in members[idx]:
            members[idx].append(sub.student_id)
    return list(zip(ranges, members))


# --- engine -------------------------------------------------------------------

class AutoGroupContext(BaseModel):
    """Where automatic groups are created: an assignment, or a bare class."""
    teacher_id: str
    assignment_id: Optional[str] = None
    class_name: Optional[str] = None


@dataclass
class MembershipUpdate:
    """Result of replacing a group's members."""
    group: StudentGroup
    missing_member_ids: List[str] = field(default_factory=list)


class GroupingEngine:
    """Creates, updates and deletes student groups through the store."""

    def __init__(self, store: "AnalyticsStore", configs: Optional[ConfigType] = None):
        """
        Initialize the engine.

        Args:
            store: Storage collaborator used for every read and write
            configs: Configuration dictionary (optional)
        """
        self.store = store
        self.configs = configs or {}
        self.fallback_class_name = get_config(
            "grouping.fallback_class_name", self.configs, default=DEFAULT_FALLBACK_CLASS
        )

    def create_group(
        self,
        teacher_id: str,
        class_name: str,
        name: str,
        type: GroupType = GroupType.MANUAL,
        student_ids: Optional[Iterable[str]] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> StudentGroup:
        """
        Create a group inside a class.

        Raises:
            ValidationError: Blank name or teacher, or a manual group without a class
        """
        name = (name or "").strip()
        class_name = (class_name or "").strip()
        if not name:
            raise ValidationError("Group name must not be blank")
        if not teacher_id:
            raise ValidationError("Group needs an owning teacher")
        if class_name == UNASSIGNED_VIEW:
            raise ValidationError("Groups cannot be created for unassigned students")
        if type == GroupType.MANUAL and not class_name:
            raise ValidationError("Manual groups need a class name")

        group = self.store.create_group(GroupDraft(
            teacher_id=teacher_id,
            class_name=class_name,
            name=name,
            type=type,
            student_ids=list(dict.fromkeys(student_ids or [])),
            meta=meta,
        ))
        LOG.info(f"Created {group.type.value} group {group.name!r} ({group.id}) with {len(group.student_ids)} students")
        return group

    def update_group_members(
        self,
        group_id: str,
        new_student_ids: Iterable[str],
        students: Optional[Sequence[Student]] = None,
    ) -> MembershipUpdate:
        """
        Replace a group's members with exactly the given set.

        Ids missing from the group's class roster are kept, not dropped: a
        student who changed class keeps their group history. They are
        reported in ``missing_member_ids``.

        Args:
            group_id: Group to update
            new_student_ids: Complete new member set
            students: Roster to check against (fetched from the store if None)

        Raises:
            NotFoundError: Unknown group id
        """
        group = self.store.get_group(group_id)
        members = sorted(set(new_student_ids))
        if students is None:
            students = self.store.list_students(role='student')
        roster = {s.id for s in students if s.class_name == group.class_name}
        missing = [m for m in members if m not in roster]
        if missing:
            LOG.warning(
                f"Group {group.name!r} keeps {len(missing)} members outside class "
                f"{group.class_name!r}: {missing}"
            )

        updated = self.store.update_group(group_id, {'student_ids': members})
        LOG.info(f"Group {updated.name!r} now has {len(members)} members")
        return MembershipUpdate(group=updated, missing_member_ids=missing)

    def delete_group(self, group_id: str) -> None:
        self.store.delete_group(group_id)
        LOG.info(f"Deleted group {group_id}")

    def assign_student_class(self, student_id: str, class_name: str) -> None:
        class_name = (class_name or "").strip()
        if not class_name:
            raise ValidationError("Class name must not be blank")
        self.store.update_student_class(student_id, class_name)
        LOG.info(f"Moved student {student_id} to class {class_name!r}")

    def delete_class(
        self,
        class_name: str,
        all_groups: Sequence[StudentGroup],
        all_students: Sequence[Student],
    ) -> CascadeResult:
        """
        Delete every group of a class, then clear the class of its students.

        Steps run one by one and are not rolled back.

        Returns:
            CascadeResult when every step succeeded

        Raises:
            ValidationError: Blank class name
            PartialFailure: One or more steps failed; carries all outcomes
        """
        if not (class_name or "").strip() or class_name == UNASSIGNED_VIEW:
            raise ValidationError("A class name is required")

        steps = []
        for group in all_groups:
            if group.class_name == class_name:
                steps.append(('delete_group', group.id, partial(self.store.delete_group, group.id)))
        for student in all_students:
            if student.class_name == class_name:
                steps.append((
                    'clear_student_class', student.id,
                    partial(self.store.update_student_class, student.id, ''),
                ))

        return run_steps(f"delete_class({class_name})", steps).raise_for_failure()

    def _resolve_context(self, context: AutoGroupContext) -> Tuple[Optional[TaskAssignment], str]:
        assignment = None
        class_name = context.class_name
        if context.assignment_id:
            try:
                assignment = self.store.get_assignment(context.assignment_id)
            except NotFoundError as e:
                raise ResolutionError(f"Cannot resolve assignment {context.assignment_id}") from e
            class_name = assignment.class_name
        if not (class_name or "").strip():
            raise ResolutionError("Auto-grouping needs an assignment or a class")
        return assignment, class_name

    def generate_auto_groups(
        self,
        submissions: Sequence[Submission],
        ranges: Sequence[RangeLike],
        context: AutoGroupContext,
    ) -> List[StudentGroup]:
        """
        Create one score-tier group per non-empty range.

        Submissions are narrowed to the assignment's scope when the context
        names one, or to the class otherwise, then reduced to each student's
        latest attempt so that no student lands in two tiers. Groups are
        named "{class_name} - {range name}", e.g. "Class A - Basic", so tiers
        of different classes stay distinguishable.

        Args:
            submissions: The currently filtered submissions
            ranges: Score ranges (half-open, the top one includes its max)
            context: Assignment or class the groups belong to

        Returns:
            Created groups, in range order

        Raises:
            ValidationError: Invalid ranges
            ResolutionError: Context cannot be resolved; nothing is written
            PartialFailure: Some creates failed after others succeeded
        """
        if not context.teacher_id:
            raise ValidationError("Auto-grouping needs an owning teacher")
        normalized = normalize_ranges(ranges)
        assignment, class_name = self._resolve_context(context)

        if assignment:
            scoped = resolve_scope(assignment, submissions)
        else:
            scoped = [s for s in submissions if s.class_name == class_name]
        latest = latest_per_student(scoped)

        steps = []
        for score_range, student_ids in partition_by_ranges(latest, normalized):
            if not student_ids:
                LOG.warning(f"No students in range {score_range.name!r}, skipping")
                continue
            meta = {
                'source': 'auto_grouping',
                'assignment_id': assignment.id if assignment else None,
                'range': {'name': score_range.name, 'min': score_range.min, 'max': score_range.max},
            }
            steps.append((
                'create_group', score_range.name,
                partial(
                    self.create_group,
                    context.teacher_id,
                    class_name,
                    f"{class_name} - {score_range.name}",
                    GroupType.AUTO_SCORE_BUCKET,
                    student_ids,
                    meta,
                ),
            ))

        result = run_steps("generate_auto_groups", steps).raise_for_failure()
        return [step.value for step in result.steps]

    def create_group_from_bucket(
        self,
        label: str,
        submissions: Sequence[Submission],
        teacher_id: str,
    ) -> StudentGroup:
        """
        Turn a score-distribution bucket into a group.

        The group takes the first submission's class. A bucket spanning
        several classes still produces a single group in that class.
        """
        if not submissions:
            raise ValidationError(f"Bucket {label!r} has no submissions")

        classes = list(dict.fromkeys(s.class_name for s in submissions if s.class_name))
        target_class = submissions[0].class_name or self.fallback_class_name
        if len(classes) > 1:
            LOG.warning(f"Bucket {label!r} spans classes {classes}; grouping under {target_class!r}")

        return self.create_group(
            teacher_id,
            target_class,
            f"{target_class} - Score {label}",
            GroupType.AUTO_SCORE_BUCKET,
            [s.student_id for s in submissions],
            {'source': 'insights_click', 'bucket': label},
        )
