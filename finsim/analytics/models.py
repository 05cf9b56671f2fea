"""Pydantic models for tasks, graded submissions, groups and derived analytics."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

BUCKET_LABELS = ('<60', '60-79', '80-89', '90+')
UNKNOWN_DESCRIPTION = '?'


class StrictnessLevel(str, Enum):
    """How harshly the evaluator grades a transcript."""
    LENIENT = 'lenient'
    MODERATE = 'moderate'
    STRICT = 'strict'
    VERY_STRICT = 'very_strict'


class Criterion(BaseModel):
    """Single rubric criterion of a task."""
    id: str = Field(description="Criterion id referenced by grade breakdowns")
    points: float = Field(description="Maximum points for this criterion")
    description: str = Field(default="", description="What the evaluator looks for")


class Task(BaseModel):
    """A role-play task and the rubric it is graded against."""
    id: str
    name: str = Field(description="Display name of the task")
    rubric: List[Criterion] = Field(default_factory=list, description="Ordered rubric criteria")
    strictness: StrictnessLevel = StrictnessLevel.MODERATE
    teacher_id: str = Field(default="", description="Owning teacher")
    created_at: int = 0
    updated_at: int = 0

    @property
    def max_points(self) -> float:
        return sum(c.points for c in self.rubric)

    def criterion(self, criterion_id: str) -> Optional[Criterion]:
        for c in self.rubric:
            if c.id == criterion_id:
                return c
        return None


class BreakdownEntry(BaseModel):
    """Score for one rubric criterion, aligned by position with the rubric at grading time."""
    criterion_id: str
    score: float = 0
    comment: str = ""


class Grade(BaseModel):
    """Evaluator output for a transcript."""
    total_score: float = Field(description="Total points earned")
    max_score: float = Field(default=0, description="Maximum possible total points")
    feedback: str = ""
    breakdown: List[BreakdownEntry] = Field(default_factory=list)


class Submission(BaseModel):
    """A graded attempt by a student.

    Names, class and groups are copies frozen when the submission was written.
    ``group_ids_at_submission`` is a snapshot and must not be read as live
    membership; see ``targeting.current_groups_of`` for that.
    """
    id: str
    student_id: str
    student_name: str = ""
    task_id: str
    task_name: str = ""
    teacher_id: str = ""
    grade: Grade
    submitted_at: int = Field(description="Epoch milliseconds")
    class_name: Optional[str] = None
    group_ids_at_submission: List[str] = Field(default_factory=list)
    assignment_id: Optional[str] = None

    @property
    def total_score(self) -> float:
        return self.grade.total_score

    @property
    def percentage(self) -> float:
        if not self.grade.max_score:
            return 0.0
        return (self.grade.total_score / self.grade.max_score) * 100


class ResolvedBreakdown(BaseModel):
    """A breakdown entry joined against the current rubric."""
    criterion_id: str
    score: float
    comment: str
    description: str = UNKNOWN_DESCRIPTION
    max_points: Optional[float] = None

    @property
    def matched(self) -> bool:
        return self.max_points is not None


def resolve_breakdown(submission: Submission, task: Optional[Task]) -> List[ResolvedBreakdown]:
    """Look up each breakdown entry's criterion by id in the current task.

    The rubric may have changed since grading, so entries without a matching
    criterion keep their score and render as unknown.
    """
    resolved = []
    for entry in submission.grade.breakdown:
        criterion = task.criterion(entry.criterion_id) if task else None
        if criterion is None:
            resolved.append(ResolvedBreakdown(
                criterion_id=entry.criterion_id,
                score=entry.score,
                comment=entry.comment,
            ))
        else:
            resolved.append(ResolvedBreakdown(
                criterion_id=entry.criterion_id,
                score=entry.score,
                comment=entry.comment,
                description=criterion.description,
                max_points=criterion.points,
            ))
    return resolved


class Student(BaseModel):
    """A student account as listed by the roster."""
    id: str
    name: str = ""
    email: str = ""
    class_name: str = Field(default="", description="Empty when the student has no class")
    role: str = "student"


class GroupType(str, Enum):
    MANUAL = 'manual'
    AUTO_SCORE_BUCKET = 'auto-score-bucket'


class GroupDraft(BaseModel):
    """Group fields supplied by the caller before the store assigns an id."""
    teacher_id: str
    class_name: str = ""
    name: str
    type: GroupType = GroupType.MANUAL
    student_ids: List[str] = Field(default_factory=list)
    meta: Optional[Dict[str, Any]] = None


class StudentGroup(GroupDraft):
    """A persisted group of students inside a class."""
    id: str
    created_at: int = 0

    @property
    def member_ids(self) -> List[str]:
        """Member ids with duplicates removed, first occurrence kept."""
        return list(dict.fromkeys(self.student_ids))


class AssignmentDraft(BaseModel):
    """Fields of a publish event before the store assigns an id."""
    task_id: str
    teacher_id: str
    class_name: str
    group_ids: List[str] = Field(default_factory=list, description="Empty targets the entire class")
    title: Optional[str] = None


class TaskAssignment(AssignmentDraft):
    """A task published to a class, or to a subset of its groups."""
    id: str
    created_at: int = 0

    @property
    def targets_whole_class(self) -> bool:
        return not self.group_ids


class ScoreRange(BaseModel):
    """Score tier used by automatic grouping.

    An omitted ``min`` is filled from the previous range's ``max`` (0 for the
    first) when ranges are normalized.
    """
    name: str
    min: Optional[float] = None
    max: float


class DimensionStat(BaseModel):
    """Distribution of scores at one breakdown position across submissions."""
    id: str = Field(description="Positional key, D1 for the first breakdown entry")
    name: str
    mean: float
    p25: float
    p75: float
    below_threshold_count: int
    count: int


class InsightsSnapshot(BaseModel):
    """Aggregated view of a filtered submission set."""
    student_count: int = Field(description="Distinct students after keeping the latest submission each")
    total_submissions: int = Field(description="Submissions inside the filter before de-duplication")
    avg_score: float
    score_dist: List[int] = Field(description="Counts per bucket, ordered as BUCKET_LABELS")
    buckets: Dict[str, List[Submission]]
    recent_submissions: List[Submission]
    dimension_stats: List[DimensionStat]
    final_submissions: List[Submission] = Field(default_factory=list)
