"""Analytics and grouping engine for graded role-play submissions."""

from .models import (
    BUCKET_LABELS,
    AssignmentDraft,
    BreakdownEntry,
    Criterion,
    DimensionStat,
    Grade,
    GroupDraft,
    GroupType,
    InsightsSnapshot,
    ResolvedBreakdown,
    ScoreRange,
    StrictnessLevel,
    Student,
    StudentGroup,
    Submission,
    Task,
    TaskAssignment,
    resolve_breakdown,
)
from .errors import AnalyticsError, NotFoundError, PartialFailure, ResolutionError, ValidationError
from .cascade import CascadeResult, CascadeStep
from .dimensions import compute_dimension_stats, rank_weakest_dimensions, weak_dimension_examples
from .snapshot import at_risk_submissions, build_snapshot
from .targeting import current_groups_of, publish_assignment, resolve_scope, targeted_students
from .grouping import AutoGroupContext, GroupingEngine, MembershipUpdate

__all__ = [
    'BUCKET_LABELS',
    'AssignmentDraft',
    'BreakdownEntry',
    'Criterion',
    'DimensionStat',
    'Grade',
    'GroupDraft',
    'GroupType',
    'InsightsSnapshot',
    'ResolvedBreakdown',
    'ScoreRange',
    'StrictnessLevel',
    'Student',
    'StudentGroup',
    'Submission',
    'Task',
    'TaskAssignment',
    'resolve_breakdown',
    'AnalyticsError',
    'NotFoundError',
    'PartialFailure',
    'ResolutionError',
    'ValidationError',
    'CascadeResult',
    'CascadeStep',
    'compute_dimension_stats',
    'rank_weakest_dimensions',
    'weak_dimension_examples',
    'at_risk_submissions',
    'build_snapshot',
    'current_groups_of',
    'publish_assignment',
    'resolve_scope',
    'targeted_students',
    'AutoGroupContext',
    'GroupingEngine',
    'MembershipUpdate',
]
