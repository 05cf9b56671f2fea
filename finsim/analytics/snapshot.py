"""Snapshot builder: filtered, de-duplicated classroom statistics.

Two bases are used on purpose. Averages, the score distribution and the
dimension statistics describe current standing, so they use only the latest
submission per student. Totals and recent activity describe every attempt, so
they use the filtered set before de-duplication.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from .dimensions import DEFAULT_BELOW_THRESHOLD, compute_dimension_stats
from .errors import ValidationError
from .models import BUCKET_LABELS, InsightsSnapshot, Submission

LOG = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
TIME_RANGE_DAYS: Dict[str, Optional[int]] = {'7d': 7, '30d': 30, 'all': None}
ALL_TASKS = 'all'
DEFAULT_RECENT_WINDOW = 5
DEFAULT_AT_RISK_CUTOFF = 60


def filter_by_time_range(submissions: Sequence[Submission], time_range: str, now: int) -> List[Submission]:
    """Keep submissions at or after ``now - N days``; 'all' keeps everything."""
    if time_range not in TIME_RANGE_DAYS:
        raise ValidationError(
            f"Unknown time range {time_range!r}, expected one of {sorted(TIME_RANGE_DAYS)}"
        )
    days = TIME_RANGE_DAYS[time_range]
    if days is None:
        return list(submissions)
    limit = now - days * DAY_MS
    return [s for s in submissions if s.submitted_at >= limit]


def filter_by_task(submissions: Sequence[Submission], task_filter: str) -> List[Submission]:
    if task_filter == ALL_TASKS:
        return list(submissions)
    return [s for s in submissions if s.task_id == task_filter]


def latest_per_student(submissions: Sequence[Submission]) -> List[Submission]:
    """Latest submission per student id; on equal timestamps the first seen wins."""
    latest: Dict[str, Submission] = {}
    for sub in submissions:
        existing = latest.get(sub.student_id)
        if existing is None or sub.submitted_at > existing.submitted_at:
            latest[sub.student_id] = sub
    return list(latest.values())


def bucket_label(score: float) -> str:
    if score < 60:
        return '<60'
    elif score < 80:
        return '60-79'
    elif score < 90:
        return '80-89'
    return '90+'


def bucket_submissions(submissions: Sequence[Submission]) -> Dict[str, List[Submission]]:
    buckets: Dict[str, List[Submission]] = {label: [] for label in BUCKET_LABELS}
    for sub in submissions:
        buckets[bucket_label(sub.grade.total_score)].append(sub)
    return buckets


def build_snapshot(
    submissions: Sequence[Submission],
    time_range: str,
    task_filter: str,
    now: int,
    recent_window: int = DEFAULT_RECENT_WINDOW,
    below_threshold: float = DEFAULT_BELOW_THRESHOLD,
) -> InsightsSnapshot:
    """
    Build the insights snapshot for one filter selection.

    Pure: the same inputs, including ``now``, always give the same snapshot.

    Args:
        submissions: All submissions visible to the caller
        time_range: '7d', '30d' or 'all'
        task_filter: A task id, or 'all'
        now: Epoch milliseconds used as the single reference time
        recent_window: How many of the newest attempts to keep
        below_threshold: Weak-score cutoff passed to the dimension statistics

    Returns:
        InsightsSnapshot
    """
    filtered = filter_by_time_range(submissions, time_range, now)
    filtered = filter_by_task(filtered, task_filter)

    final = latest_per_student(filtered)
    scores = [s.grade.total_score for s in final]
    avg_score = sum(scores) / len(scores) if scores else 0

    buckets = bucket_submissions(final)
    score_dist = [len(buckets[label]) for label in BUCKET_LABELS]

    # sorted() is stable, so equal timestamps keep input order
    recent = sorted(filtered, key=lambda s: s.submitted_at, reverse=True)[:recent_window]

    LOG.debug(
        f"Snapshot range={time_range} task={task_filter}: "
        f"{len(filtered)} submissions, {len(final)} students"
    )

    return InsightsSnapshot(
        student_count=len(final),
        total_submissions=len(filtered),
        avg_score=avg_score,
        score_dist=score_dist,
        buckets=buckets,
        recent_submissions=recent,
        dimension_stats=compute_dimension_stats(final, below_threshold),
        final_submissions=final,
    )


def at_risk_submissions(snapshot: InsightsSnapshot, cutoff: float = DEFAULT_AT_RISK_CUTOFF) -> List[Submission]:
    """Recent attempts scoring under the cutoff."""
    return [s for s in snapshot.recent_submissions if s.grade.total_score < cutoff]
