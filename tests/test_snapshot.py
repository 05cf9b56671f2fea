"""Tests for the insights snapshot builder."""

import pytest

from finsim.analytics.errors import ValidationError
from finsim.analytics.snapshot import (
    at_risk_submissions,
    bucket_label,
    build_snapshot,
    filter_by_time_range,
    latest_per_student,
)
from conftest import DAY_MS, NOW, make_submission


class TestBuildSnapshot:
    """Aggregates over a filtered submission set."""

    def test_empty_input(self):
        snap = build_snapshot([], "all", "all", NOW)

        assert snap.student_count == 0
        assert snap.total_submissions == 0
        assert snap.avg_score == 0
        assert snap.score_dist == [0, 0, 0, 0]
        assert snap.recent_submissions == []
        assert snap.dimension_stats == []

    def test_duplicates_count_once_for_averages_but_all_for_activity(self):
        """Averages use the latest attempt; totals and recent activity see every attempt."""
        subs = [
            make_submission("s1", "alice", 40, submitted_at=NOW - 3000),
            make_submission("s2", "alice", 90, submitted_at=NOW - 1000),
            make_submission("s3", "bob", 70, submitted_at=NOW - 2000),
        ]

        snap = build_snapshot(subs, "all", "all", NOW)

        assert snap.student_count == 2
        assert snap.total_submissions == 3
        assert snap.avg_score == 80
        assert snap.score_dist == [0, 1, 0, 1]
        assert [s.id for s in snap.recent_submissions] == ["s2", "s3", "s1"]
        assert {s.id for s in snap.final_submissions} == {"s2", "s3"}

    def test_average_stays_within_score_bounds(self):
        subs = [make_submission(f"s{i}", f"st{i}", score) for i, score in enumerate([12, 55, 99, 73])]
        snap = build_snapshot(subs, "all", "all", NOW)
        assert 12 <= snap.avg_score <= 99

    def test_buckets_cover_every_student(self):
        scores = [0, 59.9, 60, 79.99, 80, 89.5, 90, 100]
        subs = [make_submission(f"s{i}", f"st{i}", score) for i, score in enumerate(scores)]

        snap = build_snapshot(subs, "all", "all", NOW)

        assert sum(snap.score_dist) == snap.student_count == len(scores)
        assert snap.score_dist == [2, 2, 2, 2]
        assert [s.id for s in snap.buckets["90+"]] == ["s6", "s7"]

    def test_recent_window(self):
        subs = [make_submission(f"s{i}", f"st{i}", 50, submitted_at=NOW - i) for i in range(8)]

        snap = build_snapshot(subs, "all", "all", NOW, recent_window=3)

        assert [s.id for s in snap.recent_submissions] == ["s0", "s1", "s2"]

    def test_task_filter(self):
        subs = [
            make_submission("s1", "alice", 50, task_id="task-1"),
            make_submission("s2", "alice", 90, task_id="task-2", submitted_at=NOW + 1),
        ]

        snap = build_snapshot(subs, "all", "task-1", NOW + 1)

        assert snap.total_submissions == 1
        assert snap.avg_score == 50

    def test_dimension_stats_use_latest_attempts(self):
        subs = [
            make_submission("s1", "alice", 40, submitted_at=NOW - 10, breakdown=[2]),
            make_submission("s2", "alice", 90, submitted_at=NOW, breakdown=[14]),
        ]

        snap = build_snapshot(subs, "all", "all", NOW)

        assert snap.dimension_stats[0].count == 1
        assert snap.dimension_stats[0].mean == 14

    def test_same_inputs_same_snapshot(self):
        subs = [make_submission(f"s{i}", f"st{i % 3}", 10 * i, submitted_at=NOW - i * DAY_MS,
                                breakdown=[i, 15 - i]) for i in range(10)]
        assert build_snapshot(subs, "7d", "all", NOW) == build_snapshot(subs, "7d", "all", NOW)


class TestTimeRange:

    def test_lower_bound_is_inclusive(self):
        on_edge = make_submission("s1", "alice", 50, submitted_at=NOW - 7 * DAY_MS)
        too_old = make_submission("s2", "bob", 50, submitted_at=NOW - 7 * DAY_MS - 1)

        kept = filter_by_time_range([on_edge, too_old], "7d", NOW)

        assert [s.id for s in kept] == ["s1"]

    def test_30d_and_all(self):
        old = make_submission("s1", "alice", 50, submitted_at=NOW - 20 * DAY_MS)
        ancient = make_submission("s2", "bob", 50, submitted_at=0)

        assert [s.id for s in filter_by_time_range([old, ancient], "30d", NOW)] == ["s1"]
        assert len(filter_by_time_range([old, ancient], "all", NOW)) == 2

    def test_unknown_range_is_rejected(self):
        with pytest.raises(ValidationError, match="Unknown time range"):
            build_snapshot([], "90d", "all", NOW)


def test_latest_per_student_keeps_first_on_ties():
    a = make_submission("s1", "alice", 50, submitted_at=NOW)
    b = make_submission("s2", "alice", 70, submitted_at=NOW)
    assert [s.id for s in latest_per_student([a, b])] == ["s1"]


@pytest.mark.parametrize("score,label", [
    (0, "<60"), (59.99, "<60"), (60, "60-79"), (79.9, "60-79"),
    (80, "80-89"), (89.99, "80-89"), (90, "90+"), (100, "90+"),
])
def test_bucket_label(score, label):
    assert bucket_label(score) == label


def test_at_risk_submissions():
    subs = [
        make_submission("s1", "alice", 45, submitted_at=NOW - 1),
        make_submission("s2", "bob", 60, submitted_at=NOW - 2),
        make_submission("s3", "carol", 59, submitted_at=NOW - 3),
    ]
    snap = build_snapshot(subs, "all", "all", NOW)

    assert [s.id for s in at_risk_submissions(snap)] == ["s1", "s3"]
    assert [s.id for s in at_risk_submissions(snap, cutoff=50)] == ["s1"]
