"""Shared fixtures for analytics tests."""

import pytest

from finsim.analytics.models import (
    BreakdownEntry,
    Criterion,
    Grade,
    Student,
    StudentGroup,
    Submission,
    Task,
    TaskAssignment,
)
from finsim.storage import InMemoryStore

DAY_MS = 24 * 60 * 60 * 1000
NOW = 1_760_000_000_000


def make_submission(sub_id, student_id, score, submitted_at=NOW, task_id="task-1",
                    breakdown=(), class_name="Class A", group_ids=(), assignment_id=None,
                    student_name=None, teacher_id="teacher-1"):
    """Build a submission with terse arguments."""
    return Submission(
        id=sub_id,
        student_id=student_id,
        student_name=student_name or student_id.title(),
        task_id=task_id,
        task_name=f"Task {task_id}",
        teacher_id=teacher_id,
        grade=Grade(
            total_score=score,
            max_score=100,
            feedback="",
            breakdown=[
                BreakdownEntry(criterion_id=str(i + 1), score=s, comment="")
                for i, s in enumerate(breakdown)
            ],
        ),
        submitted_at=submitted_at,
        class_name=class_name,
        group_ids_at_submission=list(group_ids),
        assignment_id=assignment_id,
    )


class Clock:
    """Deterministic millisecond clock for stores."""

    def __init__(self, start=NOW):
        self.value = start

    def __call__(self):
        self.value += 1
        return self.value


@pytest.fixture
def sample_task():
    return Task(
        id="task-1",
        name="Fund allocation for a single client",
        rubric=[
            Criterion(id="1", points=15, description="Fund techniques"),
            Criterion(id="2", points=15, description="Risk control"),
            Criterion(id="3", points=20, description="Communication"),
        ],
        teacher_id="teacher-1",
    )


@pytest.fixture
def sample_students():
    return [
        Student(id="alice", name="Alice", email="alice@test.com", class_name="Class A"),
        Student(id="bob", name="Bob", email="bob@test.com", class_name="Class A"),
        Student(id="carol", name="Carol", email="carol@test.com", class_name="Class A"),
        Student(id="dave", name="Dave", email="dave@test.com", class_name="Class B"),
        Student(id="erin", name="Erin", email="erin@test.com", class_name=""),
    ]


@pytest.fixture
def sample_groups():
    return [
        StudentGroup(id="g-a1", teacher_id="teacher-1", class_name="Class A", name="Team 1",
                     student_ids=["alice", "bob"]),
        StudentGroup(id="g-a2", teacher_id="teacher-1", class_name="Class A", name="Team 2",
                     student_ids=["carol"]),
        StudentGroup(id="g-b1", teacher_id="teacher-1", class_name="Class B", name="Team 3",
                     student_ids=["dave"]),
    ]


@pytest.fixture
def sample_assignment():
    return TaskAssignment(id="asg-1", task_id="task-1", teacher_id="teacher-1",
                          class_name="Class A", group_ids=[], created_at=NOW - DAY_MS)


@pytest.fixture
def store(sample_task, sample_students, sample_groups, sample_assignment):
    return InMemoryStore(
        tasks=[sample_task],
        students=sample_students,
        groups=sample_groups,
        assignments=[sample_assignment],
        clock=Clock(),
    )
