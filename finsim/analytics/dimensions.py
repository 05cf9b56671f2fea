"""Per-dimension statistics over grade breakdowns.

Dimensions are keyed by breakdown *position* (D1, D2, ...), not by criterion
id. Breakdowns are aligned with the rubric as it was at grading time, so when
submissions for tasks with differently ordered rubrics are mixed, ``D1`` of
one task is pooled with ``D1`` of the other. Filter to a single task when the
labels need to mean the same criterion.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

from .models import DimensionStat, Submission

DEFAULT_BELOW_THRESHOLD = 12


def dimension_key(index: int) -> str:
    return f"D{index + 1}"


def dimension_index(dimension_id: str) -> int:
    """Inverse of dimension_key: 'D3' -> 2."""
    return int(dimension_id[1:]) - 1


def _nearest_rank(sorted_scores: List[float], fraction: float) -> float:
    if not sorted_scores:
        return 0
    return sorted_scores[int(len(sorted_scores) * fraction)]


def compute_dimension_stats(
    submissions: Sequence[Submission],
    below_threshold: float = DEFAULT_BELOW_THRESHOLD,
) -> List[DimensionStat]:
    """Compute mean, quartiles and weak-score counts per breakdown position.

    Args:
        submissions: Submissions to aggregate (typically latest per student)
        below_threshold: Absolute score under which an entry counts as weak.
            It is not scaled to each criterion's points.

    Returns:
        One DimensionStat per position, in order of first appearance.
        Empty input gives an empty list.
    """
    scores_by_key: Dict[str, List[float]] = {}
    for sub in submissions:
        for idx, entry in enumerate(sub.grade.breakdown):
            scores_by_key.setdefault(dimension_key(idx), []).append(entry.score)

    stats = []
    for key, scores in scores_by_key.items():
        scores = sorted(scores)
        stats.append(DimensionStat(
            id=key,
            name=f"Dimension {key[1:]}",
            mean=sum(scores) / len(scores),
            p25=_nearest_rank(scores, 0.25),
            p75=_nearest_rank(scores, 0.75),
            below_threshold_count=sum(1 for s in scores if s < below_threshold),
            count=len(scores),
        ))
    return stats


def rank_weakest_dimensions(stats: Sequence[DimensionStat], limit: int = 5) -> List[DimensionStat]:
    """Lowest mean first; ties keep first-appearance order."""
    return sorted(stats, key=lambda d: d.mean)[:limit]


def weak_dimension_examples(
    submissions: Sequence[Submission],
    dimension_id: str,
    below_threshold: float = DEFAULT_BELOW_THRESHOLD,
    limit: int = 3,
) -> List[Submission]:
    """Submissions that scored under the threshold at a dimension.

    A submission whose breakdown is too short to have the dimension counts as
    scoring 0 there.
    """
    idx = dimension_index(dimension_id)
    examples = []
    for sub in submissions:
        breakdown = sub.grade.breakdown
        score = breakdown[idx].score if idx < len(breakdown) else 0
        if score < below_threshold:
            examples.append(sub)
            if len(examples) >= limit:
                break
    return examples
