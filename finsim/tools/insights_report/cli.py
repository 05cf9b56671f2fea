#!/usr/bin/env python3
"""Command-line reports and grouping actions over a YAML store."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from finsim.analytics import (
    AnalyticsError,
    AutoGroupContext,
    GroupingEngine,
    NotFoundError,
    PartialFailure,
    Task,
    at_risk_submissions,
    build_snapshot,
    rank_weakest_dimensions,
    resolve_scope,
    weak_dimension_examples,
)
from finsim.analytics.cascade import CascadeResult
from finsim.analytics.dimensions import dimension_index
from finsim.analytics.grouping import (
    UNASSIGNED_VIEW,
    class_list,
    class_students,
    stale_members,
    ungrouped_students,
)
from finsim.analytics.models import BUCKET_LABELS
from finsim.libs.config_loader import get_config, load_configs, load_default_configs
from finsim.storage import YamlStore
from finsim.storage.memory import now_ms

LOG = logging.getLogger(__name__)

console = Console()


def _format_time(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime('%Y-%m-%d %H:%M')


def _dimension_label(dimension_id: str, task: Optional[Task]) -> str:
    """Name a positional dimension after the task's current rubric when one task is selected."""
    if task is None:
        return dimension_id
    idx = dimension_index(dimension_id)
    if idx < len(task.rubric):
        return f"{dimension_id} {task.rubric[idx].description}"
    return f"{dimension_id} ?"


def _print_cascade(result: CascadeResult) -> None:
    table = Table(title=result.operation)
    table.add_column("Action", style="cyan")
    table.add_column("Target")
    table.add_column("Status")
    for step in result.steps:
        status = "[green]ok[/green]" if step.ok else f"[red]failed: {step.error}[/red]"
        table.add_row(step.action, step.target_id, status)
    console.print(table)


@click.group()
@click.option(
    '--config',
    '-c',
    'config_paths',
    multiple=True,
    type=click.Path(path_type=Path),
    help='YAML config file (repeatable, later files override earlier ones)'
)
@click.option(
    '--store',
    '-s',
    'store_path',
    type=click.Path(path_type=Path),
    default=None,
    help='YAML store file (default: storage.path from config)'
)
@click.pass_context
def main(ctx, config_paths, store_path):
    """Classroom insights and student grouping."""
    configs = load_configs(*[str(p) for p in config_paths]) if config_paths else load_default_configs()
    logging.basicConfig(
        level=get_config("logging.level", configs, default="INFO"),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    store_path = store_path or Path(get_config("storage.path", configs))
    ctx.obj = {
        'configs': configs,
        'store': YamlStore(store_path),
    }


@main.command()
@click.option('--range', 'time_range', type=click.Choice(['7d', '30d', 'all']), default=None,
              help='Time window (default: analytics.default_time_range)')
@click.option('--task', 'task_filter', default='all', help="Task id, or 'all'")
@click.option('--assignment', 'assignment_id', default=None, help='Limit to one assignment\'s results')
@click.option('--teacher', 'teacher_id', default=None, help='Only submissions graded for this teacher')
@click.option('--now', type=int, default=None, help='Reference time in epoch milliseconds')
@click.pass_obj
def snapshot(obj, time_range, task_filter, assignment_id, teacher_id, now):
    """Show the insights snapshot for a filter selection."""
    configs, store = obj['configs'], obj['store']
    time_range = time_range or get_config("analytics.default_time_range", configs, default="7d")
    now = now if now is not None else now_ms()

    try:
        submissions = store.list_submissions(teacher_id=teacher_id)
        if assignment_id:
            submissions = resolve_scope(store.get_assignment(assignment_id), submissions)
    except AnalyticsError as e:
        raise click.ClickException(str(e))

    task = None
    if task_filter != 'all':
        try:
            task = store.get_task(task_filter)
        except NotFoundError:
            LOG.warning(f"Task {task_filter} no longer exists, dimensions keep positional labels")

    snap = build_snapshot(
        submissions,
        time_range,
        task_filter,
        now,
        recent_window=get_config("analytics.recent_window", configs, default=5),
        below_threshold=get_config("analytics.below_threshold", configs, default=12),
    )

    overview = Table(title="Overview")
    overview.add_column("Students", justify="right")
    overview.add_column("Submissions", justify="right")
    overview.add_column("Average", justify="right")
    overview.add_row(str(snap.student_count), str(snap.total_submissions), f"{snap.avg_score:.1f}")
    console.print(overview)

    dist = Table(title="Score Distribution")
    dist.add_column("Bucket", style="cyan")
    dist.add_column("Students", justify="right")
    for label, count in zip(BUCKET_LABELS, snap.score_dist):
        dist.add_row(label, str(count))
    console.print(dist)

    weakest = rank_weakest_dimensions(
        snap.dimension_stats, get_config("analytics.weakness_limit", configs, default=5)
    )
    if weakest:
        dims = Table(title="Weakest Dimensions")
        dims.add_column("Dimension", style="cyan")
        dims.add_column("Mean", justify="right")
        dims.add_column("P25", justify="right")
        dims.add_column("P75", justify="right")
        dims.add_column("Below", justify="right", style="yellow")
        for d in weakest:
            dims.add_row(
                _dimension_label(d.id, task), f"{d.mean:.1f}", f"{d.p25:g}", f"{d.p75:g}",
                str(d.below_threshold_count),
            )
        console.print(dims)

        weakest_id = weakest[0].id
        examples = weak_dimension_examples(
            snap.final_submissions,
            weakest_id,
            below_threshold=get_config("analytics.below_threshold", configs, default=12),
            limit=get_config("analytics.evidence_limit", configs, default=3),
        )
        if examples:
            console.print(f"\n[bold]Weak answers at {_dimension_label(weakest_id, task)}:[/bold]")
            idx = dimension_index(weakest_id)
            for sub in examples:
                breakdown = sub.grade.breakdown
                entry = breakdown[idx] if idx < len(breakdown) else None
                comment = entry.comment if entry and entry.comment else "(no comment)"
                score = entry.score if entry else 0
                console.print(f"  {sub.student_name}: {score:g} - {comment}")
    else:
        console.print("[dim]No dimension data[/dim]")

    if snap.recent_submissions:
        recent = Table(title="Recent Activity")
        recent.add_column("Student", style="cyan")
        recent.add_column("Task")
        recent.add_column("Score", justify="right")
        recent.add_column("Submitted")
        for sub in snap.recent_submissions:
            recent.add_row(sub.student_name, sub.task_name, f"{sub.grade.total_score:g}",
                           _format_time(sub.submitted_at))
        console.print(recent)
    else:
        console.print("[dim]No recent activity found.[/dim]")

    at_risk = at_risk_submissions(snap, get_config("analytics.at_risk_cutoff", configs, default=60))
    if at_risk:
        console.print("\n[bold red]At risk:[/bold red]")
        for sub in at_risk:
            console.print(f"  {sub.student_name} ({sub.task_name}): {sub.grade.total_score:g}")


@main.command('auto-group')
@click.option('--assignment', 'assignment_id', required=True, help='Assignment whose results are grouped')
@click.option('--teacher', 'teacher_id', required=True, help='Owning teacher of the new groups')
@click.pass_obj
def auto_group(obj, assignment_id, teacher_id):
    """Create score-tier groups from an assignment's results."""
    configs, store = obj['configs'], obj['store']
    engine = GroupingEngine(store, configs)
    ranges = get_config("grouping.auto_ranges", configs)

    try:
        groups = engine.generate_auto_groups(
            store.list_submissions(),
            ranges,
            AutoGroupContext(teacher_id=teacher_id, assignment_id=assignment_id),
        )
    except PartialFailure as e:
        _print_cascade(e.result)
        raise click.ClickException(str(e))
    except AnalyticsError as e:
        raise click.ClickException(str(e))

    if not groups:
        console.print("[yellow]No submissions matched any score range.[/yellow]")
        return
    table = Table(title="Created Groups")
    table.add_column("Group", style="cyan")
    table.add_column("Members", justify="right")
    for group in groups:
        table.add_row(group.name, str(len(group.student_ids)))
    console.print(table)


@main.command('delete-class')
@click.argument('class_name')
@click.option('--teacher', 'teacher_id', default=None, help="Only delete this teacher's groups")
@click.confirmation_option(prompt='Delete the class, its groups, and unassign its students?')
@click.pass_obj
def delete_class(obj, class_name, teacher_id):
    """Delete a class: remove its groups and unassign its students."""
    configs, store = obj['configs'], obj['store']
    engine = GroupingEngine(store, configs)

    try:
        result = engine.delete_class(
            class_name, store.list_groups(teacher_id=teacher_id), store.list_students()
        )
    except PartialFailure as e:
        _print_cascade(e.result)
        raise click.ClickException(f"{e}. Refresh and re-run to finish the remaining steps.")
    except AnalyticsError as e:
        raise click.ClickException(str(e))

    _print_cascade(result)
    console.print(f"[green]Class {class_name!r} deleted.[/green]")


@main.command()
@click.option('--teacher', 'teacher_id', default=None, help="Only this teacher's groups")
@click.pass_obj
def classes(obj, teacher_id):
    """List classes with their groups, ungrouped students and stale members."""
    store = obj['store']
    students = store.list_students()
    groups = store.list_groups(teacher_id=teacher_id)

    table = Table(title="Classes")
    table.add_column("Class", style="cyan")
    table.add_column("Students", justify="right")
    table.add_column("Groups", justify="right")
    table.add_column("Ungrouped", justify="right")
    table.add_column("Stale members", justify="right", style="yellow")
    for name in class_list(students):
        class_groups = [g for g in groups if g.class_name == name]
        stale = sum(len(stale_members(g, students)) for g in class_groups)
        table.add_row(
            name,
            str(len(class_students(name, students))),
            str(len(class_groups)),
            str(len(ungrouped_students(name, students, groups))),
            str(stale),
        )
    console.print(table)

    unassigned = class_students(UNASSIGNED_VIEW, students)
    if unassigned:
        console.print(f"[dim]{len(unassigned)} students without a class[/dim]")


if __name__ == '__main__':
    main()
