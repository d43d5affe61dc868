"""Execution OS CLI — drive the execution engine from the terminal.

Usage:
    execos deep-work start TASK_ID     # Open a focus block on a task A
    execos deep-work stop SESSION_ID   # Close it (completed, or broken with --switched-task)
    execos score --details             # Score, streaks, and commitment breaks
    execos score --day 2026-03-04      # Daily execution score, weighted components
    execos task complete TASK_ID       # Outcome flows feed gamification
    execos allocation show             # Planned vs actual energy per front
    execos portfolio                   # Front health for the week
    execos review weekly               # Weekly review with the auto-draft
    execos ghost resolve WS_ID ACTION  # Decide what to do with a ghost front
"""

from __future__ import annotations

import json
import sys
from datetime import date

import click
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from execos import __version__
from execos.errors import ExecOSError
from execos.models import CommitmentLevel, FailureReason, GhostFrontAction, ReviewPeriodType

console = Console()

FAILURE_REASONS = [r.value for r in FailureReason]
PERIOD_TYPES = [p.value for p in ReviewPeriodType]

HEALTH_COLORS = {
    "forte": "green",
    "estavel": "cyan",
    "atencao": "yellow",
    "negligenciada": "red",
    "standby": "dim",
}


class ExecOSGroup(click.Group):
    """Top-level group: domain errors become a red message and exit code 1."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except ExecOSError as e:
            console.print(f"[red]{e}[/red]")
            ctx.exit(1)


@click.group(cls=ExecOSGroup)
@click.version_option(version=__version__)
def cli() -> None:
    """Execution OS: protect focus, score execution, steer the portfolio."""
    # Logs go to stderr so --json output stays clean.
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(sys.stderr))


def _open_store():
    from execos.config import load_config
    from execos.storage import SqliteStore

    config = load_config()
    config.ensure_data_dir()
    store = SqliteStore(config.db_path)
    click.get_current_context().call_on_close(store.close)
    return config, store


def _echo_json(payload) -> None:
    if isinstance(payload, list):
        click.echo(json.dumps([p.model_dump(mode="json") for p in payload], indent=2, ensure_ascii=False))
    else:
        click.echo(payload.model_dump_json(indent=2))


def _parse_day(value: str | None) -> date | None:
    from execos.timeutils import parse_date

    return parse_date(value) if value else None


# ── DEEP WORK ─────────────────────────────────────────────────


@cli.group("deep-work")
def deep_work() -> None:
    """Deep Work sessions: one focus block at a time."""


def _deep_work_service():
    from execos.engine.deep_work import DeepWorkService

    config, store = _open_store()
    return DeepWorkService(store, minimum_block_minutes=config.minimum_block_minutes)


@deep_work.command()
@click.argument("task_id")
@click.option("--target", type=int, default=None, help="Target minutes for the block")
@click.option("--minimum", type=int, default=None, help="Minimum block minutes (floor 15)")
def start(task_id: str, target: int | None, minimum: int | None) -> None:
    """Start a Deep Work session on TASK_ID."""
    session = _deep_work_service().start(task_id, target_minutes=target, minimum_block_minutes=minimum)
    console.print(
        f"[green]Deep Work started[/green] — session {session.id} "
        f"({session.target_minutes} min target, since {session.started_at:%H:%M})"
    )


@deep_work.command()
@click.argument("session_id")
def interrupt(session_id: str) -> None:
    """Count an interruption on an active session."""
    session = _deep_work_service().register_interruption(session_id)
    console.print(f"Interruptions: [yellow]{session.interruption_count}[/yellow]")


@deep_work.command("break")
@click.argument("session_id")
def break_(session_id: str) -> None:
    """Count a break on an active session."""
    session = _deep_work_service().register_break(session_id)
    console.print(f"Breaks: [yellow]{session.break_count}[/yellow]")


@deep_work.command()
@click.argument("session_id")
@click.option("--switched-task", is_flag=True, help="Mark the session broken (task switch)")
@click.option("--notes", default=None, help="Notes to keep with the session")
def stop(session_id: str, switched_task: bool, notes: str | None) -> None:
    """Stop a session. Stopping twice is a no-op."""
    session = _deep_work_service().stop(session_id, switched_task=switched_task, notes=notes)
    color = "green" if session.state.value == "completed" else "red"
    console.print(
        f"Session [{color}]{session.state.value}[/{color}] — "
        f"{session.actual_minutes}/{session.target_minutes} min, "
        f"{session.interruption_count} interruptions, {session.break_count} breaks"
    )


@deep_work.command()
@click.option("--date", "day", default=None, help="Day (YYYY-MM-DD), default today")
@click.option("--workspace", default=None, help="Limit to one workspace")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def summary(day: str | None, workspace: str | None, as_json: bool) -> None:
    """Totals for a day's Deep Work sessions."""
    from execos.timeutils import utcnow

    service = _deep_work_service()
    result = service.get_summary(_parse_day(day) or utcnow().date(), workspace)
    if as_json:
        _echo_json(result)
        return

    table = Table(title=f"Deep Work — {result.date.isoformat()}")
    table.add_column("Started", style="cyan")
    table.add_column("State")
    table.add_column("Minutes", justify="right")
    table.add_column("Target", justify="right")
    table.add_column("Interruptions", style="yellow", justify="right")
    table.add_column("Breaks", justify="right")
    for s in result.sessions:
        table.add_row(
            f"{s.started_at:%H:%M}",
            s.state.value,
            str(s.actual_minutes),
            str(s.target_minutes),
            str(s.interruption_count),
            str(s.break_count),
        )
    console.print(table)
    console.print(
        f"  {result.sessions_count} sessions, {result.total_minutes}/{result.total_target_minutes} min, "
        f"adherence [bold]{result.adherence_percent}%[/bold]"
    )


# ── GAMIFICATION ──────────────────────────────────────────────


@cli.command()
@click.option("--details", is_flag=True, help="Include history, streaks, and commitment breaks")
@click.option(
    "--day",
    is_flag=False,
    flag_value="today",
    default=None,
    help="Daily execution score for a day (YYYY-MM-DD), today when no value is given",
)
@click.option("--workspace", default=None, help="With --day, limit to one workspace")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def score(details: bool, day: str | None, workspace: str | None, as_json: bool) -> None:
    """Show the execution score."""
    from execos.engine.gamification import GamificationService

    config, store = _open_store()
    if day is not None:
        _show_day_score(store, None if day == "today" else _parse_day(day), workspace, as_json)
        return

    service = GamificationService(store, deltas=config.gamification_deltas)
    result = service.get_details() if details else service.get_overview()
    if as_json:
        _echo_json(result)
        return

    console.print(
        Panel(
            f"Score: [bold]{result.current_score}[/bold]   Weekly: {result.weekly_score}\n"
            f"Streak: [green]{result.streak_days} days[/green]   Debt: [red]{result.execution_debt}[/red]",
            title="Execution Score",
            border_style="blue",
        )
    )
    if not details:
        return

    table = Table(title="Last weeks")
    table.add_column("Week", style="cyan")
    table.add_column("Completed", style="green", justify="right")
    table.add_column("Delayed", style="yellow", justify="right")
    table.add_column("Failed", style="red", justify="right")
    table.add_column("Score", justify="right")
    for bucket in result.history:
        table.add_row(
            f"{bucket.label} ({bucket.week_start.isoformat()})",
            str(bucket.completed),
            str(bucket.delayed),
            str(bucket.failed),
            str(bucket.score),
        )
    console.print(table)
    console.print(f"  Streak task A: {result.streak_execucao_a}   Streak Deep Work: {result.streak_deep_work}")
    for br in result.commitment_breaks[:5]:
        console.print(f"  [red]✗[/red] {br.at:%Y-%m-%d %H:%M} {br.task_title} — {br.reason} ({br.severity})")


def _show_day_score(store, day: date | None, workspace: str | None, as_json: bool) -> None:
    from execos.engine.score import ExecutionScoreService

    result = ExecutionScoreService(store).get_score(day, workspace)
    if as_json:
        _echo_json(result)
        return

    table = Table(title=f"Daily execution — {result.date.isoformat()}")
    table.add_column("Component", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("Hits", justify="right")
    table.add_column("%", justify="right")
    for name, part in result.components:
        table.add_row(name.replace("_", " "), str(part.weight), f"{part.hits}/{part.total}", f"{part.value}%")
    console.print(table)
    console.print(f"  Score: [bold]{result.score}[/bold]/100")


# ── TASK OUTCOMES ─────────────────────────────────────────────


@cli.group()
def task() -> None:
    """Task outcomes that feed the score."""


def _outcome_service():
    from execos.engine.gamification import GamificationService
    from execos.engine.outcomes import TaskOutcomeService

    config, store = _open_store()
    return TaskOutcomeService(store, GamificationService(store, deltas=config.gamification_deltas))


def _print_state(state) -> None:
    console.print(f"  Score {state.current_score} | streak {state.streak_days} | debt {state.execution_debt}")


@task.command()
@click.argument("task_id")
def complete(task_id: str) -> None:
    """Mark a task done."""
    done, state = _outcome_service().complete(task_id)
    console.print(f"[green]Done:[/green] {done.title}")
    _print_state(state)


@task.command()
@click.argument("task_id")
@click.option("--reason", type=click.Choice(FAILURE_REASONS), default=None)
def postpone(task_id: str, reason: str | None) -> None:
    """Push a task back to the backlog."""
    postponed, state = _outcome_service().postpone(task_id, FailureReason(reason) if reason else None)
    console.print(f"[yellow]Postponed:[/yellow] {postponed.title}")
    _print_state(state)


@task.command("not-confirmed")
@click.argument("task_id")
@click.option("--reason", type=click.Choice(FAILURE_REASONS), default=None)
def not_confirmed(task_id: str, reason: str | None) -> None:
    """Record that a planned block was not confirmed."""
    state = _outcome_service().not_confirmed(task_id, FailureReason(reason) if reason else None)
    console.print("[red]Not confirmed.[/red] Streak reset.")
    _print_state(state)


# ── STRATEGY ──────────────────────────────────────────────────


def _strategy_service():
    from execos.engine.strategy import StrategyService

    config, store = _open_store()
    return StrategyService(store, traction_days=config.traction_days)


def _show_allocation_rows(rows: list, title: str) -> None:
    table = Table(title=title)
    table.add_column("Front", style="cyan")
    table.add_column("Mode", style="dim")
    table.add_column("Planned", justify="right")
    table.add_column("Actual", justify="right")
    table.add_column("Delta", justify="right")
    table.add_column("Hours", justify="right")
    for row in rows:
        color = "green" if row.delta_percent >= 0 else "red"
        table.add_row(
            row.workspace_name,
            row.workspace_mode.value,
            f"{row.planned_percent}%",
            f"{row.actual_percent}%",
            f"[{color}]{row.delta_percent:+d}%[/{color}]",
            f"{row.actual_hours:.1f}h",
        )
    console.print(table)


@cli.group()
def allocation() -> None:
    """Weekly energy allocation per front."""


@allocation.command("show")
@click.option("--week", default=None, help="Any day of the week (YYYY-MM-DD)")
@click.option("--workspace", default=None, help="Limit to one workspace")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def allocation_show(week: str | None, workspace: str | None, as_json: bool) -> None:
    """Planned vs actual allocation for a week."""
    result = _strategy_service().get_weekly_allocation(week, workspace)
    if as_json:
        _echo_json(result)
        return
    _show_allocation_rows(result.rows, f"Allocation {result.week_start.isoformat()} → {result.week_end.isoformat()}")
    console.print(
        f"  Planned {result.totals.planned_percent}% | actual {result.totals.actual_hours:.1f}h | "
        f"disconnected {result.totals.disconnected_percent}%"
    )


@allocation.command("set")
@click.argument("week")
@click.argument("allocations", nargs=-1, required=True)
def allocation_set(week: str, allocations: tuple[str, ...]) -> None:
    """Replace a week's plan: WORKSPACE_ID=PERCENT pairs."""
    parsed: dict[str, float] = {}
    for pair in allocations:
        workspace_id, sep, percent = pair.partition("=")
        if not sep or not workspace_id:
            raise click.BadParameter(f"Expected WORKSPACE_ID=PERCENT, got {pair!r}")
        try:
            parsed[workspace_id] = float(percent)
        except ValueError:
            raise click.BadParameter(f"Not a number: {percent!r}") from None

    result = _strategy_service().set_weekly_allocation(week, parsed)
    console.print(f"[green]Saved[/green] plan for week of {result.week_start.isoformat()}")
    _show_allocation_rows(result.rows, "Allocation")


@cli.command()
@click.option("--week", default=None, help="Any day of the week (YYYY-MM-DD)")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def portfolio(week: str | None, as_json: bool) -> None:
    """Front health and traction for a week."""
    result = _strategy_service().get_workspace_portfolio(week)
    if as_json:
        _echo_json(result)
        return

    table = Table(title=f"Portfolio {result.week_start.isoformat()} → {result.week_end.isoformat()}")
    table.add_column("Front", style="cyan")
    table.add_column("Health")
    table.add_column("Hours", justify="right")
    table.add_column("Deep Work", justify="right")
    table.add_column("A done/open", justify="right")
    table.add_column("Traction", justify="right")
    table.add_column("Bottleneck", style="yellow")
    for row in result.rows:
        color = HEALTH_COLORS.get(row.front_health.status.value, "white")
        bottleneck = row.dominant_bottleneck
        table.add_row(
            row.workspace_name,
            f"[{color}]{row.front_health.label}[/{color}]",
            f"{row.hours_invested:.1f}h",
            f"{row.deep_work_hours:.1f}h",
            f"{row.completed_a}/{row.open_a}",
            f"{row.active_projects_with_traction}/{row.active_projects} ({row.project_traction_percent}%)",
            f"{bottleneck.label} {bottleneck.percent}%" if bottleneck else "[dim]--[/dim]",
        )
    console.print(table)


# ── REVIEWS ───────────────────────────────────────────────────


@cli.group()
def review() -> None:
    """Weekly and monthly strategic reviews."""


def _show_summary(summary) -> None:
    console.print(f"  Task A completed: [bold]{summary.completed_a}[/bold]")
    console.print(f"  Deep Work:        {summary.deep_work_hours}h ({summary.deep_work_minutes} min)")
    console.print(f"  Hours planned:    {summary.actual_hours:.1f}h")
    if summary.dominant_workspace:
        console.print(f"  Dominant front:   {summary.dominant_workspace.workspace_name}")
    if summary.neglected_workspace:
        console.print(f"  Neglected front:  [yellow]{summary.neglected_workspace.workspace_name}[/yellow]")
    if summary.dominant_bottleneck:
        b = summary.dominant_bottleneck
        console.print(f"  Bottleneck:       [red]{b.label} ({b.percent}%)[/red]")
        others = ", ".join(f"{r.label} {r.percent}%" for r in summary.bottleneck_breakdown if r.key != b.key)
        if others:
            console.print(f"  [dim]Other reasons:    {others}[/dim]")
    for ghost in summary.ghost_fronts:
        console.print(f"  [red]Ghost front:[/red] {ghost.workspace_name} — {ghost.reason}")


@review.command()
@click.option("--start", "start_day", default=None, help="Any day of the week (YYYY-MM-DD)")
@click.option("--workspace", default=None, help="Limit to one workspace")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def weekly(start_day: str | None, workspace: str | None, as_json: bool) -> None:
    """Weekly review with a suggested draft."""
    result = _strategy_service().get_weekly_review(start_day, workspace)
    if as_json:
        _echo_json(result)
        return

    console.print(f"\n[bold]Weekly review {result.week_start.isoformat()} → {result.week_end.isoformat()}[/bold]\n")
    _show_summary(result.summary)
    draft = result.auto_draft
    console.print(
        Panel(
            f"[bold]Next priority:[/bold] {draft.next_priority}\n"
            f"[bold]Decision:[/bold] {draft.strategic_decision}\n"
            f"[bold]Commitment:[/bold] {draft.commitment_level.value} ({draft.confidence})\n\n"
            + "\n".join(f"  • {item}" for item in draft.action_items)
            + f"\n\n[dim]{draft.reflection}[/dim]",
            title="Auto-draft",
            border_style="green",
        )
    )
    console.print(f"[cyan]{result.question}[/cyan]")


@review.command()
@click.option("--start", "start_day", default=None, help="Any day of the month (YYYY-MM-DD)")
@click.option("--workspace", default=None, help="Limit to one workspace")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def monthly(start_day: str | None, workspace: str | None, as_json: bool) -> None:
    """Monthly review: allocation, composition, and the saved journal."""
    result = _strategy_service().get_monthly_review(start_day, workspace)
    if as_json:
        _echo_json(result)
        return

    _show_allocation_rows(result.rows, f"Month {result.month_start.isoformat()} → {result.month_end.isoformat()}")
    c = result.composition
    console.print(
        f"  Construction {c.construction_percent}% | operation {c.operation_percent}% | "
        f"disconnected {c.disconnected_percent}%"
    )
    _show_summary(result.summary)
    if result.journal and result.journal.strategic_decision:
        console.print(f"  Saved decision: {result.journal.strategic_decision}")
    console.print(f"[cyan]{result.question}[/cyan]")


@review.command("save")
@click.argument("period_type", type=click.Choice(PERIOD_TYPES))
@click.argument("period_start")
@click.option("--workspace", default=None, help="Journal for one workspace")
@click.option("--priority", default=None, help="Next priority")
@click.option("--decision", default=None, help="Strategic decision")
@click.option("--commitment", type=click.Choice([c.value for c in CommitmentLevel]), default=None)
@click.option("--action", "actions", multiple=True, help="Action item (repeatable)")
@click.option("--reflection", default=None)
def review_save(
    period_type: str,
    period_start: str,
    workspace: str | None,
    priority: str | None,
    decision: str | None,
    commitment: str | None,
    actions: tuple[str, ...],
    reflection: str | None,
) -> None:
    """Save the journal entry for a period."""
    result = _strategy_service().save_review_journal(
        period_type,
        period_start,
        workspace_id=workspace,
        next_priority=priority,
        strategic_decision=decision,
        commitment_level=commitment,
        action_items=list(actions),
        reflection=reflection,
    )
    console.print(
        f"[green]Saved[/green] {result.period_type.value} review for {result.period_start.isoformat()} "
        f"({result.workspace_scope})"
    )


@review.command("history")
@click.argument("period_type", type=click.Choice(PERIOD_TYPES))
@click.option("--workspace", default=None)
@click.option("--limit", type=int, default=None, help="Entries to show (1-24, default 8)")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def review_history(period_type: str, workspace: str | None, limit: int | None, as_json: bool) -> None:
    """Past journal entries, newest first."""
    entries = _strategy_service().get_review_history(period_type, workspace, limit)
    if as_json:
        _echo_json(entries)
        return
    if not entries:
        console.print("[dim]No reviews saved yet.[/dim]")
        return

    table = Table(title=f"{period_type.capitalize()} reviews")
    table.add_column("Period", style="cyan")
    table.add_column("Priority", max_width=40)
    table.add_column("Decision", max_width=40)
    table.add_column("Commitment")
    for entry in entries:
        table.add_row(
            entry.period_start.isoformat(),
            entry.next_priority or "[dim]--[/dim]",
            entry.strategic_decision or "[dim]--[/dim]",
            entry.commitment_level.value if entry.commitment_level else "[dim]--[/dim]",
        )
    console.print(table)


# ── GHOST FRONTS ──────────────────────────────────────────────


@cli.group()
def ghost() -> None:
    """Ghost fronts: workspaces with no traction."""


@ghost.command()
@click.argument("workspace_id")
@click.argument("action", type=click.Choice([a.value for a in GhostFrontAction]))
def resolve(workspace_id: str, action: str) -> None:
    """Reactivate, park, or unblock a ghost front."""
    result = _strategy_service().resolve_ghost_front(workspace_id, action)
    console.print(f"[green]{result.workspace_name}[/green] → mode {result.mode.value}")
    if result.created_task_id:
        console.print(f"  Created task A {result.created_task_id}")


if __name__ == "__main__":
    cli()
