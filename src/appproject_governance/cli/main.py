"""CLI entry point for appproject-governance.

Invoked as::

    appproject-gov [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m appproject_governance.cli.main

Commands
--------
- version             Show version information
- validate            Validate a project file
- check source        Check a repository URL against a project
- check destination   Check a cluster/namespace against a project
- check kind          Check a resource kind against a project
- policy validate     Validate a single role policy line
- windows status      Show the sync windows governing an application
- windows can-sync    Decide whether an application may sync now
- retry next          Show the backoff delay for a retry attempt

Exit codes: 0 when permitted or valid, 1 when denied or invalid, 2 on
usage and parse errors.
"""
from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

import click
import yaml
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from appproject_governance.errors import (
    ClusterLookupError,
    PolicyValidationError,
    ProjectConfigError,
    RetryConfigError,
)
from appproject_governance.permissions.authorization import AuthorizationResult, ProjectAuthorizer
from appproject_governance.policies.parser import validate_policy
from appproject_governance.project.loader import ProjectLoader
from appproject_governance.project.schema import (
    Application,
    ApplicationDestination,
    AppProject,
    Cluster,
)
from appproject_governance.project.validation import validation_errors
from appproject_governance.retry.backoff import Backoff, RetryStrategy
from appproject_governance.windows.schedule import ensure_aware

console = Console()
err_console = Console(stderr=True)

EXIT_OK = 0
EXIT_DENIED = 1
EXIT_USAGE = 2


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_project(project_file: str) -> AppProject:
    """Load exactly one validated project, exiting with code 2 on failure."""
    try:
        return ProjectLoader().load_one(project_file)
    except (ProjectConfigError, FileNotFoundError) as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(EXIT_USAGE)


def _parse_at(value: str | None) -> datetime:
    if value is None:
        return datetime.now(tz=timezone.utc)
    try:
        return ensure_aware(datetime.fromisoformat(value))
    except ValueError as exc:
        raise click.BadParameter(f"not an ISO-8601 timestamp: {value}", param_hint="--at") from exc


def _print_result(result: AuthorizationResult) -> None:
    status = "[green]PERMITTED[/green]" if result.allowed else "[red]DENIED[/red]"
    console.print(Panel(status, title=f"{result.check.title()} Check", border_style="blue"))
    console.print(f"  Subject: [bold]{escape(result.subject)}[/bold]")
    console.print(f"  Reason: {escape(result.reason)}")


def _application(
    app: str, namespace: str, server: str, cluster_name: str, project: AppProject
) -> Application:
    return Application(
        name=app,
        project=project.name,
        destination=ApplicationDestination(server=server, namespace=namespace, name=cluster_name),
    )


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="appproject-governance")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """AppProject Governance CLI: project authorization, sync windows and retries."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from appproject_governance import __version__

    console.print(
        Panel(
            f"[bold]appproject-governance[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Project-scoped authorization and sync window engine.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


@cli.command(name="validate")
@click.argument("project_file", type=click.Path())
def validate_command(project_file: str) -> None:
    """Validate every project defined in PROJECT_FILE."""
    try:
        projects = ProjectLoader(validate=False).load(project_file)
    except (ProjectConfigError, FileNotFoundError) as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(EXIT_USAGE)

    table = Table(title="Project Validation", box=box.SIMPLE)
    table.add_column("Project", style="cyan")
    table.add_column("Status")
    table.add_column("Problems")

    any_invalid = False
    for project in projects:
        problems = validation_errors(project)
        any_invalid = any_invalid or bool(problems)
        status = "[red]INVALID[/red]" if problems else "[green]VALID[/green]"
        table.add_row(project.name, status, escape("\n".join(problems)) or "-")

    console.print(table)
    sys.exit(EXIT_DENIED if any_invalid else EXIT_OK)


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@cli.group(name="check")
def check_group() -> None:
    """Authorization checks against a project."""


@check_group.command(name="source")
@click.argument("project_file", type=click.Path())
@click.argument("repo_url")
def check_source_command(project_file: str, repo_url: str) -> None:
    """Check whether REPO_URL is a permitted source repository."""
    project = _load_project(project_file)
    result = ProjectAuthorizer(project).check_source(repo_url)
    _print_result(result)
    sys.exit(EXIT_OK if result.allowed else EXIT_DENIED)


@check_group.command(name="destination")
@click.argument("project_file", type=click.Path())
@click.option("--server", default="", help="Destination cluster API server URL.")
@click.option("--name", "cluster_name", default="", help="Destination cluster name.")
@click.option("--namespace", required=True, help="Destination namespace.")
@click.option(
    "--clusters-file",
    type=click.Path(exists=True),
    default=None,
    help="YAML list of project-scoped clusters (server/name).",
)
def check_destination_command(
    project_file: str,
    server: str,
    cluster_name: str,
    namespace: str,
    clusters_file: str | None,
) -> None:
    """Check whether a cluster and namespace are a permitted destination."""
    if not server and not cluster_name:
        raise click.UsageError("one of --server or --name is required")

    project = _load_project(project_file)
    scoped_clusters: list[Cluster] = []
    if clusters_file is not None:
        with Path(clusters_file).open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or []
        if isinstance(raw, dict):
            raw = raw.get("clusters", [])
        scoped_clusters = [Cluster.model_validate(entry) for entry in raw]

    authorizer = ProjectAuthorizer(project, cluster_lister=lambda _name: scoped_clusters)
    try:
        result = authorizer.check_destination(
            Cluster(server=server, name=cluster_name), namespace
        )
    except ClusterLookupError as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(EXIT_DENIED)
    _print_result(result)
    sys.exit(EXIT_OK if result.allowed else EXIT_DENIED)


@check_group.command(name="kind")
@click.argument("project_file", type=click.Path())
@click.argument("group")
@click.argument("kind")
@click.option("--cluster-scoped", is_flag=True, help="Treat the kind as cluster-scoped.")
def check_kind_command(project_file: str, group: str, kind: str, cluster_scoped: bool) -> None:
    """Check whether GROUP/KIND resources may be managed (use "" for the core group)."""
    project = _load_project(project_file)
    result = ProjectAuthorizer(project).check_kind(group, kind, namespaced=not cluster_scoped)
    _print_result(result)
    sys.exit(EXIT_OK if result.allowed else EXIT_DENIED)


# ---------------------------------------------------------------------------
# policy
# ---------------------------------------------------------------------------


@cli.group(name="policy")
def policy_group() -> None:
    """RBAC policy tools."""


@policy_group.command(name="validate")
@click.argument("project")
@click.argument("role")
@click.argument("statement")
def policy_validate_command(project: str, role: str, statement: str) -> None:
    """Validate STATEMENT as a policy of ROLE in PROJECT."""
    try:
        validate_policy(project, role, statement)
    except PolicyValidationError as exc:
        console.print(f"[red]INVALID[/red] {escape(str(exc))}")
        sys.exit(EXIT_DENIED)
    console.print("[green]VALID[/green]")
    sys.exit(EXIT_OK)


# ---------------------------------------------------------------------------
# windows
# ---------------------------------------------------------------------------


def _app_options(func: Callable[..., None]) -> Callable[..., None]:
    options = [
        click.option("--app", default="", help="Application name."),
        click.option("--namespace", default="", help="Destination namespace."),
        click.option("--server", default="", help="Destination cluster server URL."),
        click.option("--cluster-name", default="", help="Destination cluster name."),
        click.option("--at", "at", default=None, help="Evaluate at this ISO-8601 time."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@cli.group(name="windows")
def windows_group() -> None:
    """Sync window tools."""


@windows_group.command(name="status")
@click.argument("project_file", type=click.Path())
@_app_options
def windows_status_command(
    project_file: str,
    app: str,
    namespace: str,
    server: str,
    cluster_name: str,
    at: str | None,
) -> None:
    """Show the sync windows governing an application."""
    from appproject_governance.convenience import ProjectGovernor

    project = _load_project(project_file)
    now = _parse_at(at)
    application = _application(app, namespace, server, cluster_name, project)
    governor = ProjectGovernor(project)
    windows = governor.windows_for(application)
    state = governor.window_state(application, now)

    table = Table(title=f"Sync Windows ({now.isoformat()})", box=box.SIMPLE)
    table.add_column("Kind", style="cyan")
    table.add_column("Schedule")
    table.add_column("Duration")
    table.add_column("Time Zone")
    table.add_column("Manual")
    table.add_column("Active")
    for window in windows:
        table.add_row(
            window.kind,
            window.schedule,
            window.duration,
            window.time_zone or "UTC",
            "yes" if window.manual_sync else "no",
            "[green]yes[/green]" if window in state.active else "no",
        )
    console.print(table)

    if state.error:
        err_console.print(f"[red]Error:[/red] {escape(state.error)}")
        sys.exit(EXIT_DENIED)
    console.print(f"  Automatic sync: {'permitted' if state.can_sync_automatic else 'blocked'}")
    console.print(f"  Manual sync: {'permitted' if state.can_sync_manual else 'blocked'}")
    sys.exit(EXIT_OK)


@windows_group.command(name="can-sync")
@click.argument("project_file", type=click.Path())
@_app_options
@click.option("--manual", is_flag=True, help="Evaluate a manual sync.")
def windows_can_sync_command(
    project_file: str,
    app: str,
    namespace: str,
    server: str,
    cluster_name: str,
    at: str | None,
    manual: bool,
) -> None:
    """Decide whether an application may sync now (or at --at)."""
    from appproject_governance.convenience import ProjectGovernor

    project = _load_project(project_file)
    now = _parse_at(at)
    application = _application(app, namespace, server, cluster_name, project)
    allowed, error = ProjectGovernor(project).can_sync(application, is_manual=manual, now=now)

    if error:
        err_console.print(f"[red]Error:[/red] {escape(error)}")
    kind = "Manual" if manual else "Automatic"
    status = "[green]PERMITTED[/green]" if allowed else "[red]BLOCKED[/red]"
    console.print(f"{kind} sync: {status}")
    sys.exit(EXIT_OK if allowed else EXIT_DENIED)


# ---------------------------------------------------------------------------
# retry
# ---------------------------------------------------------------------------


@cli.group(name="retry")
def retry_group() -> None:
    """Retry backoff tools."""


@retry_group.command(name="next")
@click.option("--attempt", default=0, show_default=True, type=click.IntRange(min=0))
@click.option("--duration", default="", help="Initial delay, e.g. 5s (default 5s).")
@click.option("--factor", default=None, type=click.IntRange(min=1), help="Backoff factor (default 2).")
@click.option("--max-duration", default="", help="Maximum delay, e.g. 3m (default 3m).")
@click.option("--at", "at", default=None, help="Time of the last attempt (ISO-8601).")
def retry_next_command(
    attempt: int,
    duration: str,
    factor: int | None,
    max_duration: str,
    at: str | None,
) -> None:
    """Show when retry number ATTEMPT (zero-based) should start."""
    last_attempt = _parse_at(at)
    strategy = RetryStrategy(
        limit=-1,
        backoff=Backoff(duration=duration, factor=factor, max_duration=max_duration),
    )
    try:
        next_at = strategy.next_retry_at(last_attempt, attempt)
    except RetryConfigError as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(EXIT_USAGE)

    delay = next_at - last_attempt
    console.print(f"  Delay: [cyan]{delay.total_seconds():g}s[/cyan]")
    console.print(f"  Next attempt at: [bold]{next_at.isoformat()}[/bold]")
    sys.exit(EXIT_OK)


if __name__ == "__main__":
    cli()
