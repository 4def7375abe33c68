"""CLI output formatting helpers.

User-facing progress goes through ``Reporter``: one colored severity line per
message. Warnings are collected so a run can summarize them at the end.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from .bootstrap.cluster import ClusterDescription, ClusterState
from .bootstrap.prerequisites import DependencyCheck, ReconciliationReport
from .bootstrap.stack import StackStatus
from .errors import DevstackError

SEVERITY_STYLES = {
    "INFO": "blue",
    "SUCCESS": "green",
    "WARNING": "yellow",
    "ERROR": "red",
}


class Reporter:
    """Print colored severity lines and collect warnings."""

    def __init__(self, console: Console | None = None, err_console: Console | None = None):
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)
        self.warnings: list[str] = []

    def _line(self, severity: str, message: str, console: Console | None = None) -> None:
        style = SEVERITY_STYLES[severity]
        (console or self.console).print(f"[{style}]\\[{severity}][/{style}] {escape(message)}")

    def info(self, message: str) -> None:
        self._line("INFO", message)

    def success(self, message: str) -> None:
        self._line("SUCCESS", message)

    def warning(self, message: str) -> None:
        self.warnings.append(message)
        self._line("WARNING", message)

    def warn(self, error: DevstackError) -> None:
        """Report a non-fatal error as a warning."""
        self.warning(error.message)
        if error.hint:
            self.console.print(f"  [dim]{escape(error.hint)}[/dim]")

    def error(self, message: str) -> None:
        self._line("ERROR", message, self.err_console)

    def failure(self, error: DevstackError) -> None:
        """Report a fatal error with its hint and captured tool output."""
        self.error(error.message)
        output = getattr(error, "output", "")
        if output:
            self.err_console.print(escape(output))
        if error.hint:
            self.err_console.print(f"  [dim]{escape(error.hint)}[/dim]")

    def print_report(self, report: ReconciliationReport) -> None:
        """Print one line per dependency."""
        for check in report.present:
            self.success(_describe(check, "found"))
        for check in report.unhealthy:
            self.warning(_describe(check, check.result.detail or "unhealthy"))
        for check in report.missing_required:
            self.error(f"{check.name} not found")
        for check in report.missing_optional:
            self.warning(f"{check.name} not found (optional)")

    def print_summary(self) -> None:
        """Summarize collected warnings."""
        if not self.warnings:
            return
        self.console.print()
        self.console.print(f"[yellow]Completed with {len(self.warnings)} warning(s):[/yellow]")
        for message in self.warnings:
            self.console.print(f"  ⚠ {escape(message)}")


def _describe(check: DependencyCheck, state: str) -> str:
    version = f" ({check.result.version})" if check.result.version else ""
    return f"{check.name} {state}{version}"


def print_stack_status(console: Console, status: StackStatus) -> None:
    """Print compose service state."""
    console.print(f"Services: {status.state.value}")
    for svc in status.running_services:
        console.print(f"  [green]✓[/green] {escape(svc)}")
    for svc in status.stopped_services:
        console.print(f"  [red]✗[/red] {escape(svc)}")
    if status.message:
        console.print(f"  [dim]{escape(status.message)}[/dim]")


def print_cluster_description(console: Console, description: ClusterDescription) -> None:
    """Print cluster status sections."""
    if description.status.state == ClusterState.ABSENT:
        console.print("[red]✗[/red] Minikube is not installed. Run: devstack install-cluster-runtime")
        return

    console.print(f"Cluster: {description.status.state.value}")
    for title, body in description.sections.items():
        console.print()
        console.print(f"[bold]{escape(title)}[/bold]")
        console.print(escape(body) if body else "[dim](no output)[/dim]")
