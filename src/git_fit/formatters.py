"""Output formatters for console display."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from rich.console import Console
from rich.table import Table
from rich.text import Text

from ._version import __version__
from .classifiers import FormattedResult, GitSubcommand, ReportStyle

if TYPE_CHECKING:
    from .core import Outcome, Target
    from .doctor import DoctorReport

COMPACT_NAME_WIDTH = 24
MIN_NAME_WIDTH = 8
MAX_NAME_WIDTH = 30
MIN_BRANCH_WIDTH = 6
MAX_BRANCH_WIDTH = 20
ELLIPSIS = "..."
SEPARATOR = " | "


def truncate(value: str, width: int) -> str:
    """Shorten ``value`` to ``width`` characters, ending in ``...`` when cut.

    Columns of three characters or fewer are cut without an ellipsis.
    """
    if len(value) <= width:
        return value
    if width <= len(ELLIPSIS):
        return value[:width]
    return value[: width - len(ELLIPSIS)] + ELLIPSIS


def pad_column(value: str, width: int) -> str:
    return truncate(value, width).ljust(width)


def column_width(values: Sequence[str], minimum: int, maximum: int) -> int:
    """Longest value, capped at ``maximum`` and floored at ``minimum``."""
    longest = max((len(v) for v in values), default=0)
    return max(minimum, min(longest, maximum))


def get_relative_path(path: Path, root: Path) -> str:
    """Get relative path from root."""
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def display_name(target: Target, root: Path) -> str:
    return target.display_name or get_relative_path(target.path, root)


class OutputFormatter(ABC):
    """Print one line per repository on the console.

    Subclasses decide the line layout; this base class handles dry-run
    output and turning a raw outcome into a displayable result.
    """

    def __init__(
        self,
        console: Console,
        subcommand: GitSubcommand,
        targets: Sequence[Target],
        root: Path,
    ):
        self.console = console
        self.subcommand = subcommand
        self.names = {t.path: display_name(t, root) for t in targets}

    def print_dry_run_banner(self):
        self._print_plain(
            f"[fit v{__version__}] Running in **dry-run mode**, no git commands will be "
            "executed. Planned git commands below."
        )

    def print_command(self, command_line: str):
        self._print_plain(command_line)

    @abstractmethod
    def print_result(self, target: Target, outcome: Outcome):
        """Print the line(s) for one repository."""

    def describe(self, outcome: Outcome) -> FormattedResult:
        """Classify ``outcome``; failures are prefixed with ``ERROR:``."""
        from .core import LaunchFailure

        if isinstance(outcome, LaunchFailure):
            return FormattedResult(message=f"ERROR: spawn failed: {outcome.message}")

        result = self.subcommand.classify(outcome)
        if not outcome.success:
            return replace(result, message=f"ERROR: {result.message}")
        return result

    def _name(self, target: Target) -> str:
        return self.names.get(target.path, target.path.name)

    def _print_plain(self, line: str):
        self.console.print(Text(line), soft_wrap=True)

    @staticmethod
    def _message_text(message: str) -> Text:
        if message.startswith("ERROR:"):
            return Text(message, style="red")
        if message.startswith("clean") or message in ("no new commits", "Already up to date"):
            return Text(message, style="green")
        return Text(message)


class CompactFormatter(OutputFormatter):
    """``[name                    ] message``"""

    def print_result(self, target: Target, outcome: Outcome):
        result = self.describe(outcome)
        line = Text.assemble(
            "[",
            (pad_column(self._name(target), COMPACT_NAME_WIDTH), "cyan"),
            "] ",
            self._message_text(result.message),
        )
        self.console.print(line, soft_wrap=True)


class TableFormatter(OutputFormatter):
    """``name | branch | message`` with columns aligned across all rows.

    Column widths are fixed before the first line is printed, from the
    display names and the branches read from each repository's HEAD.
    """

    def __init__(
        self,
        console: Console,
        subcommand: GitSubcommand,
        targets: Sequence[Target],
        root: Path,
        branches: Mapping[Path, str] | None = None,
    ):
        super().__init__(console, subcommand, targets, root)
        self.branches = dict(branches or {})
        self.name_width = column_width(list(self.names.values()), MIN_NAME_WIDTH, MAX_NAME_WIDTH)
        self.branch_width = column_width(
            list(self.branches.values()), MIN_BRANCH_WIDTH, MAX_BRANCH_WIDTH
        )

    def print_result(self, target: Target, outcome: Outcome):
        result = self.describe(outcome)
        branch = result.branch or self.branches.get(target.path, "")
        line = Text.assemble(
            (pad_column(self._name(target), self.name_width), "cyan"),
            SEPARATOR,
            (pad_column(branch, self.branch_width), "blue"),
            SEPARATOR,
            self._message_text(result.message),
        )
        self.console.print(line, soft_wrap=True)


class RawFormatter(OutputFormatter):
    """Forward each repository's stdout and stderr bytes verbatim, in order."""

    def __init__(
        self,
        console: Console,
        subcommand: GitSubcommand,
        targets: Sequence[Target],
        root: Path,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
    ):
        super().__init__(console, subcommand, targets, root)
        self._stdout = stdout
        self._stderr = stderr

    def print_result(self, target: Target, outcome: Outcome):
        from .core import LaunchFailure

        stdout = self._stdout or _binary_stream(sys.stdout)
        stderr = self._stderr or _binary_stream(sys.stderr)

        if isinstance(outcome, LaunchFailure):
            message = f"fit: {self._name(target)}: spawn failed: {outcome.message}\n"
            stderr.write(message.encode())
            stderr.flush()
            return

        stdout.write(outcome.stdout)
        stdout.flush()
        stderr.write(outcome.stderr)
        stderr.flush()


def _binary_stream(stream) -> BinaryIO:
    stream.flush()
    return stream.buffer


def create_formatter(
    console: Console,
    subcommand: GitSubcommand,
    targets: Sequence[Target],
    root: Path,
    branches: Mapping[Path, str] | None = None,
) -> OutputFormatter:
    """Pick the formatter matching the subcommand's report style."""
    match subcommand.style:
        case ReportStyle.TABLE:
            return TableFormatter(console, subcommand, targets, root, branches=branches)
        case ReportStyle.RAW:
            return RawFormatter(console, subcommand, targets, root)
        case _:
            return CompactFormatter(console, subcommand, targets, root)


def print_doctor_report(console: Console, report: DoctorReport):
    """Print environment diagnostics as tables."""
    console.print(Text("fit doctor", style="bold"))
    console.print()

    table = Table(title="Environment", show_header=False, title_justify="left")
    table.add_column("Item", style="cyan", no_wrap=True)
    table.add_column("Value")
    table.add_row("fit version", report.fit.version or "unknown")
    table.add_row("fit path", report.fit.path or "unknown")
    if report.git.installed:
        table.add_row("git version", report.git.version or "unknown")
        table.add_row("git path", report.git.path or "unknown")
    else:
        table.add_row("git", Text("NOT FOUND", style="red"))
    table.add_row("init.defaultBranch", report.default_branch or "(not set)")
    table.add_row("OS", f"{report.os_name} {report.os_version}")
    table.add_row("Shell", report.shell)
    table.add_row("CPUs", str(report.cpu_count))
    console.print(table)
    console.print()

    addons = Table(title="Git add-ons", title_justify="left")
    addons.add_column("Tool", style="cyan", no_wrap=True)
    addons.add_column("Status", justify="center")
    addons.add_column("Version")
    for tool in report.addons:
        if tool.installed:
            addons.add_row(tool.name, "[green]✓[/]", tool.version or "")
        else:
            addons.add_row(tool.name, "[dim]-[/]", "[dim]not installed[/]")
    console.print(addons)
