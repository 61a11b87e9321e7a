"""Per-subcommand argument builders and output classifiers.

Each git subcommand fit knows about is a small strategy object: it builds the
git arguments for one repository and turns the captured output of that run
into a one-line ``FormattedResult``. Classification never raises; every
strategy has a fallback message for output it does not recognise.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .core import GitCommand, ProcessOutput

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "unknown error"
DETACHED_BRANCH = "HEAD (detached)"


class ReportStyle(StrEnum):
    """How results of a subcommand are rendered."""

    TABLE = "table"  # name | branch | message
    COMPACT = "compact"  # [name] message
    RAW = "raw"  # verbatim stdout/stderr


@dataclass(frozen=True)
class FormattedResult:
    """One-line summary of a single repository's git run.

    An empty ``branch`` means the caller should fall back to a branch name
    resolved some other way, if it has one.
    """

    message: str
    branch: str = ""


def first_nonblank_line(*texts: str) -> str | None:
    """Return the first non-blank line (stripped) across ``texts``, in order."""
    for text in texts:
        for line in text.splitlines():
            if line.strip():
                return line.strip()
    return None


def error_message(output: ProcessOutput) -> str:
    """Message for a failed run: first non-blank line of stderr."""
    return first_nonblank_line(output.stderr_text) or UNKNOWN_ERROR


# =============================================================================
# Subcommand strategies
# =============================================================================


class GitSubcommand(ABC):
    """Base strategy: build the git invocation and classify its output."""

    name: str = ""
    style: ReportStyle = ReportStyle.COMPACT
    global_args: tuple[str, ...] = ()

    def __init__(self, extra_args: Sequence[str] = ()):
        self.extra_args = tuple(extra_args)

    def sub_args(self) -> tuple[str, ...]:
        return (self.name, *self.extra_args)

    def build_command(self, repo_path: Path) -> GitCommand:
        from .core import GitCommand

        return GitCommand(
            repo_path=repo_path,
            global_args=self.global_args,
            sub_args=self.sub_args(),
        )

    def classify(self, output: ProcessOutput) -> FormattedResult:
        """Summarise one run. Failed runs report their first stderr line."""
        if not output.success:
            return FormattedResult(message=error_message(output))
        return self.summarize(output)

    @abstractmethod
    def summarize(self, output: ProcessOutput) -> FormattedResult:
        """Summarise a successful run."""


class FetchCommand(GitSubcommand):
    """``git fetch``: count updated branches and tags."""

    name = "fetch"

    def summarize(self, output: ProcessOutput) -> FormattedResult:
        stdout = output.stdout_text
        stderr = output.stderr_text

        # git always prints a "From <remote>" line on stderr, even with nothing new
        stdout_content = [line for line in stdout.splitlines() if line.strip()]
        stderr_content = [
            line for line in stderr.splitlines() if line.strip() and not line.startswith("From")
        ]
        if not stdout_content and not stderr_content:
            return FormattedResult(message="no new commits")

        updates = [line for line in stdout.splitlines() if "->" in line or "[new" in line]
        tag_count = sum(1 for line in updates if "[new tag]" in line)
        branch_count = len(updates) - tag_count

        parts = []
        if branch_count > 0:
            parts.append(f"{branch_count} branch{'' if branch_count == 1 else 'es'}")
        if tag_count > 0:
            parts.append(f"{tag_count} tag{'' if tag_count == 1 else 's'}")
        if parts:
            return FormattedResult(message=f"{', '.join(parts)} updated")

        return FormattedResult(message="fetched")


class PullCommand(GitSubcommand):
    """``git pull``: report up-to-date, the diffstat summary or the ff range."""

    name = "pull"

    def summarize(self, output: ProcessOutput) -> FormattedResult:
        stdout = output.stdout_text
        lines = stdout.splitlines()

        if "Already up to date" in stdout:
            return FormattedResult(message="Already up to date")

        # "3 files changed, 10 insertions(+)" / "1 file changed, ..."
        for line in lines:
            if "files changed" in line or "file changed" in line:
                return FormattedResult(message=line.strip())

        for line in lines:
            if ".." in line or "Updating" in line:
                return FormattedResult(message=line.strip())

        return FormattedResult(
            message=first_nonblank_line(stdout, output.stderr_text) or "completed"
        )


@dataclass
class BranchInfo:
    """Parsed ``## ...`` header of ``git status --porcelain -b``."""

    branch: str = ""
    ahead: int = 0
    behind: int = 0


def parse_branch_line(line: str) -> BranchInfo:
    """Parse a ``## branch...upstream [ahead N, behind M]`` header line."""
    info = BranchInfo()
    if not line.startswith("## "):
        return info

    content = line[3:]

    if content.startswith("HEAD (no branch)"):
        info.branch = DETACHED_BRANCH
        return info

    for prefix in ("No commits yet on ", "Initial commit on "):
        if content.startswith(prefix):
            info.branch = content[len(prefix) :].strip()
            return info

    branch_part, dots, tracking = content.partition("...")
    info.branch = branch_part.strip() if dots else content.strip()

    start = tracking.find("[")
    end = tracking.find("]", start + 1)
    if start != -1 and end != -1:
        for part in tracking[start + 1 : end].split(","):
            part = part.strip()
            if part.startswith("ahead "):
                info.ahead = _parse_count(part[len("ahead ") :])
            elif part.startswith("behind "):
                info.behind = _parse_count(part[len("behind ") :])

    return info


def _parse_count(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


@dataclass
class StatusCounts:
    """File-change counters from porcelain status records."""

    modified: int = 0
    added: int = 0
    deleted: int = 0
    renamed: int = 0
    untracked: int = 0

    def add_record(self, index_status: str, worktree_status: str) -> None:
        if index_status == "?":
            self.untracked += 1
            return

        match index_status:
            case "M":
                self.modified += 1
            case "A":
                self.added += 1
            case "D":
                self.deleted += 1
            case "R":
                self.renamed += 1

        # Worktree column only counts when nothing is staged for the file
        if index_status == " ":
            match worktree_status:
                case "M":
                    self.modified += 1
                case "D":
                    self.deleted += 1

    def clauses(self) -> list[str]:
        return [
            f"{count} {kind}"
            for kind, count in (
                ("modified", self.modified),
                ("added", self.added),
                ("deleted", self.deleted),
                ("renamed", self.renamed),
                ("untracked", self.untracked),
            )
            if count > 0
        ]


class StatusCommand(GitSubcommand):
    """``git status --porcelain -b``: branch plus condensed change counts."""

    name = "status"
    style = ReportStyle.TABLE
    global_args = ("--no-optional-locks",)

    def sub_args(self) -> tuple[str, ...]:
        return ("status", "--porcelain", "-b", *self.extra_args)

    def summarize(self, output: ProcessOutput) -> FormattedResult:
        info = BranchInfo()
        counts = StatusCounts()

        for line in output.stdout_text.splitlines():
            if line.startswith("## "):
                info = parse_branch_line(line)
                continue
            if len(line) < 2:
                continue
            counts.add_record(line[0], line[1])

        parts = counts.clauses()
        has_file_changes = bool(parts)
        if info.ahead > 0:
            parts.append(f"{info.ahead} ahead")
        if info.behind > 0:
            parts.append(f"{info.behind} behind")

        if not parts:
            message = "clean"
        elif not has_file_changes:
            message = f"clean, {', '.join(parts)}"
        else:
            message = ", ".join(parts)

        return FormattedResult(message=message, branch=info.branch)


class PassthroughCommand(GitSubcommand):
    """Any other git subcommand.

    In raw mode the output is forwarded verbatim; otherwise the first
    non-blank line of either stream is shown.
    """

    def __init__(self, args: Sequence[str], *, raw: bool = True):
        if not args:
            raise ValueError("No git command specified")
        super().__init__(args[1:])
        self.name = args[0]
        self.style = ReportStyle.RAW if raw else ReportStyle.COMPACT

    def summarize(self, output: ProcessOutput) -> FormattedResult:
        return FormattedResult(
            message=first_nonblank_line(output.stdout_text, output.stderr_text) or "ok"
        )


SUBCOMMANDS: dict[str, type[GitSubcommand]] = {
    "fetch": FetchCommand,
    "pull": PullCommand,
    "status": StatusCommand,
}


def command_for(name: str, extra_args: Sequence[str] = (), *, raw: bool = True) -> GitSubcommand:
    """Select the strategy for ``name``; unknown names pass through to git."""
    strategy = SUBCOMMANDS.get(name)
    if strategy is not None:
        return strategy(extra_args)
    logger.debug("No classifier for %r, passing through (raw=%s)", name, raw)
    return PassthroughCommand([name, *extra_args], raw=raw)
