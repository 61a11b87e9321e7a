"""
fit: parallel git across many repositories.

Runs one git command in every repository below the current directory at the
same time and prints a condensed, alphabetically ordered one-line report per
repository as soon as results are available.
"""

from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
import sys
import threading
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from typer.core import TyperGroup

from ._version import __version__
from .classifiers import (
    DETACHED_BRANCH,
    FetchCommand,
    GitSubcommand,
    PullCommand,
    StatusCommand,
    command_for,
)
from .doctor import collect_report, usage_text
from .formatters import OutputFormatter, create_formatter, print_doctor_report
from .schema import get_tool_schema

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 8
NO_REPOS_EXIT_CODE = 9

# Environment for every git child: fail fast instead of prompting for credentials
GIT_ENV_OVERRIDES = {"GIT_TERMINAL_PROMPT": "0"}

# =============================================================================
# Errors
# =============================================================================


class FitError(Exception):
    """Run-level failure; per-repository failures are reported inline instead."""

    exit_code = 1


class ConfigError(FitError):
    """Invalid combination of options or settings."""


class NoRepositoriesError(FitError):
    """Discovery found nothing to operate on."""

    exit_code = NO_REPOS_EXIT_CODE

    def __init__(self, root: Path):
        super().__init__("No git repositories found in current directory")
        self.root = root


# =============================================================================
# Domain Models
# =============================================================================


class UrlScheme(StrEnum):
    """Remote URL scheme to force for the duration of one git call."""

    SSH = "ssh"
    HTTPS = "https"

    @property
    def config_override(self) -> str:
        """Value for ``git -c`` that rewrites remote URLs to this scheme."""
        if self is UrlScheme.SSH:
            return "url.git@github.com:.insteadOf=https://github.com/"
        return "url.https://github.com/.insteadOf=git@github.com:"


@dataclass(frozen=True)
class ExecutionConfig:
    """Validated settings for one run, shared read-only by every worker."""

    dry_run: bool = False
    url_scheme: UrlScheme | None = None
    max_workers: int = DEFAULT_WORKERS  # 0 = unlimited
    display_root: Path = field(default_factory=Path.cwd)

    def __post_init__(self):
        if self.max_workers < 0:
            raise ConfigError(f"--workers must be 0 or greater, got {self.max_workers}")


@dataclass(frozen=True)
class Target:
    """One repository to run in, with an optional display name override."""

    path: Path
    display_name: str | None = None


@dataclass(frozen=True)
class ProcessOutput:
    """Captured result of a finished git process."""

    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class LaunchFailure:
    """The OS could not start git at all."""

    message: str

    @property
    def success(self) -> bool:
        return False


Outcome = ProcessOutput | LaunchFailure


# =============================================================================
# Process Launcher
# =============================================================================


def run_process(argv: Sequence[str]) -> Outcome:
    """Run ``argv`` to completion with stdin closed, capturing both streams.

    ``subprocess.run`` drains stdout and stderr together while waiting, so a
    child filling one pipe cannot block on the other.
    """
    logger.debug("Launching: %s", shlex.join(argv))
    try:
        result = subprocess.run(
            list(argv),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            env={**os.environ, **GIT_ENV_OVERRIDES},
            check=False,
        )
    except OSError as e:
        logger.warning("Could not start %s: %s", argv[0], e)
        return LaunchFailure(message=str(e))
    return ProcessOutput(returncode=result.returncode, stdout=result.stdout, stderr=result.stderr)


@dataclass(frozen=True)
class GitCommand:
    """One git invocation against one repository."""

    repo_path: Path
    sub_args: tuple[str, ...]
    global_args: tuple[str, ...] = ()

    def argv(self, url_scheme: UrlScheme | None = None) -> list[str]:
        """Full argument vector; the URL override always comes first."""
        args = ["git"]
        if url_scheme is not None:
            args += ["-c", url_scheme.config_override]
        args += [*self.global_args, "-C", str(self.repo_path), *self.sub_args]
        return args

    def command_string(self, url_scheme: UrlScheme | None = None) -> str:
        """Shell-quoted command line, as printed in dry-run mode."""
        return shlex.join(self.argv(url_scheme))

    def run(self, url_scheme: UrlScheme | None = None) -> Outcome:
        return run_process(self.argv(url_scheme))


# =============================================================================
# Parallel Runner
# =============================================================================


def concurrency_limiter(max_workers: int, total: int) -> AbstractContextManager:
    """Semaphore bounding concurrent git processes.

    No limiter is needed when the limit is 0 (unlimited) or at least the
    number of repositories.
    """
    if max_workers == 0 or max_workers >= total:
        return nullcontext()
    return threading.BoundedSemaphore(max_workers)


class ParallelRunner:
    """Run one git command per repository and report results in order."""

    def __init__(
        self,
        config: ExecutionConfig,
        execute: Callable[[GitCommand, UrlScheme | None], Outcome] = GitCommand.run,
    ):
        self.config = config
        self._execute = execute

    def iter_ordered(self, commands: Sequence[GitCommand]) -> Iterator[tuple[int, Outcome]]:
        """Yield ``(index, outcome)`` strictly by index, as early as possible.

        Every command starts at once (subject to the limiter). Completions
        are parked in their slot; the contiguous run of filled slots starting
        at the cursor is released after each completion, so a slow repository
        only holds back the lines after it, never the other workers.
        """
        total = len(commands)
        if total == 0:
            return

        limiter = concurrency_limiter(self.config.max_workers, total)
        url_scheme = self.config.url_scheme
        if isinstance(limiter, nullcontext):
            logger.debug("Running %d commands unthrottled", total)
        else:
            logger.debug("Running %d commands, at most %d at a time", total, self.config.max_workers)

        def worker(command: GitCommand) -> Outcome:
            with limiter:
                return self._execute(command, url_scheme)

        slots: list[Outcome | None] = [None] * total
        cursor = 0

        with ThreadPoolExecutor(max_workers=total) as executor:
            futures = {executor.submit(worker, command): i for i, command in enumerate(commands)}
            for future in as_completed(futures):
                index = futures[future]
                outcome = future.result()
                logger.debug(
                    "Finished #%d (%s): %s",
                    index,
                    commands[index].repo_path,
                    getattr(outcome, "returncode", "launch failed"),
                )
                slots[index] = outcome

                while cursor < total and slots[cursor] is not None:
                    yield cursor, slots[cursor]
                    cursor += 1

    def run(
        self,
        targets: Sequence[Target],
        subcommand: GitSubcommand,
        formatter: OutputFormatter,
    ) -> None:
        commands = [subcommand.build_command(target.path) for target in targets]

        if self.config.dry_run:
            for command in commands:
                formatter.print_command(command.command_string(self.config.url_scheme))
            return

        for index, outcome in self.iter_ordered(commands):
            formatter.print_result(targets[index], outcome)


def run_fleet(
    config: ExecutionConfig,
    targets: Sequence[Target],
    subcommand: GitSubcommand,
    formatter: OutputFormatter,
) -> None:
    """Run ``subcommand`` across ``targets``; only an empty fleet is an error."""
    if not targets:
        raise NoRepositoriesError(config.display_root)
    if config.dry_run:
        formatter.print_dry_run_banner()
    ParallelRunner(config).run(targets, subcommand, formatter)


# =============================================================================
# Repository Discovery
# =============================================================================


def find_git_repos(root: Path) -> list[Target]:
    """Direct children of ``root`` that contain a ``.git`` entry, sorted by path."""
    targets = [
        Target(path=child)
        for child in root.iterdir()
        if child.is_dir() and (child / ".git").exists()
    ]
    targets.sort(key=lambda t: t.path)
    return targets


def read_head_branch(repo_path: Path) -> str:
    """Current branch from ``.git/HEAD`` without running git.

    Follows ``gitdir:`` files used by worktrees and submodules. Returns an
    empty string when HEAD cannot be read.
    """
    git_dir = repo_path / ".git"
    try:
        if git_dir.is_file():
            content = git_dir.read_text().strip()
            if content.startswith("gitdir:"):
                git_dir = repo_path / content[len("gitdir:") :].strip()
        head = (git_dir / "HEAD").read_text().strip()
    except OSError:
        return ""

    if head.startswith("ref: refs/heads/"):
        return head[len("ref: refs/heads/") :]
    return DETACHED_BRANCH if head else ""


def is_inside_git_repo() -> bool:
    """Check whether the working directory is inside a git work tree."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--git-dir"],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            check=False,
        )
    except OSError:
        return False
    return result.returncode == 0


# =============================================================================
# CLI Application
# =============================================================================

PASSTHROUGH_COMMAND = "__git__"

# Let git's own options through to the subcommand untouched
GIT_ARGS_CONTEXT = {"allow_extra_args": True, "ignore_unknown_options": True}


class PassthroughGroup(TyperGroup):
    """Route subcommand names fit does not know to the git passthrough."""

    def resolve_command(self, ctx, args):
        if args and not args[0].startswith("-") and args[0] not in self.commands:
            args = [PASSTHROUGH_COMMAND, *args]
        return super().resolve_command(ctx, args)


app = typer.Typer(
    name="fit",
    cls=PassthroughGroup,
    help="Parallel git across many repositories.",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

meta_app = typer.Typer(help="fit internal commands (help, doctor).")
app.add_typer(meta_app, name="meta")


@dataclass(frozen=True)
class CliState:
    config: ExecutionConfig
    summary: bool = False


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr through rich; stdout carries the report."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def resolve_url_scheme(ssh: bool, https: bool, url_scheme: str | None) -> UrlScheme | None:
    if ssh and https:
        raise ConfigError("--ssh and --https are mutually exclusive")
    if ssh:
        return UrlScheme.SSH
    if https:
        return UrlScheme.HTTPS
    if url_scheme is None:
        return None
    try:
        return UrlScheme(url_scheme.strip().lower())
    except ValueError:
        choices = ", ".join(s.value for s in UrlScheme)
        raise ConfigError(
            f"Invalid URL scheme {url_scheme!r} (expected one of: {choices})"
        ) from None


def parse_workers(value: str) -> int:
    """Worker count from the command line or ``FIT_WORKERS``."""
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"--workers must be an integer, got {value!r}") from None


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"fit {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    schema: bool = typer.Option(
        False,
        "--schema",
        help="Output MCP-compatible tool schema for AI agents",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Print exact commands without executing",
    ),
    ssh: bool = typer.Option(
        False,
        "--ssh",
        help="Force SSH URLs (git@github.com:) for all remotes",
    ),
    https: bool = typer.Option(
        False,
        "--https",
        help="Force HTTPS URLs (https://github.com/) for all remotes",
    ),
    url_scheme: str | None = typer.Option(
        None,
        "--url-scheme",
        envvar="FIT_URL_SCHEME",
        help="Force this URL scheme for all remotes (ssh or https)",
    ),
    workers: str = typer.Option(
        str(DEFAULT_WORKERS),
        "--workers",
        "-n",
        envvar="FIT_WORKERS",
        help="Number of parallel workers (0 = unlimited)",
    ),
    summary: bool = typer.Option(
        False,
        "--summary",
        help="Show one line per repository for pass-through commands",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug information to stderr",
    ),
):
    """fit: parallel git across many repositories."""
    if schema:
        print(json.dumps(get_tool_schema(), indent=2))
        raise typer.Exit()

    configure_logging(verbose)

    try:
        config = ExecutionConfig(
            dry_run=dry_run,
            url_scheme=resolve_url_scheme(ssh, https, url_scheme),
            max_workers=parse_workers(workers),
            display_root=Path.cwd(),
        )
    except ConfigError as e:
        Console().print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(e.exit_code) from e

    ctx.obj = CliState(config=config, summary=summary)

    if ctx.invoked_subcommand is None:
        print("No command specified. Use --help for usage information.")


def run_subcommand(ctx: typer.Context, subcommand: GitSubcommand) -> None:
    """Discover repositories and run ``subcommand`` across them."""
    state: CliState = ctx.obj
    console = Console(highlight=False, soft_wrap=True)
    root = state.config.display_root

    try:
        targets = find_git_repos(root)
        formatter = create_formatter(
            console,
            subcommand,
            targets,
            root,
            branches={t.path: read_head_branch(t.path) for t in targets},
        )
        run_fleet(state.config, targets, subcommand, formatter)
    except FitError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(e.exit_code) from e


@app.command(context_settings=GIT_ARGS_CONTEXT)
def status(
    ctx: typer.Context,
    args: list[str] = typer.Argument(None, help="Additional arguments for git status"),
):
    """Git status with condensed output."""
    run_subcommand(ctx, StatusCommand(args or []))


@app.command(context_settings=GIT_ARGS_CONTEXT)
def pull(
    ctx: typer.Context,
    args: list[str] = typer.Argument(None, help="Additional arguments for git pull"),
):
    """Git pull with condensed output."""
    run_subcommand(ctx, PullCommand(args or []))


@app.command(context_settings=GIT_ARGS_CONTEXT)
def fetch(
    ctx: typer.Context,
    args: list[str] = typer.Argument(None, help="Additional arguments for git fetch"),
):
    """Git fetch with condensed output."""
    run_subcommand(ctx, FetchCommand(args or []))


@app.command(
    name=PASSTHROUGH_COMMAND,
    hidden=True,
    context_settings={**GIT_ARGS_CONTEXT, "help_option_names": []},
)
def passthrough(
    ctx: typer.Context,
    args: list[str] = typer.Argument(..., help="git subcommand and its arguments"),
):
    """Pass any other git command through to every repository."""
    state: CliState = ctx.obj
    run_subcommand(ctx, command_for(args[0], args[1:], raw=not state.summary))


@meta_app.callback(invoke_without_command=True)
def meta(ctx: typer.Context):
    """fit internal commands."""
    if ctx.invoked_subcommand is None:
        meta_help()


@meta_app.command("help")
def meta_help():
    """Show usage information."""
    Console(highlight=False).print(usage_text(), markup=False)


@meta_app.command("doctor")
def meta_doctor():
    """Diagnose fit and git environment."""
    print_doctor_report(Console(highlight=False), collect_report())


def exec_git(args: Sequence[str]) -> None:
    """Replace this process with ``git <args>``."""
    try:
        os.execvp("git", ["git", *args])
    except OSError as e:
        print(f"fit: failed to exec git: {e}", file=sys.stderr)
        raise SystemExit(1) from e


def cli() -> None:
    """Console-script entry point.

    Inside a repository fit behaves exactly like git; ``fit meta ...`` is
    always handled by fit itself.
    """
    args = sys.argv[1:]
    if args[:1] != ["meta"] and is_inside_git_repo():
        exec_git(args)
    app()
