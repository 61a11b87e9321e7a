"""Environment diagnostics for ``fit meta doctor`` and the usage banner."""

from __future__ import annotations

import os
import platform
import shutil
import subprocess
import sys
from dataclasses import dataclass, field

from ._version import __version__

# (display name, argv) for optional tools that commonly sit next to git
GIT_ADDONS = [
    ("gh", ["gh", "--version"]),
    ("git-lfs", ["git", "lfs", "version"]),
    ("delta", ["delta", "--version"]),
    ("git-absorb", ["git", "absorb", "--version"]),
    ("lazygit", ["lazygit", "--version"]),
]


@dataclass
class ToolInfo:
    """Installation status of one external tool."""

    name: str
    version: str | None = None
    path: str | None = None
    installed: bool = False


@dataclass
class DoctorReport:
    fit: ToolInfo
    git: ToolInfo
    default_branch: str | None = None
    addons: list[ToolInfo] = field(default_factory=list)
    os_name: str = "unknown"
    os_version: str = "unknown"
    shell: str = "unknown"
    cpu_count: int = 1


def run_command(argv: list[str]) -> tuple[bool, str]:
    """Run a short diagnostic command, returning (success, stdout)."""
    try:
        result = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        return False, ""
    return result.returncode == 0, result.stdout


def fit_info() -> ToolInfo:
    path = shutil.which("fit") or sys.argv[0]
    return ToolInfo("fit", __version__, path, installed=True)


def git_info() -> ToolInfo:
    success, stdout = run_command(["git", "--version"])
    if not success:
        return ToolInfo("git")
    version = stdout.strip().removeprefix("git version ")
    return ToolInfo("git", version, shutil.which("git"), installed=True)


def git_default_branch() -> str | None:
    success, stdout = run_command(["git", "config", "--global", "init.defaultBranch"])
    return stdout.strip() if success else None


def git_addons() -> list[ToolInfo]:
    addons = []
    for name, argv in GIT_ADDONS:
        success, stdout = run_command(argv)
        if success:
            lines = stdout.strip().splitlines()
            addons.append(ToolInfo(name, lines[0].strip() if lines else None, installed=True))
        else:
            addons.append(ToolInfo(name))
    return addons


def collect_report() -> DoctorReport:
    """Gather everything ``fit meta doctor`` shows."""
    return DoctorReport(
        fit=fit_info(),
        git=git_info(),
        default_branch=git_default_branch(),
        addons=git_addons(),
        os_name=platform.system() or "unknown",
        os_version=platform.release() or "unknown",
        shell=os.environ.get("SHELL", "unknown"),
        cpu_count=os.cpu_count() or 1,
    )


def usage_text(git_version: str | None = None) -> str:
    if git_version is None:
        git_version = git_info().version or "unknown"
    return f"""\
fit v{__version__} (git {git_version}) - parallel git across many repositories

USAGE:
    fit [OPTIONS] <COMMAND> [ARGS...]

OPTIONS:
    -n, --workers <NUM>   Number of parallel workers (default: 8, 0=unlimited)
    --dry-run             Print exact commands without executing
    --ssh                 Use SSH URLs
    --https               Use HTTPS URLs
    --summary             One line per repository for pass-through commands
    -v, --verbose         Log debug information to stderr
    -h, --help            Print help information
    -V, --version         Print version

COMMANDS:
    status    Git status with condensed output
    pull      Git pull with condensed output
    fetch     Git fetch with condensed output
    meta      Fit internal commands (help, doctor)
    <any>     Pass-through to git verbatim

META SUBCOMMANDS:
    fit meta help         Show this help message
    fit meta doctor       Diagnose fit and git environment

EXAMPLES:
    fit pull                      Pull all repos
    fit status                    Status of all repos
    fit --dry-run pull            Show commands without executing
    fit -n 4 fetch                Fetch with 4 workers
    fit checkout main             Switch all repos to main
    fit meta doctor               Check environment"""
