"""fit: parallel git across many repositories."""

# Guard against deleted CWD (e.g. directory removed by another process).
# rich crashes on import if os.getcwd() fails, so recover before any imports.
import os

try:
    os.getcwd()
except (OSError, PermissionError):
    os.chdir(os.path.expanduser("~"))

from ._version import __version__
from .classifiers import (
    FetchCommand,
    FormattedResult,
    GitSubcommand,
    PassthroughCommand,
    PullCommand,
    ReportStyle,
    StatusCommand,
    command_for,
)
from .core import (
    ConfigError,
    ExecutionConfig,
    FitError,
    GitCommand,
    LaunchFailure,
    NoRepositoriesError,
    ParallelRunner,
    ProcessOutput,
    Target,
    UrlScheme,
    app,
    find_git_repos,
    run_fleet,
)
from .formatters import OutputFormatter, create_formatter
from .schema import get_tool_schema

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "ExecutionConfig",
    "FormattedResult",
    "GitCommand",
    "LaunchFailure",
    "ProcessOutput",
    "ReportStyle",
    "Target",
    "UrlScheme",
    # Errors
    "ConfigError",
    "FitError",
    "NoRepositoriesError",
    # Subcommands
    "FetchCommand",
    "GitSubcommand",
    "PassthroughCommand",
    "PullCommand",
    "StatusCommand",
    "command_for",
    # Operations
    "ParallelRunner",
    "find_git_repos",
    "run_fleet",
    # Formatters
    "OutputFormatter",
    "create_formatter",
    # Functions
    "get_tool_schema",
]
