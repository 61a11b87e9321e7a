"""MCP-compatible tool schema for AI agents."""

from __future__ import annotations

from ._version import __version__


def _global_options() -> dict:
    """Options accepted before the subcommand by every fleet command."""
    return {
        "workers": {
            "type": "integer",
            "description": "Number of parallel git processes (0 = unlimited). Env: FIT_WORKERS",
            "default": 8,
            "minimum": 0,
        },
        "dry_run": {
            "type": "boolean",
            "description": "Print the exact git command lines instead of running them",
            "default": False,
        },
        "url_scheme": {
            "type": "string",
            "enum": ["ssh", "https"],
            "description": "Rewrite GitHub remote URLs to this scheme for this run only (--ssh / --https). Env: FIT_URL_SCHEME",
        },
        "args": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Extra arguments appended to the git subcommand",
            "default": [],
        },
    }


def _line_report(columns: list[str], example: str) -> dict:
    return {
        "type": "text",
        "description": (
            "One line per repository, in alphabetical order: "
            + " | ".join(columns)
            + ". Failed repositories show 'ERROR: <first stderr line>'."
        ),
        "example": example,
    }


def get_tool_schema() -> dict:
    """Generate MCP-compatible tool schema for AI agents."""
    return {
        "name": "fit",
        "version": __version__,
        "description": "Parallel git across many repositories. Runs one git command in every repository directly below the current directory at the same time and prints a condensed one-line report per repository. Inside a single repository, fit behaves exactly like git.",
        "usage": "fit [options] <command> [git-args...]",
        "exitCodes": {
            "0": "Every repository was reported (individual failures are shown inline)",
            "1": "Invalid options",
            "9": "No git repositories found in the current directory",
        },
        "tools": [
            {
                "name": "status",
                "description": "Condensed 'git status --porcelain -b' for every repository: branch, counts of modified/added/deleted/renamed/untracked files, and commits ahead/behind upstream.",
                "inputSchema": {
                    "type": "object",
                    "properties": _global_options(),
                    "required": [],
                },
                "output": _line_report(
                    ["name", "branch", "message"],
                    "api      | main   | 1 modified, 2 ahead",
                ),
                "examples": [
                    {"description": "Status of all repos", "command": "fit status"},
                ],
            },
            {
                "name": "fetch",
                "description": "Run 'git fetch' in every repository and summarise branches and tags updated, or 'no new commits'.",
                "inputSchema": {
                    "type": "object",
                    "properties": _global_options(),
                    "required": [],
                },
                "output": _line_report(
                    ["[name]", "message"],
                    "[api                     ] 1 branch, 2 tags updated",
                ),
                "examples": [
                    {"description": "Fetch with 4 workers", "command": "fit -n 4 fetch"},
                    {"description": "Fetch over SSH", "command": "fit --ssh fetch --prune"},
                ],
            },
            {
                "name": "pull",
                "description": "Run 'git pull' in every repository and show 'Already up to date', the diffstat summary, or the fast-forward range.",
                "inputSchema": {
                    "type": "object",
                    "properties": _global_options(),
                    "required": [],
                },
                "output": _line_report(
                    ["[name]", "message"],
                    "[api                     ] 3 files changed, 10 insertions(+)",
                ),
                "examples": [
                    {"description": "Pull all repos", "command": "fit pull"},
                    {
                        "description": "Show what would run",
                        "command": "fit --dry-run pull --rebase",
                    },
                ],
            },
            {
                "name": "passthrough",
                "description": "Any other git subcommand is run in every repository. Output is forwarded verbatim, repository by repository, unless --summary is given, which shows the first output line per repository.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        **_global_options(),
                        "command": {
                            "type": "string",
                            "description": "git subcommand, e.g. 'checkout' or 'log'",
                        },
                        "summary": {
                            "type": "boolean",
                            "description": "One line per repository instead of raw output",
                            "default": False,
                        },
                    },
                    "required": ["command"],
                },
                "examples": [
                    {"description": "Switch all repos to main", "command": "fit checkout main"},
                    {
                        "description": "Last commit of every repo",
                        "command": "fit log --oneline -1",
                    },
                ],
            },
            {
                "name": "meta doctor",
                "description": "Diagnose the fit and git environment: versions, paths, init.defaultBranch, optional git add-ons, OS, shell and CPU count.",
                "inputSchema": {"type": "object", "properties": {}, "required": []},
                "examples": [{"description": "Check environment", "command": "fit meta doctor"}],
            },
        ],
    }
