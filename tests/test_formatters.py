from __future__ import annotations

import io
from pathlib import Path

import pytest
from rich.console import Console

from git_fit._version import __version__
from git_fit.classifiers import FetchCommand, PassthroughCommand, StatusCommand
from git_fit.core import LaunchFailure, Target
from git_fit.formatters import (
    CompactFormatter,
    OutputFormatter,
    RawFormatter,
    TableFormatter,
    column_width,
    create_formatter,
    pad_column,
    truncate,
)

from .conftest import make_output

ROOT = Path("/work")


def make_console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, highlight=False, soft_wrap=True, width=40), buffer


def targets(*names: str) -> list[Target]:
    return [Target(ROOT / name) for name in names]


@pytest.mark.parametrize(
    ("value", "width", "expected"),
    [
        ("short", 10, "short"),
        ("exactly-10", 10, "exactly-10"),
        ("this-is-too-long", 10, "this-is..."),
        ("abcdef", 3, "abc"),
        ("abcdef", 2, "ab"),
    ],
)
def test_truncate(value, width, expected):
    assert truncate(value, width) == expected


def test_pad_column():
    assert pad_column("api", 6) == "api   "
    assert pad_column("a-very-long-name", 8) == "a-ver..."


def test_column_width_is_capped_and_floored():
    assert column_width(["a", "bb"], 6, 20) == 6
    assert column_width(["medium-name"], 6, 20) == 11
    assert column_width(["x" * 50], 6, 20) == 20
    assert column_width([], 6, 20) == 6


def test_dry_run_output():
    console, buffer = make_console()
    formatter = CompactFormatter(console, FetchCommand(), targets("a"), ROOT)

    formatter.print_dry_run_banner()
    formatter.print_command("git -C /work/a fetch --prune")

    lines = buffer.getvalue().splitlines()
    assert lines[0] == (
        f"[fit v{__version__}] Running in **dry-run mode**, no git commands will be "
        "executed. Planned git commands below."
    )
    assert lines[1] == "git -C /work/a fetch --prune"


def test_compact_line():
    console, buffer = make_console()
    formatter = CompactFormatter(console, FetchCommand(), targets("my-repo"), ROOT)

    formatter.print_result(Target(ROOT / "my-repo"), make_output("", "From x\n"))

    assert buffer.getvalue() == "[my-repo                 ] no new commits\n"


def test_compact_line_truncates_long_names():
    name = "this-is-a-very-long-repository-name"
    console, buffer = make_console()
    formatter = CompactFormatter(console, FetchCommand(), targets(name), ROOT)

    formatter.print_result(Target(ROOT / name), make_output("", "From x\n"))

    assert buffer.getvalue().startswith("[this-is-a-very-long-rep...] ")


def test_compact_line_reports_failures():
    console, buffer = make_console()
    formatter = CompactFormatter(console, FetchCommand(), targets("a", "b"), ROOT)

    formatter.print_result(Target(ROOT / "a"), make_output("", "fatal: no remote\nmore\n", False))
    formatter.print_result(Target(ROOT / "b"), LaunchFailure("No such file or directory"))

    lines = buffer.getvalue().splitlines()
    assert lines[0].endswith("] ERROR: fatal: no remote")
    assert lines[1].endswith("] ERROR: spawn failed: No such file or directory")


def test_display_name_override_and_relative_paths():
    console, buffer = make_console()
    fleet = [Target(ROOT / "nested" / "api"), Target(ROOT / "web", display_name="frontend")]
    formatter = CompactFormatter(console, FetchCommand(), fleet, ROOT)

    for target in fleet:
        formatter.print_result(target, make_output())

    lines = buffer.getvalue().splitlines()
    assert lines[0].startswith("[nested/api ")
    assert lines[1].startswith("[frontend ")


def test_table_lines_are_aligned():
    console, buffer = make_console()
    fleet = targets("short", "a-longer-repo-name", "mid-length")
    branches = dict(zip((t.path for t in fleet), ("main", "develop", "main")))
    formatter = TableFormatter(console, StatusCommand(), fleet, ROOT, branches=branches)

    formatter.print_result(fleet[0], make_output("## main\n"))
    formatter.print_result(fleet[1], make_output("## develop...origin/develop [ahead 1]\n"))
    formatter.print_result(fleet[2], make_output("## main\n M a.txt\n"))

    lines = buffer.getvalue().splitlines()
    assert lines == [
        f"{'short':<18} | {'main':<7} | clean",
        f"{'a-longer-repo-name':<18} | {'develop':<7} | clean, 1 ahead",
        f"{'mid-length':<18} | {'main':<7} | 1 modified",
    ]


def test_table_falls_back_to_head_branch_on_failure():
    console, buffer = make_console()
    fleet = targets("broken")
    formatter = TableFormatter(
        console, StatusCommand(), fleet, ROOT, branches={fleet[0].path: "trunk"}
    )

    formatter.print_result(fleet[0], make_output("", "fatal: bad index file\n", False))

    assert buffer.getvalue() == "broken   | trunk  | ERROR: fatal: bad index file\n"


def test_raw_formatter_forwards_bytes_verbatim():
    console, _ = make_console()
    stdout, stderr = io.BytesIO(), io.BytesIO()
    fleet = targets("a", "b")
    formatter = RawFormatter(
        console, PassthroughCommand(["log"]), fleet, ROOT, stdout=stdout, stderr=stderr
    )

    formatter.print_result(fleet[0], make_output("abc123 first\n", "warning: a\n"))
    formatter.print_result(fleet[1], make_output("def456 second\n", "", success=False))

    assert stdout.getvalue() == b"abc123 first\ndef456 second\n"
    assert stderr.getvalue() == b"warning: a\n"


def test_raw_formatter_reports_launch_failures_on_stderr():
    console, _ = make_console()
    stdout, stderr = io.BytesIO(), io.BytesIO()
    fleet = targets("a")
    formatter = RawFormatter(
        console, PassthroughCommand(["log"]), fleet, ROOT, stdout=stdout, stderr=stderr
    )

    formatter.print_result(fleet[0], LaunchFailure("Permission denied"))

    assert stdout.getvalue() == b""
    assert stderr.getvalue() == b"fit: a: spawn failed: Permission denied\n"


def test_create_formatter_matches_report_style():
    console, _ = make_console()
    fleet = targets("a")
    assert isinstance(create_formatter(console, StatusCommand(), fleet, ROOT), TableFormatter)
    assert isinstance(create_formatter(console, FetchCommand(), fleet, ROOT), CompactFormatter)
    assert isinstance(
        create_formatter(console, PassthroughCommand(["log"]), fleet, ROOT), RawFormatter
    )
    assert isinstance(
        create_formatter(console, PassthroughCommand(["log"], raw=False), fleet, ROOT),
        CompactFormatter,
    )


def test_output_formatter_requires_print_result():
    console, _ = make_console()
    with pytest.raises(TypeError):
        OutputFormatter(console, FetchCommand(), targets("a"), ROOT)
