"""Shared test fixtures."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from git_fit.core import ProcessOutput

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def make_output(stdout: str = "", stderr: str = "", success: bool = True) -> ProcessOutput:
    return ProcessOutput(
        returncode=0 if success else 128,
        stdout=stdout.encode(),
        stderr=stderr.encode(),
    )


def make_fake_repo(root: Path, name: str, branch: str = "main") -> Path:
    """Directory that looks like a repository to discovery, without running git."""
    repo = root / name
    (repo / ".git").mkdir(parents=True)
    (repo / ".git" / "HEAD").write_text(f"ref: refs/heads/{branch}\n")
    return repo


def git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), "-c", "user.name=fit", "-c", "user.email=fit@example.com", *args],
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


def init_repo(root: Path, name: str) -> Path:
    """Real repository on branch ``main`` with one commit."""
    repo = root / name
    repo.mkdir(parents=True)
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    (repo / "README.md").write_text(f"# {name}\n")
    git(repo, "add", "README.md")
    git(repo, "commit", "-q", "-m", f"{name}-commit")
    return repo


@pytest.fixture()
def workspace(tmp_path, monkeypatch) -> Path:
    """Empty directory that is the working directory for the test."""
    monkeypatch.chdir(tmp_path)
    return tmp_path
