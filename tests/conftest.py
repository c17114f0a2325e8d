"""Pytest configuration and fixtures for zagi tests."""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Generator

import pytest

AGENT_VARIABLES = (
    "CLAUDECODE",
    "OPENCODE",
    "ZAGI_AGENT",
    "ZAGI_AGENT_CMD",
    "ZAGI_STRIP_COAUTHORS",
    "VSCODE_GIT_ASKPASS_NODE",
)

GIT_IDENTITY = {
    "GIT_AUTHOR_NAME": "Test User",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test User",
    "GIT_COMMITTER_EMAIL": "test@example.com",
}


@pytest.fixture(autouse=True)
def clean_agent_env(monkeypatch):
    """Keep the agent environment of whoever runs the tests out of them."""
    for name in AGENT_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    for name, value in GIT_IDENTITY.items():
        monkeypatch.setenv(name, value)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp(prefix="zagi_test_"))
    try:
        yield temp_path
    finally:
        if temp_path.exists():
            shutil.rmtree(temp_path, ignore_errors=True)


class GitRepoHelper:
    """Helper class for git repository operations in tests."""

    def __init__(self, repo_path: Path):
        self.repo_path = repo_path
        self.env = os.environ.copy()
        self.env.update(GIT_IDENTITY)

    def run_git(self, args: list[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run git command in the repository."""
        return subprocess.run(
            ["git"] + args,
            cwd=self.repo_path,
            env=self.env,
            check=check,
            capture_output=True,
            text=True,
        )

    def create_file(self, path: str, content: str) -> None:
        """Create a file with content."""
        file_path = self.repo_path / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)

    def modify_file(self, path: str, content: str) -> None:
        """Modify an existing file."""
        self.create_file(path, content)

    def delete_file(self, path: str) -> None:
        """Delete a file."""
        file_path = self.repo_path / path
        if file_path.exists():
            file_path.unlink()

    def stage(self, *paths: str) -> None:
        self.run_git(["add", "--"] + list(paths))

    def add_and_commit(self, message: str, files: list[str] = None) -> str:
        """Add files and create a commit, return commit SHA."""
        if files:
            for file in files:
                self.run_git(["add", file])
        else:
            self.run_git(["add", "-A"])

        self.run_git(["commit", "-m", message])
        return self.get_current_sha()

    def get_current_sha(self) -> str:
        """Get current commit SHA."""
        result = self.run_git(["rev-parse", "HEAD"])
        return result.stdout.strip()

    def commit_count(self) -> int:
        result = self.run_git(["rev-list", "--count", "HEAD"])
        return int(result.stdout.strip())

    def note(self, ref: str, commit: str = "HEAD") -> str:
        result = self.run_git(["notes", f"--ref={ref}", "show", commit], check=False)
        return result.stdout if result.returncode == 0 else ""


def _init_repo(repo_path: Path) -> GitRepoHelper:
    repo_path.mkdir()
    helper = GitRepoHelper(repo_path)
    helper.run_git(["init"])
    helper.run_git(["config", "user.name", "Test User"])
    helper.run_git(["config", "user.email", "test@example.com"])
    helper.run_git(["config", "commit.gpgsign", "false"])
    return helper


@pytest.fixture
def empty_repo(temp_dir: Path) -> Path:
    """A freshly initialised repository without commits."""
    _init_repo(temp_dir / "empty_repo")
    return temp_dir / "empty_repo"


@pytest.fixture
def git_repo(temp_dir: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository with one commit."""
    repo_path = temp_dir / "test_repo"
    helper = _init_repo(repo_path)

    helper.create_file("README.md", "# Test Repository\n")
    helper.add_and_commit("Initial commit", ["README.md"])

    yield repo_path


@pytest.fixture
def git_helper(git_repo: Path) -> GitRepoHelper:
    """Create a git repository helper."""
    return GitRepoHelper(git_repo)


@pytest.fixture
def empty_helper(empty_repo: Path) -> GitRepoHelper:
    """Helper bound to the repository without commits."""
    return GitRepoHelper(empty_repo)
