"""Configuration management for zagi commands."""

import argparse
import os
from dataclasses import dataclass, field
from typing import Dict, NoReturn, Optional, Tuple

from .errors import UsageError

OUTPUT_MODES = ("patch", "stat", "name_only")


def git_environment() -> Dict[str, str]:
    """Get git environment variables for deterministic, non-interactive output."""
    env = os.environ.copy()
    env.update(
        {
            "LC_ALL": "C",
            "GIT_TERMINAL_PROMPT": "0",
            "GIT_PAGER": "cat",
            "GCM_INTERACTIVE": "never",
        }
    )
    env.pop("GIT_EXTERNAL_DIFF", None)
    return env


@dataclass(frozen=True)
class DiffConfig:
    """Configuration for the ``diff`` command."""

    output_mode: str = "patch"
    staged: bool = False
    rev_spec: Optional[str] = None
    pathspecs: Tuple[str, ...] = field(default_factory=tuple)

    # The reader already has the file; only changed lines are shown.
    context_lines: int = 0

    # Rename detection threshold in percent, None disables it
    find_renames_threshold: Optional[int] = None

    cwd: str = "."

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.output_mode not in OUTPUT_MODES:
            raise ValueError(f"output_mode must be one of {', '.join(OUTPUT_MODES)}")
        if self.context_lines < 0:
            raise ValueError("context_lines cannot be negative")
        if self.find_renames_threshold is not None and not (
            0 <= self.find_renames_threshold <= 100
        ):
            raise ValueError("find_renames_threshold must be between 0 and 100")
        if self.rev_spec is not None and not self.rev_spec:
            raise ValueError("rev_spec cannot be empty")

    @property
    def git_env(self) -> Dict[str, str]:
        return git_environment()


@dataclass(frozen=True)
class CommitConfig:
    """Configuration for the ``commit`` command."""

    message: Optional[str] = None
    amend: bool = False
    stage_all: bool = False
    prompt: Optional[str] = None
    cwd: str = "."

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.message is None and not self.amend:
            raise ValueError("message is required unless amending")

    @property
    def git_env(self) -> Dict[str, str]:
        return git_environment()


class CommandParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(message, usage=self.format_usage().rstrip("\n"))
