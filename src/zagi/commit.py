"""The ``commit`` command: create commits and record their provenance."""

import argparse
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .config import CommandParser, CommitConfig
from .detect import AgentDetector
from .diffpack import DiffEngine, DiffStats
from .errors import (
    NothingToCommitError,
    UnsupportedFlagError,
    UsageError,
    ZagiError,
)
from .provenance import NoteKind, ProvenanceNote, ProvenanceRecorder
from .settings import Environment
from .vcs import GitRepository, StatusEntry

logger = logging.getLogger(__name__)

USAGE = "git commit -m <message> [-a] [--amend] [--prompt <text>]"

HELP_EPILOG = """
Environment:
  ZAGI_STRIP_COAUTHORS=1   Remove Co-Authored-By lines from message

Agent mode requires --prompt when agent is detected.
"""

CO_AUTHOR_MARKER = "co-authored-by:"
MAX_UNSTAGED_SHOWN = 10


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = CommandParser(
        prog="zagi commit",
        usage=USAGE,
        description="Create a commit from staged changes.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=HELP_EPILOG,
        allow_abbrev=False,
    )
    parser.add_argument(
        "-m",
        "--message",
        help="Commit message (required unless --amend)",
    )
    parser.add_argument(
        "-a",
        "--all",
        dest="stage_all",
        action="store_true",
        help="Stage all modified tracked files before commit",
    )
    parser.add_argument(
        "--amend",
        action="store_true",
        help="Amend the previous commit",
    )
    parser.add_argument(
        "--prompt",
        help="Store the complete user prompt that created this commit",
    )
    return parser


def parse_commit_args(argv: Sequence[str], cwd: str = ".") -> CommitConfig:
    """Parse ``commit`` arguments into a CommitConfig.

    Raises:
        UnsupportedFlagError: a flag outside the supported subset was given.
        UsageError: the message is missing or a flag lacks its value.
    """
    parser = create_parser()
    args, extras = parser.parse_known_args(list(argv))

    unsupported = [arg for arg in extras if arg.startswith("-")]
    if unsupported:
        raise UnsupportedFlagError(unsupported)

    if args.message is None and not args.amend:
        raise UsageError("missing commit message", usage=parser.format_usage().rstrip("\n"))

    return CommitConfig(
        message=args.message,
        amend=args.amend,
        stage_all=args.stage_all,
        prompt=args.prompt,
        cwd=cwd,
    )


def strip_co_authors(message: str) -> str:
    """Drop co-author trailer lines and trim trailing whitespace.

    Messages without such lines are returned as given.
    """
    lines = message.split("\n")
    kept = [
        line
        for line in lines
        if not line.lstrip(" \t").lower().startswith(CO_AUTHOR_MARKER)
    ]
    if len(kept) == len(lines):
        return message
    return "\n".join(kept).rstrip(" \t\n")


def format_commit_output(
    short_id: str, message: str, stats: DiffStats, prompt_saved: bool = False
) -> List[str]:
    lines = [f'committed: {short_id} "{message}"']
    if stats.files_changed > 0:
        plural = "" if stats.files_changed == 1 else "s"
        lines.append(
            f"  {stats.files_changed} file{plural}, +{stats.insertions} -{stats.deletions}"
        )
    if prompt_saved:
        lines.append("  prompt saved")
    return lines


def format_unstaged_hint(entries: List[StatusEntry]) -> List[str]:
    if not entries:
        return []
    lines = ["hint: did you mean to add?", "unstaged:"]
    for entry in entries[:MAX_UNSTAGED_SHOWN]:
        lines.append(f"  {entry.code} {entry.path}")
    if len(entries) > MAX_UNSTAGED_SHOWN:
        lines.append(f"  ... and {len(entries) - MAX_UNSTAGED_SHOWN} more")
    return lines


@dataclass
class CommitResult:
    """Outcome of a successful commit."""

    commit_id: str
    message: str
    stats: DiffStats
    prompt_saved: bool = False

    @property
    def short_id(self) -> str:
        return self.commit_id[:7]

    def output_lines(self) -> List[str]:
        return format_commit_output(
            self.short_id, self.message.rstrip("\n"), self.stats, self.prompt_saved
        )


class CommitOrchestrator:
    """Runs a commit from argument validation to the stats report."""

    def __init__(self, env: Optional[Environment] = None):
        self.env = env or Environment()
        self.detector = AgentDetector(self.env)

    def run(self, config: CommitConfig) -> CommitResult:
        """Create (or amend) a commit from the index.

        Raises:
            UsageError: agent mode without a prompt, or amend without HEAD.
            NothingToCommitError: the index matches HEAD.
            ZagiError: any failure reported by git.
        """
        if self.detector.is_agent_mode() and config.prompt is None:
            raise UsageError(
                "--prompt required in agent mode",
                hint="use --prompt to record the prompt that created this commit",
            )

        with GitRepository(config.cwd, env=config.git_env) as repo:
            if config.stage_all:
                repo.update_tracked()

            head = repo.head_commit()
            tree = repo.write_tree()
            head_tree = repo.resolve_tree(head) if head else None

            if head_tree is not None and not config.amend and tree == head_tree:
                logger.info("Index matches HEAD", extra={"tree": tree})
                raise NothingToCommitError(format_unstaged_hint(repo.workdir_status()))

            commit_id, message = self._build_commit(repo, config, head, tree)

            prompt_saved = False
            if config.prompt is not None:
                written = self._record_provenance(repo, commit_id, config)
                prompt_saved = any(note.kind is NoteKind.PROMPT for note in written)

            stats = self._report_stats(repo, head_tree, tree)

        logger.info(
            "Created commit",
            extra={"commit": commit_id, "amend": config.amend, "files": stats.files_changed},
        )
        return CommitResult(commit_id, message, stats, prompt_saved)

    def _build_commit(
        self, repo: GitRepository, config: CommitConfig, head: Optional[str], tree: str
    ) -> Tuple[str, str]:
        if config.amend:
            if head is None:
                raise UsageError("nothing to amend: no commits yet")
            previous = repo.read_commit(head)
            message = config.message if config.message is not None else previous.message
            message = self._sanitize(message)
            commit_id = repo.create_commit(tree, message, previous.parents, author=previous)
            reflog = "commit (amend): "
        else:
            message = self._sanitize(config.message)
            commit_id = repo.create_commit(tree, message, [head] if head else [])
            reflog = "commit: " if head else "commit (initial): "

        subject = message.split("\n", 1)[0]
        repo.update_head(commit_id, head, reflog + subject)
        return commit_id, message

    def _sanitize(self, message: str) -> str:
        if self.env.strip_coauthors():
            return strip_co_authors(message)
        return message

    def _record_provenance(
        self, repo: GitRepository, commit_id: str, config: CommitConfig
    ) -> List[ProvenanceNote]:
        agent = self.detector.detect()
        session = self.detector.read_session(agent, os.path.realpath(config.cwd))
        return ProvenanceRecorder(repo).record(commit_id, config.prompt, agent, session)

    def _report_stats(
        self, repo: GitRepository, old_tree: Optional[str], new_tree: str
    ) -> DiffStats:
        try:
            return DiffEngine(repo).stats_between(old_tree, new_tree)
        except ZagiError as e:
            logger.warning(
                "Could not compute commit stats",
                extra={"code": e.code, "reason": e.message},
            )
            return DiffStats()
