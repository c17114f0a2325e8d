"""Diff computation and parsing into file deltas and hunks."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple

from .errors import StatusFailedError
from .revision import ComparisonTrees
from .vcs import GitRepository

logger = logging.getLogger(__name__)


class DiffSource(str, Enum):
    """What the diff compares."""

    WORKDIR = "workdir"  # index vs. working tree
    STAGED = "staged"  # HEAD vs. index
    TREES = "trees"  # tree vs. tree


class LineOrigin(str, Enum):
    CONTEXT = " "
    ADDITION = "+"
    DELETION = "-"


class DeltaStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


@dataclass
class DiffLine:
    """One line of a hunk, stored as git printed it (without the newline)."""

    origin: LineOrigin
    content: str


@dataclass
class DiffHunk:
    """Represents a single diff hunk."""

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: List[DiffLine] = field(default_factory=list)

    @property
    def added(self) -> int:
        return sum(1 for line in self.lines if line.origin is LineOrigin.ADDITION)

    @property
    def deleted(self) -> int:
        return sum(1 for line in self.lines if line.origin is LineOrigin.DELETION)


@dataclass
class DiffDelta:
    """One changed path.

    Both paths are always set; for added and deleted files they are equal.
    """

    old_path: str
    new_path: str
    status: DeltaStatus = DeltaStatus.MODIFIED
    is_binary: bool = False
    hunks: List[DiffHunk] = field(default_factory=list)

    def line_stats(self) -> Tuple[int, int]:
        """Return (insertions, deletions) for this file."""
        added = 0
        deleted = 0
        for hunk in self.hunks:
            added += hunk.added
            deleted += hunk.deleted
        return added, deleted


@dataclass
class DiffStats:
    """Aggregate change counts over a diff."""

    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0


@dataclass
class Diff:
    """Ordered list of file deltas."""

    deltas: List[DiffDelta] = field(default_factory=list)

    def __iter__(self) -> Iterator[DiffDelta]:
        return iter(self.deltas)

    def __len__(self) -> int:
        return len(self.deltas)

    def stats(self) -> DiffStats:
        stats = DiffStats(files_changed=len(self.deltas))
        for delta in self.deltas:
            added, deleted = delta.line_stats()
            stats.insertions += added
            stats.deletions += deleted
        return stats


def _unquote_path(path: str) -> str:
    """Undo git's C-style quoting of unusual path names."""
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path
    body = path[1:-1]
    raw = body.encode("latin-1", errors="backslashreplace").decode("unicode_escape")
    try:
        return raw.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return raw


def _strip_prefix(path: str, prefix: str) -> str:
    path = _unquote_path(path)
    return path[len(prefix):] if path.startswith(prefix) else path


class DiffProcessor:
    """Parses unified diff output into Diff/DiffDelta/DiffHunk values."""

    def __init__(self):
        """Initialize diff processor."""
        self.hunk_header_pattern = re.compile(
            r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@"
        )

    def parse(self, unified_diff: str) -> Diff:
        """Parse the output of ``git diff`` with ``a/`` and ``b/`` prefixes."""
        diff = Diff()
        delta: Optional[DiffDelta] = None
        hunk: Optional[DiffHunk] = None
        old_remaining = 0
        new_remaining = 0

        for line in unified_diff.split("\n"):
            # Inside a hunk the counts decide; content may look like a header.
            if hunk is not None and (old_remaining > 0 or new_remaining > 0):
                if line.startswith("+") and new_remaining > 0:
                    hunk.lines.append(DiffLine(LineOrigin.ADDITION, line[1:]))
                    new_remaining -= 1
                    continue
                if line.startswith("-") and old_remaining > 0:
                    hunk.lines.append(DiffLine(LineOrigin.DELETION, line[1:]))
                    old_remaining -= 1
                    continue
                if line.startswith(" ") and old_remaining > 0 and new_remaining > 0:
                    hunk.lines.append(DiffLine(LineOrigin.CONTEXT, line[1:]))
                    old_remaining -= 1
                    new_remaining -= 1
                    continue
                if line.startswith("\\"):
                    continue

            if line.startswith("diff --git "):
                delta = self._start_delta(line)
                diff.deltas.append(delta)
                hunk = None
                continue

            if delta is None or line.startswith("\\"):
                continue

            header_match = self.hunk_header_pattern.match(line)
            if header_match:
                hunk = DiffHunk(
                    old_start=int(header_match.group(1)),
                    old_lines=int(header_match.group(2) or "1"),
                    new_start=int(header_match.group(3)),
                    new_lines=int(header_match.group(4) or "1"),
                )
                delta.hunks.append(hunk)
                old_remaining = hunk.old_lines
                new_remaining = hunk.new_lines
                continue

            if hunk is None:
                self._apply_extended_header(delta, line)

        logger.debug(
            "Parsed unified diff",
            extra={
                "deltas": len(diff.deltas),
                "hunks": sum(len(d.hunks) for d in diff.deltas),
            },
        )
        return diff

    def _start_delta(self, line: str) -> DiffDelta:
        """Guess paths from ``diff --git a/X b/Y``; later headers refine them."""
        rest = line[len("diff --git "):]
        if rest.startswith('"'):
            end = rest.find('" ', 1)
            old_raw, new_raw = rest[: end + 1], rest[end + 2:]
        elif rest.startswith("a/") and (len(rest) - 5) % 2 == 0:
            # Unrenamed entries repeat the same path on both sides.
            half = (len(rest) - 5) // 2
            old_raw, new_raw = rest[: half + 2], rest[half + 3:]
        else:
            old_raw, _, new_raw = rest.partition(" b/")
            new_raw = "b/" + new_raw
        old_path = _strip_prefix(old_raw, "a/")
        new_path = _strip_prefix(new_raw, "b/")
        return DiffDelta(old_path=old_path, new_path=new_path)

    def _apply_extended_header(self, delta: DiffDelta, line: str) -> None:
        if line.startswith("new file mode"):
            delta.status = DeltaStatus.ADDED
        elif line.startswith("deleted file mode"):
            delta.status = DeltaStatus.DELETED
        elif line.startswith("rename from "):
            delta.status = DeltaStatus.RENAMED
            delta.old_path = _unquote_path(line[len("rename from "):])
        elif line.startswith("rename to "):
            delta.status = DeltaStatus.RENAMED
            delta.new_path = _unquote_path(line[len("rename to "):])
        elif line.startswith("--- ") and line[4:] != "/dev/null":
            delta.old_path = _strip_prefix(line[4:], "a/")
        elif line.startswith("+++ ") and line[4:] != "/dev/null":
            delta.new_path = _strip_prefix(line[4:], "b/")
        elif line.startswith("Binary files ") or line == "GIT binary patch":
            delta.is_binary = True

        if delta.status is DeltaStatus.ADDED:
            delta.old_path = delta.new_path
        elif delta.status is DeltaStatus.DELETED:
            delta.new_path = delta.old_path


class DiffEngine:
    """Computes zero-context diffs through the repository."""

    def __init__(
        self,
        repo: GitRepository,
        context_lines: int = 0,
        find_renames_threshold: Optional[int] = None,
    ):
        self.repo = repo
        self.context_lines = context_lines
        self.find_renames_threshold = find_renames_threshold
        self.processor = DiffProcessor()

    def compute(
        self,
        source: DiffSource,
        pathspecs: Sequence[str] = (),
        trees: Optional[ComparisonTrees] = None,
    ) -> Diff:
        """Diff the selected source, optionally limited to pathspecs.

        Raises:
            StatusFailedError: git could not produce the diff.
        """
        args = [
            f"--unified={self.context_lines}",
            "--src-prefix=a/",
            "--dst-prefix=b/",
        ]
        if self.find_renames_threshold is None:
            args.append("--no-renames")
        else:
            args.append(f"--find-renames={self.find_renames_threshold}%")

        if source is DiffSource.STAGED:
            args.append("--cached")
        elif source is DiffSource.TREES:
            if trees is None:
                raise ValueError("tree comparison requires resolved trees")
            args.extend([trees.old_tree, trees.new_tree])

        args.append("--")
        args.extend(pathspecs)

        logger.debug(
            "Computing diff",
            extra={"source": source.value, "pathspecs": list(pathspecs)},
        )
        result = self.repo.diff(args)
        if result.returncode != 0:
            raise StatusFailedError(result.stderr, operation="diff")
        return self.processor.parse(result.stdout)

    def stats_between(self, old_tree: Optional[str], new_tree: str) -> DiffStats:
        """Change counts between two trees; a missing old tree means empty."""
        trees = ComparisonTrees(
            old_tree=old_tree or self.repo.empty_tree(),
            new_tree=new_tree,
        )
        return self.compute(DiffSource.TREES, trees=trees).stats()
