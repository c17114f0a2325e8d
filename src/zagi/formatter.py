"""Compact text rendering of diffs for agents."""

import logging
from typing import List

from .diffpack import Diff, DiffHunk, LineOrigin

logger = logging.getLogger(__name__)

NO_CHANGES = "no changes"
MAX_STAT_BAR = 20


def format_hunk_header(path: str, start: int, lines: int) -> str:
    """``path:start`` for one line, ``path:start-end`` for a range."""
    if lines > 1:
        return f"{path}:{start}-{start + lines - 1}"
    return f"{path}:{start}"


def format_diff_line(is_addition: bool, content: str) -> str:
    prefix = "+" if is_addition else "-"
    trimmed = content.rstrip("\r\n")
    return f"{prefix} {trimmed}"


def format_stat_line(path: str, additions: int, deletions: int) -> str:
    """Format `` path | N ++--`` with the bar capped at 20 characters."""
    changes = additions + deletions
    total = min(changes, MAX_STAT_BAR)
    plus_count = (additions * total) // changes if changes > 0 else 0
    minus_count = total - plus_count
    return f" {path} | {changes} " + "+" * plus_count + "-" * minus_count


def format_stat_summary(files: int, insertions: int, deletions: int) -> str:
    summary = f" {files} files changed"
    if insertions > 0:
        summary += f", {insertions} insertions(+)"
    if deletions > 0:
        summary += f", {deletions} deletions(-)"
    return summary


def _hunk_start(hunk: DiffHunk) -> int:
    # Pure insertions report the line they follow on the old side.
    return hunk.old_start if hunk.old_start > 0 else hunk.new_start


class DiffFormatter:
    """Renders a Diff in one of the three output modes."""

    def render(self, diff: Diff, mode: str) -> List[str]:
        if mode == "stat":
            return self.render_stat(diff)
        if mode == "name_only":
            return self.render_name_only(diff)
        return self.render_patch(diff)

    def render_patch(self, diff: Diff) -> List[str]:
        """Hunk headers plus changed lines only; files separated by a blank line."""
        output: List[str] = []
        current_file = None

        for delta in diff:
            path = delta.new_path
            for hunk in delta.hunks:
                if path != current_file:
                    if output:
                        output.append("")
                    current_file = path

                output.append(
                    format_hunk_header(
                        path, _hunk_start(hunk), max(hunk.old_lines, hunk.new_lines)
                    )
                )
                for line in hunk.lines:
                    if line.origin is LineOrigin.CONTEXT:
                        continue
                    output.append(
                        format_diff_line(line.origin is LineOrigin.ADDITION, line.content)
                    )

        if not output:
            return [NO_CHANGES]
        return output

    def render_stat(self, diff: Diff) -> List[str]:
        if not diff.deltas:
            return [NO_CHANGES]

        output = []
        total_insertions = 0
        total_deletions = 0
        for delta in diff:
            additions, deletions = delta.line_stats()
            total_insertions += additions
            total_deletions += deletions
            output.append(format_stat_line(delta.new_path, additions, deletions))

        output.append(format_stat_summary(len(diff), total_insertions, total_deletions))
        logger.debug(
            "Rendered stat",
            extra={
                "files": len(diff),
                "insertions": total_insertions,
                "deletions": total_deletions,
            },
        )
        return output

    def render_name_only(self, diff: Diff) -> List[str]:
        if not diff.deltas:
            return [NO_CHANGES]
        return [delta.new_path for delta in diff]
