"""Main CLI entry point for zagi."""

import argparse
import logging
import os
import subprocess
import sys
from typing import List, Optional, Sequence

from .commit import CommitOrchestrator, parse_commit_args
from .config import CommandParser, DiffConfig
from .diffpack import DiffEngine, DiffSource
from .errors import (
    NothingToCommitError,
    UnsupportedFlagError,
    UsageError,
    ZagiError,
)
from .formatter import DiffFormatter
from .logging_utils import configure_logging
from .revision import RevisionResolver, parse_revision_spec
from .vcs import GitRepository, encode_output

logger = logging.getLogger(__name__)

USAGE = "usage: zagi <git-command> [args...]"

DIFF_USAGE = "git diff [--staged] [--stat] [--name-only] [<commit>] [-- <path>...]"

DIFF_EPILOG = """
Examples:
  git diff                    Show unstaged changes
  git diff --staged           Show staged changes
  git diff --stat             Show summary of changes
  git diff --name-only        List changed files
  git diff HEAD~2..HEAD       Show changes between commits
  git diff main...feature     Show changes on feature since it left main
"""


def create_diff_parser() -> argparse.ArgumentParser:
    """Create the ``diff`` argument parser."""
    parser = CommandParser(
        prog="zagi diff",
        usage=DIFF_USAGE,
        description="Show changes in working tree, staging area, or between commits.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=DIFF_EPILOG,
        allow_abbrev=False,
    )
    parser.add_argument(
        "--staged",
        "--cached",
        dest="staged",
        action="store_true",
        help="Show staged changes (what will be committed)",
    )
    parser.add_argument(
        "--stat",
        dest="output_mode",
        action="store_const",
        const="stat",
        default="patch",
        help="Show diffstat (files changed, insertions, deletions)",
    )
    parser.add_argument(
        "--name-only",
        dest="output_mode",
        action="store_const",
        const="name_only",
        help="Show only names of changed files",
    )
    return parser


def parse_diff_args(argv: Sequence[str], cwd: str = ".") -> DiffConfig:
    """Parse ``diff`` arguments into a DiffConfig.

    Arguments after ``--`` are always paths. Before it, an argument naming an
    existing file or directory is a path and anything else is the revision.
    """
    argv = list(argv)
    after_separator: List[str] = []
    if "--" in argv:
        idx = argv.index("--")
        argv, after_separator = argv[:idx], argv[idx + 1:]

    args, extras = create_diff_parser().parse_known_args(argv)

    unsupported = [arg for arg in extras if arg.startswith("-")]
    if unsupported:
        raise UnsupportedFlagError(unsupported)

    rev_spec = None
    pathspecs = []
    for arg in extras:
        if os.path.lexists(os.path.join(cwd, arg)):
            pathspecs.append(arg)
        else:
            rev_spec = arg
    pathspecs.extend(after_separator)

    return DiffConfig(
        output_mode=args.output_mode,
        staged=args.staged,
        rev_spec=rev_spec,
        pathspecs=tuple(pathspecs),
        cwd=cwd,
    )


def run_diff(config: DiffConfig) -> List[str]:
    """Compute and render the diff described by config."""
    with GitRepository(config.cwd, env=config.git_env) as repo:
        engine = DiffEngine(
            repo,
            context_lines=config.context_lines,
            find_renames_threshold=config.find_renames_threshold,
        )
        if config.rev_spec:
            trees = RevisionResolver(repo).resolve(parse_revision_spec(config.rev_spec))
            diff = engine.compute(DiffSource.TREES, config.pathspecs, trees)
        elif config.staged:
            diff = engine.compute(DiffSource.STAGED, config.pathspecs)
        else:
            diff = engine.compute(DiffSource.WORKDIR, config.pathspecs)

    return DiffFormatter().render(diff, config.output_mode)


def passthrough(argv: Sequence[str]) -> int:
    """Hand the raw command to git and return its exit code."""
    logger.debug("Passing command through to git", extra={"git_args": list(argv)})
    try:
        return subprocess.run(["git"] + list(argv)).returncode
    except OSError as e:
        print(f"error: cannot run git: {e}", file=sys.stderr)
        return 1


def _print_lines(lines: Sequence[str], stream=None) -> None:
    """Write lines, restoring bytes that git printed but UTF-8 could not decode."""
    stream = stream or sys.stdout
    buffer = getattr(stream, "buffer", None)
    if buffer is None:
        for line in lines:
            print(line, file=stream)
        return

    stream.flush()
    for line in lines:
        buffer.write(encode_output(line) + b"\n")
    buffer.flush()


def _report_error(error: ZagiError) -> None:
    print(f"error: {error.message}", file=sys.stderr)
    if isinstance(error, UsageError):
        if error.hint:
            print(f"hint: {error.hint}", file=sys.stderr)
        if error.usage:
            print(error.usage, file=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    configure_logging()
    argv = list(sys.argv[1:] if argv is None else argv)

    if not argv:
        print(USAGE, file=sys.stderr)
        print("\nzagi passes commands through to git, except:", file=sys.stderr)
        print("  diff    compact, line-addressed diffs", file=sys.stderr)
        print("  commit  commits with agent, prompt and session notes", file=sys.stderr)
        return 1

    command, args = argv[0], argv[1:]
    cwd = os.getcwd()

    try:
        if command == "diff":
            _print_lines(run_diff(parse_diff_args(args, cwd)))
        elif command == "commit":
            config = parse_commit_args(args, cwd)
            result = CommitOrchestrator().run(config)
            _print_lines(result.output_lines())
        else:
            return passthrough(argv)
        return 0

    except UnsupportedFlagError as e:
        logger.info("Delegating to git", extra={"flags": e.flags})
        return passthrough(argv)

    except NothingToCommitError as e:
        _print_lines(e.hint_lines)
        _report_error(e)
        return 1

    except ZagiError as e:
        logger.debug("Command failed", extra={"code": e.code, "details": e.details})
        _report_error(e)
        return 1

    except SystemExit as e:
        # argparse exits after printing --help
        return e.code if isinstance(e.code, int) else 0

    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        print(f"error: internal error: {e}", file=sys.stderr)
        return 1


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
