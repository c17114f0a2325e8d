"""Version control system operations for zagi."""

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .config import git_environment
from .errors import (
    AddFailedError,
    CommitFailedError,
    IndexWriteFailedError,
    InitFailedError,
    NotARepositoryError,
    RevwalkFailedError,
)

logger = logging.getLogger(__name__)

MIN_GIT_VERSION = (2, 30)

OUTPUT_ENCODING = "utf-8"
OUTPUT_ERRORS = "surrogateescape"


def decode_output(data: bytes) -> str:
    """Decode git output; undecodable bytes become lone surrogates."""
    return data.decode(OUTPUT_ENCODING, OUTPUT_ERRORS)


def encode_output(text: str) -> bytes:
    """Inverse of decode_output: restores the original bytes."""
    return text.encode(OUTPUT_ENCODING, OUTPUT_ERRORS)


@dataclass
class StatusEntry:
    """A working tree change not yet in the index."""

    code: str  # "??", " M" or " D"
    path: str


@dataclass
class CommitInfo:
    """The parts of a commit object needed to amend it."""

    oid: str
    tree: str
    parents: List[str]
    message: str
    author_name: str
    author_email: str
    author_date: str


class GitRepository:
    """Git repository operations scoped to a single command invocation."""

    def __init__(self, path: str = ".", env: Optional[Dict[str, str]] = None):
        """Initialize with the directory the command runs in."""
        self.path = Path(path)
        self.env = env if env is not None else git_environment()
        self.git_dir: Optional[Path] = None
        self._git_version: Optional[str] = None
        self._empty_tree: Optional[str] = None

    def __enter__(self) -> "GitRepository":
        """Context manager entry: check the engine and open the repository."""
        self.validate_git_version()
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit; drop everything resolved during the invocation."""
        logger.debug(
            "Releasing repository handle",
            extra={"path": str(self.path), "failed": exc_type is not None},
        )
        self.git_dir = None
        self._empty_tree = None

    def _run_git(
        self,
        args: List[str],
        check: bool = True,
        input: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        """Run git command with the pinned environment.

        Output is decoded as UTF-8 with ``surrogateescape`` and without newline
        translation, so bytes that are not valid UTF-8 (and lone carriage
        returns) survive a round trip through ``encode_output``.
        """
        cmd = [
            "git",
            "-c",
            "core.quotepath=false",
            "-c",
            "color.ui=false",
            "-c",
            "diff.noprefix=false",
            "-c",
            "diff.mnemonicPrefix=false",
        ] + args
        logger.debug("Running git", extra={"git_args": args})
        result = subprocess.run(
            cmd,
            cwd=self.path,
            env=env or self.env,
            input=encode_output(input) if input is not None else None,
            capture_output=True,
        )
        stdout = decode_output(result.stdout)
        stderr = decode_output(result.stderr)
        if check and result.returncode != 0:
            raise subprocess.CalledProcessError(
                result.returncode, cmd, output=stdout, stderr=stderr
            )
        return subprocess.CompletedProcess(cmd, result.returncode, stdout, stderr)

    def validate_git_version(self) -> str:
        """Validate git version meets minimum requirements."""
        if self._git_version:
            return self._git_version

        try:
            result = subprocess.run(
                ["git", "--version"],
                capture_output=True,
                text=True,
                check=True,
                env=self.env,
            )
        except (OSError, subprocess.CalledProcessError) as e:
            raise InitFailedError("unavailable") from e

        # "git version 2.34.1" or "git version 2.39.3 (Apple Git-145)"
        match = re.search(r"git version (\d+)\.(\d+)", result.stdout)
        if not match:
            raise InitFailedError("unknown")

        version = (int(match.group(1)), int(match.group(2)))
        version_str = f"{version[0]}.{version[1]}"
        if version < MIN_GIT_VERSION:
            raise InitFailedError(version_str)

        self._git_version = version_str
        return version_str

    def open(self) -> Path:
        """Locate the repository containing the working directory."""
        if not self.path.is_dir():
            raise NotARepositoryError(str(self.path), "no such directory")
        result = self._run_git(["rev-parse", "--absolute-git-dir"], check=False)
        if result.returncode != 0:
            raise NotARepositoryError(str(self.path), result.stderr.strip())
        self.git_dir = Path(result.stdout.strip())
        logger.debug("Opened repository", extra={"git_dir": str(self.git_dir)})
        return self.git_dir

    # Revisions

    def _peel(self, spec: str, kind: str) -> str:
        result = self._run_git(
            ["rev-parse", "--verify", "--quiet", f"{spec}^{{{kind}}}"],
            check=False,
        )
        oid = result.stdout.strip()
        if result.returncode != 0 or not oid:
            raise RevwalkFailedError(f"unknown revision '{spec}'", operation="rev-parse")
        return oid

    def resolve_tree(self, spec: str) -> str:
        """Resolve a revision string to a tree id."""
        return self._peel(spec, "tree")

    def resolve_commit(self, spec: str) -> str:
        """Resolve a revision string to a commit id."""
        return self._peel(spec, "commit")

    def merge_base(self, left: str, right: str) -> str:
        """Return the nearest common ancestor of two commits."""
        result = self._run_git(["merge-base", left, right], check=False)
        oid = result.stdout.strip()
        if result.returncode != 0 or not oid:
            raise RevwalkFailedError(
                f"no merge base between '{left}' and '{right}'", operation="merge-base"
            )
        return oid

    def head_commit(self) -> Optional[str]:
        """Return the HEAD commit id, or None on an unborn branch."""
        result = self._run_git(
            ["rev-parse", "--verify", "--quiet", "HEAD^{commit}"], check=False
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def empty_tree(self) -> str:
        """Id of the empty tree for this repository's hash algorithm."""
        if self._empty_tree is None:
            result = self._run_git(["hash-object", "-t", "tree", "--stdin"], input="")
            self._empty_tree = result.stdout.strip()
        return self._empty_tree

    def read_commit(self, commit: str) -> CommitInfo:
        """Read tree, parents, author and message of a commit."""
        raw = self._run_git(["cat-file", "commit", commit]).stdout
        header, _, message = raw.partition("\n\n")
        tree = ""
        parents: List[str] = []
        for line in header.split("\n"):
            if line.startswith("tree "):
                tree = line[5:]
            elif line.startswith("parent "):
                parents.append(line[7:])

        fmt = self._run_git(
            ["log", "-1", "--format=%an%x00%ae%x00%ad", "--date=raw", commit]
        ).stdout.rstrip("\n")
        name, email, date = (fmt.split("\x00") + ["", "", ""])[:3]
        return CommitInfo(
            oid=commit,
            tree=tree,
            parents=parents,
            message=message,
            author_name=name,
            author_email=email,
            author_date=date,
        )

    # Index and commits

    def update_tracked(self) -> None:
        """Stage modifications and deletions of tracked files only."""
        result = self._run_git(["add", "--update"], check=False)
        if result.returncode != 0:
            raise AddFailedError(result.stderr, operation="add --update")

    def write_tree(self) -> str:
        """Serialize the index into a tree object and return its id."""
        result = self._run_git(["write-tree"], check=False)
        if result.returncode != 0:
            raise IndexWriteFailedError(result.stderr, operation="write-tree")
        return result.stdout.strip()

    def create_commit(
        self,
        tree: str,
        message: str,
        parents: Sequence[str],
        author: Optional[CommitInfo] = None,
    ) -> str:
        """Write a commit object and return its id; refs are not touched."""
        args = ["commit-tree", tree]
        for parent in parents:
            args.extend(["-p", parent])
        args.extend(["-F", "-"])

        env = None
        if author is not None:
            env = dict(self.env)
            env.update(
                {
                    "GIT_AUTHOR_NAME": author.author_name,
                    "GIT_AUTHOR_EMAIL": author.author_email,
                    "GIT_AUTHOR_DATE": author.author_date,
                }
            )

        result = self._run_git(args, check=False, input=message, env=env)
        if result.returncode != 0:
            raise CommitFailedError(result.stderr, operation="commit-tree")
        return result.stdout.strip()

    def update_head(self, new_oid: str, old_oid: Optional[str], reflog: str) -> None:
        """Move HEAD (through its branch) to new_oid if it still points at old_oid."""
        args = ["update-ref", "-m", reflog, "HEAD", new_oid]
        # An empty old value asserts the ref does not exist yet.
        args.append(old_oid or "")
        result = self._run_git(args, check=False)
        if result.returncode != 0:
            raise CommitFailedError(result.stderr, operation="update-ref")

    def workdir_status(self) -> List[StatusEntry]:
        """List untracked, modified and deleted working tree entries."""
        result = self._run_git(
            ["status", "--porcelain=v1", "-z", "--untracked-files=normal"]
        )
        entries: List[StatusEntry] = []
        tokens = result.stdout.split("\0")
        i = 0
        while i < len(tokens):
            token = tokens[i]
            i += 1
            if len(token) < 4:
                continue
            index_code, worktree_code, path = token[0], token[1], token[3:]
            if index_code in "RC":
                # Renames and copies carry the source path as the next token.
                i += 1
            if worktree_code == "?":
                entries.append(StatusEntry("??", path))
            elif worktree_code == "M":
                entries.append(StatusEntry(" M", path))
            elif worktree_code == "D":
                entries.append(StatusEntry(" D", path))
        return entries

    # Diffs and notes

    def diff(self, args: List[str]) -> subprocess.CompletedProcess:
        return self._run_git(["diff", "--no-color", "--no-ext-diff"] + args, check=False)

    def write_blob(self, payload: str) -> str:
        """Store payload as a blob object and return its id."""
        result = self._run_git(["hash-object", "-w", "--stdin"], input=payload)
        return result.stdout.strip()

    def add_note(self, ref: str, commit: str, payload: str, force: bool = False) -> None:
        """Attach payload to commit under ref, byte for byte.

        ``-m`` and ``-F`` clean up whitespace and drop empty notes; ``-C``
        attaches an existing blob unchanged.
        """
        blob = self.write_blob(payload)
        args = ["notes", f"--ref={ref}", "add", "--allow-empty"]
        if force:
            args.append("-f")
        args.extend(["-C", blob, commit])
        self._run_git(args)

    def show_note(self, ref: str, commit: str) -> Optional[str]:
        result = self._run_git(["notes", f"--ref={ref}", "show", commit], check=False)
        if result.returncode != 0:
            return None
        return result.stdout
