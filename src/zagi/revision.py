"""Revision-spec parsing and tree resolution."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .vcs import GitRepository

logger = logging.getLogger(__name__)

DEFAULT_REVISION = "HEAD"


class RevisionMode(str, Enum):
    """How the two sides of a revision spec relate."""

    SINGLE = "single"
    RANGE = "range"
    MERGE_BASE_RANGE = "merge_base_range"


@dataclass(frozen=True)
class RevisionSpec:
    """A parsed ``A``, ``A..B`` or ``A...B`` argument."""

    left: str
    right: Optional[str]
    mode: RevisionMode


@dataclass(frozen=True)
class ComparisonTrees:
    """Tree ids for the old and new side of a diff."""

    old_tree: str
    new_tree: str


def parse_revision_spec(spec: str) -> RevisionSpec:
    """Split a revision argument into its endpoints.

    ``...`` is looked for before ``..`` because the shorter separator is also
    a substring of the longer one.
    """
    pos = spec.find("...")
    if pos != -1:
        return RevisionSpec(spec[:pos], spec[pos + 3:], RevisionMode.MERGE_BASE_RANGE)

    pos = spec.find("..")
    if pos != -1:
        return RevisionSpec(spec[:pos], spec[pos + 2:], RevisionMode.RANGE)

    return RevisionSpec(spec, None, RevisionMode.SINGLE)


class RevisionResolver:
    """Resolves parsed revision specs to trees through the repository."""

    def __init__(self, repo: GitRepository):
        self.repo = repo

    def resolve(self, spec: RevisionSpec) -> ComparisonTrees:
        """Resolve both sides of a spec.

        A single revision and an omitted right side both mean ``HEAD``. For
        ``A...B`` the left tree is the merge base of A and B, which yields the
        changes made on B since it diverged from A.

        Raises:
            RevwalkFailedError: a revision or the merge base cannot be found.
        """
        left = spec.left or DEFAULT_REVISION
        right = spec.right or DEFAULT_REVISION

        if spec.mode is RevisionMode.MERGE_BASE_RANGE:
            left_commit = self.repo.resolve_commit(left)
            right_commit = self.repo.resolve_commit(right)
            base = self.repo.merge_base(left_commit, right_commit)
            old_tree = self.repo.resolve_tree(base)
            logger.debug(
                "Resolved merge base",
                extra={"left": left, "right": right, "merge_base": base},
            )
        else:
            old_tree = self.repo.resolve_tree(left)

        new_tree = self.repo.resolve_tree(right)
        logger.debug(
            "Resolved revision spec",
            extra={"mode": spec.mode.value, "old_tree": old_tree, "new_tree": new_tree},
        )
        return ComparisonTrees(old_tree=old_tree, new_tree=new_tree)
