"""zagi - an agent-friendly git front end.

Compact, line-addressed diffs and commit provenance (agent, prompt and
session transcript) stored as git notes.
"""

__version__ = "0.1.0"
__author__ = "zagi contributors"

__all__ = []
