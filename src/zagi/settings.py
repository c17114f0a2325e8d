"""Application-wide settings and environment loading."""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv(override=False)
logger.debug("Environment variables loaded from .env if present")

# Custom agent signal; any non-empty value turns on agent mode.
AGENT_ENV = "ZAGI_AGENT"
STRIP_COAUTHORS_ENV = "ZAGI_STRIP_COAUTHORS"

# Set by the parent process of the respective CLI agents.
CLAUDE_SIGNAL_ENV = "CLAUDECODE"
OPENCODE_SIGNAL_ENV = "OPENCODE"

# Path to the node binary of the editor that spawned us (VS Code and forks).
IDE_ASKPASS_ENV = "VSCODE_GIT_ASKPASS_NODE"


class Environment:
    """Read-only view over process environment variables.

    Lookups go to the wrapped mapping on every call. Without an explicit
    mapping the live ``os.environ`` is used, so changes made by the process
    are always visible.
    """

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values = values

    @property
    def values(self) -> Mapping[str, str]:
        return os.environ if self._values is None else self._values

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(name, default)

    def is_set(self, name: str) -> bool:
        """Return True if the variable exists, even when empty."""
        return name in self.values

    def is_non_empty(self, name: str) -> bool:
        return bool(self.values.get(name))

    @property
    def home(self) -> Optional[Path]:
        home = self.values.get("HOME")
        if not home:
            logger.debug("HOME is not set")
            return None
        return Path(home)

    def strip_coauthors(self) -> bool:
        return self.is_non_empty(STRIP_COAUTHORS_ENV)
