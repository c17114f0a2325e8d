"""Detection of the AI agent driving the current invocation."""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from .settings import (
    AGENT_ENV,
    CLAUDE_SIGNAL_ENV,
    IDE_ASKPASS_ENV,
    OPENCODE_SIGNAL_ENV,
    Environment,
)

logger = logging.getLogger(__name__)

# Checked in order; "Code" would also match inside other product names.
IDE_MARKERS = (
    ("Windsurf", "windsurf"),
    ("Cursor", "cursor"),
    ("Code", "vscode"),
)

CLAUDE_PROJECTS_DIR = Path(".claude") / "projects"
OPENCODE_MESSAGES_DIR = Path(".local") / "share" / "opencode" / "storage" / "message"


class Agent(str, Enum):
    """Known AI agents and tools."""

    CLAUDE = "claude"
    OPENCODE = "opencode"
    WINDSURF = "windsurf"
    CURSOR = "cursor"
    VSCODE = "vscode"
    VSCODE_FORK = "vscode-fork"
    TERMINAL = "terminal"


@dataclass
class Session:
    """A session transcript read from the agent's local storage."""

    source_path: Path
    transcript: str


def convert_jsonl_to_array(jsonl: str) -> str:
    """Join newline-delimited JSON records into one JSON array."""
    records = [line.strip(" \t\r") for line in jsonl.split("\n")]
    return "[" + ",".join(record for record in records if record) + "]"


def _most_recent(paths: Iterable[Path]) -> Optional[Path]:
    best: Optional[Path] = None
    best_mtime = 0.0
    for path in paths:
        try:
            mtime = path.stat().st_mtime
        except OSError:
            continue
        if best is None or mtime > best_mtime:
            best, best_mtime = path, mtime
    return best


def project_key(cwd: str) -> str:
    """Storage key for a working directory: separators become dashes.

    ``/Users/matt/src/zagi`` becomes ``-Users-matt-src-zagi``.
    """
    key = cwd.replace("/", "-")
    if os.sep != "/":
        key = key.replace(os.sep, "-")
    return key


class AgentDetector:
    """Classifies the invoking agent from environment variables."""

    def __init__(self, env: Optional[Environment] = None):
        self.env = env or Environment()

    def is_agent_mode(self) -> bool:
        """True when a native agent signal or ZAGI_AGENT is present.

        Evaluated against the environment on every call.
        """
        if self.env.is_set(CLAUDE_SIGNAL_ENV) or self.env.is_set(OPENCODE_SIGNAL_ENV):
            return True
        return self.env.is_non_empty(AGENT_ENV)

    def detect(self) -> Agent:
        # CLI tools have the most specific signals
        if self.env.is_set(CLAUDE_SIGNAL_ENV):
            return Agent.CLAUDE
        if self.env.is_set(OPENCODE_SIGNAL_ENV):
            return Agent.OPENCODE

        askpass = self.env.get(IDE_ASKPASS_ENV)
        if askpass is not None:
            for marker, name in IDE_MARKERS:
                if marker in askpass:
                    return Agent(name)
            return Agent.VSCODE_FORK

        return Agent.TERMINAL

    def read_session(self, agent: Agent, cwd: str) -> Optional[Session]:
        """Read the current session transcript, or None if unavailable."""
        try:
            if agent is Agent.CLAUDE:
                return self._read_claude_session(cwd)
            if agent is Agent.OPENCODE:
                return self._read_opencode_session()
        except (OSError, UnicodeDecodeError) as e:
            logger.info(
                "Session transcript unavailable",
                extra={"agent": agent.value, "error": str(e)},
            )
        return None

    def _read_claude_session(self, cwd: str) -> Optional[Session]:
        home = self.env.home
        if home is None:
            return None

        project_dir = home / CLAUDE_PROJECTS_DIR / project_key(cwd)
        if not project_dir.is_dir():
            logger.debug("No claude project directory", extra={"path": str(project_dir)})
            return None

        latest = _most_recent(
            p for p in project_dir.iterdir() if p.is_file() and p.name.endswith(".jsonl")
        )
        if latest is None:
            return None

        content = latest.read_text(encoding="utf-8")
        logger.debug("Read claude session", extra={"path": str(latest)})
        return Session(source_path=latest, transcript=convert_jsonl_to_array(content))

    def _read_opencode_session(self) -> Optional[Session]:
        home = self.env.home
        if home is None:
            return None

        base_dir = home / OPENCODE_MESSAGES_DIR
        if not base_dir.is_dir():
            return None

        session_dir = _most_recent(p for p in base_dir.iterdir() if p.is_dir())
        if session_dir is None:
            return None

        messages = []
        for message_file in sorted(session_dir.iterdir()):
            if not message_file.is_file() or not message_file.name.endswith(".json"):
                continue
            try:
                messages.append(message_file.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError):
                logger.debug("Skipping unreadable message", extra={"path": str(message_file)})

        logger.debug(
            "Read opencode session",
            extra={"path": str(session_dir), "messages": len(messages)},
        )
        return Session(source_path=session_dir, transcript="[" + ",".join(messages) + "]")
