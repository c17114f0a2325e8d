"""Commit provenance stored as git notes."""

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .detect import Agent, Session
from .vcs import GitRepository

logger = logging.getLogger(__name__)


class NoteKind(str, Enum):
    """Each kind lives under its own ``refs/notes/<kind>`` namespace."""

    AGENT = "agent"
    PROMPT = "prompt"
    SESSION = "session"

    @property
    def ref(self) -> str:
        return f"refs/notes/{self.value}"


@dataclass(frozen=True)
class ProvenanceNote:
    commit_id: str
    kind: NoteKind
    payload: str


class ProvenanceRecorder:
    """Writes agent, prompt and session notes for a commit.

    Writes are independent and best-effort: a failed note is logged and the
    remaining notes are still attempted. Existing notes are only replaced when
    ``overwrite`` is set.
    """

    def __init__(self, repo: GitRepository, overwrite: bool = False):
        self.repo = repo
        self.overwrite = overwrite

    def record(
        self,
        commit_id: str,
        prompt: str,
        agent: Agent,
        session: Optional[Session] = None,
    ) -> List[ProvenanceNote]:
        """Return the notes that were written."""
        notes = [
            ProvenanceNote(commit_id, NoteKind.AGENT, agent.value),
            ProvenanceNote(commit_id, NoteKind.PROMPT, prompt),
        ]
        if session is not None:
            notes.append(ProvenanceNote(commit_id, NoteKind.SESSION, session.transcript))

        written = []
        for note in notes:
            if self._write(note):
                written.append(note)

        logger.info(
            "Recorded provenance",
            extra={
                "commit": commit_id,
                "agent": agent.value,
                "kinds": [note.kind.value for note in written],
            },
        )
        return written

    def _write(self, note: ProvenanceNote) -> bool:
        try:
            self.repo.add_note(note.kind.ref, note.commit_id, note.payload, force=self.overwrite)
        except (OSError, subprocess.CalledProcessError) as e:
            logger.warning(
                "Failed to write provenance note",
                extra={
                    "commit": note.commit_id,
                    "kind": note.kind.value,
                    "error": getattr(e, "stderr", None) or str(e),
                },
            )
            return False
        return True

    def read(self, commit_id: str, kind: NoteKind) -> Optional[str]:
        """Return the stored payload of one note kind exactly as written, or None."""
        return self.repo.show_note(kind.ref, commit_id)
