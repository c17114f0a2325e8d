"""Tests for agent detection and session transcripts."""

import json
import os
import time

import pytest

from zagi.detect import (
    Agent,
    AgentDetector,
    convert_jsonl_to_array,
    project_key,
)
from zagi.settings import Environment


def detector(**values):
    return AgentDetector(Environment(values))


class TestAgentMode:
    """Test is_agent_mode."""

    def test_no_signals(self):
        assert detector().is_agent_mode() is False

    @pytest.mark.parametrize("name", ["CLAUDECODE", "OPENCODE"])
    def test_native_signal_presence(self, name):
        """Native signals count even when empty."""
        assert detector(**{name: ""}).is_agent_mode() is True

    def test_zagi_agent_must_be_non_empty(self):
        assert detector(ZAGI_AGENT="claude").is_agent_mode() is True
        assert detector(ZAGI_AGENT="").is_agent_mode() is False

    def test_reads_live_process_environment(self, monkeypatch):
        """Without an explicit mapping every call sees os.environ as it is now."""
        live = AgentDetector()
        assert live.is_agent_mode() is False

        monkeypatch.setenv("ZAGI_AGENT", "1")
        assert live.is_agent_mode() is True

        monkeypatch.delenv("ZAGI_AGENT")
        assert live.is_agent_mode() is False


class TestDetect:
    """Test detect ordering."""

    def test_terminal_by_default(self):
        assert detector().detect() is Agent.TERMINAL

    def test_claude_wins_over_ide(self):
        env = {"CLAUDECODE": "1", "VSCODE_GIT_ASKPASS_NODE": "/Applications/Cursor.app/node"}
        assert detector(**env).detect() is Agent.CLAUDE

    def test_opencode(self):
        assert detector(OPENCODE="1").detect() is Agent.OPENCODE

    @pytest.mark.parametrize(
        "askpass,expected",
        [
            ("/Applications/Windsurf.app/Contents/Frameworks/Code Helper", Agent.WINDSURF),
            ("/Applications/Cursor.app/Contents/Frameworks/Code Helper", Agent.CURSOR),
            ("/Applications/Visual Studio Code.app/Contents/Frameworks/Code Helper", Agent.VSCODE),
            ("/opt/vscodium/node", Agent.VSCODE_FORK),
        ],
    )
    def test_ide_markers(self, askpass, expected):
        """Fork names are checked before the generic Code marker."""
        assert detector(VSCODE_GIT_ASKPASS_NODE=askpass).detect() is expected

    def test_zagi_agent_alone_is_terminal(self):
        assert detector(ZAGI_AGENT="1").detect() is Agent.TERMINAL

    def test_agent_names(self):
        assert [agent.value for agent in Agent] == [
            "claude",
            "opencode",
            "windsurf",
            "cursor",
            "vscode",
            "vscode-fork",
            "terminal",
        ]


class TestTranscripts:
    """Test transcript helpers and session reading."""

    def test_convert_jsonl_to_array(self):
        jsonl = '{"a": 1}\n\n  {"b": 2}  \r\n{"c": 3}\n'
        result = convert_jsonl_to_array(jsonl)

        assert result == '[{"a": 1},{"b": 2},{"c": 3}]'
        assert json.loads(result) == [{"a": 1}, {"b": 2}, {"c": 3}]

    def test_convert_empty(self):
        assert convert_jsonl_to_array("") == "[]"

    def test_project_key(self):
        assert project_key("/Users/matt/src/zagi") == "-Users-matt-src-zagi"

    def test_read_claude_session_picks_latest(self, temp_dir):
        cwd = "/work/project"
        project_dir = temp_dir / ".claude" / "projects" / "-work-project"
        project_dir.mkdir(parents=True)

        old = project_dir / "old.jsonl"
        old.write_text('{"n": "old"}\n')
        new = project_dir / "new.jsonl"
        new.write_text('{"n": 1}\n{"n": 2}\n')
        (project_dir / "ignored.txt").write_text("not a transcript")
        past = time.time() - 3600
        os.utime(old, (past, past))

        session = detector(HOME=str(temp_dir)).read_session(Agent.CLAUDE, cwd)

        assert session is not None
        assert session.source_path == new
        assert json.loads(session.transcript) == [{"n": 1}, {"n": 2}]

    def test_read_claude_session_missing_directory(self, temp_dir):
        assert detector(HOME=str(temp_dir)).read_session(Agent.CLAUDE, "/nowhere") is None

    def test_read_session_without_home(self):
        assert detector().read_session(Agent.CLAUDE, "/work/project") is None
        assert detector().read_session(Agent.OPENCODE, "/work/project") is None

    def test_read_opencode_session(self, temp_dir):
        base = temp_dir / ".local" / "share" / "opencode" / "storage" / "message"
        stale = base / "ses_old"
        stale.mkdir(parents=True)
        (stale / "msg_1.json").write_text('{"stale": true}')
        past = time.time() - 3600
        os.utime(stale, (past, past))

        current = base / "ses_new"
        current.mkdir()
        (current / "msg_2.json").write_text('{"id": 2}')
        (current / "msg_1.json").write_text('{"id": 1}')
        (current / "notes.txt").write_text("skip me")

        session = detector(HOME=str(temp_dir)).read_session(Agent.OPENCODE, "/any")

        assert session is not None
        assert session.source_path == current
        assert json.loads(session.transcript) == [{"id": 1}, {"id": 2}]

    @pytest.mark.parametrize(
        "agent", [Agent.CURSOR, Agent.WINDSURF, Agent.VSCODE, Agent.VSCODE_FORK, Agent.TERMINAL]
    )
    def test_other_agents_have_no_session(self, agent, temp_dir):
        assert detector(HOME=str(temp_dir)).read_session(agent, "/work") is None

    def test_unreadable_transcript_yields_none(self, temp_dir):
        project_dir = temp_dir / ".claude" / "projects" / "-work"
        project_dir.mkdir(parents=True)
        (project_dir / "broken.jsonl").write_bytes(b"\xff\xfe\x00bad")

        assert detector(HOME=str(temp_dir)).read_session(Agent.CLAUDE, "/work") is None
