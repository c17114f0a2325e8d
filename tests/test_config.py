"""Tests for configuration, settings and error types."""

import logging

import pytest

from zagi.config import CommandParser, CommitConfig, DiffConfig, git_environment
from zagi.errors import (
    NothingToCommitError,
    RevwalkFailedError,
    UnsupportedFlagError,
    UsageError,
)
from zagi.logging_utils import configure_logging
from zagi.settings import Environment


class TestDiffConfig:
    """Test DiffConfig validation."""

    def test_defaults(self):
        config = DiffConfig()

        assert config.output_mode == "patch"
        assert config.context_lines == 0
        assert config.find_renames_threshold is None

    def test_invalid_output_mode(self):
        with pytest.raises(ValueError, match="output_mode"):
            DiffConfig(output_mode="json")

    def test_negative_context(self):
        with pytest.raises(ValueError, match="context_lines"):
            DiffConfig(context_lines=-1)

    @pytest.mark.parametrize("threshold", [-1, 101])
    def test_rename_threshold_range(self, threshold):
        with pytest.raises(ValueError, match="find_renames_threshold"):
            DiffConfig(find_renames_threshold=threshold)

    def test_empty_rev_spec(self):
        with pytest.raises(ValueError, match="rev_spec"):
            DiffConfig(rev_spec="")

    def test_frozen(self):
        config = DiffConfig()
        with pytest.raises(AttributeError):
            config.staged = True


class TestCommitConfig:
    def test_message_required(self):
        with pytest.raises(ValueError, match="message is required"):
            CommitConfig()

    def test_amend_without_message(self):
        assert CommitConfig(amend=True).message is None


class TestGitEnvironment:
    def test_pinned_values(self, monkeypatch):
        monkeypatch.setenv("GIT_EXTERNAL_DIFF", "difftool")
        monkeypatch.setenv("LC_ALL", "de_DE.UTF-8")

        env = git_environment()

        assert env["LC_ALL"] == "C"
        assert env["GIT_TERMINAL_PROMPT"] == "0"
        assert env["GIT_PAGER"] == "cat"
        assert "GIT_EXTERNAL_DIFF" not in env

    def test_config_exposes_environment(self):
        assert DiffConfig().git_env["LC_ALL"] == "C"
        assert CommitConfig(message="m").git_env["GIT_PAGER"] == "cat"


class TestEnvironment:
    def test_presence_and_non_empty(self):
        env = Environment({"EMPTY": "", "FULL": "1"})

        assert env.is_set("EMPTY") is True
        assert env.is_non_empty("EMPTY") is False
        assert env.is_non_empty("FULL") is True
        assert env.is_set("MISSING") is False
        assert env.get("MISSING", "x") == "x"

    def test_home(self, tmp_path):
        assert Environment({"HOME": str(tmp_path)}).home == tmp_path
        assert Environment({"HOME": ""}).home is None
        assert Environment({}).home is None

    def test_strip_coauthors(self):
        assert Environment({"ZAGI_STRIP_COAUTHORS": "1"}).strip_coauthors() is True
        assert Environment({"ZAGI_STRIP_COAUTHORS": ""}).strip_coauthors() is False
        assert Environment({}).strip_coauthors() is False

    def test_live_environment(self, monkeypatch):
        env = Environment()
        monkeypatch.setenv("ZAGI_TEST_VALUE", "on")
        assert env.get("ZAGI_TEST_VALUE") == "on"


class TestErrors:
    def test_to_dict(self):
        error = UsageError("bad", hint="try again")

        assert error.to_dict() == {
            "code": "USAGE_ERROR",
            "message": "bad",
            "details": {"hint": "try again"},
        }

    def test_unsupported_flag_message(self):
        error = UnsupportedFlagError(["--no-verify"])
        assert error.message == "unsupported flag: --no-verify (use git directly)"

    def test_engine_error_message(self):
        error = RevwalkFailedError("  unknown revision 'x'\n", operation="rev-parse")

        assert error.code == "REVWALK_FAILED"
        assert error.message == "bad revision: unknown revision 'x'"
        assert error.details == {"operation": "rev-parse", "reason": "unknown revision 'x'"}

    def test_engine_error_without_reason(self):
        assert RevwalkFailedError("").message == "bad revision"

    def test_nothing_to_commit(self):
        error = NothingToCommitError()
        assert str(error) == "nothing to commit"
        assert error.hint_lines == []


class TestCommandParser:
    def test_error_raises_usage_error(self):
        parser = CommandParser(prog="zagi test", usage="git test <x>")
        parser.add_argument("x")

        with pytest.raises(UsageError) as exc_info:
            parser.parse_args([])

        assert exc_info.value.usage == "usage: git test <x>"


class TestLogging:
    def test_respects_existing_handlers(self, monkeypatch):
        root = logging.getLogger()
        level = root.level
        monkeypatch.setenv("ZAGI_LOG_LEVEL", "DEBUG")

        # pytest installs its capture handler on the root logger
        configure_logging()

        assert root.level == level
