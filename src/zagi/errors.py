"""Error definitions and handling for zagi."""

from typing import Any, Dict, List, Optional


class ZagiError(Exception):
    """Base exception for zagi errors."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize error with code, message, and optional details."""
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for structured logging."""
        result = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class UsageError(ZagiError):
    """Bad or missing command line arguments."""

    def __init__(self, message: str, hint: Optional[str] = None, usage: Optional[str] = None):
        super().__init__(
            code="USAGE_ERROR",
            message=message,
            details={"hint": hint} if hint else None,
        )
        self.hint = hint
        self.usage = usage


class NotARepositoryError(ZagiError):
    """The working directory is not inside a git repository."""

    def __init__(self, path: str, reason: str = ""):
        super().__init__(
            code="NOT_A_REPOSITORY",
            message="not a git repository",
            details={"path": path, "reason": reason},
        )


class InitFailedError(ZagiError):
    """The git engine is unavailable or too old."""

    def __init__(self, detected_version: str, required_version: str = "2.30"):
        super().__init__(
            code="INIT_FAILED",
            message=f"git {detected_version} is not supported. "
            f"Minimum required: {required_version}",
            details={
                "detected_version": detected_version,
                "required_version": required_version,
            },
        )


class UnsupportedFlagError(ZagiError):
    """A flag this tool does not handle; the command belongs to git itself."""

    def __init__(self, flags: List[str]):
        super().__init__(
            code="UNSUPPORTED_FLAG",
            message=f"unsupported flag: {' '.join(flags)} (use git directly)",
            details={"flags": flags},
        )
        self.flags = flags


class NothingToCommitError(ZagiError):
    """The index tree matches HEAD.

    ``hint_lines`` lists outstanding working tree changes and is printed
    before the error itself.
    """

    def __init__(self, hint_lines: Optional[List[str]] = None):
        super().__init__(code="NOTHING_TO_COMMIT", message="nothing to commit")
        self.hint_lines = hint_lines or []


class _EngineError(ZagiError):
    """Failure reported by git while running a subcommand."""

    code_name = "ENGINE_ERROR"
    label = "git operation failed"

    def __init__(self, reason: str, operation: Optional[str] = None):
        reason = (reason or "").strip()
        super().__init__(
            code=self.code_name,
            message=f"{self.label}: {reason}" if reason else self.label,
            details={"operation": operation, "reason": reason},
        )
        self.reason = reason


class CommitFailedError(_EngineError):
    """Creating or amending the commit failed."""

    code_name = "COMMIT_FAILED"
    label = "commit failed"


class IndexWriteFailedError(_EngineError):
    """Writing the index (or a tree from it) failed."""

    code_name = "INDEX_WRITE_FAILED"
    label = "failed to write index"


class AddFailedError(_EngineError):
    """Staging tracked modifications failed."""

    code_name = "ADD_FAILED"
    label = "failed to stage changes"


class RevwalkFailedError(_EngineError):
    """A revision could not be resolved."""

    code_name = "REVWALK_FAILED"
    label = "bad revision"


class StatusFailedError(_EngineError):
    """Computing a diff or status listing failed."""

    code_name = "STATUS_FAILED"
    label = "failed to compute changes"
