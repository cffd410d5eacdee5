"""Failure kinds raised by the upgrade steps.

Every step raises a subclass of :class:`UpgradeError`. The orchestrator is the
only place that catches them and turns them into a failed outcome, so each
kind below maps to exactly one reported reason.
"""

from enum import Enum
from pathlib import Path


class FailureKind(str, Enum):
    """Terminal failure reasons of an upgrade attempt."""

    REGISTRY_UNREACHABLE = "registry_unreachable"
    RATE_LIMITED = "rate_limited"
    REGISTRY_MALFORMED = "registry_malformed"
    UNSUPPORTED_PLATFORM = "unsupported_platform"
    DOWNLOAD_FAILED = "download_failed"
    DOWNLOAD_INCOMPLETE = "download_incomplete"
    CHECKSUM_MISMATCH = "checksum_mismatch"
    PERMISSION_DENIED = "permission_denied"
    REPLACE_FAILED = "replace_failed"
    ROLLBACK_FAILED = "rollback_failed"


class UpgradeError(RuntimeError):
    """Base class for upgrade failures."""

    kind: FailureKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RegistryUnreachable(UpgradeError):
    kind = FailureKind.REGISTRY_UNREACHABLE


class RateLimited(UpgradeError):
    kind = FailureKind.RATE_LIMITED


class RegistryMalformed(UpgradeError):
    kind = FailureKind.REGISTRY_MALFORMED


class UnsupportedPlatform(UpgradeError):
    kind = FailureKind.UNSUPPORTED_PLATFORM


class DownloadFailed(UpgradeError):
    kind = FailureKind.DOWNLOAD_FAILED


class DownloadIncomplete(UpgradeError):
    kind = FailureKind.DOWNLOAD_INCOMPLETE

    def __init__(self, url: str, expected: int, actual: int) -> None:
        super().__init__(f"Download incomplete: {url} (expected {expected} bytes, got {actual})")
        self.expected = expected
        self.actual = actual


class ChecksumMismatch(UpgradeError):
    kind = FailureKind.CHECKSUM_MISMATCH

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"Download verification failed (expected {expected or '<empty>'}, got {actual})")
        self.expected = expected
        self.actual = actual


class PermissionDenied(UpgradeError):
    kind = FailureKind.PERMISSION_DENIED

    def __init__(self, path: Path) -> None:
        super().__init__(f"Cannot write to installation path: {path} (permission denied)")
        self.path = path


class ReplaceFailed(UpgradeError):
    kind = FailureKind.REPLACE_FAILED


class RollbackFailed(UpgradeError):
    """The promote failed and the original could not be moved back.

    This is the only state in which the installed executable may be missing;
    ``backup_path`` holds the original and must be restored by hand.
    """

    kind = FailureKind.ROLLBACK_FAILED

    def __init__(self, executable_path: Path, backup_path: Path, cause: BaseException) -> None:
        super().__init__(
            f"Failed to restore {executable_path} after a failed replacement ({cause}); "
            f"the previous executable is at {backup_path}"
        )
        self.executable_path = executable_path
        self.backup_path = backup_path


def permission_denied_suggestions(path: Path) -> str:
    """Remediation text shown when the install location is not writable."""
    lines = [
        f"Error: Cannot write to {path} (permission denied)",
        "",
        "Solutions:",
        "1. Run with elevated permissions: sudo ralph upgrade",
        "2. Reinstall to a user-writable location (e.g. ~/.local/bin)",
        "3. Download manually from GitHub Releases and replace the binary",
    ]
    return "\n".join(lines)
