"""Self-upgrade of the installed ralph executable.

This package replaces the running ralph binary with the newest release
published on GitHub:
- Resolve the latest release and compare it with the local version
- Select the archive built for this platform
- Download it and verify its SHA-256 checksum
- Swap the executable in place, rolling back if the swap fails
"""

from ralph.upgrade.constants import UpgradeSettings
from ralph.upgrade.downloader import Downloader
from ralph.upgrade.errors import (
    ChecksumMismatch,
    DownloadFailed,
    DownloadIncomplete,
    FailureKind,
    PermissionDenied,
    RateLimited,
    RegistryMalformed,
    RegistryUnreachable,
    ReplaceFailed,
    RollbackFailed,
    UnsupportedPlatform,
    UpgradeError,
    permission_denied_suggestions,
)
from ralph.upgrade.models import (
    AssetDescriptor,
    DownloadedArtifact,
    LocalInstallation,
    ReleaseDescriptor,
    UpgradeOutcome,
    UpgradeStatus,
)
from ralph.upgrade.orchestrator import UpgradeOrchestrator, UpgradeState
from ralph.upgrade.replacer import BinaryReplacer
from ralph.upgrade.resolver import VersionResolver
from ralph.upgrade.selector import PlatformTarget, detect_platform, select_asset

__all__ = [
    "UpgradeSettings",
    "Downloader",
    "FailureKind",
    "UpgradeError",
    "RegistryUnreachable",
    "RateLimited",
    "RegistryMalformed",
    "UnsupportedPlatform",
    "DownloadFailed",
    "DownloadIncomplete",
    "ChecksumMismatch",
    "PermissionDenied",
    "ReplaceFailed",
    "RollbackFailed",
    "permission_denied_suggestions",
    "AssetDescriptor",
    "DownloadedArtifact",
    "LocalInstallation",
    "ReleaseDescriptor",
    "UpgradeOutcome",
    "UpgradeStatus",
    "UpgradeOrchestrator",
    "UpgradeState",
    "BinaryReplacer",
    "VersionResolver",
    "PlatformTarget",
    "detect_platform",
    "select_asset",
]
