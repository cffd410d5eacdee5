"""Data models used by the upgrade subsystem."""

import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from packaging.version import Version
from pydantic import BaseModel, Field

from ralph.upgrade.errors import FailureKind, UpgradeError


class GithubAsset(BaseModel):
    """A release asset as returned by the GitHub Releases API."""

    name: str
    browser_download_url: str
    size: int | None = None
    digest: str | None = None


class GithubRelease(BaseModel):
    """The subset of the "latest release" payload that upgrades rely on."""

    tag_name: str
    assets: list[GithubAsset] = Field(default_factory=list)


@dataclass(frozen=True)
class AssetDescriptor:
    """A downloadable archive for one platform, plus how to verify it."""

    platform_key: str
    archive_name: str
    archive_ext: str
    download_url: str
    size: int | None = None
    checksum_name: str | None = None
    checksum_url: str | None = None
    digest: str | None = None


@dataclass(frozen=True)
class ReleaseDescriptor:
    """The latest published release and its per-platform assets."""

    tag: str
    version: Version
    assets: tuple[AssetDescriptor, ...] = ()

    @property
    def platform_keys(self) -> tuple[str, ...]:
        return tuple(asset.platform_key for asset in self.assets)


@dataclass(frozen=True)
class LocalInstallation:
    """The executable being upgraded and the version it reports."""

    executable_path: Path
    current_version: Version

    @property
    def install_dir(self) -> Path:
        return self.executable_path.parent

    @classmethod
    def detect(cls, executable_path: Path | None = None) -> "LocalInstallation":
        """Resolve the running installation once, at the start of an attempt.

        Frozen builds report themselves through ``sys.executable``; otherwise
        the launched script (``sys.argv[0]``) is the installed entry point.
        """
        from ralph import __version__
        from ralph.upgrade.versioning import parse_version

        if executable_path is None:
            if getattr(sys, "frozen", False):
                executable_path = Path(sys.executable)
            else:
                executable_path = Path(sys.argv[0])

        return cls(
            executable_path=executable_path.expanduser().resolve(),
            current_version=parse_version(__version__),
        )


@dataclass(frozen=True)
class DownloadedArtifact:
    """Files written by the downloader into the attempt's temp directory."""

    archive_path: Path
    checksum_path: Path | None = None
    bytes_downloaded: int = 0


class UpgradeStatus(str, Enum):
    """Terminal status of an upgrade attempt."""

    ALREADY_LATEST = "already_latest"
    UPGRADED = "upgraded"
    FAILED = "failed"


@dataclass(frozen=True)
class UpgradeOutcome:
    """Result of an upgrade attempt.

    Build instances through the classmethods so the fields always agree with
    ``status``.
    """

    status: UpgradeStatus
    current_version: Version | None = None
    target_version: Version | None = None
    error: UpgradeError | None = None

    @classmethod
    def already_latest(cls, version: Version) -> "UpgradeOutcome":
        return cls(status=UpgradeStatus.ALREADY_LATEST, current_version=version)

    @classmethod
    def upgraded(cls, from_version: Version, to_version: Version) -> "UpgradeOutcome":
        return cls(
            status=UpgradeStatus.UPGRADED,
            current_version=from_version,
            target_version=to_version,
        )

    @classmethod
    def failed(cls, error: UpgradeError) -> "UpgradeOutcome":
        return cls(status=UpgradeStatus.FAILED, error=error)

    @property
    def kind(self) -> FailureKind | None:
        return self.error.kind if self.error else None

    @property
    def success(self) -> bool:
        return self.status != UpgradeStatus.FAILED

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    @property
    def message(self) -> str:
        if self.status == UpgradeStatus.ALREADY_LATEST:
            return f"Already up to date (v{self.current_version})"
        if self.status == UpgradeStatus.UPGRADED:
            return f"Upgraded ralph v{self.current_version} → v{self.target_version}"
        return self.error.message if self.error is not None else "Upgrade failed"
