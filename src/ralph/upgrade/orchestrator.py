"""End-to-end upgrade of the installed executable.

The attempt is a strictly sequential pipeline::

    preflight -> resolve -> compare -> select -> download -> verify
              -> extract -> replace

Each step raises an :class:`~ralph.upgrade.errors.UpgradeError` subclass on
failure. :meth:`UpgradeOrchestrator.run` stops at the first one and returns it
unchanged inside a failed :class:`~ralph.upgrade.models.UpgradeOutcome`.
Nothing is retried.
"""

import logging
import subprocess
import tempfile
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from ralph.upgrade.archive import binary_name_for, extract_binary
from ralph.upgrade.checksum import verify_artifact
from ralph.upgrade.downloader import Downloader, ProgressCallback
from ralph.upgrade.errors import UpgradeError
from ralph.upgrade.models import AssetDescriptor, LocalInstallation, UpgradeOutcome
from ralph.upgrade.replacer import BinaryReplacer
from ralph.upgrade.resolver import VersionResolver
from ralph.upgrade.selector import detect_platform, select_asset
from ralph.upgrade.versioning import is_newer

logger = logging.getLogger(__name__)


class UpgradeState(str, Enum):
    """Steps of an upgrade attempt, reported as they start."""

    PREFLIGHT = "preflight"
    RESOLVING = "resolving"
    COMPARING = "comparing"
    SELECTING = "selecting"
    DOWNLOADING = "downloading"
    VERIFYING = "verifying"
    EXTRACTING = "extracting"
    REPLACING = "replacing"


StatusCallback = Callable[[UpgradeState, str], None]


class UpgradeOrchestrator:
    """Run one upgrade attempt against ``installation``."""

    def __init__(
        self,
        installation: LocalInstallation,
        resolver: VersionResolver | None = None,
        downloader: Downloader | None = None,
        platform_key: str | None = None,
        on_status: StatusCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        self.installation = installation
        self.resolver = resolver or VersionResolver()
        self.downloader = downloader or Downloader()
        self.platform_key = platform_key
        self.replacer = BinaryReplacer(installation)
        self._on_status = on_status
        self._on_progress = on_progress

    def run(self) -> UpgradeOutcome:
        """Execute the upgrade and return its terminal outcome."""
        try:
            return self._run()
        except UpgradeError as e:
            logger.debug("Upgrade failed (%s): %s", e.kind.value, e.message)
            return UpgradeOutcome.failed(e)

    def _run(self) -> UpgradeOutcome:
        current = self.installation.current_version

        # Checked before any network work so an unwritable install fails fast
        self._report(UpgradeState.PREFLIGHT, f"Checking {self.installation.install_dir}")
        self.replacer.preflight()

        self._report(UpgradeState.RESOLVING, "Checking for updates…")
        release = self.resolver.resolve()

        self._report(UpgradeState.COMPARING, f"Current version: v{current}\nLatest version:  v{release.version}")
        if not is_newer(release.version, current):
            return UpgradeOutcome.already_latest(current)

        self._report(UpgradeState.SELECTING, "Selecting build for this platform")
        platform_key = self.platform_key or detect_platform().key
        asset = select_asset(release, platform_key)

        with tempfile.TemporaryDirectory(prefix="ralph-upgrade-") as tmp:
            workdir = Path(tmp)
            new_binary = self._download_and_verify(asset, workdir)

            self._report(UpgradeState.REPLACING, f"Replacing current binary: {self.installation.executable_path}")
            self.replacer.install(new_binary)

        self._confirm_installed_version()
        return UpgradeOutcome.upgraded(current, release.version)

    def _download_and_verify(self, asset: AssetDescriptor, workdir: Path) -> Path:
        size = f" ({asset.size} bytes)" if asset.size is not None else ""
        self._report(UpgradeState.DOWNLOADING, f"Downloading: {asset.archive_name}{size}")
        artifact = self.downloader.download(asset, workdir, on_progress=self._on_progress)

        self._report(UpgradeState.VERIFYING, "Verifying SHA256 checksum")
        verify_artifact(artifact, asset)

        self._report(UpgradeState.EXTRACTING, f"Extracting {asset.archive_name}")
        return extract_binary(
            artifact.archive_path,
            asset.archive_ext,
            workdir / binary_name_for(asset.archive_ext),
        )

    def _confirm_installed_version(self) -> None:
        """Ask the freshly installed binary for its version, for the log only."""
        try:
            result = subprocess.run(
                [str(self.installation.executable_path), "--version"],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("Could not confirm installed version: %s", e)
            return

        if result.stdout.strip():
            logger.info("Now running: %s", result.stdout.strip())

    def _report(self, state: UpgradeState, message: str) -> None:
        logger.debug("[%s] %s", state.value, message)
        if self._on_status:
            self._on_status(state, message)
