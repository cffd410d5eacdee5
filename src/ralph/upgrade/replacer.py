"""Replacement of the installed executable with a verified new build.

The swap is done with same-directory renames only, in a fixed order:

1. pre-flight: the install directory must accept new files;
2. stage: copy the new binary next to the target (same filesystem);
3. displace: rename the installed executable aside to ``<name>.old``;
4. promote: rename the staged binary onto the install path.

The original is never deleted before the new binary is in place. If the
promote fails, the displaced original is renamed back.
"""

import contextlib
import errno
import logging
import os
import shutil
import tempfile
from pathlib import Path

from ralph.upgrade.constants import BACKUP_SUFFIX, STAGED_SUFFIX
from ralph.upgrade.errors import PermissionDenied, ReplaceFailed, RollbackFailed
from ralph.upgrade.models import LocalInstallation

logger = logging.getLogger(__name__)


def _write_denied(error: OSError) -> bool:
    """Whether ``error`` means the location can never be written by this user."""
    return isinstance(error, PermissionError) or error.errno == errno.EROFS


class BinaryReplacer:
    """Swap the executable of ``installation`` for a new build."""

    def __init__(self, installation: LocalInstallation):
        self.installation = installation

    @property
    def executable_path(self) -> Path:
        return self.installation.executable_path

    @property
    def backup_path(self) -> Path:
        return self.executable_path.with_name(f"{self.executable_path.name}{BACKUP_SUFFIX}")

    def preflight(self) -> None:
        """Check that the install directory is writable.

        Raises:
            PermissionDenied: A scratch file cannot be created next to the
                executable, or the directory is on a read-only filesystem.
            ReplaceFailed: The install directory is missing or unusable.
        """
        install_dir = self.installation.install_dir
        try:
            with tempfile.TemporaryFile(dir=install_dir, prefix=f".{self.executable_path.name}."):
                pass
        except OSError as e:
            if _write_denied(e):
                raise PermissionDenied(self.executable_path) from e
            raise ReplaceFailed(f"Cannot use installation directory {install_dir}: {e}") from e

    def install(self, new_binary: Path) -> None:
        """Stage, displace and promote ``new_binary``.

        Raises:
            PermissionDenied: The installed executable cannot be moved aside.
            ReplaceFailed: Staging, displacing or promoting failed; the
                original executable is in place.
            RollbackFailed: Promoting failed and the original could not be
                restored.
        """
        staged = self.stage(new_binary)
        try:
            backup = self.displace()
            self.promote(staged, backup)
        finally:
            with contextlib.suppress(FileNotFoundError):
                staged.unlink()

        self.discard_backup(backup)

    def stage(self, new_binary: Path) -> Path:
        """Copy ``new_binary`` into a hidden sibling of the install path."""
        try:
            fd, name = tempfile.mkstemp(
                dir=self.installation.install_dir,
                prefix=f".{self.executable_path.name}.",
                suffix=STAGED_SUFFIX,
            )
        except OSError as e:
            if _write_denied(e):
                raise PermissionDenied(self.executable_path) from e
            raise ReplaceFailed(f"Failed to stage new executable: {e}") from e

        staged = Path(name)
        try:
            with os.fdopen(fd, "wb") as out, new_binary.open("rb") as source:
                shutil.copyfileobj(source, out)
            staged.chmod(0o755)
        except BaseException as e:
            with contextlib.suppress(FileNotFoundError):
                staged.unlink()
            if isinstance(e, OSError) and _write_denied(e):
                raise PermissionDenied(self.executable_path) from e
            if isinstance(e, OSError):
                raise ReplaceFailed(f"Failed to stage new executable: {e}") from e
            raise

        logger.debug("Staged new executable at %s", staged)
        return staged

    def displace(self) -> Path:
        """Rename the installed executable aside; the result is the rollback anchor."""
        backup = self.backup_path
        if backup.exists():
            # A leftover from an earlier upgrade blocks the rename on Windows
            try:
                backup.unlink()
            except OSError as e:
                raise ReplaceFailed(f"Cannot remove stale backup {backup}: {e}") from e

        try:
            os.replace(self.executable_path, backup)
        except OSError as e:
            if _write_denied(e):
                raise PermissionDenied(self.executable_path) from e
            raise ReplaceFailed(f"Failed to move {self.executable_path} aside: {e}") from e

        logger.debug("Moved %s aside to %s", self.executable_path, backup)
        return backup

    def promote(self, staged: Path, backup: Path) -> None:
        """Rename ``staged`` onto the install path, rolling back on failure."""
        try:
            os.replace(staged, self.executable_path)
        except BaseException as e:
            logger.warning("Failed to install new executable, restoring previous version: %s", e)
            self.rollback(backup, cause=e)
            if isinstance(e, OSError):
                raise ReplaceFailed(f"Failed to replace {self.executable_path}: {e}") from e
            raise

        logger.info("Installed new executable at %s", self.executable_path)

    def rollback(self, backup: Path, cause: BaseException) -> None:
        try:
            os.replace(backup, self.executable_path)
        except OSError as e:
            logger.error("Rollback failed, previous executable left at %s: %s", backup, e)
            raise RollbackFailed(self.executable_path, backup, cause) from e

        logger.info("Restored previous executable at %s", self.executable_path)

    def discard_backup(self, backup: Path) -> None:
        """Best-effort removal of the displaced original.

        Some platforms refuse to delete an executable that was just running;
        a stale backup file is left behind in that case.
        """
        try:
            backup.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove previous executable %s: %s", backup, e)
