"""Tests for in-place replacement of the installed executable."""

import errno
import os
from pathlib import Path

import pytest
from upgrade_test_utils import fake_binary, install_fake_binary

from ralph.upgrade.errors import FailureKind, PermissionDenied, ReplaceFailed, RollbackFailed
from ralph.upgrade.models import LocalInstallation
from ralph.upgrade.replacer import BinaryReplacer

_real_replace = os.replace


@pytest.fixture
def installation(tmp_path: Path) -> LocalInstallation:
    return install_fake_binary(tmp_path / "bin", "0.2.5")


@pytest.fixture
def new_binary(tmp_path: Path) -> Path:
    path = tmp_path / "download" / "ralph"
    path.parent.mkdir()
    path.write_bytes(fake_binary("0.2.6"))
    return path


def _fail_replace(monkeypatch: pytest.MonkeyPatch, should_fail) -> list[tuple[Path, Path]]:
    """Make ``os.replace`` raise for calls matching ``should_fail(src, dst)``."""
    calls: list[tuple[Path, Path]] = []

    def fake_replace(src, dst):
        calls.append((Path(src), Path(dst)))
        if should_fail(Path(src), Path(dst)):
            raise OSError(f"simulated failure renaming {Path(src).name}")
        _real_replace(src, dst)

    monkeypatch.setattr("ralph.upgrade.replacer.os.replace", fake_replace)
    return calls


class TestPreflight:
    """Tests for BinaryReplacer.preflight()."""

    def test_writable_directory_passes(self, installation: LocalInstallation) -> None:
        BinaryReplacer(installation).preflight()

        # the scratch file is gone again
        assert sorted(p.name for p in installation.install_dir.iterdir()) == ["ralph"]

    def test_permission_error_is_permission_denied(
        self,
        installation: LocalInstallation,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def deny(*args, **kwargs):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr("ralph.upgrade.replacer.tempfile.TemporaryFile", deny)

        with pytest.raises(PermissionDenied) as exc_info:
            BinaryReplacer(installation).preflight()

        assert exc_info.value.kind == FailureKind.PERMISSION_DENIED
        assert exc_info.value.path == installation.executable_path

    def test_read_only_filesystem_is_permission_denied(
        self,
        installation: LocalInstallation,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def read_only(*args, **kwargs):
            raise OSError(errno.EROFS, "Read-only file system")

        monkeypatch.setattr("ralph.upgrade.replacer.tempfile.TemporaryFile", read_only)

        with pytest.raises(PermissionDenied):
            BinaryReplacer(installation).preflight()

    @pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="needs POSIX permissions as non-root")
    def test_read_only_directory(self, installation: LocalInstallation) -> None:
        installation.install_dir.chmod(0o555)
        try:
            with pytest.raises(PermissionDenied):
                BinaryReplacer(installation).preflight()
        finally:
            installation.install_dir.chmod(0o755)

    def test_missing_directory_is_replace_failed(self, tmp_path: Path) -> None:
        installation = LocalInstallation(
            executable_path=tmp_path / "missing" / "ralph",
            current_version=install_fake_binary(tmp_path / "bin", "0.2.5").current_version,
        )

        with pytest.raises(ReplaceFailed):
            BinaryReplacer(installation).preflight()


class TestInstall:
    """Tests for BinaryReplacer.install()."""

    def test_replaces_executable(self, installation: LocalInstallation, new_binary: Path) -> None:
        BinaryReplacer(installation).install(new_binary)

        assert installation.executable_path.read_bytes() == fake_binary("0.2.6")

    def test_leaves_no_sibling_files(self, installation: LocalInstallation, new_binary: Path) -> None:
        BinaryReplacer(installation).install(new_binary)

        assert sorted(p.name for p in installation.install_dir.iterdir()) == ["ralph"]

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_new_executable_is_executable(self, installation: LocalInstallation, new_binary: Path) -> None:
        new_binary.chmod(0o644)

        BinaryReplacer(installation).install(new_binary)

        assert installation.executable_path.stat().st_mode & 0o111 != 0

    def test_renames_in_protocol_order(
        self,
        installation: LocalInstallation,
        new_binary: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """The original is moved aside before the staged binary is promoted."""
        calls = _fail_replace(monkeypatch, lambda src, dst: False)
        replacer = BinaryReplacer(installation)

        replacer.install(new_binary)

        exe = installation.executable_path
        assert len(calls) == 2
        assert calls[0] == (exe, replacer.backup_path)
        staged, target = calls[1]
        assert target == exe
        assert staged.parent == exe.parent
        assert staged.name.endswith(".new")

    def test_stale_backup_is_replaced(self, installation: LocalInstallation, new_binary: Path) -> None:
        replacer = BinaryReplacer(installation)
        replacer.backup_path.write_bytes(b"stale")

        replacer.install(new_binary)

        assert not replacer.backup_path.exists()
        assert installation.executable_path.read_bytes() == fake_binary("0.2.6")

    def test_failed_backup_removal_is_not_fatal(
        self,
        installation: LocalInstallation,
        new_binary: Path,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        replacer = BinaryReplacer(installation)
        real_unlink = Path.unlink

        def locked_unlink(self, missing_ok=False):
            if self == replacer.backup_path:
                raise PermissionError(13, "file in use")
            return real_unlink(self, missing_ok=missing_ok)

        monkeypatch.setattr(Path, "unlink", locked_unlink)

        replacer.install(new_binary)

        assert installation.executable_path.read_bytes() == fake_binary("0.2.6")
        assert replacer.backup_path.read_bytes() == fake_binary("0.2.5")
        assert "Could not remove previous executable" in caplog.text


class TestRollback:
    """Tests for failures during displace and promote."""

    def test_promote_failure_restores_original(
        self,
        installation: LocalInstallation,
        new_binary: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        exe = installation.executable_path
        before = exe.read_bytes()
        _fail_replace(monkeypatch, lambda src, dst: dst == exe and src.name.endswith(".new"))

        with pytest.raises(ReplaceFailed) as exc_info:
            BinaryReplacer(installation).install(new_binary)

        assert exc_info.value.kind == FailureKind.REPLACE_FAILED
        assert "simulated failure" in str(exc_info.value)
        assert exe.read_bytes() == before
        assert sorted(p.name for p in installation.install_dir.iterdir()) == ["ralph"]

    def test_rollback_failure_is_escalated(
        self,
        installation: LocalInstallation,
        new_binary: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        exe = installation.executable_path
        replacer = BinaryReplacer(installation)
        _fail_replace(monkeypatch, lambda src, dst: dst == exe)

        with pytest.raises(RollbackFailed) as exc_info:
            replacer.install(new_binary)

        error = exc_info.value
        assert error.kind == FailureKind.ROLLBACK_FAILED
        assert error.backup_path == replacer.backup_path
        assert str(replacer.backup_path) in str(error)
        # the original survives at the backup path for manual recovery
        assert replacer.backup_path.read_bytes() == fake_binary("0.2.5")

    def test_interrupt_during_promote_rolls_back(
        self,
        installation: LocalInstallation,
        new_binary: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        exe = installation.executable_path

        def interrupted(src, dst):
            if Path(src).name.endswith(".new"):
                raise KeyboardInterrupt
            _real_replace(src, dst)

        monkeypatch.setattr("ralph.upgrade.replacer.os.replace", interrupted)

        with pytest.raises(KeyboardInterrupt):
            BinaryReplacer(installation).install(new_binary)

        assert exe.read_bytes() == fake_binary("0.2.5")
        assert sorted(p.name for p in installation.install_dir.iterdir()) == ["ralph"]

    def test_displace_failure_leaves_original(
        self,
        installation: LocalInstallation,
        new_binary: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        exe = installation.executable_path
        _fail_replace(monkeypatch, lambda src, dst: src == exe)

        with pytest.raises(ReplaceFailed):
            BinaryReplacer(installation).install(new_binary)

        assert exe.read_bytes() == fake_binary("0.2.5")
        assert sorted(p.name for p in installation.install_dir.iterdir()) == ["ralph"]

    def test_displace_permission_error_is_permission_denied(
        self,
        installation: LocalInstallation,
        new_binary: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        exe = installation.executable_path

        def deny(src, dst):
            if Path(src) == exe:
                raise PermissionError(13, "Permission denied")
            _real_replace(src, dst)

        monkeypatch.setattr("ralph.upgrade.replacer.os.replace", deny)

        with pytest.raises(PermissionDenied):
            BinaryReplacer(installation).install(new_binary)

        assert exe.read_bytes() == fake_binary("0.2.5")

    def test_stage_failure_leaves_original(
        self,
        installation: LocalInstallation,
        tmp_path: Path,
    ) -> None:
        with pytest.raises(ReplaceFailed, match="stage"):
            BinaryReplacer(installation).install(tmp_path / "does-not-exist")

        assert installation.executable_path.read_bytes() == fake_binary("0.2.5")
        assert sorted(p.name for p in installation.install_dir.iterdir()) == ["ralph"]

    def test_stage_uses_install_directory(self, installation: LocalInstallation, new_binary: Path) -> None:
        staged = BinaryReplacer(installation).stage(new_binary)
        try:
            assert staged.parent == installation.install_dir
            assert staged.read_bytes() == new_binary.read_bytes()
            assert not staged.samefile(new_binary)
        finally:
            staged.unlink()


    def test_read_only_filesystem_during_displace(
        self,
        installation: LocalInstallation,
        new_binary: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        exe = installation.executable_path

        def read_only(src, dst):
            if Path(src) == exe:
                raise OSError(errno.EROFS, "Read-only file system")
            _real_replace(src, dst)

        monkeypatch.setattr("ralph.upgrade.replacer.os.replace", read_only)

        with pytest.raises(PermissionDenied):
            BinaryReplacer(installation).install(new_binary)

        assert exe.read_bytes() == fake_binary("0.2.5")
