"""Extraction of the program binary from a verified release archive."""

import logging
import shutil
import tarfile
import zipfile
from pathlib import Path

from ralph.upgrade.constants import PROGRAM_NAME
from ralph.upgrade.errors import RegistryMalformed

logger = logging.getLogger(__name__)

# Upper bound for the extracted binary, guards against decompression bombs
MAX_BINARY_SIZE = 250 * 1024 * 1024


def binary_name_for(archive_ext: str) -> str:
    return f"{PROGRAM_NAME}.exe" if archive_ext == "zip" else PROGRAM_NAME


def extract_binary(archive_path: Path, archive_ext: str, out_path: Path) -> Path:
    """Copy the program binary out of ``archive_path`` into ``out_path``.

    Only the member whose file name is the program name is read; no other
    archive paths are written to disk.

    Raises:
        RegistryMalformed: The archive is unreadable or holds no binary.
    """
    binary_name = binary_name_for(archive_ext)
    logger.debug("Extracting %s from %s", binary_name, archive_path.name)

    try:
        if archive_ext == "tar.gz":
            _extract_from_tar(archive_path, binary_name, out_path)
        elif archive_ext == "zip":
            _extract_from_zip(archive_path, binary_name, out_path)
        else:
            raise RegistryMalformed(f"Unknown archive extension: {archive_ext}")
    except (tarfile.TarError, zipfile.BadZipFile, EOFError) as e:
        raise RegistryMalformed(f"Failed to extract {archive_path.name}: {e}") from e

    out_path.chmod(0o755)
    return out_path


def _extract_from_tar(archive_path: Path, binary_name: str, out_path: Path) -> None:
    with tarfile.open(archive_path, "r:gz") as archive:
        for member in archive:
            if not member.isfile() or Path(member.name).name != binary_name:
                continue
            _check_size(member.size, binary_name)
            source = archive.extractfile(member)
            if source is None:
                continue
            with source, out_path.open("wb") as out:
                shutil.copyfileobj(source, out)
            return

    raise RegistryMalformed(f"Downloaded archive did not contain '{binary_name}' binary")


def _extract_from_zip(archive_path: Path, binary_name: str, out_path: Path) -> None:
    with zipfile.ZipFile(archive_path) as archive:
        for info in archive.infolist():
            if info.is_dir() or info.filename.rsplit("/", 1)[-1].lower() != binary_name.lower():
                continue
            _check_size(info.file_size, binary_name)
            with archive.open(info) as source, out_path.open("wb") as out:
                shutil.copyfileobj(source, out)
            return

    raise RegistryMalformed(f"Downloaded archive did not contain '{binary_name}'")


def _check_size(size: int, binary_name: str) -> None:
    if size > MAX_BINARY_SIZE:
        raise RegistryMalformed(f"'{binary_name}' in the archive exceeds {MAX_BINARY_SIZE} bytes")
