"""Streaming download of release assets into a private directory."""

import logging
import urllib.error
import urllib.request
from collections.abc import Callable
from pathlib import Path

from ralph.upgrade.constants import DEFAULT_TIMEOUT_SECONDS, DOWNLOAD_CHUNK_SIZE, user_agent
from ralph.upgrade.errors import DownloadFailed, DownloadIncomplete
from ralph.upgrade.models import AssetDescriptor, DownloadedArtifact

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int | None], None]


class Downloader:
    """Download an asset and its checksum file.

    The caller owns ``directory``; it is expected to be a temporary
    directory that is removed when the upgrade attempt ends.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
    ):
        self.timeout = timeout
        self.chunk_size = chunk_size

    def download(
        self,
        asset: AssetDescriptor,
        directory: Path,
        on_progress: ProgressCallback | None = None,
    ) -> DownloadedArtifact:
        checksum_path = None
        total = 0

        if asset.checksum_url:
            checksum_path = directory / (asset.checksum_name or f"{asset.archive_name}.sha256")
            total += self.fetch(asset.checksum_url, checksum_path)

        archive_path = directory / asset.archive_name
        total += self.fetch(
            asset.download_url,
            archive_path,
            expected_size=asset.size,
            on_progress=on_progress,
        )

        return DownloadedArtifact(
            archive_path=archive_path,
            checksum_path=checksum_path,
            bytes_downloaded=total,
        )

    def fetch(
        self,
        url: str,
        path: Path,
        expected_size: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """Stream ``url`` into ``path`` and return the number of bytes written.

        Raises:
            DownloadFailed: Network error, timeout or non-success status.
            DownloadIncomplete: The byte count differs from the declared size.
        """
        req = urllib.request.Request(url, headers={"User-Agent": user_agent()})

        logger.debug("Downloading %s -> %s", url, path)
        downloaded = 0
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                status = getattr(response, "status", 200)
                if status != 200:
                    raise DownloadFailed(f"Download failed (HTTP {status}): {url}")

                content_length = response.headers.get("Content-Length") if response.headers else None
                declared = int(content_length) if content_length and content_length.isdigit() else None
                total = expected_size if expected_size is not None else declared

                with path.open("wb") as out:
                    while True:
                        chunk = response.read(self.chunk_size)
                        if not chunk:
                            break
                        out.write(chunk)
                        downloaded += len(chunk)
                        if on_progress:
                            on_progress(downloaded, total)
        except urllib.error.HTTPError as e:
            raise DownloadFailed(f"Download failed (HTTP {e.code}): {url}") from e
        except (urllib.error.URLError, TimeoutError) as e:
            raise DownloadFailed(f"Download failed ({getattr(e, 'reason', e)}): {url}") from e
        except OSError as e:
            raise DownloadFailed(f"Download interrupted ({e}): {url}") from e

        for size in (expected_size, declared):
            if size is not None and size != downloaded:
                raise DownloadIncomplete(url, size, downloaded)

        return downloaded
