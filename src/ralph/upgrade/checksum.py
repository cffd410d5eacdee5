"""SHA-256 verification of downloaded archives."""

import hashlib
import hmac
import logging
from pathlib import Path

from ralph.upgrade.errors import ChecksumMismatch
from ralph.upgrade.models import AssetDescriptor, DownloadedArtifact

logger = logging.getLogger(__name__)


def calculate_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as source:
        for chunk in iter(lambda: source.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def parse_checksum_text(text: str) -> str:
    """Return the digest from a checksum file.

    Files usually look like ``<hex>  <filename>\\n``; only the first token
    matters. Returns an empty string when the file holds no token.
    """
    for token in text.split():
        return token.strip().lower()
    return ""


def expected_digest(artifact: DownloadedArtifact, asset: AssetDescriptor) -> str:
    """The published digest, preferring the checksum file over the inline value."""
    if artifact.checksum_path is not None:
        return parse_checksum_text(artifact.checksum_path.read_text(encoding="utf-8", errors="replace"))
    return (asset.digest or "").strip().lower()


def verify_checksum(path: Path, expected: str) -> str:
    """Compare the digest of ``path`` with ``expected``.

    Returns the computed digest.

    Raises:
        ChecksumMismatch: ``expected`` is empty or differs from the digest.
    """
    expected = expected.strip().lower()
    actual = calculate_sha256(path)
    if not expected or not hmac.compare_digest(expected.encode(), actual.encode()):
        raise ChecksumMismatch(expected, actual)

    logger.debug("Verified SHA256 %s for %s", actual, path.name)
    return actual


def verify_artifact(artifact: DownloadedArtifact, asset: AssetDescriptor) -> str:
    return verify_checksum(artifact.archive_path, expected_digest(artifact, asset))
