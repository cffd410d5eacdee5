"""Latest-release lookup against the GitHub Releases API."""

import json
import logging
import re
import urllib.error
import urllib.request

from pydantic import ValidationError

from ralph.upgrade.constants import (
    ARCHIVE_EXTENSIONS,
    CHECKSUM_SUFFIX,
    DEFAULT_TIMEOUT_SECONDS,
    GITHUB_ACCEPT,
    GITHUB_RELEASES_URL,
    PROGRAM_NAME,
    user_agent,
)
from ralph.upgrade.errors import RateLimited, RegistryMalformed, RegistryUnreachable
from ralph.upgrade.models import AssetDescriptor, GithubAsset, GithubRelease, ReleaseDescriptor
from ralph.upgrade.versioning import parse_release_version

logger = logging.getLogger(__name__)

_ARCHIVE_NAME_PATTERN = re.compile(
    rf"{re.escape(PROGRAM_NAME)}-(?P<key>[A-Za-z0-9_.-]+?)\.(?P<ext>"
    + "|".join(re.escape(ext) for ext in ARCHIVE_EXTENSIONS)
    + ")"
)
_SHA256_HEX = re.compile(r"[0-9a-f]{64}")


def archive_name_for(platform_key: str, archive_ext: str) -> str:
    """Asset name published for ``platform_key``."""
    return f"{PROGRAM_NAME}-{platform_key}.{archive_ext}"


def checksum_name_for(archive_name: str) -> str:
    return f"{archive_name}{CHECKSUM_SUFFIX}"


def extract_asset_digest(asset: GithubAsset) -> str | None:
    """Return the inline SHA-256 digest GitHub publishes for ``asset``, if any."""
    digest = (asset.digest or "").strip()
    if not digest:
        return None

    algorithm: str | None = None
    value = digest
    if ":" in digest:
        algorithm, value = digest.split(":", 1)
    if algorithm is not None and algorithm.strip().lower() != "sha256":
        logger.debug("Ignoring unsupported digest algorithm %r for %s", algorithm, asset.name)
        return None

    value = value.strip().lower()
    if not _SHA256_HEX.fullmatch(value):
        logger.debug("Digest for %s is not a SHA-256 hex string", asset.name)
        return None
    return value


def parse_release(payload: object) -> ReleaseDescriptor:
    """Build a :class:`ReleaseDescriptor` from the decoded JSON payload.

    Raises:
        RegistryMalformed: Required fields are missing, the tag is not a
            version, or two assets claim the same platform key.
    """
    try:
        release = GithubRelease.model_validate(payload)
    except ValidationError as e:
        raise RegistryMalformed(f"Release metadata is missing required fields: {e}") from e

    version = parse_release_version(release.tag_name)
    by_name = {asset.name: asset for asset in release.assets}

    assets: list[AssetDescriptor] = []
    seen_keys: set[str] = set()
    for asset in release.assets:
        match = _ARCHIVE_NAME_PATTERN.fullmatch(asset.name)
        if not match:
            continue

        platform_key = match.group("key")
        if platform_key in seen_keys:
            raise RegistryMalformed(f"Release lists more than one asset for platform {platform_key}")
        seen_keys.add(platform_key)

        checksum_name = checksum_name_for(asset.name)
        checksum_asset = by_name.get(checksum_name)
        assets.append(
            AssetDescriptor(
                platform_key=platform_key,
                archive_name=asset.name,
                archive_ext=match.group("ext"),
                download_url=asset.browser_download_url,
                size=asset.size,
                checksum_name=checksum_name if checksum_asset else None,
                checksum_url=checksum_asset.browser_download_url if checksum_asset else None,
                digest=extract_asset_digest(asset),
            )
        )

    return ReleaseDescriptor(tag=release.tag_name, version=version, assets=tuple(assets))


class VersionResolver:
    """Fetch and parse the latest published release.

    Each :meth:`resolve` call performs exactly one request; nothing is cached.
    """

    def __init__(
        self,
        api_url: str = GITHUB_RELEASES_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.api_url = api_url
        self.timeout = timeout

    def resolve(self) -> ReleaseDescriptor:
        return parse_release(self._fetch_json())

    def _fetch_json(self) -> object:
        req = urllib.request.Request(
            self.api_url,
            headers={
                "User-Agent": user_agent(),
                "Accept": GITHUB_ACCEPT,
            },
        )

        logger.debug("Fetching latest release from %s", self.api_url)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                body = response.read()
        except urllib.error.HTTPError as e:
            raise self._error_for_status(e) from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise RegistryUnreachable(f"Network error: {getattr(e, 'reason', e)}") from e

        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise RegistryMalformed(f"Release metadata is not valid JSON: {e}") from e

    @staticmethod
    def _error_for_status(error: urllib.error.HTTPError) -> RegistryUnreachable | RateLimited:
        remaining = (error.headers.get("x-ratelimit-remaining", "") if error.headers else "").strip()
        if error.code == 429 or (error.code == 403 and remaining == "0"):
            return RateLimited("GitHub rate limit exceeded. Please try again in an hour.")

        try:
            detail = error.read().decode("utf-8", errors="replace").strip()
        except OSError:
            detail = ""
        message = f"Request failed (HTTP {error.code})"
        if detail:
            message = f"{message}: {detail}"
        return RegistryUnreachable(message)
