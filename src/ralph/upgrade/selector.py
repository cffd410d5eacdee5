"""Platform detection and exact-match asset selection."""

import logging
import platform
from dataclasses import dataclass

from ralph.upgrade.errors import RegistryMalformed, UnsupportedPlatform
from ralph.upgrade.models import AssetDescriptor, ReleaseDescriptor

logger = logging.getLogger(__name__)

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
}

# OS name -> (target triple suffix, archive extension)
_OS_TARGETS = {
    "linux": ("unknown-linux-gnu", "tar.gz"),
    "darwin": ("apple-darwin", "tar.gz"),
    "windows": ("pc-windows-msvc", "zip"),
}


@dataclass(frozen=True)
class PlatformTarget:
    """The platform key and archive format expected for this machine."""

    key: str
    archive_ext: str


def detect_platform(system: str | None = None, machine: str | None = None) -> PlatformTarget:
    """Map the running OS and CPU architecture to a platform key.

    Raises:
        UnsupportedPlatform: The operating system has no published builds.
    """
    system = (system if system is not None else platform.system()).lower()
    machine = (machine if machine is not None else platform.machine()).lower()
    arch = _ARCH_ALIASES.get(machine, machine)

    if system not in _OS_TARGETS or not arch:
        raise UnsupportedPlatform(f"Unsupported platform: {system or 'unknown'} {machine or 'unknown'}")

    suffix, archive_ext = _OS_TARGETS[system]
    return PlatformTarget(key=f"{arch}-{suffix}", archive_ext=archive_ext)


def select_asset(release: ReleaseDescriptor, platform_key: str) -> AssetDescriptor:
    """Return the asset published for exactly ``platform_key``.

    There is no fallback to a "close" platform; a missing match is a hard
    failure.
    """
    matches = [asset for asset in release.assets if asset.platform_key == platform_key]
    if not matches:
        logger.debug(
            "No asset for %s in %s (available: %s)",
            platform_key,
            release.tag,
            ", ".join(release.platform_keys) or "none",
        )
        raise UnsupportedPlatform(f"Release {release.tag} has no build for platform {platform_key}")
    if len(matches) > 1:
        raise RegistryMalformed(f"Release {release.tag} lists more than one build for {platform_key}")

    asset = matches[0]
    if not asset.checksum_url and not asset.digest:
        raise RegistryMalformed(f"Release asset not found: {asset.archive_name}.sha256")
    return asset
