"""Release tag parsing and version comparison."""

import re

from packaging.version import Version

from ralph.upgrade.errors import RegistryMalformed

_TAG_PREFIXES = ("ralph-v", "v")
_SEMVER_PATTERN = re.compile(r"(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)")


def parse_version(value: str) -> Version:
    """Parse a strict ``MAJOR.MINOR.PATCH`` string.

    Raises:
        ValueError: If ``value`` is not exactly three dot-separated numbers.
    """
    text = value.strip()
    if not _SEMVER_PATTERN.fullmatch(text):
        raise ValueError(f"Not a MAJOR.MINOR.PATCH version: {value!r}")
    return Version(text)


def parse_release_version(tag_name: str) -> Version:
    """Parse a release tag such as ``v1.2.3`` or ``ralph-v1.2.3``.

    Malformed tags are a defect in the release feed and are never coerced.
    """
    trimmed = tag_name.strip()
    for prefix in _TAG_PREFIXES:
        if trimmed.startswith(prefix):
            trimmed = trimmed[len(prefix) :]
            break

    try:
        return parse_version(trimmed)
    except ValueError:
        raise RegistryMalformed(f"Failed to parse version tag: {tag_name!r}") from None


def is_newer(candidate: Version, current: Version) -> bool:
    """True only when ``candidate`` is strictly greater than ``current``."""
    return candidate > current
