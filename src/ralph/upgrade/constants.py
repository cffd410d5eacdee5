"""Constants and settings shared across the upgrade modules."""

import logging
import os
from dataclasses import dataclass
from typing import Final

logger = logging.getLogger(__name__)

PROGRAM_NAME: Final = "ralph"

# GitHub repository publishing releases
GITHUB_OWNER: Final = "lyonbot"
GITHUB_REPO: Final = "ralph-cli"
GITHUB_API_URL: Final = "https://api.github.com/repos"
GITHUB_RELEASES_URL: Final = f"{GITHUB_API_URL}/{GITHUB_OWNER}/{GITHUB_REPO}/releases/latest"
GITHUB_ACCEPT: Final = "application/vnd.github+json"

CHECKSUM_SUFFIX: Final = ".sha256"
ARCHIVE_EXTENSIONS: Final = ("tar.gz", "zip")

# Sibling paths next to the installed executable
BACKUP_SUFFIX: Final = ".old"
STAGED_SUFFIX: Final = ".new"

DEFAULT_TIMEOUT_SECONDS: Final = 60.0
DOWNLOAD_CHUNK_SIZE: Final = 64 * 1024

API_URL_ENV: Final = "RALPH_UPGRADE_API_URL"
TIMEOUT_ENV: Final = "RALPH_UPGRADE_TIMEOUT"


def user_agent() -> str:
    """User agent sent to GitHub (required by the API)."""
    from ralph import __version__

    return f"{PROGRAM_NAME}/{__version__}"


@dataclass(frozen=True)
class UpgradeSettings:
    """Registry endpoint and network timeout for one upgrade attempt."""

    api_url: str = GITHUB_RELEASES_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "UpgradeSettings":
        api_url = os.environ.get(API_URL_ENV) or GITHUB_RELEASES_URL

        timeout = DEFAULT_TIMEOUT_SECONDS
        raw_timeout = os.environ.get(TIMEOUT_ENV)
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                logger.warning("Ignoring invalid %s value: %r", TIMEOUT_ENV, raw_timeout)
            else:
                if timeout <= 0:
                    logger.warning("Ignoring non-positive %s value: %r", TIMEOUT_ENV, raw_timeout)
                    timeout = DEFAULT_TIMEOUT_SECONDS

        return cls(api_url=api_url, timeout=timeout)
