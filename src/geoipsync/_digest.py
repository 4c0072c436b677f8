"""Content digest comparison between the cached and the remote database."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from geoipsync.client import Client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DigestComparison:
    """Local and remote SHA-256 of the database.

    Attributes:
        local: Digest of the cached file, or "" if there is none.
        remote: Digest published next to the remote file.

    """

    local: str
    remote: str

    @property
    def is_different(self) -> bool:
        """Return True if the remote database differs from the local one.

        Both digests are hex, so surrounding whitespace and letter case are
        ignored; "ABCD" and "abcd\\n" name the same file.
        """
        return self.local.strip().lower() != self.remote.strip().lower()


def file_digest(path: Path) -> str:
    """Get the SHA-256 of a file.

    Args:
        path: Path of the file to hash.

    Returns:
        The SHA-256 as a lowercase hex string, or "" if the file doesn't
        exist or can't be read.

    """
    sha256 = hashlib.sha256()
    try:
        with path.open("rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                sha256.update(chunk)
    except FileNotFoundError:
        return ""
    except OSError:
        logger.warning("Failed to read %s, treating it as absent", path, exc_info=True)
        return ""
    return sha256.hexdigest()


async def compare_digests(
    client: Client, local_path: Path, digest_url: str
) -> DigestComparison:
    """Fetch the remote digest and hash the local file.

    Args:
        client: Open HTTP client.
        local_path: Path of the cached database.
        digest_url: URL of the remote SHA-256.

    Returns:
        Both digests.

    Raises:
        DownloadError: If the remote digest cannot be fetched.

    """
    remote = await client.get_digest(digest_url)
    local = await asyncio.to_thread(file_digest, local_path)
    return DigestComparison(local=local, remote=remote)


async def is_different(client: Client, local_path: Path, digest_url: str) -> bool:
    """Check whether the remote database differs from the local copy.

    A missing or unreadable local file hashes to "", which never matches a
    remote digest, so it always triggers a download.

    Raises:
        DownloadError: If the remote digest cannot be fetched.

    """
    comparison = await compare_digests(client, local_path, digest_url)
    return comparison.is_different
