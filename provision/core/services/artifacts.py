"""
Artifact download and checksum verification.

Fetches a microservice zip from the artifact store with an explicit
deadline, then (optionally) verifies it before anything extracts it.
Archives without a published checksum are downloaded and flagged
with a warning; a published checksum that does not match is fatal.
"""

from __future__ import annotations

import hashlib
import http.client
import logging
import socket
import urllib.error
import urllib.request
from pathlib import Path

from provision.core.errors import ConfigError, NetworkError, StepFailedError
from provision.core.models.profile import parse_checksum

logger = logging.getLogger(__name__)

USER_AGENT = "roboshop-provision/0.1"
_CHUNK = 64 * 1024


def _fmt_size(n: int | float) -> str:
    """Format byte count to human-readable string."""
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


def file_sha256(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def verify_checksum(path: Path, expected: str) -> bool:
    """Compare a file's digest with ``expected``.

    ``expected`` is either bare SHA-256 hex or ``algo:hex``
    (sha256, sha1, md5).

    Raises:
        ConfigError: unsupported algorithm or malformed digest.
    """
    try:
        algo, digest = parse_checksum(expected)
    except ValueError as e:
        raise ConfigError(f"Invalid checksum {expected!r}: {e}") from e
    h = hashlib.new(algo)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest() == digest


def download_artifact(
    url: str,
    dest: Path,
    *,
    timeout: int = 120,
    sha256: str | None = None,
) -> Path:
    """Download ``url`` to ``dest``.

    The download goes to ``dest.part`` and is renamed only after the
    transfer (and checksum, if given) succeeded, so a half-written file
    never looks like a finished archive.

    Raises:
        NetworkError: HTTP error, connection failure, truncated
            response or timeout.
        StepFailedError: checksum mismatch, or ``dest`` cannot be
            written.
        ConfigError: ``sha256`` is not a supported checksum.
    """
    if sha256:
        try:
            parse_checksum(sha256)
        except ValueError as e:
            raise ConfigError(f"Invalid checksum {sha256!r} for {url}: {e}") from e

    partial = dest.with_name(dest.name + ".part")
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StepFailedError(f"Cannot create download directory {dest.parent}: {e}") from e
    logger.info("Downloading %s → %s (timeout %ds)", url, dest, timeout)

    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    size = 0
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp, open(partial, "wb") as f:
            while True:
                chunk = resp.read(_CHUNK)
                if not chunk:
                    break
                f.write(chunk)
                size += len(chunk)
    except urllib.error.HTTPError as e:
        partial.unlink(missing_ok=True)
        raise NetworkError(f"Download failed: HTTP {e.code} for {url}") from e
    except (
        urllib.error.URLError,
        http.client.HTTPException,
        socket.timeout,
        TimeoutError,
        ConnectionError,
    ) as e:
        partial.unlink(missing_ok=True)
        raise NetworkError(f"Download failed for {url}: {type(e).__name__}: {e}") from e
    except OSError as e:
        partial.unlink(missing_ok=True)
        raise StepFailedError(f"Cannot write {partial}: {e}") from e

    if sha256:
        if not verify_checksum(partial, sha256):
            actual = file_sha256(partial)
            partial.unlink(missing_ok=True)
            raise StepFailedError(f"Checksum mismatch for {url}: got sha256:{actual}")
        logger.info("Checksum verified for %s", dest.name)
    else:
        logger.warning(
            "No checksum published for %s; extracting unverified (sha256=%s)",
            url, file_sha256(partial),
        )

    try:
        partial.replace(dest)
    except OSError as e:
        partial.unlink(missing_ok=True)
        raise StepFailedError(f"Cannot move {partial} to {dest}: {e}") from e
    logger.info("Downloaded %s (%s)", dest.name, _fmt_size(size))
    return dest
