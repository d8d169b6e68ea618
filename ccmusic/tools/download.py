"""FFmpeg release lookup, download and extraction."""

import logging
import os
import platform
import stat
import tempfile
import zipfile
from pathlib import Path

import requests

from ccmusic.utils.errors import ToolProvisioningError
from ccmusic.utils.logging import get_logger

DOWNLOAD_CHUNK_SIZE = 1024 * 256
USER_AGENT = "ccmusic"


def detect_platform(system: str | None = None, machine: str | None = None) -> str:
    """
    Map the running OS/architecture to a release manifest platform key.

    Keys follow the ffbinaries manifest: windows-64, linux-64, linux-32,
    linux-arm64, linux-armhf, osx-64.
    """
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()

    if system == "windows":
        return "windows-64"
    if system == "darwin":
        return "osx-64"
    if system == "linux":
        if machine in ("aarch64", "arm64"):
            return "linux-arm64"
        if machine.startswith("arm"):
            return "linux-armhf"
        if machine in ("i386", "i686", "x86"):
            return "linux-32"
        return "linux-64"

    raise ToolProvisioningError(f"No FFmpeg release available for {system}/{machine}")


def fetch_release_url(
    manifest_url: str,
    platform_key: str,
    timeout: int = 60,
    session: requests.Session | None = None,
) -> str:
    """Look up the ffmpeg archive URL for ``platform_key`` in the release manifest."""
    session = session or requests.Session()
    try:
        resp = session.get(manifest_url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
        resp.raise_for_status()
        manifest = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise ToolProvisioningError(f"Unable to read release manifest {manifest_url}: {e}") from e

    try:
        url = manifest["bin"][platform_key]["ffmpeg"]
    except (KeyError, TypeError) as e:
        raise ToolProvisioningError(
            f"Release manifest has no ffmpeg build for {platform_key}"
        ) from e

    if not isinstance(url, str) or not url:
        raise ToolProvisioningError(f"Release manifest has no ffmpeg build for {platform_key}")

    return url


def download_file(
    url: str,
    dest: Path,
    timeout: int = 60,
    session: requests.Session | None = None,
) -> int:
    """Stream ``url`` into ``dest``. Returns the number of bytes written."""
    session = session or requests.Session()
    total_bytes = 0
    try:
        with session.get(
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=timeout,
            stream=True,
        ) as resp:
            resp.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    total_bytes += len(chunk)
    except (requests.RequestException, OSError) as e:
        raise ToolProvisioningError(f"Failed to download {url}: {e}") from e

    return total_bytes


def extract_archive(archive: Path, dest_dir: Path) -> list[Path]:
    """
    Extract a zip archive into ``dest_dir``.

    Extracted files are made executable on POSIX systems.
    """
    dest_dir = dest_dir.resolve()
    try:
        with zipfile.ZipFile(archive, "r") as zf:
            for member in zf.namelist():
                target = (dest_dir / member).resolve()
                if target != dest_dir and dest_dir not in target.parents:
                    raise ToolProvisioningError(f"Refusing to extract {member!r} outside {dest_dir}")
            zf.extractall(dest_dir)
            extracted = [dest_dir / name for name in zf.namelist() if not name.endswith("/")]
    except (zipfile.BadZipFile, OSError) as e:
        raise ToolProvisioningError(f"Unable to extract {archive.name}: {e}") from e

    if os.name != "nt":
        for path in extracted:
            mode = path.stat().st_mode
            path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    return extracted


def download_transcoder(
    tools_dir: Path,
    manifest_url: str,
    platform_key: str | None = None,
    timeout: int = 60,
    logger: logging.Logger | None = None,
    session: requests.Session | None = None,
) -> list[Path]:
    """
    Download the latest FFmpeg release into ``tools_dir``.

    Returns:
        Paths of the extracted files
    """
    logger = logger or get_logger()
    platform_key = platform_key or detect_platform()
    tools_dir.mkdir(parents=True, exist_ok=True)

    url = fetch_release_url(manifest_url, platform_key, timeout=timeout, session=session)
    logger.debug("Fetching %s", url)

    with tempfile.TemporaryDirectory() as td:
        archive = Path(td) / "ffmpeg.zip"
        size = download_file(url, archive, timeout=timeout, session=session)
        logger.debug("Downloaded %d bytes", size)
        extracted = extract_archive(archive, tools_dir)

    logger.debug("Extracted %s into %s", ", ".join(p.name for p in extracted), tools_dir)
    return extracted
