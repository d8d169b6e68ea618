"""Resolution of the external tools the pipeline needs."""

import fnmatch
import importlib.resources
import logging
import os
import shutil
import tempfile
import time
from importlib.resources.abc import Traversable
from pathlib import Path

from ccmusic.models.config import Config
from ccmusic.models.job import ToolHandle
from ccmusic.models.status import Provenance
from ccmusic.tools.download import download_transcoder
from ccmusic.utils.errors import ToolProvisioningError
from ccmusic.utils.logging import get_logger

TRANSCODER_NAMES = ("ffmpeg", "ffmpeg.exe")


class ToolProvisioner:
    """
    Makes sure the transcoder and encoder payload exist on disk.

    Transcoder: looked up in a persistent tools directory, downloaded there
    on first use. Encoder payload: a ``.jar`` bundled as package data,
    copied to a process-unique temporary file for each run.

    Both lookups are idempotent; a present transcoder is never downloaded
    again.
    """

    def __init__(
        self,
        config: Config | None = None,
        logger: logging.Logger | None = None,
        downloader=download_transcoder,
    ):
        self.config = config or Config()
        self.logger = logger or get_logger()
        self.downloader = downloader

    def find_transcoder(self) -> Path | None:
        """Scan the tools directory for a transcoder executable."""
        tools_dir = self.config.tools_dir
        if not tools_dir.is_dir():
            return None

        matches = sorted(
            path for path in tools_dir.rglob("*")
            if path.is_file() and fnmatch.fnmatch(path.name.lower(), self.config.transcoder_pattern.lower())
        )
        if not matches:
            return None

        for path in matches:
            if path.name.lower() in TRANSCODER_NAMES:
                return path.resolve()
        return matches[0].resolve()

    def resolve_transcoder(self) -> ToolHandle:
        """
        Locate the transcoder, downloading it if needed.

        Raises:
            ToolProvisioningError: If no transcoder exists after download
        """
        explicit = self.config.transcoder_path
        if explicit is not None:
            if not explicit.is_file():
                raise ToolProvisioningError(f"Configured transcoder not found: {explicit}")
            return ToolHandle(
                name="transcoder",
                path=explicit.resolve(),
                provenance=Provenance.PRE_EXISTING,
            )

        self.config.tools_dir.mkdir(parents=True, exist_ok=True)

        found = self.find_transcoder()
        if found is not None:
            self.logger.debug("Using FFmpeg at %s", found)
            return ToolHandle(name="transcoder", path=found, provenance=Provenance.PRE_EXISTING)

        self.logger.info("Downloading FFmpeg....")
        self.downloader(
            self.config.tools_dir,
            self.config.release_manifest_url,
            platform_key=self.config.transcoder_platform,
            timeout=self.config.download_timeout,
            logger=self.logger,
        )

        found = self.find_transcoder()
        if found is None:
            raise ToolProvisioningError(
                f"No file matching {self.config.transcoder_pattern!r} in "
                f"{self.config.tools_dir} after download"
            )

        self.logger.info("FFmpeg installed at %s", found)
        return ToolHandle(name="transcoder", path=found, provenance=Provenance.PROVISIONED)

    def locate_encoder_resource(self) -> Traversable:
        """
        Find the bundled encoder payload in the resource package.

        Raises:
            ToolProvisioningError: If the package or payload is missing
        """
        package = self.config.encoder_resource_package
        suffix = self.config.encoder_suffix.lower()
        try:
            entries = sorted(importlib.resources.files(package).iterdir(), key=lambda e: e.name)
        except (ModuleNotFoundError, OSError, TypeError) as e:
            raise ToolProvisioningError(f"Unable to read resource package {package}: {e}") from e

        for entry in entries:
            if entry.is_file() and entry.name.lower().endswith(suffix):
                return entry

        raise ToolProvisioningError("Unable to locate embedded resource!")

    def resolve_encoder(self) -> ToolHandle:
        """
        Provide the encoder payload as a file on disk.

        The bundled payload is fully copied and closed before this returns.

        Raises:
            ToolProvisioningError: If the payload cannot be found or extracted
        """
        explicit = self.config.encoder_payload_path
        if explicit is not None:
            if not explicit.is_file():
                raise ToolProvisioningError(f"Configured encoder payload not found: {explicit}")
            return ToolHandle(
                name="encoder",
                path=explicit.resolve(),
                provenance=Provenance.PRE_EXISTING,
            )

        resource = self.locate_encoder_resource()
        target = Path(tempfile.gettempdir()) / (
            f"cc-music-{os.getpid()}-{time.time_ns()}{self.config.encoder_suffix}"
        )

        try:
            with resource.open("rb") as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
        except OSError as e:
            _remove(target)
            raise ToolProvisioningError("Unable to extract jar file from embedded resource!") from e

        self.logger.debug("Extracted %s to %s", resource.name, target)
        return ToolHandle(
            name="encoder",
            path=target,
            provenance=Provenance.PROVISIONED,
            temporary=True,
        )

    def release(self, handle: ToolHandle) -> bool:
        """
        Delete a temporary tool file.

        Failures are logged and ignored. Returns True if the file is gone.
        """
        if not handle.temporary:
            return False
        try:
            handle.path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.debug("Unable to delete %s: %s", handle.path, e)
            return False
        return True


def _remove(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        pass
