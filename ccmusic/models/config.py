"""Configuration models."""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from ccmusic.models.status import NamingPolicy

MAX_CONCURRENT_PROCESSES = 10

# Grace period between the last encoder exiting and deleting its payload.
PAYLOAD_RELEASE_GRACE_SECONDS = 1.0

FFBINARIES_LATEST_URL = "https://ffbinaries.com/api/v1/version/latest"


class RunConfig(BaseModel):
    """Configuration for a single convert run."""

    input_root: Path
    output_root: Path
    prompt: bool = True

    model_config = {"arbitrary_types_allowed": True}


class Config(BaseSettings):
    """Global configuration from environment or defaults."""

    # Filesystem layout
    input_dir: Path = Path("input")
    output_dir: Path = Path("output")
    tools_dir: Path = Path("ffmpeg")

    # Stage execution
    max_workers: int = Field(default=MAX_CONCURRENT_PROCESSES, ge=1, le=MAX_CONCURRENT_PROCESSES)
    process_timeout: float | None = None  # Wait forever by default
    payload_release_grace: float = Field(default=PAYLOAD_RELEASE_GRACE_SECONDS, ge=0)
    naming_policy: NamingPolicy = NamingPolicy.LOWERCASE

    # Transcoder
    transcoder_path: Path | None = None
    transcoder_pattern: str = "*ffmpeg*"
    transcoder_platform: str | None = None  # Auto-detect
    release_manifest_url: str = FFBINARIES_LATEST_URL
    download_timeout: int = 60

    # Encoder payload
    java_path: str = "java"
    encoder_payload_path: Path | None = None
    encoder_resource_package: str = "ccmusic.resources"
    encoder_suffix: str = ".jar"

    # Logging
    log_file: Path = Path("latest.log")
    log_level: str = "DEBUG"
    jsonl_log: bool = False

    model_config = {"env_prefix": "CCMUSIC_"}
