"""Command builders for the two external conversion tools."""

from pathlib import Path
from typing import NamedTuple

from ccmusic.models.status import NamingPolicy
from ccmusic.scanner.naming import sanitize

WAV_SUFFIX = ".wav"
DFPWM_SUFFIX = ".dfpwm"


class StageCommand(NamedTuple):
    """Executable, arguments and the file the invocation writes."""

    executable: str
    args: list[str]
    output_path: Path

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.args]


def output_path_for(
    source: Path,
    working_dir: Path,
    suffix: str,
    policy: NamingPolicy = NamingPolicy.LOWERCASE,
) -> Path:
    """Derive the output path for ``source`` from its sanitized name."""
    return working_dir / f"{sanitize(source.name, policy)}{suffix}"


def build_wav_command(
    source: Path,
    working_dir: Path,
    ffmpeg_path: str | Path = "ffmpeg",
    policy: NamingPolicy = NamingPolicy.LOWERCASE,
) -> StageCommand:
    """
    Build FFmpeg command decoding ``source`` to WAV.

    Args:
        source: Any audio (or audio-bearing) file
        working_dir: Directory the WAV is written to
        ffmpeg_path: Path to FFmpeg executable
        policy: Naming policy for the output file

    Returns:
        StageCommand for the stage runner
    """
    output = output_path_for(source, working_dir, WAV_SUFFIX, policy)
    return StageCommand(
        executable=str(ffmpeg_path),
        args=[
            "-y",  # Overwrite output
            "-i", str(source),
            "-loglevel", "quiet",
            str(output),
        ],
        output_path=output,
    )


def build_dfpwm_command(
    source: Path,
    working_dir: Path,
    payload_path: str | Path,
    java_path: str = "java",
    policy: NamingPolicy = NamingPolicy.LOWERCASE,
) -> StageCommand:
    """
    Build encoder command compressing a WAV file to DFPWM.

    The encoder is a Java payload, so the executable is the Java runtime.
    """
    output = output_path_for(source, working_dir, DFPWM_SUFFIX, policy)
    return StageCommand(
        executable=java_path,
        args=[
            "-jar", str(payload_path),
            str(source),
            str(output),
        ],
        output_path=output,
    )
