"""Audio conversion module."""

from ccmusic.converter.commands import build_dfpwm_command, build_wav_command
from ccmusic.converter.pipeline import ConversionPipeline, PipelineResult
from ccmusic.converter.stage import StageRunner

__all__ = [
    "build_dfpwm_command",
    "build_wav_command",
    "ConversionPipeline",
    "PipelineResult",
    "StageRunner",
]
