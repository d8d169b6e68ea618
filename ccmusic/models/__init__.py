"""Data models for ccmusic."""

from ccmusic.models.config import Config, RunConfig
from ccmusic.models.job import ConversionJob, StageTask, TaskResult, ToolHandle
from ccmusic.models.status import ErrorCode, NamingPolicy, Provenance, TaskStatus

__all__ = [
    "Config",
    "RunConfig",
    "ConversionJob",
    "StageTask",
    "TaskResult",
    "ToolHandle",
    "ErrorCode",
    "NamingPolicy",
    "Provenance",
    "TaskStatus",
]
