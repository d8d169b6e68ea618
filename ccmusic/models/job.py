"""Conversion job, stage task and tool handle models."""

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel

from ccmusic.models.status import Provenance, TaskStatus


class ConversionJob(BaseModel):
    """Files discovered under an input root, fixed once discovered."""

    root: Path
    files: tuple[Path, ...] = ()

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @classmethod
    def discover(
        cls,
        root: Path,
        pattern: str = "*",
        recursive: bool = True,
    ) -> "ConversionJob":
        """Scan ``root`` and build a job from the matching files."""
        from ccmusic.scanner.walker import walk_files

        root = Path(root).resolve()
        return cls(root=root, files=tuple(walk_files(root, pattern, recursive)))

    @property
    def total_files(self) -> int:
        return len(self.files)



class StageTask(BaseModel):
    """One external-process invocation within a stage."""

    source_path: Path
    output_path: Path
    command: list[str]

    model_config = {"arbitrary_types_allowed": True}


class TaskResult(BaseModel):
    """Result of processing a single file in a stage."""

    source_path: Path
    output_path: Path | None = None
    status: TaskStatus = TaskStatus.FAILED
    exit_code: int | None = None
    error_code: str | None = None
    error_message: str | None = None

    # Timing
    started_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"arbitrary_types_allowed": True}

    @property
    def success(self) -> bool:
        return self.status == TaskStatus.SUCCEEDED


class ToolHandle(BaseModel):
    """Resolved external executable or payload."""

    name: str
    path: Path
    provenance: Provenance
    temporary: bool = False  # Owned file, deleted after the final stage

    model_config = {"arbitrary_types_allowed": True}

    @property
    def freshly_provisioned(self) -> bool:
        return self.provenance == Provenance.PROVISIONED
