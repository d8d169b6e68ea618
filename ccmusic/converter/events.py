"""Pipeline progress events and statistics."""

from dataclasses import dataclass, field
from datetime import datetime

from ccmusic.models.job import TaskResult


@dataclass
class StageStats:
    """Statistics for one stage."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0

    def record(self, result: TaskResult) -> None:
        if result.success:
            self.succeeded += 1
        else:
            self.failed += 1


@dataclass
class PipelineStats:
    """Statistics for a whole pipeline run."""

    stage_one: StageStats = field(default_factory=StageStats)
    stage_two: StageStats = field(default_factory=StageStats)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0


@dataclass
class PipelineEvent:
    """Base event for pipeline progress."""

    timestamp: datetime = field(default_factory=datetime.now)
    stage: str = ""


@dataclass
class StageStartedEvent(PipelineEvent):
    """A stage is about to run its tasks."""

    total: int = 0


@dataclass
class TaskFinishedEvent(PipelineEvent):
    """A single task reached a terminal state."""

    result: TaskResult | None = None


@dataclass
class StageCompletedEvent(PipelineEvent):
    """All workers of a stage have joined."""

    stats: StageStats = field(default_factory=StageStats)
