"""Two-stage conversion pipeline."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Callable

from ccmusic.converter.commands import DFPWM_SUFFIX, WAV_SUFFIX, build_dfpwm_command, build_wav_command
from ccmusic.converter.events import PipelineEvent, PipelineStats
from ccmusic.converter.stage import StageRunner
from ccmusic.models.config import Config
from ccmusic.models.job import ConversionJob, StageTask, TaskResult, ToolHandle
from ccmusic.tools.provisioner import ToolProvisioner
from ccmusic.utils.logging import get_logger

STAGE_ONE = "WAV"
STAGE_TWO = "DFPWM"


class PipelineState(str, Enum):
    """Linear pipeline states."""

    INIT = "INIT"
    STAGE_ONE_RUNNING = "STAGE_ONE_RUNNING"
    STAGE_TWO_PREP = "STAGE_TWO_PREP"
    STAGE_TWO_RUNNING = "STAGE_TWO_RUNNING"
    CLEANUP = "CLEANUP"
    DONE = "DONE"


@dataclass
class PipelineResult:
    """Outcome of a pipeline run."""

    working_dir: Path
    stage_one: dict[Path, TaskResult] = field(default_factory=dict)
    stage_two: dict[Path, TaskResult] = field(default_factory=dict)
    stats: PipelineStats = field(default_factory=PipelineStats)

    @property
    def outputs(self) -> list[Path]:
        """Final DFPWM files in the working directory."""
        return sorted(self.working_dir.glob(f"*{DFPWM_SUFFIX}"))


def create_working_dir(output_root: Path) -> Path:
    """Create a fresh, timestamp-named directory under ``output_root``."""
    output_root.mkdir(parents=True, exist_ok=True)
    base = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    candidate = output_root / base
    counter = 1
    while True:
        try:
            candidate.mkdir()
            return candidate.resolve()
        except FileExistsError:
            candidate = output_root / f"{base}_{counter}"
            counter += 1


class ConversionPipeline:
    """
    Sequences the WAV stage and the DFPWM stage over one working directory.

    Handles:
    - Tool resolution before the stage that needs it
    - A full barrier between stages
    - Deleting each intermediate WAV once its encoder has run
    - Releasing the temporary encoder payload at the end
    """

    def __init__(
        self,
        config: Config | None = None,
        provisioner: ToolProvisioner | None = None,
        logger: logging.Logger | None = None,
        event_callback: Callable[[PipelineEvent], None] | None = None,
    ):
        self.config = config or Config()
        self.logger = logger or get_logger()
        self.provisioner = provisioner or ToolProvisioner(self.config, self.logger)
        self.event_callback = event_callback
        self.state = PipelineState.INIT
        self.stats = PipelineStats()

    def _transition(self, state: PipelineState) -> None:
        self.logger.debug("Pipeline %s -> %s", self.state.value, state.value)
        self.state = state

    def _runner(self, name: str) -> StageRunner:
        return StageRunner(
            name,
            max_workers=self.config.max_workers,
            timeout=self.config.process_timeout,
            logger=self.logger,
            event_callback=self.event_callback,
        )

    def execute(self, input_root: Path, output_root: Path) -> PipelineResult:
        """
        Convert everything under ``input_root`` into a new directory below
        ``output_root``.

        Raises:
            ToolProvisioningError: If a required tool cannot be resolved
        """
        self.state = PipelineState.INIT
        self.stats = PipelineStats(started_at=datetime.now())

        # Fail on a missing bundled payload before any file is written
        if self.config.encoder_payload_path is None:
            self.provisioner.locate_encoder_resource()
        transcoder = self.provisioner.resolve_transcoder()

        working_dir = create_working_dir(output_root)
        result = PipelineResult(working_dir=working_dir, stats=self.stats)
        self.logger.debug("Working directory %s", working_dir)

        self._transition(PipelineState.STAGE_ONE_RUNNING)
        result.stage_one = self.run_stage_one(input_root, working_dir, transcoder)

        self._transition(PipelineState.STAGE_TWO_PREP)
        encoder = self.provisioner.resolve_encoder()

        try:
            self._transition(PipelineState.STAGE_TWO_RUNNING)
            result.stage_two = self.run_stage_two(working_dir, encoder)
        finally:
            self._transition(PipelineState.CLEANUP)
            self.cleanup(encoder)

        self._transition(PipelineState.DONE)
        self.stats.completed_at = datetime.now()
        self.logger.info("Done Processing Files...")
        return result

    def run_stage_one(
        self,
        input_root: Path,
        working_dir: Path,
        transcoder: ToolHandle,
    ) -> dict[Path, TaskResult]:
        """Decode every file under ``input_root`` to WAV in ``working_dir``."""
        job = ConversionJob.discover(input_root, pattern="*", recursive=True)
        self.logger.debug("Found %d input files in %s", job.total_files, job.root)

        runner = self._runner(STAGE_ONE)
        results = runner.run(
            job.files,
            working_dir,
            partial(
                build_wav_command,
                working_dir=working_dir,
                ffmpeg_path=transcoder.path,
                policy=self.config.naming_policy,
            ),
            input_root=job.root,
        )
        self.stats.stage_one = runner.stats
        return results

    def run_stage_two(self, working_dir: Path, encoder: ToolHandle) -> dict[Path, TaskResult]:
        """Encode every WAV directly under ``working_dir`` to DFPWM."""
        job = ConversionJob.discover(working_dir, pattern=f"*{WAV_SUFFIX}", recursive=False)

        runner = self._runner(STAGE_TWO)
        results = runner.run(
            job.files,
            working_dir,
            partial(
                build_dfpwm_command,
                working_dir=working_dir,
                payload_path=encoder.path,
                java_path=self.config.java_path,
                policy=self.config.naming_policy,
            ),
            input_root=job.root,
            on_complete=self._discard_source,
        )
        self.stats.stage_two = runner.stats
        return results

    def _discard_source(self, task: StageTask, result: TaskResult) -> None:
        """Delete an intermediate WAV once its encoder attempt is over."""
        try:
            task.source_path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.error("Unable to delete %s: %s", task.source_path.name, e)

    def cleanup(self, encoder: ToolHandle) -> None:
        """Release the encoder payload once every encoder process has exited."""
        if not encoder.temporary:
            return
        if self.config.payload_release_grace > 0:
            time.sleep(self.config.payload_release_grace)
        self.provisioner.release(encoder)
