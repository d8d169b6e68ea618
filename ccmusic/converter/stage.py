"""Bounded-parallel execution of one conversion stage."""

import logging
import subprocess
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import Callable

from ccmusic.converter.commands import StageCommand
from ccmusic.converter.events import (
    PipelineEvent,
    StageCompletedEvent,
    StageStartedEvent,
    StageStats,
    TaskFinishedEvent,
)
from ccmusic.models.config import MAX_CONCURRENT_PROCESSES
from ccmusic.models.job import StageTask, TaskResult
from ccmusic.models.status import ErrorCode, TaskStatus
from ccmusic.utils.errors import InvalidNameError
from ccmusic.utils.logging import get_logger

BuildCommand = Callable[[Path], StageCommand]
CompletionHook = Callable[[StageTask, TaskResult], None]

STDERR_EXCERPT = 500


class StageRunner:
    """
    Runs one external tool over a batch of files.

    Handles:
    - Planning one StageTask per input, rejecting unusable or colliding names
    - Parallel execution with at most ``max_workers`` live processes
    - Per-file failure isolation (a failed file never stops its siblings)
    - Progress events and a per-stage summary log line
    """

    def __init__(
        self,
        name: str,
        max_workers: int = MAX_CONCURRENT_PROCESSES,
        timeout: float | None = None,
        logger: logging.Logger | None = None,
        event_callback: Callable[[PipelineEvent], None] | None = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.name = name
        self.max_workers = max_workers
        self.timeout = timeout
        self.logger = logger or get_logger()
        self.event_callback = event_callback
        self.stats = StageStats()

    def emit(self, event: PipelineEvent) -> None:
        """Emit event to callback if registered."""
        if self.event_callback:
            self.event_callback(event)

    def run(
        self,
        input_files: Iterable[Path],
        output_dir: Path,
        build_command: BuildCommand,
        input_root: Path | None = None,
        on_complete: CompletionHook | None = None,
    ) -> dict[Path, TaskResult]:
        """
        Run the stage.

        Args:
            input_files: Files to convert
            output_dir: Directory outputs are written to (created if missing)
            build_command: Maps an input path to the command to run
            input_root: Root used to print relative paths in log lines
            on_complete: Called in the worker right after each process exits

        Returns:
            Mapping of every input path to its TaskResult, in input order
        """
        inputs = list(input_files)
        output_dir.mkdir(parents=True, exist_ok=True)

        tasks, results = self.plan(inputs, build_command, input_root)

        self.stats = StageStats(total=len(inputs))
        self.emit(StageStartedEvent(stage=self.name, total=len(inputs)))

        for result in results.values():
            self._collect(result, input_root)

        if tasks:
            with ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix=f"stage-{self.name.lower()}",
            ) as executor:
                future_to_task = {
                    executor.submit(self._run_task, task, input_root, on_complete): task
                    for task in tasks
                }

                for future in as_completed(future_to_task):
                    task = future_to_task[future]
                    try:
                        result = future.result()
                    except Exception as e:
                        result = TaskResult(
                            source_path=task.source_path,
                            status=TaskStatus.FAILED,
                            error_code=ErrorCode.IO_ERROR.value,
                            error_message=str(e),
                            completed_at=datetime.now(),
                        )
                    results[task.source_path] = result
                    self._collect(result, input_root)

        self.logger.info("Done converting files to %s...", self.name)
        self.emit(StageCompletedEvent(stage=self.name, stats=self.stats))

        return {path: results[path] for path in inputs}

    def plan(
        self,
        inputs: list[Path],
        build_command: BuildCommand,
        input_root: Path | None = None,
    ) -> tuple[list[StageTask], dict[Path, TaskResult]]:
        """
        Build a task per input.

        Returns the runnable tasks and the results of inputs rejected before
        anything was spawned.
        """
        tasks: list[StageTask] = []
        rejected: dict[Path, TaskResult] = {}
        claimed: dict[str, Path] = {}
        seen: set[Path] = set()

        for source in inputs:
            if source in seen:
                continue
            seen.add(source)
            try:
                command = build_command(source)
            except InvalidNameError as e:
                rejected[source] = self._rejection(source, ErrorCode.INVALID_NAME, str(e))
                continue

            key = _output_key(command.output_path)
            if key in claimed:
                other = self._relative(claimed[key], input_root)
                rejected[source] = self._rejection(
                    source,
                    ErrorCode.OUTPUT_COLLISION,
                    f"Output {command.output_path.name} already claimed by {other}",
                )
                continue

            claimed[key] = source
            tasks.append(StageTask(
                source_path=source,
                output_path=command.output_path,
                command=command.argv,
            ))

        return tasks, rejected

    def _run_task(
        self,
        task: StageTask,
        input_root: Path | None,
        on_complete: CompletionHook | None,
    ) -> TaskResult:
        """Worker body: spawn, wait, classify."""
        label = self._relative(task.source_path, input_root)
        self.logger.debug('Working on "%s"', label)
        started_at = datetime.now()

        try:
            completed = subprocess.run(
                task.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            _cleanup(task.output_path)
            result = self._failure(
                task,
                ErrorCode.TIMEOUT,
                f"Timed out after {self.timeout} seconds",
                started_at,
            )
        except OSError as e:
            result = self._failure(task, ErrorCode.IO_ERROR, str(e), started_at)
        else:
            if completed.returncode == 0:
                result = TaskResult(
                    source_path=task.source_path,
                    output_path=task.output_path,
                    status=TaskStatus.SUCCEEDED,
                    exit_code=0,
                    started_at=started_at,
                    completed_at=datetime.now(),
                )
            else:
                _cleanup(task.output_path)
                stderr = (completed.stderr or b"").decode(errors="replace").strip()
                result = self._failure(
                    task,
                    ErrorCode.ENCODE_FAIL,
                    stderr[:STDERR_EXCERPT] or f"Exited with status {completed.returncode}",
                    started_at,
                    exit_code=completed.returncode,
                )

        self.logger.debug('Finished processing "%s"', label)

        if on_complete:
            on_complete(task, result)

        return result

    def _collect(self, result: TaskResult, input_root: Path | None) -> None:
        self.stats.record(result)
        if not result.success:
            self.logger.error(
                'Unable to convert "%s" to %s: %s',
                self._relative(result.source_path, input_root),
                self.name,
                result.error_message,
            )
        self.emit(TaskFinishedEvent(stage=self.name, result=result))

    @staticmethod
    def _failure(
        task: StageTask,
        code: ErrorCode,
        message: str,
        started_at: datetime,
        exit_code: int | None = None,
    ) -> TaskResult:
        return TaskResult(
            source_path=task.source_path,
            output_path=None,
            status=TaskStatus.FAILED,
            exit_code=exit_code,
            error_code=code.value,
            error_message=message,
            started_at=started_at,
            completed_at=datetime.now(),
        )

    @staticmethod
    def _rejection(source: Path, code: ErrorCode, message: str) -> TaskResult:
        now = datetime.now()
        return TaskResult(
            source_path=source,
            status=TaskStatus.FAILED,
            error_code=code.value,
            error_message=message,
            started_at=now,
            completed_at=now,
        )

    @staticmethod
    def _relative(path: Path, root: Path | None) -> str:
        if root is not None:
            try:
                return path.relative_to(root).as_posix()
            except ValueError:
                pass
        return path.name


def _cleanup(path: Path) -> None:
    """Best-effort removal of a partial output."""
    try:
        path.unlink(missing_ok=True)
    except OSError:
        pass


def _output_key(path: Path) -> str:
    """Collision key for an output path; names differing only in case collide."""
    return str(path).casefold()
