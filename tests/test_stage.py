"""Tests for the stage runner."""

import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest

from ccmusic.converter.commands import StageCommand
from ccmusic.converter.events import StageCompletedEvent, StageStartedEvent, TaskFinishedEvent
from ccmusic.converter.stage import StageRunner
from ccmusic.models.status import ErrorCode, NamingPolicy, TaskStatus
from ccmusic.scanner.naming import sanitize

WRITE_AND_EXIT = (
    "import pathlib, sys; "
    "pathlib.Path(sys.argv[1]).write_text('data'); "
    "sys.exit(int(sys.argv[2]))"
)


def make_inputs(root: Path, names: list[str]) -> list[Path]:
    """Create input files under ``root``."""
    paths = []
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"audio")
        paths.append(path)
    return paths


def make_builder(
    output_dir: Path,
    failing: set[str] | None = None,
    suffix: str = ".out",
    policy: NamingPolicy = NamingPolicy.LOWERCASE,
):
    """Command builder running a Python one-liner that writes the output."""
    failing = failing or set()

    def build(source: Path) -> StageCommand:
        output = output_dir / f"{sanitize(source.name, policy)}{suffix}"
        code = 1 if source.name in failing else 0
        return StageCommand(
            executable=sys.executable,
            args=["-c", WRITE_AND_EXIT, str(output), str(code)],
            output_path=output,
        )

    return build


class TestStageRunnerResults:
    """Tests for per-file outcomes."""

    def test_all_succeed(self, tmp_path, logger):
        """N inputs with a well-behaved tool give N outputs."""
        inputs = make_inputs(tmp_path / "in", [f"track {i}.mp3" for i in range(12)])
        out = tmp_path / "out"

        results = StageRunner("TEST", logger=logger).run(inputs, out, make_builder(out))

        assert len(results) == 12
        assert all(r.status == TaskStatus.SUCCEEDED for r in results.values())
        assert len(list(out.glob("*.out"))) == 12

    def test_failures_are_isolated(self, tmp_path, logger):
        """k failing inputs leave exactly N-k outputs and siblings untouched."""
        names = [f"song{i}.mp3" for i in range(8)]
        failing = {"song2.mp3", "song5.mp3", "song7.mp3"}
        inputs = make_inputs(tmp_path / "in", names)
        out = tmp_path / "out"

        results = StageRunner("TEST", logger=logger).run(inputs, out, make_builder(out, failing))

        produced = sorted(p.name for p in out.glob("*.out"))
        assert produced == sorted(f"{sanitize(n)}.out" for n in names if n not in failing)
        for path, result in results.items():
            if path.name in failing:
                assert result.status == TaskStatus.FAILED
                assert result.exit_code == 1
                assert result.error_code == ErrorCode.ENCODE_FAIL.value
                assert result.output_path is None
            else:
                assert result.success
                assert result.output_path.exists()

    def test_results_follow_input_order(self, tmp_path, logger):
        """The returned mapping keeps the input order."""
        inputs = make_inputs(tmp_path / "in", ["c.mp3", "a.mp3", "b.mp3"])
        out = tmp_path / "out"

        results = StageRunner("TEST", logger=logger).run(inputs, out, make_builder(out))

        assert list(results) == inputs

    def test_output_dir_created(self, tmp_path, logger):
        """A missing output directory is created."""
        inputs = make_inputs(tmp_path / "in", ["a.mp3"])
        out = tmp_path / "deep" / "out"

        StageRunner("TEST", logger=logger).run(inputs, out, make_builder(out))

        assert (out / "a.out").exists()

    def test_empty_input(self, tmp_path, logger):
        """No inputs is a no-op that still completes."""
        results = StageRunner("TEST", logger=logger).run([], tmp_path / "out", make_builder(tmp_path))
        assert results == {}

    def test_missing_executable(self, tmp_path, logger):
        """A tool that cannot be started fails the file with IO_ERROR."""
        inputs = make_inputs(tmp_path / "in", ["a.mp3"])
        out = tmp_path / "out"

        def build(source):
            return StageCommand(str(tmp_path / "does-not-exist"), [], out / "a.out")

        result = StageRunner("TEST", logger=logger).run(inputs, out, build)[inputs[0]]

        assert result.status == TaskStatus.FAILED
        assert result.error_code == ErrorCode.IO_ERROR.value

    def test_timeout(self, tmp_path, logger):
        """A hung process is killed and reported when a timeout is set."""
        inputs = make_inputs(tmp_path / "in", ["slow.mp3"])
        out = tmp_path / "out"

        def build(source):
            return StageCommand(sys.executable, ["-c", "import time; time.sleep(30)"], out / "slow.out")

        runner = StageRunner("TEST", timeout=0.5, logger=logger)
        result = runner.run(inputs, out, build)[inputs[0]]

        assert result.error_code == ErrorCode.TIMEOUT.value

    def test_stderr_kept_in_error(self, tmp_path, logger):
        """The tool's stderr ends up in the failure message."""
        inputs = make_inputs(tmp_path / "in", ["a.mp3"])
        out = tmp_path / "out"

        def build(source):
            script = "import sys; sys.stderr.write('bad header'); sys.exit(3)"
            return StageCommand(sys.executable, ["-c", script], out / "a.out")

        result = StageRunner("TEST", logger=logger).run(inputs, out, build)[inputs[0]]

        assert result.exit_code == 3
        assert "bad header" in result.error_message


class TestStageRunnerPlanning:
    """Tests for rejections before any process is spawned."""

    def test_invalid_name_rejected(self, tmp_path, logger):
        """A name with no usable characters fails with INVALID_NAME."""
        inputs = make_inputs(tmp_path / "in", ["!!!.mp3", "fine.mp3"])
        out = tmp_path / "out"

        results = StageRunner("TEST", logger=logger).run(inputs, out, make_builder(out))

        assert results[inputs[0]].error_code == ErrorCode.INVALID_NAME.value
        assert results[inputs[1]].success

    def test_colliding_outputs(self, tmp_path, logger):
        """Only the first input claiming an output path runs."""
        inputs = make_inputs(tmp_path / "in", ["a/Song.mp3", "b/song.flac", "c/SONG!.ogg"])
        out = tmp_path / "out"

        results = StageRunner("TEST", logger=logger).run(inputs, out, make_builder(out))

        assert results[inputs[0]].success
        assert results[inputs[1]].error_code == ErrorCode.OUTPUT_COLLISION.value
        assert results[inputs[2]].error_code == ErrorCode.OUTPUT_COLLISION.value
        assert [p.name for p in out.iterdir()] == ["song.out"]

    def test_outputs_differing_only_in_case_collide(self, tmp_path, logger):
        """Case-preserved names that differ only in case share one output."""
        inputs = make_inputs(tmp_path / "in", ["a/Song.mp3", "b/song.mp3"])
        out = tmp_path / "out"
        build = make_builder(out, policy=NamingPolicy.PRESERVE_CASE)

        results = StageRunner("TEST", logger=logger).run(inputs, out, build)

        assert results[inputs[0]].success
        assert results[inputs[1]].error_code == ErrorCode.OUTPUT_COLLISION.value
        assert [p.name for p in out.iterdir()] == ["Song.out"]

    def test_plan_builds_one_task_per_input(self, tmp_path, logger):
        """Planning maps each input to its command."""
        inputs = make_inputs(tmp_path / "in", ["a.mp3", "b.mp3"])
        out = tmp_path / "out"

        tasks, rejected = StageRunner("TEST", logger=logger).plan(inputs, make_builder(out))

        assert rejected == {}
        assert [t.source_path for t in tasks] == inputs
        assert tasks[0].command[0] == sys.executable
        assert tasks[0].output_path == out / "a.out"


class TestStageRunnerConcurrency:
    """Tests for the worker pool bound."""

    @pytest.mark.parametrize("limit,count", [(10, 40), (3, 12)])
    def test_never_exceeds_limit(self, tmp_path, logger, monkeypatch, limit, count):
        """No more than ``max_workers`` processes are alive at once."""
        lock = threading.Lock()
        live = 0
        high_water = 0

        def fake_run(command, **kwargs):
            nonlocal live, high_water
            with lock:
                live += 1
                high_water = max(high_water, live)
            time.sleep(0.05)
            with lock:
                live -= 1
            return subprocess.CompletedProcess(command, 0, stdout=None, stderr=b"")

        monkeypatch.setattr("ccmusic.converter.stage.subprocess.run", fake_run)
        inputs = make_inputs(tmp_path / "in", [f"t{i}.mp3" for i in range(count)])
        out = tmp_path / "out"

        results = StageRunner("TEST", max_workers=limit, logger=logger).run(
            inputs, out, make_builder(out)
        )

        assert len(results) == count
        assert all(r.success for r in results.values())
        assert 1 < high_water <= limit

    def test_default_limit_is_ten(self):
        """The default pool size is ten."""
        assert StageRunner("TEST").max_workers == 10

    def test_invalid_limit(self):
        """A pool needs at least one worker."""
        with pytest.raises(ValueError):
            StageRunner("TEST", max_workers=0)


class TestStageRunnerReporting:
    """Tests for hooks, events and log lines."""

    def test_on_complete_called_for_every_attempt(self, tmp_path, logger):
        """The completion hook sees successes and failures."""
        inputs = make_inputs(tmp_path / "in", ["ok.mp3", "bad.mp3"])
        out = tmp_path / "out"
        seen = {}

        def hook(task, result):
            seen[task.source_path.name] = result.success

        StageRunner("TEST", logger=logger).run(
            inputs, out, make_builder(out, {"bad.mp3"}), on_complete=hook
        )

        assert seen == {"ok.mp3": True, "bad.mp3": False}

    def test_events(self, tmp_path, logger):
        """Start, per-task and completion events are emitted."""
        inputs = make_inputs(tmp_path / "in", ["a.mp3", "b.mp3", "c.mp3"])
        out = tmp_path / "out"
        events = []

        StageRunner("TEST", logger=logger, event_callback=events.append).run(
            inputs, out, make_builder(out, {"b.mp3"})
        )

        assert isinstance(events[0], StageStartedEvent)
        assert events[0].total == 3
        finished = [e for e in events if isinstance(e, TaskFinishedEvent)]
        assert len(finished) == 3
        assert isinstance(events[-1], StageCompletedEvent)
        assert events[-1].stats.succeeded == 2
        assert events[-1].stats.failed == 1

    def test_log_lines(self, tmp_path, logger, caplog):
        """Debug start/finish per file, an error naming the failure, one info summary."""
        root = tmp_path / "in"
        inputs = make_inputs(root, ["good.mp3", "sub/bad.mp3"])
        out = tmp_path / "out"

        with caplog.at_level("DEBUG", logger=logger.name):
            StageRunner("WAV", logger=logger).run(
                inputs, out, make_builder(out, {"bad.mp3"}), input_root=root
            )

        messages = [r.getMessage() for r in caplog.records]
        assert 'Working on "good.mp3"' in messages
        assert 'Finished processing "sub/bad.mp3"' in messages
        errors = [r.getMessage() for r in caplog.records if r.levelname == "ERROR"]
        assert len(errors) == 1
        assert '"sub/bad.mp3"' in errors[0]
        assert "WAV" in errors[0]
        infos = [r.getMessage() for r in caplog.records if r.levelname == "INFO"]
        assert infos == ["Done converting files to WAV..."]
