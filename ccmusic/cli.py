"""CLI entry point using Click."""

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from ccmusic import __version__
from ccmusic.models.config import Config, RunConfig
from ccmusic.utils.errors import ToolProvisioningError
from ccmusic.utils.logging import setup_logging


console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context):
    """
    ccmusic - convert audio files to ComputerCraft DFPWM.

    Drop files into the input directory, then every file is decoded to
    WAV with FFmpeg and encoded to DFPWM into a fresh output directory.
    Runs `convert` when no command is given.
    """
    if ctx.invoked_subcommand is None:
        ctx.invoke(convert)


@cli.command()
@click.option(
    "--input",
    "-i",
    "input_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory scanned (recursively) for files to convert [default: ./input]",
)
@click.option(
    "--output",
    "-o",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory receiving one timestamped folder per run [default: ./output]",
)
@click.option(
    "--no-prompt",
    is_flag=True,
    help="Start immediately instead of waiting for enter",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Log file to append to [default: ./latest.log]",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Minimum level written to the log file",
)
def convert(
    input_dir: Path | None,
    output_dir: Path | None,
    no_prompt: bool,
    log_file: Path | None,
    log_level: str | None,
):
    """
    Convert every file in the input directory to DFPWM.

    Files that fail to convert are reported in the log and skipped;
    the rest of the batch is unaffected.
    """
    config = Config()
    run = RunConfig(
        input_root=(input_dir or config.input_dir).resolve(),
        output_root=(output_dir or config.output_dir).resolve(),
        prompt=not no_prompt,
    )
    logger = setup_logging(
        level=log_level or config.log_level,
        log_file=log_file or config.log_file,
        jsonl=config.jsonl_log,
        console=console,
    )

    run.input_root.mkdir(parents=True, exist_ok=True)
    run.output_root.mkdir(parents=True, exist_ok=True)

    if run.prompt:
        logger.info("Place files in input directory and press enter when ready...")
        sys.stdin.readline()

    from ccmusic.converter.events import StageCompletedEvent, StageStartedEvent, TaskFinishedEvent
    from ccmusic.converter.pipeline import ConversionPipeline

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
        transient=True,
    ) as progress:
        stage_tasks = {}

        def on_event(event):
            if isinstance(event, StageStartedEvent):
                stage_tasks[event.stage] = progress.add_task(
                    f"Converting to {event.stage}", total=event.total
                )
            elif isinstance(event, TaskFinishedEvent) and event.stage in stage_tasks:
                progress.advance(stage_tasks[event.stage])
            elif isinstance(event, StageCompletedEvent) and event.stage in stage_tasks:
                progress.update(stage_tasks[event.stage], visible=False)

        pipeline = ConversionPipeline(config=config, logger=logger, event_callback=on_event)
        try:
            result = pipeline.execute(run.input_root, run.output_root)
        except ToolProvisioningError as e:
            logger.critical(str(e))
            sys.exit(1)

    table = Table(title="Conversion summary")
    table.add_column("Stage")
    table.add_column("Total", justify="right")
    table.add_column("Succeeded", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    for name, stats in (("WAV", result.stats.stage_one), ("DFPWM", result.stats.stage_two)):
        table.add_row(name, str(stats.total), str(stats.succeeded), str(stats.failed))
    console.print(table)
    console.print(f"[blue]Output directory:[/blue] {result.working_dir}")
    console.print(f"[blue]Finished in[/blue] {result.stats.duration_seconds:.1f}s")


@cli.command(name="fetch-tools")
@click.option(
    "--tools-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory FFmpeg is cached in [default: ./ffmpeg]",
)
def fetch_tools(tools_dir: Path | None):
    """
    Download FFmpeg into the tools directory if it is not there yet.
    """
    config = Config()
    if tools_dir is not None:
        config = config.model_copy(update={"tools_dir": tools_dir})
    logger = setup_logging(level=config.log_level, log_file=config.log_file, console=console)

    from ccmusic.tools.provisioner import ToolProvisioner

    try:
        handle = ToolProvisioner(config, logger).resolve_transcoder()
    except ToolProvisioningError as e:
        logger.critical(str(e))
        sys.exit(1)

    state = "downloaded" if handle.freshly_provisioned else "already present"
    console.print(f"[green]FFmpeg {state}:[/green] {handle.path}")


if __name__ == "__main__":
    cli()
