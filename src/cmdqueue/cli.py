"""
CLI entry point for running command queues.
"""

import asyncio
import os
from pathlib import Path
from typing import List, Optional, Tuple

import click
from dotenv import load_dotenv

from .config import Settings, ThemeConfiguration
from .engine import QueueEngine, QueueMode
from .exceptions import CmdQueueError
from .logging import QueueLogger
from .reporter import ConsoleReporter

logger = QueueLogger().get_context_logger(component="cli")


def load_environment_variables(env_path: Path) -> None:
    """Load environment variables from a .env file if it exists."""
    if env_path.exists():
        load_dotenv(env_path)
        for key, value in os.environ.items():
            if key.startswith("CMDQUEUE_"):
                logger.debug("Loaded env var: %s=%s", key, value)


def read_command_file(path: str) -> List[str]:
    """Read one command per line, skipping blank lines and ``#`` comments."""
    commands = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                commands.append(line)
    return commands


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-dir", type=str, help="Directory for log files")
@click.pass_context
def cli(ctx: click.Context, debug: bool = False, log_dir: Optional[str] = None):
    """Run shell commands one after another or all at once."""
    load_environment_variables(Path.cwd() / ".env")
    settings = Settings.from_env()
    QueueLogger().setup(
        debug=debug or settings.debug, log_dir=log_dir or settings.log_dir
    )
    ctx.obj = settings


@cli.command()
@click.argument("commands", nargs=-1)
@click.option(
    "--concurrent/--sequential",
    default=None,
    help="Run all commands at once instead of one at a time",
)
@click.option("--name", default="cmdqueue", show_default=True, help="Queue name")
@click.option(
    "--cwd",
    type=click.Path(file_okay=False),
    default=".",
    show_default=True,
    help="Working directory for every command",
)
@click.option(
    "--file",
    "command_file",
    type=click.Path(exists=True, dir_okay=False),
    help="File with one command per line",
)
@click.option("--theme", type=click.Path(dir_okay=False), help="JSON color theme")
@click.option(
    "--quiet",
    is_flag=True,
    help="Suppress queue progress and command output; failures are still reported",
)
@click.pass_obj
def run(
    settings: Settings,
    commands: Tuple[str, ...],
    concurrent: Optional[bool],
    name: str,
    cwd: str,
    command_file: Optional[str],
    theme: Optional[str],
    quiet: bool,
):
    """Run COMMANDS as a queue."""
    all_commands = list(commands)
    if command_file:
        all_commands.extend(read_command_file(command_file))
    if not all_commands:
        raise click.UsageError("No commands given")

    if concurrent is None:
        mode = settings.mode
    else:
        mode = QueueMode.CONCURRENT if concurrent else QueueMode.SEQUENTIAL

    try:
        engine = QueueEngine(name, mode)
        reporter = None
        if not quiet:
            reporter = ConsoleReporter(ThemeConfiguration(theme or settings.theme))
            reporter.attach(engine)
        for command in all_commands:
            handler = reporter.wrap() if reporter else None
            engine.enqueue(command, cwd, handler)
        results = asyncio.run(engine.run())
    except CmdQueueError as e:
        click.secho(f"✗ {str(e)}", fg="red", err=True)
        raise click.Abort() from e

    failed = [result for result in results if not result.succeeded]
    if failed:
        for result in failed:
            click.secho(f"✗ {result.command}", fg="red", err=True)
        raise click.ClickException(
            f"{len(failed)} of {len(results)} command(s) failed"
        )


if __name__ == "__main__":
    cli()
