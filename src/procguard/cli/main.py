"""Main CLI for procguard."""

import asyncio
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

import click
import psutil
from rich.console import Console
from rich.table import Table

from ..core.command import ExecutionOptions
from ..core.config import SupervisorConfig, load_config
from ..core.events import OutputKind
from ..errors import ErrorTranslator, ExecutionIOError
from ..process.escalation import terminate_tree
from ..process.streaming import spawn_streaming
from ..process.supervisor import execute
from ..process.tree import snapshot_tree
from ..utils.rich_logging import setup_logging

# Same convention as coreutils timeout(1)
EXIT_TERMINATED = 124
EXIT_IO_FAILURE = 125

DEFAULT_CONFIG_PATH = Path("procguard.yaml")

console = Console()
err_console = Console(stderr=True)

_PASSTHROUGH = {"ignore_unknown_options": True, "allow_interspersed_args": False}


def _parse_env_pairs(pairs: Tuple[str, ...]) -> Dict[str, str]:
    env: Dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise click.BadParameter(f"expected KEY=VALUE, got '{pair}'", param_hint="--env")
        env[name] = value
    return env


def _build_options(
    config: SupervisorConfig,
    grace: Optional[float],
    env_pairs: Tuple[str, ...],
    input_file,
) -> ExecutionOptions:
    options = ExecutionOptions(
        env=_parse_env_pairs(env_pairs),
        grace_period=grace if grace is not None else config.default_grace_period,
    )
    if input_file is not None:
        options = options.with_input(input_file.read())
    return options


def _shell_exit_code(code: int) -> int:
    """Map Python's negative signal return codes to the shell's 128+N."""
    return code if code >= 0 else 128 - code


def _report_io_failure(error: ExecutionIOError) -> None:
    translator = ErrorTranslator()
    err_console.print(translator.format_for_cli(translator.translate(error)))


@click.group()
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file (default: ./procguard.yaml if present)",
)
@click.option("--log-level", "-l", default=None, help="Override the configured log level")
@click.pass_context
def cli(ctx, config_path, log_level):
    """procguard - run programs under a deadline and clean up their process trees."""
    ctx.ensure_object(dict)

    if config_path is None and DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH
    config = load_config(config_path) if config_path is not None else SupervisorConfig()

    if log_level:
        try:
            config = SupervisorConfig(**{**config.model_dump(), "log_level": log_level})
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--log-level")
    setup_logging(config.log_level)
    ctx.obj["config"] = config


@cli.command(context_settings=_PASSTHROUGH)
@click.option("--timeout", "-t", type=float, default=None, help="Deadline in seconds")
@click.option("--grace", "-g", type=float, default=None, help="Seconds between SIGTERM and SIGKILL")
@click.option("--env", "-e", "env_pairs", multiple=True, help="Environment override KEY=VALUE")
@click.option("--input", "-i", "input_file", type=click.File("rb"), default=None, help="Feed FILE to stdin")
@click.argument("program")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run(ctx, timeout, grace, env_pairs, input_file, program, args):
    """Run PROGRAM to completion or until its deadline."""
    config: SupervisorConfig = ctx.obj["config"]
    options = _build_options(config, grace, env_pairs, input_file)

    try:
        result = asyncio.run(execute(program, args, timeout, options, config=config))
    except ExecutionIOError as e:
        _report_io_failure(e)
        sys.exit(EXIT_IO_FAILURE)

    for line in result.stdout:
        click.echo(line)
    for line in result.stderr:
        click.echo(line, err=True)

    if result.terminated:
        err_console.print(
            f"[yellow]Terminated: {program} exceeded {timeout or config.default_timeout}s deadline[/]"
        )
        sys.exit(EXIT_TERMINATED)
    sys.exit(_shell_exit_code(result.exit_code))


@cli.command(context_settings=_PASSTHROUGH)
@click.option("--grace", "-g", type=float, default=None, help="Grace period when interrupted")
@click.option("--env", "-e", "env_pairs", multiple=True, help="Environment override KEY=VALUE")
@click.option("--input", "-i", "input_file", type=click.File("rb"), default=None, help="Feed FILE to stdin")
@click.argument("program")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def stream(ctx, grace, env_pairs, input_file, program, args):
    """Run PROGRAM and print its output as it is produced."""
    config: SupervisorConfig = ctx.obj["config"]
    options = _build_options(config, grace, env_pairs, input_file)

    async def _stream() -> int:
        exit_code = 0
        async with await spawn_streaming(program, args, options, config=config) as frames:
            async for frame in frames:
                if frame.kind is OutputKind.STDOUT:
                    click.echo(frame.line)
                elif frame.kind is OutputKind.STDERR:
                    click.echo(frame.line, err=True)
                else:
                    exit_code = frame.code
        return exit_code

    try:
        code = asyncio.run(_stream())
    except ExecutionIOError as e:
        _report_io_failure(e)
        sys.exit(EXIT_IO_FAILURE)
    except KeyboardInterrupt:
        err_console.print("[yellow]Interrupted[/]")
        sys.exit(130)
    sys.exit(_shell_exit_code(code))


@cli.command()
@click.argument("pid", type=int)
@click.option("--grace", "-g", type=float, default=None, help="Seconds between SIGTERM and SIGKILL")
@click.option("--keep-root", is_flag=True, help="Only terminate descendants of PID")
@click.pass_context
def kill(ctx, pid, grace, keep_root):
    """Terminate PID and all of its descendants."""
    config: SupervisorConfig = ctx.obj["config"]

    if not psutil.pid_exists(pid):
        err_console.print(f"[red]Error: no process with pid {pid}[/]")
        sys.exit(1)

    targets = len(snapshot_tree(pid)) + (0 if keep_root else 1)
    asyncio.run(
        terminate_tree(pid, grace, include_root=not keep_root, poll_interval=config.poll_interval)
    )
    console.print(f"[green]✓ Sent termination to {targets} process(es) in tree of {pid}[/]")


@cli.command()
@click.argument("pid", type=int)
def tree(pid):
    """Show the current descendants of PID."""
    if not psutil.pid_exists(pid):
        err_console.print(f"[red]Error: no process with pid {pid}[/]")
        sys.exit(1)

    snapshot = snapshot_tree(pid)

    table = Table(title=f"Descendants of {pid}")
    table.add_column("PID", justify="right")
    table.add_column("PPID", justify="right")
    table.add_column("Name")
    table.add_column("Status")

    for member in sorted(snapshot.pids):
        try:
            proc = psutil.Process(member)
            with proc.oneshot():
                table.add_row(str(member), str(proc.ppid()), proc.name(), proc.status())
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            table.add_row(str(member), "-", "-", "gone")

    console.print(table)
    console.print(f"{len(snapshot)} descendant(s)")


if __name__ == "__main__":
    cli()
