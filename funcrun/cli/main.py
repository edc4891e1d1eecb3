import json
import logging
import os
import sys
from typing import Any, Optional

import click
from rich.markup import escape

from funcrun import __version__, config

from .console import console


def _setup_cli_debug():
    from funcrun.logging.setup import setup_logging_for_cli

    config.DEBUG = True
    os.environ["DEBUG"] = "1"

    setup_logging_for_cli(logging.DEBUG)


def _parse_json_option(value: Optional[str], option_name: str) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except ValueError as e:
        raise click.BadParameter(f"invalid JSON: {e}", param_hint=option_name)


@click.group(name="funcrun", help="Run functions in supervised engine processes")
@click.version_option(version=__version__, message="%(version)s")
@click.option("--debug", is_flag=True, help="Enable CLI debugging mode")
def funcrun(debug):
    if debug:
        _setup_cli_debug()
    else:
        from funcrun.logging.setup import setup_logging_from_config

        setup_logging_from_config()


@funcrun.command(name="invoke", help="Start a function from a source file and invoke it")
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--event", "event_json", default="{}", help="The event as JSON (default: {})")
@click.option("--init", "init_json", default=None, help="The init data as JSON")
@click.option("--repeat", default=1, type=click.IntRange(min=1), help="Number of invocations")
@click.option("--engine", default=None, help="Path to the execution engine (default: $DENO_PATH)")
@click.option(
    "--work-dir",
    default=None,
    type=click.Path(file_okay=False),
    help="Folder for function files (default: $FUNCRUN_WORK_DIR)",
)
def cmd_invoke(
    source: str,
    event_json: str,
    init_json: Optional[str],
    repeat: int,
    engine: Optional[str],
    work_dir: Optional[str],
):
    from funcrun.function.exceptions import FunctionError
    from funcrun.function.instance import FunctionInstance
    from funcrun.function.models import RunnerConfig
    from funcrun.utils.files import load_file

    event = _parse_json_option(event_json, "--event")
    init_data = _parse_json_option(init_json, "--init")
    code = load_file(source)

    runner_config = RunnerConfig.defaults()
    if engine:
        runner_config.engine_path = engine
    if work_dir:
        runner_config.work_dir = os.path.abspath(work_dir)

    def _print_log(line: str):
        console.print(f"[dim]{escape(line.rstrip())}[/dim]", highlight=False)

    try:
        with console.status("Starting function"):
            function = FunctionInstance.start(
                runner_config, code, init_data=init_data, log_listener=_print_log
            )
    except FunctionError as e:
        print_error(f"could not start function: {e}")
        sys.exit(1)

    with function:
        for _ in range(repeat):
            try:
                result = function.invoke(event)
            except FunctionError as e:
                print_error(e)
                sys.exit(1)
            console.print_json(json.dumps(result))


@funcrun.group(name="config", help="Inspect the funcrun configuration")
def funcrun_config():
    pass


@funcrun_config.command(name="show", help="Print the current configuration")
@click.option(
    "--format", "format_", type=click.Choice(["table", "plain", "json"]), default="table"
)
def cmd_config_show(format_):
    if format_ == "table":
        print_config_table()
    elif format_ == "plain":
        print_config_pairs()
    elif format_ == "json":
        console.print_json(json.dumps(dict(config.collect_config_items())))


def print_config_pairs():
    for key, value in config.collect_config_items():
        console.print(f"{key}={value}", highlight=False)


def print_config_table():
    from rich.table import Table

    grid = Table(show_header=True)
    grid.add_column("Key")
    grid.add_column("Value")

    for key, value in config.collect_config_items():
        grid.add_row(key, str(value))

    console.print(grid)


def print_error(error):
    symbol = "[bold][red]:heavy_multiplication_x: ERROR[/red][/bold]"
    console.print(f"{symbol}: {escape(str(error))}", highlight=False)


def main():
    funcrun()


if __name__ == "__main__":
    main()
