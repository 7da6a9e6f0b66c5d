# cli.py
from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from deploywave.assembly import assemble_pipeline, load_pipeline
from deploywave.expand import concurrent_groups, expand_pipeline
from deploywave.model import ConfigError
from deploywave.ui.console import Console, get_console, set_console

DEFAULT_CONFIG_FILES = ("deploywave_pipeline.py", "deploywave.json")


def discover_config(config_arg: str | None) -> Path:
    """
    Find the pipeline config from the argument or the defaults.

    Raises:
        SystemExit: If no config (or more than one default) is found
    """
    console = get_console()

    if config_arg:
        config_path = Path(config_arg)
        if not config_path.exists():
            console.print_error(
                "Pipeline config not found",
                f"Could not find pipeline config: {config_arg}",
                suggestion="Specify a different path:\n  deploywave plan --config deploywave_pipeline.py",
            )
            sys.exit(1)
        return config_path

    found = [Path(name) for name in DEFAULT_CONFIG_FILES if Path(name).exists()]

    if not found:
        console.print_error(
            "No pipeline config found",
            "Could not find a pipeline config in the current directory.",
            details=["Looked for:", *(f"  {name}" for name in DEFAULT_CONFIG_FILES)],
            suggestion="Create deploywave_pipeline.py or pass --config explicitly.",
        )
        sys.exit(1)

    if len(found) > 1:
        console.print_error(
            "Multiple pipeline configs found",
            "Found more than one pipeline config. Please specify which one to use:",
            details=[f"  {p}" for p in found],
            suggestion="deploywave plan --config deploywave_pipeline.py",
        )
        sys.exit(1)

    return found[0]


def _fail(e: Exception) -> None:
    console = get_console()
    if isinstance(e, ConfigError):
        console.print_error("Invalid pipeline configuration", str(e))
    else:
        console.print_exception(e)
    sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
def cli(debug):
    """deploywave: wave-based delivery pipeline assembly."""
    set_console(Console(debug=debug))


@cli.command()
@click.option("--config", "config_arg", default=None, help="Pipeline config (.py or .json)")
def plan(config_arg):
    """Print the expanded deployment stages."""
    console = get_console()
    config_path = discover_config(config_arg)

    try:
        config = load_pipeline(config_path)
        stages = expand_pipeline(config.pipeline)
    except Exception as e:
        _fail(e)

    console.print_debug(f"Loaded {config_path.resolve()}")
    console.print_pipeline_started(config.pipeline_name, config_path.name, len(stages))
    console.print_plan(concurrent_groups(stages))


@cli.command()
@click.option("--config", "config_arg", default=None, help="Pipeline config (.py or .json)")
@click.option("--out", "out_path", default=None, help="Write the definition to a file instead of stdout")
def synth(config_arg, out_path):
    """Assemble the pipeline definition as JSON."""
    console = get_console()
    config_path = discover_config(config_arg)

    try:
        definition = assemble_pipeline(load_pipeline(config_path))
    except Exception as e:
        _fail(e)

    text = json.dumps(definition.to_dict(), indent=2)
    if out_path:
        Path(out_path).write_text(text + "\n", encoding="utf-8")
        console.print_info(f"Wrote {definition.name} to {out_path}")
    else:
        click.echo(text)


@cli.command()
@click.argument("event_file", type=click.Path(exists=True, dir_okay=False))
def relay(event_file):
    """Relay one pipeline state-change event (JSON file) to the repository."""
    from deploywave.relay.handler import lambda_handler

    try:
        event = json.loads(Path(event_file).read_text(encoding="utf-8"))
        result = lambda_handler(event)
    except Exception as e:
        _fail(e)

    click.echo(json.dumps(result, indent=2))


if __name__ == "__main__":
    cli()
