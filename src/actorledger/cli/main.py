"""ActorLedger CLI - actorledger command."""

from pathlib import Path

import click

from actorledger import __version__
from actorledger.cli.ingest import ingest_command
from actorledger.cli.init_db import init_db_command
from actorledger.cli.tips import tips_command
from actorledger.config.loader import load_config
from actorledger.core.errors import ConfigError
from actorledger.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="actorledger")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="YAML config file",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None) -> None:
    """ActorLedger - ingest chain actor diffs into a queryable ledger."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    if verbose:
        config.logging.level = "DEBUG"
    configure_logging(config=config.logging)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = config


cli.add_command(init_db_command, name="init-db")
cli.add_command(ingest_command, name="ingest")
cli.add_command(tips_command, name="tips")


if __name__ == "__main__":
    cli()
