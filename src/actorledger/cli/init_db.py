"""actorledger init-db command - create tables and indexes."""

from pathlib import Path

import click

from actorledger.cli.utils import open_database
from actorledger.ingest.addresses import AddressResolver


@click.command()
@click.option("--db", "db_path", type=click.Path(path_type=Path), default=None, help="SQLite file")
@click.pass_context
def init_db_command(ctx: click.Context, db_path: Path | None) -> None:
    """Create the ledger tables and register the singleton actors."""
    config = ctx.obj["config"]
    db = open_database(ctx, db_path)
    try:
        db.create_all()
        seeded = AddressResolver(db, network_prefix=config.ingest.network_prefix).seed()
    finally:
        db.dispose()
    click.echo(f"Initialized {db.db_path} ({seeded} singleton actors registered)")
