"""CLI utilities."""

from pathlib import Path

import click

from actorledger.config.models import ActorLedgerConfig
from actorledger.store.database import Database


def open_database(ctx: click.Context, db_path: Path | None) -> Database:
    """Open the database named on the command line, or the configured one."""
    config: ActorLedgerConfig = ctx.obj["config"]
    database = config.database
    if db_path is not None:
        database = database.model_copy(update={"path": str(db_path)})
    return Database.from_config(database)
