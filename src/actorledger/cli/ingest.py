"""actorledger ingest command - run one ingestion cycle from a JSON diff."""

import asyncio
import json
from pathlib import Path

import click

from actorledger.cli.utils import open_database
from actorledger.core.errors import ActorLedgerError
from actorledger.ingest.orchestrator import IngestionOrchestrator
from actorledger.ingest.types import load_diff


@click.command()
@click.argument("diff_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--db", "db_path", type=click.Path(path_type=Path), default=None, help="SQLite file")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ingest_command(ctx: click.Context, diff_path: Path, db_path: Path | None, as_json: bool) -> None:
    """Ingest the actor diff and address changes stored in DIFF_PATH."""
    config = ctx.obj["config"]
    db = open_database(ctx, db_path)
    orchestrator = IngestionOrchestrator.from_config(db, config.ingest)
    try:
        diff, changes = load_diff(diff_path)
        stats = asyncio.run(orchestrator.handle_changes(diff, changes))
    except ActorLedgerError as e:
        if as_json:
            click.echo(json.dumps(e.to_dict()))
            ctx.exit(1)
        raise click.ClickException(str(e)) from e
    finally:
        orchestrator.close()
        db.dispose()

    if as_json:
        click.echo(
            json.dumps(
                {
                    "cycle_id": stats.cycle_id,
                    "addresses_corrected": stats.addresses_corrected,
                    "addresses_inserted": stats.addresses_inserted,
                    "heads_inserted": stats.heads_inserted,
                    "states_inserted": stats.states_inserted,
                }
            )
        )
    else:
        click.echo(
            f"Cycle {stats.cycle_id}: "
            f"{stats.addresses_corrected} addresses corrected, "
            f"{stats.addresses_inserted} added, "
            f"{stats.heads_inserted} heads, {stats.states_inserted} states "
            f"in {stats.duration_seconds:.2f}s"
        )
