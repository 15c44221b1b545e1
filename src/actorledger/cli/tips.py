"""actorledger tips command - actor records as of an epoch."""

import json
from dataclasses import asdict
from pathlib import Path

import click

from actorledger.cli.utils import open_database
from actorledger.ingest.tips import TemporalIndex


@click.command()
@click.argument("epoch", type=click.IntRange(min=0))
@click.option("--db", "db_path", type=click.Path(path_type=Path), default=None, help="SQLite file")
@click.option("--id", "identifier", default=None, help="Only this identifier")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tips_command(
    ctx: click.Context, epoch: int, db_path: Path | None, identifier: str | None, as_json: bool
) -> None:
    """Show each actor's most recent observation below EPOCH."""
    db = open_database(ctx, db_path)
    try:
        index = TemporalIndex(db)
        if identifier is None:
            tips = index.actor_tips(epoch)
        else:
            tip = index.actor_tip(identifier, epoch)
            tips = [tip] if tip else []
    finally:
        db.dispose()

    if as_json:
        click.echo(json.dumps([asdict(t) for t in tips]))
        return

    if not tips:
        click.echo(f"No actors observed below epoch {epoch}")
        return
    for tip in tips:
        click.echo(
            f"{tip.id}  code={tip.code}  head={tip.head}  nonce={tip.nonce}  "
            f"balance={tip.balance}  height={tip.height}"
        )
