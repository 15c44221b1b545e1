"""ActorLedger - durable, queryable records of chain actor state diffs."""

__version__ = "0.1.0"
