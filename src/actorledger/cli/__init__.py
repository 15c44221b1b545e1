"""ActorLedger command line interface."""
