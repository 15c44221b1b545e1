"""Additional index creation for query performance.

These indexes complement the basic indexes defined in SQLModel Field()
declarations. They are composite indexes for the temporal join and the
content-address lookups that cannot be expressed via Field(index=True).

Database.create_all() calls create_additional_indexes().
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import text

if TYPE_CHECKING:
    from sqlalchemy import Engine


ADDITIONAL_INDEXES = [
    # actor_tips joins observations to lineage on the state root
    "CREATE INDEX IF NOT EXISTS idx_actors_stateroot ON actors(stateroot)",
    "CREATE INDEX IF NOT EXISTS idx_state_heights_parent_height ON state_heights(parentstateroot, height)",
    # Blob lookup by head alone
    "CREATE INDEX IF NOT EXISTS idx_actor_states_head ON actor_states(head)",
]


def create_additional_indexes(engine: Engine) -> None:
    """Create additional composite indexes."""
    with engine.connect() as conn:
        for sql in ADDITIONAL_INDEXES:
            conn.execute(text(sql))
        conn.commit()

