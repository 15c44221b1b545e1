"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages and
provides the shared temporary database fixtures.
"""

import sys
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local actorledger package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from actorledger.store.database import Database  # noqa: E402


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db(temp_dir: Path) -> Generator[Database, None, None]:
    """Create a temporary database with schema."""
    db = Database(temp_dir / "test.db", busy_timeout_ms=5000, retry_base_delay=0.01)
    db.create_all()
    yield db
    db.dispose()
