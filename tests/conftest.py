"""
conftest.py – central pytest configuration and test bootstrap.

Pytest imports this module before it collects any test files, which lets us
prepare the environment the `config` package reads at import time:

1) Extend `sys.path` with the project root so imports like `from core ...` and
   `from services ...` resolve without an editable install.
2) Point the user data directory at a throwaway temp directory and disable the
   rotating log file, so running the suite never writes into the repository.

Shared fixtures for a fresh SQLite store live here as well.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

# Ensure project root is on sys.path for direct imports like `core`, `shared`, etc.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Provide environment defaults for tests
os.environ.setdefault("AVA_USER_DATA_DIR", tempfile.mkdtemp(prefix="ava-test-"))
os.environ.setdefault("LOG_FILE_PATH", "")
os.environ.setdefault("BASE_URL", "http://localhost:4000/")

from services.database import init_db  # noqa: E402


@pytest.fixture
def db_path(tmp_path):
    """Path to a freshly initialized SQLite store."""
    path = str(tmp_path / "ava.db")
    init_db(path)
    return path
