"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "SCP_DB_PATH": str(Path(tempfile.gettempdir()) / "scp-local-tests" / "tokens.db"),
    "SCP_DEMO_MODE": "false",
    "APP_LOG_LEVEL": "WARNING",
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)

os.environ.pop("SCP_TEST_ENDPOINT", None)
