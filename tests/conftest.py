from pathlib import Path
import sys

import pytest

# Ensure repo root is importable as a package root (for `firebase_mcp` and `tests._utils`).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tests._utils.fakes import (  # noqa: E402
    FakeAuth,
    FakeFirestore,
    FakeStorage,
    make_connection,
)

_FIREBASE_ENV = (
    "SERVICE_ACCOUNT_KEY_PATH",
    "FIREBASE_PROJECT_ID",
    "FIREBASE_STORAGE_BUCKET",
    "USE_FIREBASE_EMULATOR",
    "FIRESTORE_EMULATOR_HOST",
    "FIREBASE_AUTH_EMULATOR_HOST",
    "FIREBASE_STORAGE_EMULATOR_HOST",
    "STORAGE_EMULATOR_HOST",
    "FIREBASE_MCP_CONFIG",
    "FIREBASE_MCP_STRICT_NOT_FOUND",
    "FIREBASE_MCP_LOG_LEVEL",
    "FIREBASE_MCP_OBS_ENABLED",
    "FIREBASE_MCP_OBS_LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def hermetic_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    Autouse: each test runs in its own tmp cwd with no Firebase settings
    leaking in from the developer's shell.
    """
    monkeypatch.chdir(tmp_path)
    for name in _FIREBASE_ENV:
        # setenv first so values written by the code under test are undone too
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return tmp_path


@pytest.fixture
def fake_firestore() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture
def fake_auth() -> FakeAuth:
    return FakeAuth()


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def connection(fake_firestore, fake_auth, fake_storage):
    return make_connection(fake_firestore, fake_auth, fake_storage)
