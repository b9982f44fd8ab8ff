"""
Backend connection for the Firebase MCP server.

One FirebaseConnection is built at startup and handed to every capability
client. It is never mutated afterwards.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials, firestore, storage

from firebase_mcp.config import McpConfig

logger = logging.getLogger(__name__)

CONSOLE_BASE_URL = "https://console.firebase.google.com/project"


@dataclass(frozen=True)
class FirebaseConnection:
    """Initialized Firebase app plus the per-service handles built from it."""

    project_id: str
    firestore: Any
    auth: Any
    bucket_factory: Callable[[str | None], Any]
    app: Any = None

    def bucket(self, name: str | None = None) -> Any:
        """Bucket handle; None asks for the app's default bucket."""
        return self.bucket_factory(name)

    def console_url(self, *parts: str) -> str:
        """Deep link into the Firebase console for this project."""
        return "/".join([CONSOLE_BASE_URL, self.project_id, *parts])


def read_project_id(key_path: str | Path) -> str:
    """Project id recorded in a service-account key file."""
    with open(key_path, encoding="utf-8") as f:
        data = json.load(f)
    project_id = data.get("project_id")
    if not project_id:
        raise ValueError(f"Service account key {key_path} has no project_id")
    return project_id


def _export_emulator_env(config: McpConfig) -> None:
    """Point the Google client libraries at the local emulators."""
    emu = config.emulator
    if emu.firestore_host:
        os.environ.setdefault("FIRESTORE_EMULATOR_HOST", emu.firestore_host)
    if emu.auth_host:
        os.environ.setdefault("FIREBASE_AUTH_EMULATOR_HOST", emu.auth_host)
    if emu.storage_host:
        # google-cloud-storage expects a full endpoint URL
        os.environ.setdefault("STORAGE_EMULATOR_HOST", f"http://{emu.storage_host}")


def connect(config: McpConfig) -> FirebaseConnection | None:
    """
    Initialize the Firebase app described by config.

    Returns None when no service-account key is configured; each tool call
    then reports the NotInitialized condition on its own.

    Raises:
        OSError / ValueError: key file unreadable or malformed.
    """
    key_path = config.firebase.service_account_key_path
    if not key_path:
        logger.warning("SERVICE_ACCOUNT_KEY_PATH not set; Firebase tools will report not initialized")
        return None

    project_id = config.firebase.project_id or read_project_id(key_path)

    if config.emulator.active:
        _export_emulator_env(config)
        logger.info(f"Using Firebase emulator suite for project {project_id}")

    options: dict[str, Any] = {"projectId": project_id}
    if config.firebase.storage_bucket:
        options["storageBucket"] = config.firebase.storage_bucket

    app = firebase_admin.initialize_app(
        credentials.Certificate(key_path), options, name=config.server.name
    )

    def bucket_factory(name: str | None) -> Any:
        return storage.bucket(name, app=app)

    logger.info(f"Firebase initialized: project={project_id}")
    return FirebaseConnection(
        project_id=project_id,
        firestore=firestore.client(app),
        auth=auth.Client(app),
        bucket_factory=bucket_factory,
        app=app,
    )


def disconnect(connection: FirebaseConnection | None) -> None:
    """Release the Firebase app at shutdown."""
    if connection is not None and connection.app is not None:
        firebase_admin.delete_app(connection.app)
