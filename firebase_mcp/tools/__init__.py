"""
Capability clients, one per Firebase backend.
"""

from __future__ import annotations

from firebase_mcp.tools.auth import AuthClient
from firebase_mcp.tools.firestore import FirestoreClient
from firebase_mcp.tools.storage import StorageClient

__all__ = [
    "AuthClient",
    "FirestoreClient",
    "StorageClient",
]
