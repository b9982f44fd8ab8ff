"""
Firebase Authentication capability client.

Unlike the Firestore and Storage clients, lookups do not turn failures into
error envelopes: every exception is logged and re-raised so the MCP layer
reports it as a protocol error.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from firebase_admin import auth

from firebase_mcp.connection import FirebaseConnection
from firebase_mcp.envelope import ToolResponse
from firebase_mcp.errors import NotInitializedError
from firebase_mcp.tools.serialize import ms_to_iso

logger = logging.getLogger(__name__)


def user_record_to_dict(record: Any) -> dict[str, Any]:
    """Serialize a firebase_admin UserRecord with the Admin SDK's JSON keys."""
    metadata = record.user_metadata
    return {
        "uid": record.uid,
        "email": record.email,
        "emailVerified": record.email_verified,
        "displayName": record.display_name,
        "photoURL": record.photo_url,
        "phoneNumber": record.phone_number,
        "disabled": record.disabled,
        "metadata": {
            "creationTime": ms_to_iso(metadata.creation_timestamp) if metadata else None,
            "lastSignInTime": ms_to_iso(metadata.last_sign_in_timestamp) if metadata else None,
            "lastRefreshTime": ms_to_iso(metadata.last_refresh_timestamp) if metadata else None,
        },
        "providerData": [
            {
                "uid": info.uid,
                "displayName": info.display_name,
                "email": info.email,
                "photoURL": info.photo_url,
                "providerId": info.provider_id,
                "phoneNumber": info.phone_number,
            }
            for info in record.provider_data
        ],
        "customClaims": record.custom_claims,
        "tokensValidAfterTime": ms_to_iso(record.tokens_valid_after_timestamp),
        "tenantId": record.tenant_id,
    }


class AuthClient:
    """Identity capability client."""

    def __init__(self, connection: FirebaseConnection | None):
        self.connection = connection

    def _require(self) -> FirebaseConnection:
        if self.connection is None:
            raise NotInitializedError()
        return self.connection

    async def get_user_by_id_or_email(self, identifier: str) -> ToolResponse:
        """Look up by email when identifier contains '@', otherwise by uid.

        Raises:
            NotInitializedError: no Firebase connection
            firebase_admin.auth.UserNotFoundError: no user record matches
        """
        try:
            client = self._require().auth
            if "@" in identifier:
                record = await asyncio.to_thread(client.get_user_by_email, identifier)
            else:
                record = await asyncio.to_thread(client.get_user, identifier)
            return ToolResponse.ok_json(user_record_to_dict(record), indent=2)
        except Exception as e:
            logger.error(f"Error fetching user {identifier!r}: {e}")
            raise

    # Fixture helpers for emulator-backed test runs; not exposed as tools.

    async def create_user(
        self, uid: str, email: str, password: str, email_verified: bool = True
    ) -> None:
        """Create a user, treating an existing uid/email as success."""
        client = self._require().auth
        try:
            await asyncio.to_thread(
                client.create_user,
                uid=uid,
                email=email,
                password=password,
                email_verified=email_verified,
            )
        except (auth.UidAlreadyExistsError, auth.EmailAlreadyExistsError):
            logger.info(f"Test user already exists: {email}")

    async def delete_user(self, uid: str) -> None:
        """Delete a user, treating a missing user as success."""
        client = self._require().auth
        try:
            await asyncio.to_thread(client.delete_user, uid)
        except auth.UserNotFoundError:
            logger.info(f"Test user already absent: {uid}")
