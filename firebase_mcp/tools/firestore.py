"""
Firestore capability client.

Lists collections, queries documents with filters and cursor pagination,
and performs point CRUD. Every failure is returned as an error envelope;
nothing in this module raises to the dispatcher.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
import re
from typing import Any

from google.cloud.firestore_v1.base_query import FieldFilter

from firebase_mcp.connection import FirebaseConnection
from firebase_mcp.envelope import ToolResponse
from firebase_mcp.errors import InvalidQueryError, NotInitializedError, positive_int
from firebase_mcp.tools.serialize import convert_timestamps

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 20

# Wire spelling -> google-cloud-firestore spelling
FILTER_OPERATORS = {
    "==": "==",
    "!=": "!=",
    "<": "<",
    "<=": "<=",
    ">": ">",
    ">=": ">=",
    "array-contains": "array_contains",
    "array_contains": "array_contains",
    "array-contains-any": "array_contains_any",
    "array_contains_any": "array_contains_any",
    "in": "in",
    "not-in": "not-in",
    "not_in": "not-in",
}

_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")

# Calendar dates without an ISO prefix. Day-first and month-first numeric
# forms are ambiguous and stay strings.
_CALENDAR_FORMATS = (
    "%Y/%m/%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
)


def _parse_date(value: str) -> datetime | None:
    if _DATE_PREFIX.match(value):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    for fmt in _CALENDAR_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    return None


def coerce_filter_value(value: Any) -> Any:
    """
    Turn date-like strings into datetimes so they compare as timestamps.

    Accepts ISO-8601 (YYYY-MM-DD prefix) plus YYYY/MM/DD and month-name
    dates such as "Jan 31, 2024"; naive values are taken as UTC.
    """
    if not isinstance(value, str):
        return value
    parsed = _parse_date(value)
    if parsed is None:
        return value
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_filter(condition: dict[str, Any]) -> FieldFilter:
    """Validate one {field, operator, value} condition.

    Raises:
        InvalidQueryError: missing field or unsupported operator
    """
    if not isinstance(condition, dict):
        raise InvalidQueryError(f"Filter must be an object, got {type(condition).__name__}")
    field = condition.get("field")
    if not field or not isinstance(field, str):
        raise InvalidQueryError("Filter field is required")
    operator = condition.get("operator")
    op_string = FILTER_OPERATORS.get(operator) if isinstance(operator, str) else None
    if op_string is None:
        raise InvalidQueryError(f"Unsupported filter operator: {operator!r}")
    return FieldFilter(field, op_string, coerce_filter_value(condition.get("value")))


class FirestoreClient:
    """Document capability client."""

    def __init__(self, connection: FirebaseConnection | None):
        self.connection = connection

    def _require(self) -> FirebaseConnection:
        if self.connection is None:
            raise NotInitializedError()
        return self.connection

    def _document_url(self, collection: str, doc_id: str) -> str:
        return self._require().console_url("firestore", "data", collection, doc_id)

    def _failure(self, action: str, exc: Exception) -> ToolResponse:
        if isinstance(exc, NotInitializedError):
            return ToolResponse.error(str(exc))
        logger.warning(f"Error {action}: {exc}")
        return ToolResponse.error(f"Error {action}: {exc}")

    async def list_collections(
        self,
        document_path: str | None = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        page_token: str | None = None,
    ) -> ToolResponse:
        """Root collections, or sub-collections of document_path, sorted by id."""
        try:
            limit = positive_int(limit, "limit")
            conn = self._require()
            db = conn.firestore
            if document_path:
                source = db.document(document_path)
            else:
                source = db

            collections = await asyncio.to_thread(lambda: list(source.collections()))
            collections.sort(key=lambda c: c.id)

            start = 0
            if page_token:
                ids = [c.id for c in collections]
                # Unknown token restarts from the first page
                start = ids.index(page_token) + 1 if page_token in ids else 0

            page = collections[start : start + limit]
            has_more = len(collections) > start + limit

            parent = [document_path] if document_path else []
            data = [
                {
                    "name": c.id,
                    "url": conn.console_url("firestore", "data", *parent, c.id),
                }
                for c in page
            ]
            return ToolResponse.ok_json(
                {
                    "collections": data,
                    "nextPageToken": page[-1].id if has_more and page else None,
                    "hasMore": has_more,
                }
            )
        except Exception as e:
            return self._failure("listing collections", e)

    async def list_documents(
        self,
        collection: str,
        filters: list[dict[str, Any]] | None = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        page_token: str | None = None,
    ) -> ToolResponse:
        """
        Conjunctive filtered query with cursor pagination.

        totalCount comes from a second, unlimited read of the same query
        (cursor included). With a page_token it is the number of matches
        remaining after the cursor, not the match count of the whole query,
        and hasMore is totalCount > limit.
        """
        try:
            limit = positive_int(limit, "limit")
            conn = self._require()
            collection_ref = conn.firestore.collection(collection)
            query = collection_ref
            for condition in filters or []:
                query = query.where(filter=build_filter(condition))

            if page_token:
                cursor = await asyncio.to_thread(collection_ref.document(page_token).get)
                query = query.start_after(cursor)

            matching = await asyncio.to_thread(lambda: list(query.stream()))
            total_count = len(matching)

            limited = query.limit(limit)
            snapshots = await asyncio.to_thread(lambda: list(limited.stream()))

            if not snapshots:
                return ToolResponse.error("No matching documents found")

            documents = [
                {
                    "id": snap.id,
                    "url": self._document_url(collection, snap.id),
                    "document": convert_timestamps(snap.to_dict() or {}),
                }
                for snap in snapshots
            ]
            return ToolResponse.ok_json(
                {
                    "totalCount": total_count,
                    "documents": documents,
                    "pageToken": documents[-1]["id"],
                    "hasMore": total_count > limit,
                }
            )
        except Exception as e:
            return self._failure("listing documents", e)

    async def get_document(self, collection: str, doc_id: str) -> ToolResponse:
        try:
            conn = self._require()
            ref = conn.firestore.collection(collection).document(doc_id)
            snap = await asyncio.to_thread(ref.get)
            if not snap.exists:
                return ToolResponse.error("Document not found")
            return ToolResponse.ok_json(
                {
                    "id": doc_id,
                    "url": self._document_url(collection, doc_id),
                    "document": convert_timestamps(snap.to_dict() or {}),
                }
            )
        except Exception as e:
            return self._failure("getting document", e)

    async def add_document(self, collection: str, data: dict[str, Any]) -> ToolResponse:
        """Add with a backend-assigned id; echoes the input rather than re-reading."""
        try:
            conn = self._require()
            _, ref = await asyncio.to_thread(conn.firestore.collection(collection).add, data)
            return ToolResponse.ok_json(
                {
                    "id": ref.id,
                    "url": self._document_url(collection, ref.id),
                    "document": convert_timestamps(data),
                }
            )
        except Exception as e:
            return self._failure("adding document", e)

    async def update_document(
        self, collection: str, doc_id: str, data: dict[str, Any]
    ) -> ToolResponse:
        """Merge the supplied fields. A missing document is a backend NOT_FOUND."""
        try:
            conn = self._require()
            ref = conn.firestore.collection(collection).document(doc_id)
            await asyncio.to_thread(ref.update, data)
            return ToolResponse.ok_json(
                {
                    "id": doc_id,
                    "url": self._document_url(collection, doc_id),
                    "document": convert_timestamps(data),
                }
            )
        except Exception as e:
            return self._failure("updating document", e)

    async def delete_document(self, collection: str, doc_id: str) -> ToolResponse:
        try:
            conn = self._require()
            ref = conn.firestore.collection(collection).document(doc_id)
            await asyncio.to_thread(ref.delete)
            return ToolResponse.ok("Document deleted successfully")
        except Exception as e:
            return self._failure("deleting document", e)
