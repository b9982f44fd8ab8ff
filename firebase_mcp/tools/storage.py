"""
Cloud Storage for Firebase capability client.

Emulates directories over the flat object namespace with a prefix plus a
single-level "/" delimiter, and hands out time-limited signed read URLs.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
import logging
from typing import Any

from firebase_mcp.config import EmulatorConfig, FirebaseConfig, StorageConfig
from firebase_mcp.connection import FirebaseConnection
from firebase_mcp.envelope import ToolResponse
from firebase_mcp.errors import (
    BucketUnreachableError,
    NotFoundError,
    NotInitializedError,
    is_bucket_missing,
    positive_int,
)
from firebase_mcp.tools.serialize import convert_timestamps

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10

BUCKET_SETUP_HELP = """The specified bucket does not exist. To use Firebase Storage functionality, you need to:
1. Go to the Firebase Console (https://console.firebase.google.com)
2. Select your project
3. Navigate to the Storage section
4. Complete the initial setup to create a storage bucket
5. Set the appropriate security rules

Once a storage bucket exists for your project, the {tool} function will work properly."""


def bucket_candidates(
    project_id: str, firebase: FirebaseConfig, emulator: EmulatorConfig
) -> list[str]:
    """Explicit bucket names to try, in order, when there is no default bucket."""
    if firebase.storage_bucket:
        return [firebase.storage_bucket]
    if emulator.active:
        return [f"{project_id}.{emulator.bucket_suffix}"]
    return [
        f"{project_id}.firebasestorage.app",
        f"{project_id}.appspot.com",
        project_id,
    ]


def directory_prefix(path: str | None) -> str:
    """'' for the root, otherwise the path with exactly one trailing slash."""
    if not path:
        return ""
    return path if path.endswith("/") else f"{path}/"


def encode_console_prefix(prefix: str) -> str:
    """Storage console path encoding: leading ~2F, every '/' as ~2F."""
    trimmed = prefix[:-1] if prefix.endswith("/") else prefix
    return "~2F" + trimmed.replace("/", "~2F")


def blob_metadata(blob: Any) -> dict[str, Any]:
    """Object metadata after reload(), keyed like the JSON API resource."""
    bucket = getattr(blob, "bucket", None)
    return convert_timestamps(
        {
            "name": blob.name,
            "bucket": getattr(bucket, "name", None),
            "size": blob.size,
            "contentType": blob.content_type,
            "contentEncoding": blob.content_encoding,
            "contentDisposition": blob.content_disposition,
            "cacheControl": blob.cache_control,
            "md5Hash": blob.md5_hash,
            "crc32c": blob.crc32c,
            "etag": blob.etag,
            "generation": blob.generation,
            "metageneration": blob.metageneration,
            "storageClass": blob.storage_class,
            "timeCreated": blob.time_created,
            "updated": blob.updated,
            "metadata": blob.metadata,
        }
    )


class StorageClient:
    """Blob capability client."""

    def __init__(
        self,
        connection: FirebaseConnection | None,
        storage: StorageConfig | None = None,
        firebase: FirebaseConfig | None = None,
        emulator: EmulatorConfig | None = None,
    ):
        self.connection = connection
        self.storage = storage or StorageConfig(strict_not_found=False)
        self.firebase = firebase or FirebaseConfig()
        self.emulator = emulator or EmulatorConfig()
        self.signed_url_ttl = timedelta(seconds=self.storage.signed_url_ttl_seconds)

    def _require(self) -> FirebaseConnection:
        if self.connection is None:
            raise NotInitializedError()
        return self.connection

    async def resolve_bucket(self) -> Any:
        """
        Default bucket first, then the explicit candidates.

        A handle is not proof of existence unless verify_bucket_exists is
        set; a wrong guess otherwise shows up as a later list/read error.

        Raises:
            NotInitializedError: no Firebase connection
            BucketUnreachableError: no candidate could be acquired
        """
        conn = self._require()
        try:
            bucket = conn.bucket()
            logger.debug(f"Default bucket name: {bucket.name}")
            return bucket
        except Exception as e:
            logger.info(f"Error getting default bucket: {e}")

        last_error: Exception | None = None
        for name in bucket_candidates(conn.project_id, self.firebase, self.emulator):
            try:
                bucket = conn.bucket(name)
                if self.storage.verify_bucket_exists and not await asyncio.to_thread(
                    bucket.exists
                ):
                    raise BucketUnreachableError(f"Bucket {name} does not exist")
                logger.info(f"Using explicit bucket name: {name}")
                return bucket
            except Exception as e:
                logger.info(f"Error getting bucket with name {name}: {e}")
                last_error = e

        raise BucketUnreachableError(f"Could not access storage bucket: {last_error}")

    async def _signed_url(self, blob: Any) -> str:
        return await asyncio.to_thread(
            blob.generate_signed_url,
            version="v4",
            expiration=self.signed_url_ttl,
            method="GET",
        )

    async def _file_entry(self, blob: Any) -> dict[str, Any]:
        try:
            url = await self._signed_url(blob)
        except Exception as e:
            logger.warning(f"Error getting signed URL for {blob.name}: {e}")
            url = None
        return {"type": "file", "name": blob.name, "downloadURL": url}

    def _failure(self, action: str, tool: str, exc: Exception) -> ToolResponse:
        if isinstance(exc, (NotInitializedError, BucketUnreachableError)):
            return ToolResponse.error(str(exc))
        message = str(exc)
        logger.error(f"Error {action}: {message}")
        if is_bucket_missing(message):
            return ToolResponse.error(BUCKET_SETUP_HELP.format(tool=tool))
        return ToolResponse.error(f"Error {action}: {message}")

    async def list_directory_files(
        self,
        path: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_token: str | None = None,
    ) -> ToolResponse:
        """One page of files and sub-directories directly under path."""
        try:
            page_size = positive_int(page_size, "pageSize")
            conn = self._require()
            bucket = await self.resolve_bucket()
            prefix = directory_prefix(path)
            logger.debug(f'Listing files with prefix: "{prefix}"')

            def fetch_page() -> tuple[list[Any], list[str], str | None]:
                iterator = bucket.list_blobs(
                    prefix=prefix,
                    delimiter="/",
                    max_results=page_size,
                    page_token=page_token,
                )
                page = next(iterator.pages, None)
                if page is None:
                    return [], [], None
                return list(page), sorted(page.prefixes), iterator.next_page_token

            blobs, prefixes, next_token = await asyncio.to_thread(fetch_page)

            files = await asyncio.gather(*(self._file_entry(blob) for blob in blobs))
            directories = [
                {
                    "type": "directory",
                    "name": sub,
                    "url": conn.console_url(
                        "storage", bucket.name, "files", encode_console_prefix(sub)
                    ),
                }
                for sub in prefixes
            ]

            result = {
                "nextPageToken": next_token,
                "files": [*files, *directories][:page_size],
                "hasMore": next_token is not None,
            }
            return ToolResponse.ok_json(result, indent=2)
        except Exception as e:
            return self._failure("listing files", "storage_list_files", e)

    async def get_file_info(self, file_path: str) -> ToolResponse:
        """
        Metadata plus a signed download URL for one object.

        With strict_not_found a missing object (and any other backend
        failure) raises instead of returning an error envelope.

        Raises:
            NotFoundError: strict mode only, object does not exist
        """
        try:
            bucket = await self.resolve_bucket()
            blob = bucket.blob(file_path)

            exists = await asyncio.to_thread(blob.exists)
            if not exists:
                if self.storage.strict_not_found:
                    raise NotFoundError(f"No such object: {file_path}")
                return ToolResponse.error(f"File not found: {file_path}")

            await asyncio.to_thread(blob.reload)
            url = await self._signed_url(blob)
            return ToolResponse.ok_json(
                {"metadata": blob_metadata(blob), "downloadUrl": url}, indent=2
            )
        except (NotInitializedError, BucketUnreachableError) as e:
            return ToolResponse.error(str(e))
        except Exception as e:
            if self.storage.strict_not_found:
                raise
            return self._failure("getting file info", "storage_get_file_info", e)

    async def upload_file(
        self, destination: str, data: bytes | str, content_type: str = "text/plain"
    ) -> str:
        """Upload an object (test fixtures). Returns the object name."""
        bucket = await self.resolve_bucket()
        blob = bucket.blob(destination)
        await asyncio.to_thread(blob.upload_from_string, data, content_type=content_type)
        return blob.name
