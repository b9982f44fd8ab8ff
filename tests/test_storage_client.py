"""Tests for the Storage capability client against an in-memory bucket."""

import pytest

from firebase_mcp.config import EmulatorConfig, FirebaseConfig, StorageConfig
from firebase_mcp.errors import NotFoundError
from firebase_mcp.tools.storage import (
    BUCKET_SETUP_HELP,
    StorageClient,
    bucket_candidates,
    directory_prefix,
    encode_console_prefix,
)
from tests._utils.envelopes import assert_error_envelope, assert_ok_envelope
from tests._utils.fakes import FakeStorage, make_connection

BUCKET = "demo-project.firebasestorage.app"
CONSOLE = "https://console.firebase.google.com/project/demo-project"


def _signed(bucket: str, name: str, ttl: int = 3600) -> str:
    return f"https://signed.example/{bucket}/{name}?expires={ttl}&v=v4&m=GET"


@pytest.fixture
def bucket(fake_storage):
    bucket = fake_storage.get(BUCKET)
    bucket.put("a.txt", "hello")
    bucket.put("docs/readme.md", "# docs", content_type="text/markdown")
    bucket.put("docs/sub/deep.txt")
    bucket.put("img/p.png", b"\x89PNG", content_type="image/png")
    return bucket


@pytest.fixture
def client(connection):
    return StorageClient(connection)


@pytest.fixture
def strict_client(connection):
    return StorageClient(connection, storage=StorageConfig(strict_not_found=True))


class TestHelpers:
    def test_directory_prefix(self):
        assert directory_prefix(None) == ""
        assert directory_prefix("") == ""
        assert directory_prefix("docs") == "docs/"
        assert directory_prefix("docs/") == "docs/"

    def test_console_prefix_encoding(self):
        assert encode_console_prefix("docs/") == "~2Fdocs"
        assert encode_console_prefix("docs/sub/") == "~2Fdocs~2Fsub"

    def test_candidates_production(self):
        assert bucket_candidates("p", FirebaseConfig(), EmulatorConfig()) == [
            "p.firebasestorage.app",
            "p.appspot.com",
            "p",
        ]

    def test_candidates_emulator(self):
        emulator = EmulatorConfig(storage_host="localhost:9199")

        assert bucket_candidates("p", FirebaseConfig(), emulator) == ["p.firebasestorage.app"]

    def test_candidates_explicit_bucket_wins(self):
        firebase = FirebaseConfig(storage_bucket="mine")

        assert bucket_candidates("p", firebase, EmulatorConfig(enabled=True)) == ["mine"]


class TestResolveBucket:
    @pytest.mark.asyncio
    async def test_default_bucket_first(self, client, fake_storage):
        bucket = await client.resolve_bucket()

        assert bucket.name == BUCKET
        assert fake_storage.requested == [None]

    @pytest.mark.asyncio
    async def test_falls_back_to_candidates(self):
        storage = FakeStorage(default=None)
        storage.refuse.add("demo-project.firebasestorage.app")
        client = StorageClient(make_connection(storage=storage))

        bucket = await client.resolve_bucket()

        assert bucket.name == "demo-project.appspot.com"
        assert storage.requested == [
            None,
            "demo-project.firebasestorage.app",
            "demo-project.appspot.com",
        ]

    @pytest.mark.asyncio
    async def test_verify_skips_missing_candidates(self):
        storage = FakeStorage(default=None)
        storage.get("demo-project.firebasestorage.app").present = False
        client = StorageClient(
            make_connection(storage=storage),
            storage=StorageConfig(strict_not_found=False, verify_bucket_exists=True),
        )

        bucket = await client.resolve_bucket()

        assert bucket.name == "demo-project.appspot.com"

    @pytest.mark.asyncio
    async def test_all_candidates_fail(self):
        storage = FakeStorage(default=None)
        storage.refuse.update(
            {"demo-project.firebasestorage.app", "demo-project.appspot.com", "demo-project"}
        )
        client = StorageClient(make_connection(storage=storage))

        res = await client.list_directory_files()

        assert_error_envelope(
            res, "Could not access storage bucket: Invalid bucket name: demo-project"
        )


class TestListDirectoryFiles:
    @pytest.mark.asyncio
    async def test_root_listing(self, client, bucket):
        payload = assert_ok_envelope(await client.list_directory_files())

        assert payload == {
            "nextPageToken": None,
            "files": [
                {"type": "file", "name": "a.txt", "downloadURL": _signed(BUCKET, "a.txt")},
                {
                    "type": "directory",
                    "name": "docs/",
                    "url": f"{CONSOLE}/storage/{BUCKET}/files/~2Fdocs",
                },
                {
                    "type": "directory",
                    "name": "img/",
                    "url": f"{CONSOLE}/storage/{BUCKET}/files/~2Fimg",
                },
            ],
            "hasMore": False,
        }

    @pytest.mark.asyncio
    async def test_one_level_below_a_directory(self, client, bucket):
        payload = assert_ok_envelope(await client.list_directory_files("docs"))

        assert [(f["type"], f["name"]) for f in payload["files"]] == [
            ("file", "docs/readme.md"),
            ("directory", "docs/sub/"),
        ]
        assert payload["files"][1]["url"] == f"{CONSOLE}/storage/{BUCKET}/files/~2Fdocs~2Fsub"
        assert bucket.list_calls[-1]["prefix"] == "docs/"
        assert bucket.list_calls[-1]["delimiter"] == "/"

    @pytest.mark.asyncio
    async def test_pretty_printed(self, client, bucket):
        res = await client.list_directory_files()

        assert res.text.startswith('{\n  "nextPageToken"')

    @pytest.mark.asyncio
    async def test_pagination(self, client, bucket):
        first = assert_ok_envelope(await client.list_directory_files(page_size=2))
        second = assert_ok_envelope(
            await client.list_directory_files(page_size=2, page_token=first["nextPageToken"])
        )

        assert [f["name"] for f in first["files"]] == ["a.txt", "docs/"]
        assert first["hasMore"] is True
        assert first["nextPageToken"]
        assert [f["name"] for f in second["files"]] == ["img/"]
        assert second["hasMore"] is False
        assert second["nextPageToken"] is None

    @pytest.mark.asyncio
    async def test_signing_failure_leaves_url_null(self, client, bucket):
        bucket.unsignable.add("a.txt")

        payload = assert_ok_envelope(await client.list_directory_files())

        assert payload["files"][0] == {"type": "file", "name": "a.txt", "downloadURL": None}

    @pytest.mark.asyncio
    async def test_signed_url_ttl_from_config(self, connection, bucket):
        client = StorageClient(
            connection, storage=StorageConfig(strict_not_found=False, signed_url_ttl_seconds=600)
        )

        payload = assert_ok_envelope(await client.list_directory_files())

        assert payload["files"][0]["downloadURL"] == _signed(BUCKET, "a.txt", ttl=600)

    @pytest.mark.asyncio
    async def test_empty_directory(self, client, bucket):
        payload = assert_ok_envelope(await client.list_directory_files("nothing-here"))

        assert payload == {"nextPageToken": None, "files": [], "hasMore": False}

    @pytest.mark.asyncio
    async def test_missing_bucket_returns_setup_help(self, client, fake_storage):
        fake_storage.get(BUCKET).present = False

        res = await client.list_directory_files()

        assert_error_envelope(res, BUCKET_SETUP_HELP.format(tool="storage_list_files"))
        assert "storage_list_files function will work properly" in res.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page_size", [0, -1, "ten"])
    async def test_page_size_must_be_positive_integer(self, client, bucket, page_size):
        res = await client.list_directory_files(page_size=page_size)

        assert_error_envelope(res, "Error listing files: pageSize must be a positive integer")
        assert bucket.list_calls == []

    @pytest.mark.asyncio
    async def test_not_initialized(self):
        res = await StorageClient(None).list_directory_files()

        assert_error_envelope(res)
        assert res.text.startswith("Firebase is not initialized.")


class TestGetFileInfo:
    @pytest.mark.asyncio
    async def test_metadata_and_download_url(self, client, bucket):
        res = await client.get_file_info("docs/readme.md")

        payload = assert_ok_envelope(res)
        assert payload["downloadUrl"] == _signed(BUCKET, "docs/readme.md")
        metadata = payload["metadata"]
        assert metadata["name"] == "docs/readme.md"
        assert metadata["bucket"] == BUCKET
        assert metadata["size"] == len("# docs")
        assert metadata["contentType"] == "text/markdown"
        assert metadata["timeCreated"] == "2024-01-01T00:00:00.000Z"
        assert metadata["updated"] == "2024-01-02T00:00:00.000Z"
        assert res.text.startswith('{\n  "metadata"')

    @pytest.mark.asyncio
    async def test_missing_file_lenient(self, client, bucket):
        assert_error_envelope(
            await client.get_file_info("nope.txt"), "File not found: nope.txt"
        )

    @pytest.mark.asyncio
    async def test_missing_file_strict_raises(self, strict_client, bucket):
        with pytest.raises(NotFoundError, match="nope.txt"):
            await strict_client.get_file_info("nope.txt")

    @pytest.mark.asyncio
    async def test_missing_bucket_lenient(self, client, fake_storage):
        fake_storage.get(BUCKET).present = False

        res = await client.get_file_info("a.txt")

        assert_error_envelope(res, BUCKET_SETUP_HELP.format(tool="storage_get_file_info"))

    @pytest.mark.asyncio
    async def test_backend_failure_strict_propagates(self, strict_client, fake_storage):
        fake_storage.get(BUCKET).present = False

        with pytest.raises(Exception, match="bucket does not exist"):
            await strict_client.get_file_info("a.txt")

    @pytest.mark.asyncio
    async def test_not_initialized_even_in_strict_mode(self):
        client = StorageClient(None, storage=StorageConfig(strict_not_found=True))

        res = await client.get_file_info("a.txt")

        assert_error_envelope(res)
        assert res.text.startswith("Firebase is not initialized.")

    @pytest.mark.asyncio
    async def test_upload_then_get(self, client, fake_storage):
        name = await client.upload_file("notes/today.txt", "remember")

        payload = assert_ok_envelope(await client.get_file_info(name))

        assert payload["metadata"]["contentType"] == "text/plain"
        assert payload["metadata"]["size"] == len("remember")


@pytest.mark.asyncio
@pytest.mark.parametrize("page_size", [1, 2, 3])
async def test_page_size_bounds_entries(client, bucket, page_size):
    payload = assert_ok_envelope(await client.list_directory_files(page_size=page_size))

    assert len(payload["files"]) <= page_size
    assert bucket.list_calls[-1]["max_results"] == page_size
