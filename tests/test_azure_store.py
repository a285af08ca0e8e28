"""Tests for the Azure blob store against a mocked SDK client."""

import base64
import hashlib
import io
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from azure.core import MatchConditions
from azure.core.exceptions import (
    AzureError,
    HttpResponseError,
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)

from to_storage.errors import ConcurrencyConflictError, NotFoundError, TransportError
from to_storage.storage.azure import AzureBlobStore


def make_blob_client(url="https://acct.blob.core.windows.net/c/key"):
    blob = MagicMock()
    blob.url = url
    blob.exists = AsyncMock(return_value=False)
    blob.upload_blob = AsyncMock(return_value={"etag": '"0x1"'})
    blob.download_blob = AsyncMock()
    blob.get_blob_properties = AsyncMock()
    blob.set_http_headers = AsyncMock()
    blob.start_copy_from_url = AsyncMock()
    return blob


def make_store(*blobs, container=None):
    service = MagicMock()
    service.get_blob_client.side_effect = list(blobs) if len(blobs) > 1 else None
    if len(blobs) == 1:
        service.get_blob_client.return_value = blobs[0]
    if container is not None:
        service.get_container_client.return_value = container
    service.close = AsyncMock()
    return AzureBlobStore(service, copy_poll_interval=0.001)


def copy_props(status, etag='"0xdest"'):
    return SimpleNamespace(copy=SimpleNamespace(status=status), etag=etag)


def downloader(chunks, content_md5=None, etag='"0xlatest"'):
    async def iterate():
        for chunk in chunks:
            yield chunk

    result = MagicMock()
    result.chunks = iterate
    result.properties = SimpleNamespace(
        content_settings=SimpleNamespace(content_md5=content_md5),
        etag=etag,
    )
    return result


class TestContainers:

    @pytest.mark.asyncio
    async def test_creates_missing_container_with_access_level(self):
        container = MagicMock()
        container.exists = AsyncMock(return_value=False)
        container.create_container = AsyncMock()
        store = make_store(container=container)

        assert await store.create_container_if_absent("c", "blob") is True
        container.create_container.assert_awaited_once_with(public_access="blob")

    @pytest.mark.asyncio
    async def test_existing_container_is_left_alone(self):
        container = MagicMock()
        container.exists = AsyncMock(return_value=True)
        container.create_container = AsyncMock()
        store = make_store(container=container)

        assert await store.create_container_if_absent("c") is False
        container.create_container.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lost_creation_race_is_not_an_error(self):
        container = MagicMock()
        container.exists = AsyncMock(return_value=False)
        container.create_container = AsyncMock(side_effect=ResourceExistsError("exists"))
        store = make_store(container=container)

        assert await store.create_container_if_absent("c") is False


class TestOpenRead:

    @pytest.mark.asyncio
    async def test_reads_content_and_properties(self):
        digest = hashlib.md5(b"hello").digest()
        blob = make_blob_client()
        blob.download_blob.return_value = downloader([b"hel", b"lo"], content_md5=bytearray(digest))
        store = make_store(blob)

        download = await store.open_read("c", "key")

        with download.stream:
            assert download.stream.read() == b"hello"
        assert download.content_md5 == base64.b64encode(digest).decode()
        assert download.etag == '"0xlatest"'

    @pytest.mark.asyncio
    async def test_computes_md5_when_missing(self):
        blob = make_blob_client()
        blob.download_blob.return_value = downloader([b"hello"], content_md5=None)
        store = make_store(blob)

        download = await store.open_read("c", "key")

        assert download.content_md5 == "XUFAKrxLKna5cZ2REBfFkg=="
        assert download.stream.read() == b"hello"

    @pytest.mark.asyncio
    async def test_missing_blob_returns_none(self):
        blob = make_blob_client()
        blob.download_blob.side_effect = ResourceNotFoundError("missing")
        store = make_store(blob)

        assert await store.open_read("c", "key") is None

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        blob = make_blob_client()
        blob.download_blob.side_effect = AzureError("connection reset")
        store = make_store(blob)

        with pytest.raises(TransportError):
            await store.open_read("c", "key")


class TestWrite:

    @pytest.mark.asyncio
    async def test_unconditional_write_overwrites(self):
        blob = make_blob_client()
        store = make_store(blob)
        stream = io.BytesIO(b"x")

        assert await store.write("c", "key", stream) == '"0x1"'
        blob.upload_blob.assert_awaited_once_with(stream, overwrite=True)
        blob.exists.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expected_version_is_sent_as_if_match(self):
        blob = make_blob_client()
        store = make_store(blob)
        stream = io.BytesIO(b"x")

        await store.write("c", "key", stream, expected_version='"0xold"')

        blob.upload_blob.assert_awaited_once_with(
            stream,
            overwrite=True,
            etag='"0xold"',
            match_condition=MatchConditions.IfNotModified,
        )
        blob.exists.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_if_absent_creates_only(self):
        blob = make_blob_client()
        store = make_store(blob)
        stream = io.BytesIO(b"x")

        await store.write("c", "key", stream, if_absent=True)

        blob.upload_blob.assert_awaited_once_with(
            stream,
            overwrite=False,
            match_condition=MatchConditions.IfMissing,
        )

    @pytest.mark.asyncio
    async def test_existing_blob_with_if_absent_is_a_conflict(self):
        blob = make_blob_client()
        blob.upload_blob.side_effect = ResourceExistsError("blob already exists")
        store = make_store(blob)

        with pytest.raises(ConcurrencyConflictError, match="already exists") as exc_info:
            await store.write("c", "key", io.BytesIO(b"x"), if_absent=True)
        assert exc_info.value.already_exists

    @pytest.mark.parametrize("error", [
        ResourceModifiedError("condition not met"),
        ResourceExistsError("blob already exists"),
    ])
    @pytest.mark.asyncio
    async def test_precondition_failures_are_conflicts(self, error):
        blob = make_blob_client()
        blob.upload_blob.side_effect = error
        store = make_store(blob)

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await store.write("c", "key", io.BytesIO(b"x"), expected_version='"0xold"')
        assert exc_info.value.expected == '"0xold"'
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_http_412_is_a_conflict(self):
        error = HttpResponseError("precondition failed")
        error.status_code = 412
        blob = make_blob_client()
        blob.upload_blob.side_effect = error
        store = make_store(blob)

        with pytest.raises(ConcurrencyConflictError):
            await store.write("c", "key", io.BytesIO(b"x"))

    @pytest.mark.asyncio
    async def test_server_error_is_transport_error(self):
        error = HttpResponseError("server busy")
        error.status_code = 503
        blob = make_blob_client()
        blob.upload_blob.side_effect = error
        store = make_store(blob)

        with pytest.raises(TransportError):
            await store.write("c", "key", io.BytesIO(b"x"))

    @pytest.mark.asyncio
    async def test_set_content_type_keeps_other_headers(self):
        settings = SimpleNamespace(content_type=None, content_md5=b"md5")
        blob = make_blob_client()
        blob.get_blob_properties.return_value = SimpleNamespace(content_settings=settings)
        store = make_store(blob)

        await store.set_content_type("c", "key", "text/plain")

        blob.set_http_headers.assert_awaited_once_with(content_settings=settings)
        assert settings.content_type == "text/plain"
        assert settings.content_md5 == b"md5"

    @pytest.mark.asyncio
    async def test_set_content_type_missing_blob(self):
        blob = make_blob_client()
        blob.get_blob_properties.side_effect = ResourceNotFoundError("missing")
        store = make_store(blob)

        with pytest.raises(NotFoundError):
            await store.set_content_type("c", "key", "text/plain")


class TestCopy:

    @pytest.mark.asyncio
    async def test_polls_until_copy_completes(self):
        source = make_blob_client("https://acct.blob.core.windows.net/c/src")
        dest = make_blob_client("https://acct.blob.core.windows.net/c/dest")
        dest.start_copy_from_url.return_value = {"copy_status": "pending"}
        dest.get_blob_properties.side_effect = [
            copy_props("pending"),
            copy_props("success"),
            copy_props("success", etag='"0xfinal"'),
        ]
        store = make_store(source, dest)

        etag = await store.copy("c", "src", "c", "dest")

        dest.start_copy_from_url.assert_awaited_once_with(source.url)
        assert dest.get_blob_properties.await_count == 3
        assert etag == '"0xfinal"'

    @pytest.mark.asyncio
    async def test_synchronous_copy_needs_no_polling(self):
        source = make_blob_client()
        dest = make_blob_client()
        dest.start_copy_from_url.return_value = {"copy_status": "success"}
        dest.get_blob_properties.return_value = copy_props("success")
        store = make_store(source, dest)

        assert await store.copy("c", "src", "c", "dest") == '"0xdest"'
        assert dest.get_blob_properties.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_copy_raises(self):
        source = make_blob_client()
        dest = make_blob_client()
        dest.start_copy_from_url.return_value = {"copy_status": "pending"}
        dest.get_blob_properties.return_value = copy_props("failed")
        store = make_store(source, dest)

        with pytest.raises(TransportError, match="failed"):
            await store.copy("c", "src", "c", "dest")

    @pytest.mark.asyncio
    async def test_expected_version_guards_destination(self):
        source = make_blob_client()
        dest = make_blob_client()
        dest.start_copy_from_url.return_value = {"copy_status": "success"}
        dest.get_blob_properties.return_value = copy_props("success")
        store = make_store(source, dest)

        await store.copy("c", "src", "c", "dest", expected_version='"0xlatest"')

        dest.start_copy_from_url.assert_awaited_once_with(
            source.url,
            etag='"0xlatest"',
            match_condition=MatchConditions.IfNotModified,
        )

    @pytest.mark.asyncio
    async def test_if_absent_guards_destination(self):
        source = make_blob_client()
        dest = make_blob_client()
        dest.start_copy_from_url.return_value = {"copy_status": "success"}
        dest.get_blob_properties.return_value = copy_props("success")
        store = make_store(source, dest)

        await store.copy("c", "src", "c", "dest", if_absent=True)

        dest.start_copy_from_url.assert_awaited_once_with(
            source.url,
            match_condition=MatchConditions.IfMissing,
        )

    @pytest.mark.asyncio
    async def test_moved_destination_is_a_conflict(self):
        source = make_blob_client()
        dest = make_blob_client()
        error = ResourceModifiedError("condition not met")
        dest.start_copy_from_url.side_effect = error
        store = make_store(source, dest)

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await store.copy("c", "src", "c", "dest", expected_version='"0xlatest"')

        assert exc_info.value.key == "dest"
        assert exc_info.value.expected == '"0xlatest"'
        dest.get_blob_properties.assert_not_awaited()


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_async_context_manager_closes_service(self):
        store = make_store(make_blob_client())
        async with store:
            pass
        store.service.close.assert_awaited_once()

    def test_url(self):
        store = make_store(make_blob_client("https://acct.blob.core.windows.net/c/k"))
        assert store.url("c", "k") == "https://acct.blob.core.windows.net/c/k"
