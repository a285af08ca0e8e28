"""Stable API for uploading a stream with to-storage.

This is the entry point the CLI uses, and the one external tools should
prefer over wiring UploadClient and UniqueUploadClient by hand.
"""

from tempfile import SpooledTemporaryFile
from typing import BinaryIO, Optional, TextIO

from .client import UploadClient
from .clock import Clock
from .constants import CHUNK_SIZE, SPOOL_MAX_SIZE
from .models import (
    EqualityStrategy,
    UniqueUploadRequest,
    UploadRequest,
    UploadRequestType,
    UploadResult,
)
from .storage.base import BlobStore
from .unique import UniqueUploadClient


def ensure_seekable(stream: BinaryIO) -> BinaryIO:
    """Return a seekable stream with the same remaining content.

    Non-seekable input (pipes, stdin) is copied into a spooled temporary
    file; seekable streams are returned as-is.
    """
    if stream.seekable():
        return stream
    spool = SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE)
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        spool.write(chunk)
    spool.seek(0)
    return spool


async def upload_stream(
    store: BlobStore,
    stream: BinaryIO,
    container: str,
    path_format: str,
    *,
    update_direct: bool = True,
    update_latest: bool = True,
    only_unique: bool = False,
    content_type: Optional[str] = None,
    equals: Optional[EqualityStrategy] = None,
    use_etag: bool = True,
    trace: Optional[TextIO] = None,
    clock: Optional[Clock] = None,
    public_access: Optional[str] = "blob",
) -> Optional[UploadResult]:
    """Upload a stream, optionally only when it differs from latest.

    Args:
        store: Storage backend
        stream: Content to upload
        container: Target container
        path_format: Key template with one ``{0}`` slot
        update_direct: Write the timestamped direct blob
        update_latest: Advance the latest alias (forced on with only_unique)
        only_unique: Skip the upload when content matches latest
        content_type: Content type for the written blobs
        equals: Extra equivalence check, consulted when hashes differ
        use_etag: Guard the write with the latest blob's ETag
        trace: Text sink for progress lines
        clock: Time source for direct blob names
        public_access: Access level for a newly created container

    Returns:
        UploadResult, or None when only_unique found nothing to upload

    Example:
        >>> async with FilesystemBlobStore(Path("out")) as store:
        ...     result = await upload_stream(store, io.BytesIO(b"hi"), "c", "x/{0}.txt")
    """
    client = UploadClient(store, clock=clock, public_access=public_access)
    request_type = UploadRequestType.TIMESTAMP if update_direct else UploadRequestType.LATEST_ONLY

    if only_unique:
        unique = UniqueUploadClient(client)
        return await unique.upload(UniqueUploadRequest(
            stream=ensure_seekable(stream),
            container=container,
            path_format=path_format,
            content_type=content_type,
            update_direct=update_direct,
            type=request_type,
            trace=trace,
            equals=equals,
            use_etag=use_etag,
        ))

    return await client.upload(UploadRequest(
        stream=stream,
        container=container,
        path_format=path_format,
        content_type=content_type,
        update_direct=update_direct,
        update_latest=update_latest,
        type=request_type,
        trace=trace,
    ))
