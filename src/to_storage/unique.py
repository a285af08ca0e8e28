"""Uploads that are skipped when content matches the current latest blob.

The decision is a single linear pass:

1. Fetch the latest blob. If there is none, upload.
2. Compare base64 MD5 of the candidate against the latest. Equal means no-op.
3. If the hashes differ and an equality strategy was supplied, ask it.
   Equivalent means no-op.
4. Otherwise upload, always advancing latest. Latest is only replaced if it
   still has the ETag read in step 1 (or is still absent), so a concurrent
   writer cannot be silently overwritten.

Only the latest blob is compared, never older direct snapshots.
"""

import inspect
from typing import Optional

from .client import UploadClient, trace_write
from .errors import InvalidArgumentError
from .hashing import compute_stream_md5
from .models import (
    CurrentLatest,
    GetLatestRequest,
    UniqueUploadRequest,
    UploadRequest,
    UploadResult,
)
from .paths import validate_path_format


async def _is_equivalent(request: UniqueUploadRequest, current: CurrentLatest) -> bool:
    outcome = request.equals(current)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    return bool(outcome)


class UniqueUploadClient:
    """Wraps an UploadClient and only uploads content that differs from latest."""

    def __init__(self, inner: UploadClient):
        self.inner = inner

    @staticmethod
    def _validate(request: UniqueUploadRequest) -> None:
        stream = request.stream
        if not stream.readable():
            raise InvalidArgumentError("The provided stream must be readable.")
        if not stream.seekable():
            raise InvalidArgumentError("The provided stream must be seekable.")
        validate_path_format(request.path_format)

    async def upload(self, request: UniqueUploadRequest) -> Optional[UploadResult]:
        """
        Upload the request stream unless it matches the current latest blob.

        The request stream is closed when this returns or raises.

        Returns:
            UploadResult, or None when no upload was needed

        Raises:
            InvalidArgumentError: Before any I/O, if the stream is not
                readable and seekable or the path format is malformed
            ConcurrencyConflictError: If latest moved while deciding; re-run
                the whole upload to compare against the new latest
        """
        trace = request.trace
        etag = None
        latest_absent = False

        with request.stream:
            self._validate(request)

            trace_write(trace, "Getting the existing latest...")
            current = await self.inner.get_latest(GetLatestRequest(
                container=request.container,
                path_format=request.path_format,
                trace=trace,
            ))

            if current is None:
                latest_absent = request.use_etag
                trace_write(trace, " non-existent! The provided content will be uploaded.\n")
            else:
                with current:
                    request.stream.seek(0)
                    content_md5 = compute_stream_md5(request.stream)
                    if content_md5 == current.content_md5:
                        trace_write(trace, " exactly the same! No upload required.\n")
                        return None

                    if request.equals is not None:
                        request.stream.seek(0)
                        current.stream.seek(0)
                        if await _is_equivalent(request, current):
                            trace_write(trace, " equivalent! No upload required.\n")
                            return None

                    if request.use_etag:
                        etag = current.etag

                    trace_write(trace, " different! The provided content will be uploaded.\n")

            request.stream.seek(0)
            return await self.inner.upload(UploadRequest(
                stream=request.stream,
                container=request.container,
                path_format=request.path_format,
                content_type=request.content_type,
                update_direct=request.update_direct,
                update_latest=True,
                etag=etag,
                latest_absent=latest_absent,
                type=request.type,
                trace=trace,
            ))
