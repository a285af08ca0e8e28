"""Upload orchestration: direct snapshot plus latest alias."""

import logging
from typing import Optional, TextIO

from .clock import Clock, SystemClock
from .models import (
    CurrentLatest,
    GetLatestRequest,
    UploadRequest,
    UploadRequestType,
    UploadResult,
)
from .paths import PathBuilder, validate_path_format
from .storage.base import BlobStore

logger = logging.getLogger(__name__)


def trace_write(trace: Optional[TextIO], text: str) -> None:
    """Write progress text to the trace sink, if any, and the debug log."""
    if text.strip():
        logger.debug(text.strip())
    if trace is not None:
        trace.write(text)
        trace.flush()


class UploadClient:
    """
    Writes content to a timestamped direct blob and maintains the latest alias.

    The latest alias is advanced by a server-side copy of the direct blob,
    and only once that copy has completed. Nothing is ever deleted.
    """

    def __init__(
        self,
        store: BlobStore,
        clock: Optional[Clock] = None,
        path_builder: Optional[PathBuilder] = None,
        public_access: Optional[str] = "blob",
    ):
        """
        Args:
            store: Storage backend
            clock: Time source for direct blob names (defaults to UTC wall clock)
            path_builder: Key construction (defaults to PathBuilder())
            public_access: Access level for containers this client creates
        """
        self.store = store
        self.clock = clock or SystemClock()
        self.path_builder = path_builder or PathBuilder()
        self.public_access = public_access

    async def get_latest(self, request: GetLatestRequest) -> Optional[CurrentLatest]:
        """
        Fetch the current latest blob.

        Returns:
            CurrentLatest (caller closes it), or None if the container or the
            latest blob does not exist
        """
        latest_path = self.path_builder.get_latest_path(request.path_format)

        if not await self.store.container_exists(request.container):
            logger.debug("Blob container %s does not exist", request.container)
            return None

        download = await self.store.open_read(request.container, latest_path)
        if download is None:
            logger.debug("No blob exists at %s", self.store.url(request.container, latest_path))
            return None

        return CurrentLatest.from_download(download)

    async def upload(self, request: UploadRequest) -> UploadResult:
        """
        Upload the request stream.

        With ``update_direct`` (and a TIMESTAMP request type) the stream goes
        to the timestamped direct key, then is copied to the latest key when
        ``update_latest`` is set. Otherwise the stream is written straight to
        the latest key.

        ``request.etag`` and ``request.latest_absent`` guard the latest key.
        The check is part of the copy or write that replaces it, so a latest
        that moved since it was read is never overwritten. A guarded upload
        also refuses to replace an existing direct blob.

        Raises:
            InvalidArgumentError: If the path format is malformed
            ConcurrencyConflictError: If a precondition fails; latest is left
                untouched
        """
        validate_path_format(request.path_format)
        trace = request.trace
        store = self.store
        container = request.container
        guarded = request.etag is not None or request.latest_absent

        trace_write(trace, "Initializing...")
        await store.create_container_if_absent(container, self.public_access)
        trace_write(trace, " done.\n")

        write_direct = request.update_direct and request.type == UploadRequestType.TIMESTAMP
        result = UploadResult()

        if write_direct:
            direct_path = self.path_builder.get_direct_path(request.path_format, self.clock.now())
            await self._write(request, direct_path, if_absent=guarded)
            result.direct_url = store.url(container, direct_path)

            if request.update_latest:
                latest_path = self.path_builder.get_latest_path(request.path_format)
                trace_write(trace, f"Updating '{latest_path}' to the latest blob...")
                await store.copy(
                    container, direct_path, container, latest_path,
                    expected_version=request.etag,
                    if_absent=request.latest_absent,
                )
                trace_write(trace, " done.\n")
                result.latest_url = store.url(container, latest_path)

        elif request.update_latest:
            latest_path = self.path_builder.get_latest_path(request.path_format)
            await self._write(
                request, latest_path,
                expected_version=request.etag,
                if_absent=request.latest_absent,
            )
            result.latest_url = store.url(container, latest_path)

        else:
            logger.warning("Neither direct nor latest requested for %s; nothing uploaded", request.path_format)

        trace_write(trace, "\n")
        if result.direct_url:
            trace_write(trace, f"Direct: {result.direct_url}\n")
        if result.latest_url:
            trace_write(trace, f"Latest: {result.latest_url}\n")

        return result

    async def _write(
        self,
        request: UploadRequest,
        path: str,
        expected_version: Optional[str] = None,
        if_absent: bool = False,
    ) -> None:
        trace_write(request.trace, f"Uploading the blob to '{path}'...")
        await self.store.write(
            request.container,
            path,
            request.stream,
            expected_version=expected_version,
            if_absent=if_absent,
        )
        trace_write(request.trace, " done.\n")

        if request.content_type and request.content_type.strip():
            trace_write(request.trace, "Setting the content type...")
            await self.store.set_content_type(request.container, path, request.content_type)
            trace_write(request.trace, " done.\n")
