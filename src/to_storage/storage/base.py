"""Base protocol for blob storage implementations."""

from typing import BinaryIO, Optional, Protocol

from ..models import BlobDownload


class BlobStore(Protocol):
    """
    Protocol for blob storage implementations.

    All operations are coroutines. Implementations translate backend errors
    into NotFoundError, ConcurrencyConflictError and TransportError and do
    not retry; retry policy belongs to the caller.

    ``write`` and ``copy`` accept the same preconditions on the blob they
    replace: ``if_absent`` (the blob must not exist) or ``expected_version``
    (the blob must exist with that ETag). Each check is atomic with the
    operation it guards.
    """

    async def container_exists(self, container: str) -> bool:
        ...

    async def create_container_if_absent(
        self,
        container: str,
        public_access: Optional[str] = None,
    ) -> bool:
        """
        Create the container unless it already exists.

        Args:
            container: Container name
            public_access: "blob", "container" or None for private

        Returns:
            True if the container was created
        """
        ...

    async def object_exists(self, container: str, key: str) -> bool:
        ...

    async def open_read(self, container: str, key: str) -> Optional[BlobDownload]:
        """
        Download a blob.

        Returns:
            BlobDownload positioned at the start, or None if the container or
            blob does not exist. The caller closes the stream.
        """
        ...

    async def write(
        self,
        container: str,
        key: str,
        stream: BinaryIO,
        content_type: Optional[str] = None,
        expected_version: Optional[str] = None,
        if_absent: bool = False,
    ) -> str:
        """
        Write a stream to a blob.

        Returns:
            ETag of the written blob

        Raises:
            ConcurrencyConflictError: If the precondition does not hold
        """
        ...

    async def set_content_type(self, container: str, key: str, content_type: str) -> None:
        ...

    async def copy(
        self,
        source_container: str,
        source_key: str,
        dest_container: str,
        dest_key: str,
        expected_version: Optional[str] = None,
        if_absent: bool = False,
    ) -> str:
        """
        Server-side copy. Returns only once the copy has completed.

        The preconditions apply to the destination blob.

        Returns:
            ETag of the destination blob

        Raises:
            ConcurrencyConflictError: If the precondition does not hold
        """
        ...

    def url(self, container: str, key: str) -> str:
        ...

    async def close(self) -> None:
        ...
