"""Request and result models for uploads.

Requests carry live streams and callables, so they are plain dataclasses.
Results are pydantic models so they serialize cleanly for callers and the
CLI.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, BinaryIO, Callable, Optional, TextIO, Union

from pydantic import BaseModel


class UploadRequestType(str, Enum):
    """How the direct object is named."""
    TIMESTAMP = "timestamp"      # Direct object named by UTC timestamp
    LATEST_ONLY = "latest-only"  # No direct object, write the latest key only


@dataclass
class BlobDownload:
    """Content and properties of a downloaded blob."""
    stream: BinaryIO
    content_md5: str   # Base64 MD5
    etag: str


@dataclass
class CurrentLatest:
    """The latest blob as seen by a unique upload.

    Closes its stream when used as a context manager.
    """
    stream: BinaryIO
    content_md5: str
    etag: str

    @classmethod
    def from_download(cls, download: BlobDownload) -> "CurrentLatest":
        return cls(
            stream=download.stream,
            content_md5=download.content_md5,
            etag=download.etag,
        )

    def close(self) -> None:
        self.stream.close()

    def __enter__(self) -> "CurrentLatest":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


EqualityStrategy = Callable[[CurrentLatest], Union[bool, Awaitable[bool]]]


@dataclass
class GetLatestRequest:
    container: str
    path_format: str
    trace: Optional[TextIO] = None


@dataclass
class UploadRequest:
    """A single upload of ``stream`` to a container.

    ``etag`` is the expected version of the latest blob, and
    ``latest_absent`` says there must be no latest blob yet. With either set,
    the latest update fails with ConcurrencyConflictError if another writer
    got there first, and the direct blob is only created, never overwritten.
    """
    stream: BinaryIO
    container: str
    path_format: str
    content_type: Optional[str] = None
    update_direct: bool = True
    update_latest: bool = True
    etag: Optional[str] = None
    latest_absent: bool = False
    type: UploadRequestType = UploadRequestType.TIMESTAMP
    trace: Optional[TextIO] = None


@dataclass
class UniqueUploadRequest(UploadRequest):
    """An upload that is skipped when the content matches the latest blob.

    The stream must be seekable: it is read for comparison and again for
    the upload itself.
    """
    equals: Optional[EqualityStrategy] = None
    use_etag: bool = True


class UploadResult(BaseModel):
    """Locations written by an upload."""
    direct_url: Optional[str] = None
    latest_url: Optional[str] = None
