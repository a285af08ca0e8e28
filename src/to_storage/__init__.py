"""Upload streams to blob storage with timestamped snapshots and a latest alias."""

from .client import UploadClient
from .models import (
    CurrentLatest,
    GetLatestRequest,
    UniqueUploadRequest,
    UploadRequest,
    UploadRequestType,
    UploadResult,
)
from .unique import UniqueUploadClient

__all__ = [
    "CurrentLatest",
    "GetLatestRequest",
    "UniqueUploadClient",
    "UniqueUploadRequest",
    "UploadClient",
    "UploadRequest",
    "UploadRequestType",
    "UploadResult",
]
