"""Blob storage backends."""

from .base import BlobStore
from .factory import make_blob_store

__all__ = ["BlobStore", "make_blob_store"]
