"""Content hashing for unchanged-content detection.

Azure Blob Storage reports ``Content-MD5`` as base64 of the raw digest, so
the same encoding is used everywhere in this package.
"""

import base64
import hashlib
from typing import BinaryIO

from .constants import CHUNK_SIZE


def encode_md5(digest: bytes) -> str:
    """Base64-encode a raw MD5 digest."""
    return base64.b64encode(bytes(digest)).decode("ascii")


def compute_stream_md5(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> str:
    """Compute base64 MD5 of a stream from its current position to the end.

    Reads in fixed-size chunks so memory use does not depend on stream size.

    Args:
        stream: Readable binary stream
        chunk_size: Bytes per read

    Returns:
        Base64-encoded MD5 digest
    """
    md5 = hashlib.md5()
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        md5.update(chunk)
    return encode_md5(md5.digest())


def compute_bytes_md5(data: bytes) -> str:
    return encode_md5(hashlib.md5(data).digest())


__all__ = [
    "compute_bytes_md5",
    "compute_stream_md5",
    "encode_md5",
]
