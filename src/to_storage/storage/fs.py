"""Filesystem blob storage implementation for testing and offline use."""

import asyncio
import hashlib
import json
import logging
import os
import uuid
from pathlib import Path
from tempfile import SpooledTemporaryFile
from typing import AsyncIterator, BinaryIO, Optional

import aiofiles
import aiofiles.os

from ..constants import CHUNK_SIZE, SPOOL_MAX_SIZE
from ..errors import ConcurrencyConflictError, InvalidArgumentError, NotFoundError
from ..hashing import encode_md5
from ..models import BlobDownload

logger = logging.getLogger(__name__)

PROPS_DIR = ".props"


def _new_etag() -> str:
    return f'"0x{uuid.uuid4().hex[:16].upper()}"'


async def _stream_chunks(stream: BinaryIO) -> AsyncIterator[bytes]:
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        yield chunk


async def _file_chunks(path: Path) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as f:
        while chunk := await f.read(CHUNK_SIZE):
            yield chunk


async def _replace_file(path: Path, chunks: AsyncIterator[bytes]) -> str:
    """Write chunks to a temp file, then move it over ``path``.

    Readers see either the old or the new content, never a partial file.

    Returns:
        Base64 MD5 of the written content
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    md5 = hashlib.md5()
    try:
        async with aiofiles.open(tmp_path, "wb") as f:
            async for chunk in chunks:
                md5.update(chunk)
                await f.write(chunk)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            await aiofiles.os.remove(tmp_path)
    return encode_md5(md5.digest())


class FilesystemBlobStore:
    """
    Local filesystem store (avoids an Azurite dependency).

    Blobs live at base_dir/<container>/<key>; their ETag, content type and
    MD5 live in a JSON sidecar under base_dir/<container>/.props/. Checks and
    writes are serialized by a lock so conditional writes are atomic within
    the process.
    """

    def __init__(self, base_dir: Path):
        """
        Initialize filesystem store.

        Args:
            base_dir: Base directory holding one directory per container
        """
        self.base_dir = Path(base_dir).absolute()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    def _container_dir(self, container: str) -> Path:
        if not container or "/" in container or "\\" in container or container in (".", ".."):
            raise InvalidArgumentError(f"Invalid container name: {container!r}")
        return self.base_dir / container

    def _blob_path(self, container: str, key: str) -> Path:
        root = self._container_dir(container)
        path = (root / key).resolve()
        try:
            relative = path.relative_to(root.resolve())
        except ValueError:
            raise InvalidArgumentError(f"Key escapes container: {key!r}")
        if not relative.parts or relative.parts[0] == PROPS_DIR:
            raise InvalidArgumentError(f"Invalid key: {key!r}")
        return path

    def _props_path(self, container: str, key: str) -> Path:
        relative = self._blob_path(container, key).relative_to(
            self._container_dir(container).resolve()
        )
        return self._container_dir(container) / PROPS_DIR / f"{relative.as_posix()}.json"

    async def _load_props(self, container: str, key: str) -> Optional[dict]:
        props_path = self._props_path(container, key)
        if not props_path.exists():
            return None
        async with aiofiles.open(props_path, "r") as f:
            return json.loads(await f.read())

    async def _save_props(self, container: str, key: str, props: dict) -> None:
        props_path = self._props_path(container, key)
        props_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(props_path, "w") as f:
            await f.write(json.dumps(props, sort_keys=True))

    def _require_container(self, container: str) -> None:
        if not self._container_dir(container).is_dir():
            raise NotFoundError(container)

    async def container_exists(self, container: str) -> bool:
        return self._container_dir(container).is_dir()

    async def create_container_if_absent(
        self,
        container: str,
        public_access: Optional[str] = None,
    ) -> bool:
        # Access level has no meaning on a local filesystem
        container_dir = self._container_dir(container)
        if container_dir.is_dir():
            return False
        container_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("Created container directory %s", container_dir)
        return True

    async def object_exists(self, container: str, key: str) -> bool:
        return self._blob_path(container, key).is_file()

    async def open_read(self, container: str, key: str) -> Optional[BlobDownload]:
        path = self._blob_path(container, key)
        async with self._lock:
            props = await self._load_props(container, key)
            if not path.is_file() or props is None:
                return None

            spool = SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE)
            async for chunk in _file_chunks(path):
                spool.write(chunk)
        spool.seek(0)
        return BlobDownload(stream=spool, content_md5=props["content_md5"], etag=props["etag"])

    async def _check_precondition(
        self,
        container: str,
        key: str,
        expected_version: Optional[str],
        if_absent: bool,
    ) -> None:
        # Caller holds self._lock
        current = await self._load_props(container, key)
        if if_absent and current is not None:
            raise ConcurrencyConflictError(container, key, already_exists=True)
        if expected_version is not None and (current is None or current["etag"] != expected_version):
            raise ConcurrencyConflictError(container, key, expected_version)

    async def write(
        self,
        container: str,
        key: str,
        stream: BinaryIO,
        content_type: Optional[str] = None,
        expected_version: Optional[str] = None,
        if_absent: bool = False,
    ) -> str:
        path = self._blob_path(container, key)
        async with self._lock:
            self._require_container(container)
            await self._check_precondition(container, key, expected_version, if_absent)

            content_md5 = await _replace_file(path, _stream_chunks(stream))
            etag = _new_etag()
            await self._save_props(container, key, {
                "etag": etag,
                "content_type": content_type,
                "content_md5": content_md5,
            })

        logger.debug("Wrote %s (etag %s)", path, etag)
        return etag

    async def get_content_type(self, container: str, key: str) -> Optional[str]:
        props = await self._load_props(container, key)
        if props is None:
            raise NotFoundError(container, key)
        return props.get("content_type")

    async def set_content_type(self, container: str, key: str, content_type: str) -> None:
        async with self._lock:
            props = await self._load_props(container, key)
            if props is None:
                raise NotFoundError(container, key)
            props["content_type"] = content_type
            await self._save_props(container, key, props)

    async def copy(
        self,
        source_container: str,
        source_key: str,
        dest_container: str,
        dest_key: str,
        expected_version: Optional[str] = None,
        if_absent: bool = False,
    ) -> str:
        source = self._blob_path(source_container, source_key)
        dest = self._blob_path(dest_container, dest_key)
        async with self._lock:
            props = await self._load_props(source_container, source_key)
            if props is None or not source.is_file():
                raise NotFoundError(source_container, source_key)
            self._require_container(dest_container)
            await self._check_precondition(dest_container, dest_key, expected_version, if_absent)

            await _replace_file(dest, _file_chunks(source))
            etag = _new_etag()
            await self._save_props(dest_container, dest_key, {**props, "etag": etag})
        return etag

    def url(self, container: str, key: str) -> str:
        return self._blob_path(container, key).as_uri()

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> "FilesystemBlobStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
