"""Azure blob storage implementation."""

import asyncio
import logging
from contextlib import contextmanager
from tempfile import SpooledTemporaryFile
from typing import BinaryIO, Iterator, Optional

from azure.core import MatchConditions
from azure.core.exceptions import (
    AzureError,
    HttpResponseError,
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from ..constants import COPY_POLL_INTERVAL, SPOOL_MAX_SIZE
from ..errors import ConcurrencyConflictError, NotFoundError, TransportError
from ..hashing import compute_stream_md5, encode_md5
from ..models import BlobDownload

logger = logging.getLogger(__name__)

_CONFLICT_STATUS_CODES = (409, 412)


def _match_conditions(expected_version: Optional[str], if_absent: bool) -> dict:
    """SDK keyword arguments for a precondition on the blob being replaced."""
    if if_absent:
        return {"match_condition": MatchConditions.IfMissing}
    if expected_version is not None:
        return {"etag": expected_version, "match_condition": MatchConditions.IfNotModified}
    return {}


@contextmanager
def translate_errors(
    container: str,
    key: Optional[str] = None,
    expected: Optional[str] = None,
    if_absent: bool = False,
) -> Iterator[None]:
    """Map Azure SDK exceptions onto the to-storage error taxonomy."""
    try:
        yield
    except ResourceNotFoundError as e:
        raise NotFoundError(container, key) from e
    except (ResourceModifiedError, ResourceExistsError) as e:
        raise ConcurrencyConflictError(container, key or "", expected, already_exists=if_absent) from e
    except HttpResponseError as e:
        if e.status_code in _CONFLICT_STATUS_CODES and key is not None:
            raise ConcurrencyConflictError(container, key, expected, already_exists=if_absent) from e
        raise TransportError(f"Azure request failed for '{container}/{key or ''}': {e}") from e
    except AzureError as e:
        raise TransportError(f"Azure request failed for '{container}/{key or ''}': {e}") from e


class AzureBlobStore:
    """
    Azure Blob Storage implementation on the asyncio SDK client.

    Keys are used verbatim as blob names inside the container.
    """

    def __init__(
        self,
        service: BlobServiceClient,
        copy_poll_interval: float = COPY_POLL_INTERVAL,
    ):
        self.service = service
        self.copy_poll_interval = copy_poll_interval

    @classmethod
    def from_connection_string(cls, connection_string: str, **kwargs) -> "AzureBlobStore":
        """
        Create a store from an Azure Storage connection string.

        Args:
            connection_string: Azure Storage (or Azurite) connection string
        """
        return cls(BlobServiceClient.from_connection_string(connection_string), **kwargs)

    @classmethod
    def from_account_key(cls, account_name: str, account_key: str, **kwargs) -> "AzureBlobStore":
        """Create a store from a storage account name and shared key."""
        service = BlobServiceClient(
            account_url=f"https://{account_name}.blob.core.windows.net",
            credential={"account_name": account_name, "account_key": account_key},
        )
        return cls(service, **kwargs)

    async def container_exists(self, container: str) -> bool:
        with translate_errors(container):
            return await self.service.get_container_client(container).exists()

    async def create_container_if_absent(
        self,
        container: str,
        public_access: Optional[str] = None,
    ) -> bool:
        container_client = self.service.get_container_client(container)
        with translate_errors(container):
            if await container_client.exists():
                return False
            try:
                await container_client.create_container(public_access=public_access)
            except ResourceExistsError:
                # Created by someone else in the meantime
                return False
        logger.debug("Created container %s (public access: %s)", container, public_access)
        return True

    async def object_exists(self, container: str, key: str) -> bool:
        with translate_errors(container, key):
            return await self.service.get_blob_client(container, key).exists()

    async def open_read(self, container: str, key: str) -> Optional[BlobDownload]:
        """
        Download a blob into a spooled temporary file.

        Returns:
            BlobDownload, or None if the container or blob does not exist
        """
        blob_client = self.service.get_blob_client(container, key)
        spool = SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE)
        try:
            with translate_errors(container, key):
                downloader = await blob_client.download_blob()
                async for chunk in downloader.chunks():
                    spool.write(chunk)
        except NotFoundError:
            spool.close()
            return None
        except BaseException:
            spool.close()
            raise

        properties = downloader.properties
        spool.seek(0)
        content_md5 = properties.content_settings.content_md5
        if content_md5:
            content_md5 = encode_md5(content_md5)
        else:
            # Blobs uploaded in blocks carry no Content-MD5
            content_md5 = compute_stream_md5(spool)
            spool.seek(0)

        return BlobDownload(stream=spool, content_md5=content_md5, etag=properties.etag)

    async def write(
        self,
        container: str,
        key: str,
        stream: BinaryIO,
        content_type: Optional[str] = None,
        expected_version: Optional[str] = None,
        if_absent: bool = False,
    ) -> str:
        blob_client = self.service.get_blob_client(container, key)
        kwargs = _match_conditions(expected_version, if_absent)
        kwargs["overwrite"] = not if_absent
        if content_type:
            kwargs["content_settings"] = ContentSettings(content_type=content_type)

        with translate_errors(container, key, expected_version, if_absent):
            result = await blob_client.upload_blob(stream, **kwargs)

        logger.debug("Wrote %s/%s (etag %s)", container, key, result["etag"])
        return result["etag"]

    async def set_content_type(self, container: str, key: str, content_type: str) -> None:
        blob_client = self.service.get_blob_client(container, key)
        with translate_errors(container, key):
            properties = await blob_client.get_blob_properties()
            content_settings = properties.content_settings
            content_settings.content_type = content_type
            await blob_client.set_http_headers(content_settings=content_settings)

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
        Server-side copy, polled until the copy is no longer pending.

        The preconditions are sent with the copy request, so the service
        checks the destination and starts the copy in one step.

        Raises:
            ConcurrencyConflictError: If the destination precondition fails
            TransportError: If the copy ends in any state but success
        """
        source = self.service.get_blob_client(source_container, source_key)
        dest = self.service.get_blob_client(dest_container, dest_key)
        conditions = _match_conditions(expected_version, if_absent)

        with translate_errors(dest_container, dest_key, expected_version, if_absent):
            copy = await dest.start_copy_from_url(source.url, **conditions)
            status = copy["copy_status"]
            while status == "pending":
                await asyncio.sleep(self.copy_poll_interval)
                properties = await dest.get_blob_properties()
                status = properties.copy.status
            properties = await dest.get_blob_properties()

        if status != "success":
            raise TransportError(
                f"Copy of '{source_key}' to '{dest_key}' in '{dest_container}' "
                f"ended with status '{status}'"
            )
        return properties.etag

    def url(self, container: str, key: str) -> str:
        return self.service.get_blob_client(container, key).url

    async def close(self) -> None:
        await self.service.close()

    async def __aenter__(self) -> "AzureBlobStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
