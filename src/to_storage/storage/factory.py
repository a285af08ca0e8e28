"""Factory for creating blob storage instances."""

from pathlib import Path

from ..config import StorageSettings
from ..errors import ConfigError
from .azure import AzureBlobStore
from .base import BlobStore
from .fs import FilesystemBlobStore


def validate_azure_config(settings: StorageSettings) -> None:
    """
    Early validation of Azure configuration.

    Raises:
        ConfigError: If no usable credentials are configured
    """
    if not settings.has_azure_credentials:
        raise ConfigError(
            "Set AZURE_STORAGE_CONNECTION_STRING (or --connection-string), "
            "or both --account and --key, for Azure blob storage"
        )


def make_blob_store(settings: StorageSettings) -> BlobStore:
    """
    Create blob store instance based on settings.

    Raises:
        ConfigError: If configuration is invalid
        NotImplementedError: If provider is not supported
    """
    if settings.provider == "azure":
        validate_azure_config(settings)
        if settings.connection_string:
            return AzureBlobStore.from_connection_string(
                settings.connection_string,
                copy_poll_interval=settings.copy_poll_interval,
            )
        return AzureBlobStore.from_account_key(
            settings.account_name,
            settings.account_key,
            copy_poll_interval=settings.copy_poll_interval,
        )

    elif settings.provider == "fs":
        return FilesystemBlobStore(Path(settings.fs_root))

    else:
        raise NotImplementedError(f"Provider {settings.provider} not supported")
