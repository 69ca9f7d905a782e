# adminhub/services/file_storage.py

import logging
import os
import re
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Optional, List

# --- Azure SDK Imports ---
from azure.storage.blob.aio import BlobServiceClient, ContainerClient, BlobClient
from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import ContentSettings

from ..core.config import settings
from ..models.kyc import StoredFile, StorageStats, StorageBucketStats

# --- Logging Setup ---
logger = logging.getLogger(__name__)

KYC_PREFIX = "kyc"
TEMP_FOLDER = "temp"
ARCHIVE_FOLDER = "archived"
DOCUMENT_FOLDERS = {
    "pan_card": "pan_cards",
    "aadhar_card": "aadhar_cards",
}
DEFAULT_DOCUMENT_FOLDER = "other_documents"
STATS_FOLDERS = ["pan_cards", "aadhar_cards", "other_documents", ARCHIVE_FOLDER]


class FileValidationError(Exception):
    """Raised when an upload breaks the size or type rules. `errors` lists every problem found."""
    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(f"File validation failed: {', '.join(errors)}")


# --- Blob Service Client (Cached) ---
_blob_service_client: Optional[BlobServiceClient] = None

def get_blob_service_client() -> Optional[BlobServiceClient]:
    """Gets or creates the async BlobServiceClient instance."""
    global _blob_service_client
    if _blob_service_client is None:
        if not settings.AZURE_BLOB_CONNECTION_STRING:
            logger.error("Azure Blob Storage connection string is not configured.")
            return None
        try:
            _blob_service_client = BlobServiceClient.from_connection_string(
                conn_str=settings.AZURE_BLOB_CONNECTION_STRING
            )
            logger.info("BlobServiceClient initialized.")
        except ValueError as e:
            logger.error(f"Invalid Blob Storage connection string format: {e}")
            return None
        except Exception as e:
            logger.error(f"Failed to initialize BlobServiceClient: {e}", exc_info=True)
            return None
    return _blob_service_client

def _get_container_client() -> Optional[ContainerClient]:
    service_client = get_blob_service_client()
    if not service_client or not settings.AZURE_BLOB_CONTAINER_NAME:
        logger.error("Blob storage service client or container name not available.")
        return None
    return service_client.get_container_client(settings.AZURE_BLOB_CONTAINER_NAME)

# --- Naming ---

def document_folder(document_type: str) -> str:
    return DOCUMENT_FOLDERS.get(document_type, DEFAULT_DOCUMENT_FOLDER)

def generate_file_name(original_name: str, user_id: str, document_type: str) -> str:
    """`{user}_{type}_{sanitised base name}_{epoch ms}_{16 hex chars}{ext}`"""
    base, extension = os.path.splitext(original_name or "file")
    sanitized = re.sub(r"[^a-zA-Z0-9]", "_", base).lower()
    timestamp = int(time.time() * 1000)
    return f"{user_id}_{document_type}_{sanitized}_{timestamp}_{secrets.token_hex(8)}{extension}"

def validate_file(content_type: Optional[str], size: int) -> List[str]:
    """Returns the validation problems for an upload; an empty list means it is acceptable."""
    errors: List[str] = []
    max_size = settings.KYC_MAX_FILE_SIZE
    if size > max_size:
        errors.append(f"File size exceeds maximum limit of {max_size // (1024 * 1024)}MB")
    allowed = settings.KYC_ALLOWED_MIME_TYPES
    if content_type not in allowed:
        errors.append(f"File type {content_type} is not allowed. Allowed types: {', '.join(allowed)}")
    return errors

# --- File Operations ---

async def save_file(
    data: bytes,
    original_file_name: str,
    content_type: Optional[str],
    user_id: str,
    document_type: str,
) -> Optional[StoredFile]:
    """
    Validates and uploads a KYC file under `kyc/<folder>/`.

    Raises:
        FileValidationError: If the size or MIME type is not accepted.

    Returns:
        StoredFile describing the blob, or None if the upload itself failed.
    """
    errors = validate_file(content_type, len(data))
    if errors:
        raise FileValidationError(errors)

    container_client = _get_container_client()
    if container_client is None:
        return None

    file_name = generate_file_name(original_file_name, user_id, document_type)
    file_path = f"{KYC_PREFIX}/{document_folder(document_type)}/{file_name}"
    logger.info(f"Uploading '{original_file_name}' as blob '{file_path}'...")
    try:
        blob_client: BlobClient = container_client.get_blob_client(file_path)
        await blob_client.upload_blob(
            data=data,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type),
        )
    except AzureError as e:
        logger.error(f"Azure error during blob upload for {file_path}: {e}", exc_info=True)
        return None
    except Exception as e:
        logger.error(f"Unexpected error during blob upload for {file_path}: {e}", exc_info=True)
        return None

    logger.info(f"Successfully uploaded '{original_file_name}' to blob: {file_path}")
    return StoredFile(
        file_name=file_name,
        original_file_name=original_file_name,
        file_path=file_path,
        file_size=len(data),
        mime_type=content_type,
    )

async def download_file_as_bytes(file_path: str) -> Optional[bytes]:
    """Downloads a stored file. None when the blob is missing or the download fails."""
    container_client = _get_container_client()
    if container_client is None:
        return None
    try:
        blob_client: BlobClient = container_client.get_blob_client(file_path)
        download_stream = await blob_client.download_blob()
        file_bytes = await download_stream.readall()
        logger.info(f"Downloaded {len(file_bytes)} bytes from blob '{file_path}'.")
        return file_bytes
    except ResourceNotFoundError:
        logger.warning(f"Blob '{file_path}' not found during download attempt.")
        return None
    except AzureError as ae:
        logger.error(f"Azure error downloading blob '{file_path}': {ae}", exc_info=False)
        return None
    except Exception as e:
        logger.error(f"Unexpected error downloading blob '{file_path}': {e}", exc_info=True)
        return None

async def delete_file(file_path: str) -> bool:
    """Deletes a blob. A blob that is already gone counts as deleted."""
    container_client = _get_container_client()
    if container_client is None:
        return False
    try:
        await container_client.get_blob_client(file_path).delete_blob(delete_snapshots="include")
        logger.info(f"Deleted blob '{file_path}'.")
        return True
    except ResourceNotFoundError:
        logger.warning(f"Blob '{file_path}' not found during deletion. Considered successful.")
        return True
    except AzureError as ae:
        logger.error(f"Azure error deleting blob '{file_path}': {ae}", exc_info=False)
        return False
    except Exception as e:
        logger.error(f"Unexpected error deleting blob '{file_path}': {e}", exc_info=True)
        return False

async def archive_file(file_path: str, reason: str = "document_update") -> Optional[str]:
    """
    Moves a blob to `kyc/archived/{epoch ms}_{name}`.
    Returns the archived path, or None if the source could not be read or written.
    """
    container_client = _get_container_client()
    if container_client is None:
        return None
    file_name = file_path.rsplit("/", 1)[-1]
    archived_path = f"{KYC_PREFIX}/{ARCHIVE_FOLDER}/{int(time.time() * 1000)}_{file_name}"
    logger.info(f"Archiving blob '{file_path}' to '{archived_path}' (reason: {reason})")
    try:
        source: BlobClient = container_client.get_blob_client(file_path)
        download_stream = await source.download_blob()
        data = await download_stream.readall()
        properties = download_stream.properties
        await container_client.get_blob_client(archived_path).upload_blob(
            data=data,
            overwrite=True,
            content_settings=properties.content_settings if properties else None,
            metadata={"archive_reason": reason, "original_path": file_path},
        )
        await source.delete_blob(delete_snapshots="include")
        return archived_path
    except ResourceNotFoundError:
        logger.warning(f"Blob '{file_path}' not found; nothing to archive.")
        return None
    except AzureError as ae:
        logger.error(f"Azure error archiving blob '{file_path}': {ae}", exc_info=False)
        return None
    except Exception as e:
        logger.error(f"Unexpected error archiving blob '{file_path}': {e}", exc_info=True)
        return None

async def get_storage_stats() -> Optional[StorageStats]:
    """File count and bytes per KYC folder."""
    container_client = _get_container_client()
    if container_client is None:
        return None
    stats = StorageStats(by_type={folder: StorageBucketStats() for folder in STATS_FOLDERS})
    try:
        async for blob in container_client.list_blobs(name_starts_with=f"{KYC_PREFIX}/"):
            parts = blob.name.split("/")
            folder = parts[1] if len(parts) > 2 else None
            bucket = stats.by_type.get(folder)
            if bucket is None:
                continue
            bucket.count += 1
            bucket.size += blob.size or 0
    except AzureError as ae:
        logger.error(f"Azure error listing KYC blobs: {ae}", exc_info=False)
        return None
    stats.total_files = sum(bucket.count for bucket in stats.by_type.values())
    stats.total_size = sum(bucket.size for bucket in stats.by_type.values())
    return stats

async def cleanup_temp_files(max_age: timedelta = timedelta(hours=24)) -> int:
    """Deletes temp uploads last modified before `now - max_age`. Returns how many were removed."""
    container_client = _get_container_client()
    if container_client is None:
        return 0
    cutoff = datetime.now(timezone.utc) - max_age
    removed = 0
    try:
        async for blob in container_client.list_blobs(name_starts_with=f"{KYC_PREFIX}/{TEMP_FOLDER}/"):
            if blob.last_modified and blob.last_modified < cutoff:
                await container_client.delete_blob(blob.name)
                removed += 1
                logger.info(f"Cleaned up temp file: {blob.name}")
    except AzureError as ae:
        logger.error(f"Azure error cleaning up temp files: {ae}", exc_info=False)
    return removed
