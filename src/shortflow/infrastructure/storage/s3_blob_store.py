"""S3 Blob Store - Implementation of BlobStore using boto3.

Stores uploaded short videos in an S3-compatible bucket (AWS S3, MinIO).
Uploads report progress through an UploadTracker and can be cancelled
mid-transfer; an upload only becomes a FileRef after ``confirm`` has seen
the object with a HEAD request.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import io
import logging
from pathlib import Path
from typing import BinaryIO, Optional
from urllib.parse import quote, unquote
from uuid import UUID, uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from ...domain.shorts.models import FileRef
from ...domain.storage.ports import BlobNotFoundError, BlobStore, BlobStoreError
from ...domain.storage.upload import UploadCancelledError, UploadTracker

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

# User metadata keys; S3-compatible gateways may rewrite underscores in headers
FILENAME_METADATA_KEY = "filename"
SHORT_ID_METADATA_KEY = "short-id"


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


def _stream_size(file: BinaryIO) -> int:
    """Bytes left in a seekable stream, without moving its position."""
    position = file.tell()
    file.seek(0, io.SEEK_END)
    size = file.tell() - position
    file.seek(position)
    return size


class S3BlobStore(BlobStore):
    """S3-compatible blob store using boto3.

    Storage key format: shorts/{short_id}/{random_hex}{ext}

    Example:
        store = S3BlobStore(
            endpoint_url=settings.S3_ENDPOINT_URL,
            access_key=settings.S3_ACCESS_KEY_ID,
            secret_key=settings.S3_SECRET_ACCESS_KEY,
            bucket_name=settings.S3_BUCKET_NAME,
            max_size_bytes=settings.MAX_VIDEO_SIZE_BYTES,
        )

        tracker = UploadTracker(total_bytes=size)
        with open('cut.mp4', 'rb') as f:
            upload_id = await store.upload(short_id, f, 'cut.mp4', 'video/mp4', tracker=tracker)
        file_ref = await store.confirm(upload_id, tracker=tracker)
    """

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key: str,
        secret_key: str,
        bucket_name: str,
        region: str = "us-east-1",
        max_size_bytes: Optional[int] = None,
    ):
        """Initialize S3 blob store.

        Raises:
            BlobStoreError: If S3 client initialization fails
        """
        try:
            self.s3_client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
            )
        except NoCredentialsError as e:
            raise BlobStoreError(f"Invalid S3 credentials: {e}")
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to initialize S3 client: {e}")

        self.bucket_name = bucket_name
        self.region = region
        self.max_size_bytes = max_size_bytes
        logger.info(
            f"Initialized S3 blob store: bucket={bucket_name}, "
            f"endpoint={endpoint_url or 'AWS S3'}, region={region}"
        )

    async def upload(
        self,
        short_id: UUID,
        file: BinaryIO,
        filename: str,
        mime_type: str,
        tracker: Optional[UploadTracker] = None,
    ) -> str:
        """Upload a video for a short.

        Args:
            short_id: Short the video belongs to
            file: Binary file stream
            filename: Original filename
            mime_type: MIME type, must be a video type
            tracker: Receives progress; cancelling it aborts the transfer

        Returns:
            str: Upload ID to pass to ``confirm``

        Raises:
            ValueError: If the MIME type is not a video type or the file is too large
            UploadCancelledError: If the tracker was cancelled
            BlobStoreError: If the upload fails
        """
        if not mime_type.startswith("video/"):
            raise ValueError(f"Unsupported MIME type for a short: {mime_type}")
        if self.max_size_bytes is not None:
            size = _stream_size(file)
            if size > self.max_size_bytes:
                raise ValueError(
                    f"File too large: {size} bytes (max {self.max_size_bytes})"
                )
        if tracker is not None and tracker.cancelled:
            raise UploadCancelledError("Upload cancelled before start")

        storage_key = self._generate_storage_key(short_id, filename)
        try:
            self.s3_client.upload_fileobj(
                file,
                self.bucket_name,
                storage_key,
                ExtraArgs={
                    "ContentType": mime_type,
                    "Metadata": {
                        FILENAME_METADATA_KEY: quote(filename),
                        SHORT_ID_METADATA_KEY: str(short_id),
                    },
                },
                Callback=tracker.on_bytes if tracker is not None else None,
            )
            # Single-part transfers report progress after the PUT, so a cancel
            # can surface here with the object already stored
            if tracker is not None:
                tracker.mark_uploaded()
        except UploadCancelledError:
            logger.info(f"Upload cancelled: storage_key={storage_key}")
            await self.delete_key(storage_key)
            raise
        except ClientError as e:
            error_code = _error_code(e)
            logger.error(f"S3 upload failed: storage_key={storage_key}, error={error_code}")
            if tracker is not None:
                tracker.fail(error_code)
            raise BlobStoreError(f"Failed to upload file: {error_code}")
        except BotoCoreError as e:
            logger.error(f"S3 upload failed: storage_key={storage_key}, error={e}")
            if tracker is not None:
                tracker.fail(str(e))
            raise BlobStoreError(f"Failed to upload file: {e}")

        logger.info(f"Uploaded file: storage_key={storage_key}, mime_type={mime_type}")
        return storage_key

    async def confirm(self, upload_id: str, tracker: Optional[UploadTracker] = None) -> FileRef:
        """Verify the object exists and build its FileRef (HEAD request).

        Raises:
            BlobNotFoundError: If nothing is stored under upload_id
            BlobStoreError: If the HEAD request fails
        """
        try:
            head = self.s3_client.head_object(Bucket=self.bucket_name, Key=upload_id)
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in _NOT_FOUND_CODES:
                raise BlobNotFoundError(f"Upload not found: {upload_id}")
            logger.error(f"S3 HEAD failed: storage_key={upload_id}, error={error_code}")
            raise BlobStoreError(f"Failed to confirm upload: {error_code}")
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to confirm upload: {e}")

        metadata = head.get("Metadata", {})
        file_ref = FileRef(
            file_id=upload_id,
            name=unquote(metadata.get(FILENAME_METADATA_KEY, Path(upload_id).name)),
            size_bytes=int(head["ContentLength"]),
            mime_type=head.get("ContentType", "application/octet-stream"),
        )
        if tracker is not None:
            tracker.confirm(file_ref)
        logger.info(f"Confirmed upload: storage_key={upload_id}, size={file_ref.size_bytes}")
        return file_ref

    async def delete(self, file_ref: FileRef) -> bool:
        return await self.delete_key(file_ref.file_id)

    async def delete_key(self, storage_key: str) -> bool:
        """Delete an object. Idempotent: returns False if it did not exist.

        Raises:
            BlobStoreError: If deletion fails
        """
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=storage_key)
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in _NOT_FOUND_CODES:
                logger.info(f"File not found for deletion: storage_key={storage_key}")
                return False
            raise BlobStoreError(f"Failed to delete file: {error_code}")
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to delete file: {e}")

        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=storage_key)
        except ClientError as e:
            error_code = _error_code(e)
            logger.error(f"S3 deletion failed: storage_key={storage_key}, error={error_code}")
            raise BlobStoreError(f"Failed to delete file: {error_code}")
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to delete file: {e}")

        logger.info(f"Deleted file: storage_key={storage_key}")
        return True

    async def verify_bucket_exists(self) -> bool:
        """Fail fast on startup if the bucket is missing.

        Raises:
            BlobStoreError: If bucket check fails or bucket doesn't exist
        """
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in _NOT_FOUND_CODES:
                raise BlobStoreError(
                    f"Bucket '{self.bucket_name}' does not exist. "
                    f"Create it first or update S3_BUCKET_NAME."
                )
            raise BlobStoreError(f"Failed to verify bucket: {error_code}")
        logger.info(f"Verified bucket exists: {self.bucket_name}")
        return True

    def _generate_storage_key(self, short_id: UUID, filename: str) -> str:
        """Generate storage key: shorts/{short_id}/{random_hex}{ext}"""
        ext = Path(filename).suffix.lower()
        return f"shorts/{short_id}/{uuid4().hex}{ext}"
