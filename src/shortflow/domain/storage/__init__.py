"""Storage domain module - blob store port and upload tracking"""

from .ports import BlobNotFoundError, BlobStore, BlobStoreError
from .upload import UploadCancelledError, UploadState, UploadTracker

__all__ = [
    "BlobNotFoundError",
    "BlobStore",
    "BlobStoreError",
    "UploadCancelledError",
    "UploadState",
    "UploadTracker",
]
