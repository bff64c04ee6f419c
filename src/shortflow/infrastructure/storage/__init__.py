"""Blob store adapters."""

from .s3_blob_store import S3BlobStore

__all__ = ["S3BlobStore"]
