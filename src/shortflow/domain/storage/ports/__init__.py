"""Blob store port interfaces."""

from .blob_store_port import BlobNotFoundError, BlobStore, BlobStoreError

__all__ = ["BlobNotFoundError", "BlobStore", "BlobStoreError"]
