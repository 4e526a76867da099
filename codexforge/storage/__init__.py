"""Blob storage providers for artifacts and entries."""

from codexforge.storage.base import BlobStorage
from codexforge.storage.drive import DriveStorage
from codexforge.storage.local import LocalStorage

__all__ = ["BlobStorage", "DriveStorage", "LocalStorage"]
