"""Data access services."""

from doclib.services.cache import CacheManager
from doclib.services.data_service import DataService
from doclib.services.file_storage import FileStorage, estimate_base64_size
from doclib.services.image_compressor import ImageCompressor
from doclib.services.preferences import PreferenceStore

__all__ = [
    "CacheManager",
    "DataService",
    "FileStorage",
    "ImageCompressor",
    "PreferenceStore",
    "estimate_base64_size",
]
