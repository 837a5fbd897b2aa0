"""
Size-tiered placement of document payloads.

Small payloads stay inline in the record as base64; large ones are decoded
and uploaded to the storage bucket, and the record keeps the public URL.
"""

import base64
import binascii
import logging
import math
import re
from dataclasses import dataclass

from doclib.errors import FileTooLarge, GatewayError, InvalidPayload
from doclib.gateway.protocols import StorageBucket
from doclib.services.cache import Clock, now_ms

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")
_DATA_URL_CONTENT_TYPE = re.compile(r":(.*?);")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class StoragePlacement:
    """Where a payload ended up: inline base64 or a storage URL."""

    content: str
    is_storage_file: bool
    file_size: int


def estimate_base64_size(payload: str | None) -> int:
    """
    Approximate decoded size of a base64 payload without decoding it.

    Any data URL prefix up to the first comma is ignored. The result is
    ``floor(len * 0.75)`` minus the number of trailing ``=`` pad characters,
    never below zero.
    """
    if not payload:
        return 0

    _, comma, encoded = payload.partition(",")
    if not comma:
        encoded = payload

    padding = len(encoded) - len(encoded.rstrip("="))
    return max(math.floor(len(encoded) * 0.75) - padding, 0)


def sanitize_filename(filename: str) -> str:
    """Replace every character outside ``[A-Za-z0-9.-]`` with ``_``."""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


def build_storage_path(filename: str, timestamp_ms: int) -> str:
    return f"{timestamp_ms}_{sanitize_filename(filename)}"


def storage_path_from_url(url: str) -> str:
    """Object path of a public storage URL: its last segment, query string dropped."""
    return url.rsplit("/", 1)[-1].split("?", 1)[0]


def decode_data_url(payload: str) -> tuple[bytes, str]:
    """
    Decode a base64 payload, optionally wrapped in a data URL.

    Returns:
        Tuple of (raw bytes, content type from the data URL header)

    Raises:
        InvalidPayload: If the payload is not valid base64
    """
    header, comma, encoded = payload.partition(",")
    if not comma:
        header, encoded = "", payload

    match = _DATA_URL_CONTENT_TYPE.search(header)
    content_type = match.group(1) if match and match.group(1) else DEFAULT_CONTENT_TYPE

    try:
        data = base64.b64decode(encoded, validate=False)
    except (binascii.Error, ValueError) as e:
        raise InvalidPayload(f"Invalid base64 payload: {e}") from e
    return data, content_type


class FileStorage:
    """Applies the size limit and the inline/bucket tiering policy."""

    def __init__(
        self,
        bucket: StorageBucket,
        *,
        max_file_size: int,
        small_file_threshold: int,
        clock: Clock = now_ms,
    ):
        self.bucket = bucket
        self.max_file_size = max_file_size
        self.small_file_threshold = small_file_threshold
        self._clock = clock

    def check_size(self, size: int) -> None:
        if size > self.max_file_size:
            raise FileTooLarge(size, self.max_file_size)

    async def place(self, payload: str, filename: str) -> StoragePlacement:
        """
        Decide where a payload is stored, uploading it when it is large.

        Raises:
            FileTooLarge: Before anything is written, if the payload exceeds the limit
            GatewayError: If the bucket upload fails
        """
        size = estimate_base64_size(payload)
        self.check_size(size)

        if size <= self.small_file_threshold:
            return StoragePlacement(content=payload, is_storage_file=False, file_size=size)

        url = await self.upload(payload, filename)
        return StoragePlacement(content=url, is_storage_file=True, file_size=size)

    async def upload(self, payload: str, filename: str) -> str:
        """
        Upload a base64 payload to the bucket and return its public URL.

        Raises:
            InvalidPayload: If the payload is not valid base64
            GatewayError: If the bucket rejects the upload
        """
        data, content_type = decode_data_url(payload)
        path = build_storage_path(filename, int(self._clock()))
        response = await self.bucket.upload(path, data, content_type=content_type, upsert=False)
        if response.error is not None:
            raise response.error

        logger.info("Uploaded %s to storage (%d bytes)", path, len(data))
        return self.bucket.get_public_url(path)

    async def remove(self, url: str) -> GatewayError | None:
        """
        Delete the blob behind a public storage URL.

        Returns the failure instead of raising it; callers decide whether it matters.
        """
        path = storage_path_from_url(url)
        try:
            response = await self.bucket.remove([path])
        except GatewayError as e:
            return e
        return response.error
