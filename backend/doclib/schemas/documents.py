"""Document schemas."""

from enum import Enum
from uuid import UUID

from pydantic import Field

from doclib.schemas.base import BaseSchema, StoredRecord


class DocumentType(str, Enum):
    """Kind of uploaded document."""

    PDF = "pdf"
    WORD = "word"
    TEXT = "text"


class DocumentCreate(BaseSchema):
    """Schema for uploading a document."""

    subject_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    type: DocumentType
    content: str = Field(..., min_length=1, description="Base64 payload, usually a data: URL")


class DocumentUpdate(BaseSchema):
    """Schema for updating a document. Content is only replaced when provided."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    type: DocumentType
    content: str | None = None


class DocumentRead(StoredRecord):
    """Schema for reading document data."""

    subject_id: UUID
    name: str
    description: str = ""
    type: DocumentType
    content: str
    is_storage_file: bool = False
    file_size: int = 0
