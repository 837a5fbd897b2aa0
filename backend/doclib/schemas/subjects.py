"""Subject schemas."""

from pydantic import Field

from doclib.schemas.base import BaseSchema, StoredRecord


class SubjectBase(BaseSchema):
    """Base subject schema with common fields."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    image: str | None = Field(
        None, description="Image URL, or a data: URL that is recompressed before storing"
    )


class SubjectCreate(SubjectBase):
    """Schema for creating a subject."""

    pass


class SubjectUpdate(SubjectBase):
    """
    Schema for updating a subject.

    Name and description are always written; the image is only written when supplied.
    """

    pass


class SubjectRead(SubjectBase, StoredRecord):
    """Schema for reading subject data."""

    pass
