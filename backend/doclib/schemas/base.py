"""Shared schema configuration for library records."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base for request and response schemas."""

    model_config = ConfigDict(
        from_attributes=True,  # ORM rows as well as gateway dicts
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="ignore",
    )


class StoredRecord(BaseSchema):
    """Columns the backend fills in on every row."""

    id: UUID
    created_at: datetime
    updated_at: datetime
