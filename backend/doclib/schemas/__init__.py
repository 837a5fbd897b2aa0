"""Pydantic schemas for records, requests and responses."""

from doclib.schemas.auth import (
    AuthUser,
    LoginRequest,
    LoginResult,
    Session,
    SessionStatus,
    ThemePreference,
)
from doclib.schemas.documents import DocumentCreate, DocumentRead, DocumentType, DocumentUpdate
from doclib.schemas.subjects import SubjectCreate, SubjectRead, SubjectUpdate

__all__ = [
    # Auth
    "AuthUser",
    "LoginRequest",
    "LoginResult",
    "Session",
    "SessionStatus",
    "ThemePreference",
    # Subjects
    "SubjectCreate",
    "SubjectRead",
    "SubjectUpdate",
    # Documents
    "DocumentCreate",
    "DocumentRead",
    "DocumentType",
    "DocumentUpdate",
]
