"""
SQLAlchemy 2.0 Models for the document library.

Uses modern declarative syntax with Mapped[] type annotations. Column types
are portable (Uuid, DateTime) so the same models run on PostgreSQL and SQLite.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from doclib.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Subject(Base):
    """Top-level category grouping documents."""

    __tablename__ = "subjects"
    __table_args__ = (
        CheckConstraint("length(name) > 0", name="ck_subjects_name_not_empty"),
        Index("idx_subjects_created_at", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    # Image URL or an inline data: URL (JPEG, recompressed before storing)
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    # Relationships
    documents: Mapped[list["Document"]] = relationship("Document", back_populates="subject")


class Document(Base):
    """
    Uploaded file record.

    ``content`` is either the inline base64 payload (small files) or the public
    URL of the blob in object storage, in which case ``is_storage_file`` is set.
    ``file_size`` is the decoded size in bytes.
    """

    __tablename__ = "documents"
    __table_args__ = (
        CheckConstraint("type IN ('pdf', 'word', 'text')", name="ck_documents_type"),
        Index("idx_documents_subject_id", "subject_id"),
        Index("idx_documents_created_at", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    # No ON DELETE CASCADE: documents are removed explicitly before their subject
    subject_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("subjects.id"), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_storage_file: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    # Relationships
    subject: Mapped["Subject"] = relationship("Subject", back_populates="documents")


class AdminUser(Base):
    """Administrator account used for password sign-in."""

    __tablename__ = "admin_users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
