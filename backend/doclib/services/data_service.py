"""
Data access core for the document library.

Key patterns:
1. One DataService per process, constructed with an explicit backend gateway
2. List reads go through the cache; every write clears the affected entry
3. Gateway errors are raised unchanged; only blob cleanup failures are swallowed

Concurrency: operations are plain coroutines with no locking. A list read
that is in flight while a write completes can put pre-write data back into
the cache until the entry expires.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from doclib.config import Settings
from doclib.errors import GatewayError, NotFound
from doclib.gateway.protocols import BackendGateway, GatewayResponse
from doclib.schemas.auth import AuthUser, LoginResult, Session
from doclib.schemas.documents import DocumentCreate, DocumentRead, DocumentUpdate
from doclib.schemas.subjects import SubjectCreate, SubjectRead, SubjectUpdate
from doclib.services.cache import CacheManager, Clock, now_ms
from doclib.services.file_storage import FileStorage, StoragePlacement
from doclib.services.image_compressor import ImageCompressor
from doclib.services.preferences import PreferenceStore

logger = logging.getLogger(__name__)

SUBJECTS = "subjects"
DOCUMENTS = "documents"

SessionHandler = Callable[[Session | None], None]


def _raise_for_error(response: GatewayResponse) -> None:
    if response.error is not None:
        raise response.error


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_inline_image(image: str | None) -> bool:
    return bool(image) and image.startswith("data:")


class DataService:
    """Mediates every read and write between the view layer and the backend gateway."""

    def __init__(
        self,
        gateway: BackendGateway,
        settings: Settings,
        *,
        clock: Clock = now_ms,
        compressor: ImageCompressor | None = None,
        preferences: PreferenceStore | None = None,
    ):
        self.gateway = gateway
        self.settings = settings
        self.cache = CacheManager(
            (SUBJECTS, DOCUMENTS),
            duration_ms=settings.cache_duration,
            enabled=settings.use_cache,
            clock=clock,
        )
        self.files = FileStorage(
            gateway.storage(settings.storage_bucket),
            max_file_size=settings.max_file_size,
            small_file_threshold=settings.small_file_threshold,
            clock=clock,
        )
        self.compressor = compressor or ImageCompressor(settings.image_max_dimension)
        self.preferences = preferences or PreferenceStore(settings.preferences_path)

        self.session: Session | None = None
        self.current_user: AuthUser | None = None
        self.initialized = False
        self._session_handlers: list[SessionHandler] = []
        self._unsubscribe: Callable[[], None] | None = None

    # =========================================================================
    # SESSION
    # =========================================================================

    async def init(self) -> None:
        """Load the current session and follow auth-state changes. Safe to call twice."""
        if self.initialized:
            return

        self._set_session(await self.gateway.auth.get_session())
        self._unsubscribe = self.gateway.auth.on_auth_state_change(self._on_auth_state_change)
        self.initialized = True
        logger.info("DataService initialized (logged_in=%s)", self.is_logged_in())

    async def close(self) -> None:
        """Stop following auth-state changes and release the gateway."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.initialized = False
        await self.gateway.close()

    def on_session_changed(self, handler: SessionHandler) -> Callable[[], None]:
        """Register a session observer. Returns a function that unregisters it."""
        self._session_handlers.append(handler)
        return lambda: self._session_handlers.remove(handler)

    async def login(self, identifier: str, password: str) -> LoginResult:
        """
        Sign in with email (or the admin alias) and password.

        Rejected credentials produce ``success=False``; backend failures raise.
        """
        email = self.settings.admin_email if identifier == self.settings.admin_alias else identifier

        response = await self.gateway.auth.sign_in_with_password(email=email, password=password)
        if response.error is not None or response.session is None:
            message = str(response.error) if response.error else ""
            return LoginResult(success=False, message=message or "Invalid credentials")

        self._set_session(response.session)
        return LoginResult(
            success=True,
            message="Login successful",
            token=response.session.access_token,
        )

    async def logout(self) -> None:
        """Sign out and drop the session and every cached list."""
        try:
            await self.gateway.auth.sign_out()
        finally:
            self._set_session(None)
            self.cache.clear()

    def is_logged_in(self) -> bool:
        return self.current_user is not None

    async def verify_admin(self) -> bool:
        return self.is_logged_in()

    def _on_auth_state_change(self, event: str, session: Session | None) -> None:
        logger.debug("Auth state changed: %s", event)
        self._set_session(session)

    def _set_session(self, session: Session | None) -> None:
        self.session = session
        self.current_user = session.user if session is not None else None
        for handler in list(self._session_handlers):
            handler(session)

    # =========================================================================
    # SUBJECTS
    # =========================================================================

    async def get_all_subjects(self) -> list[SubjectRead]:
        """All subjects, newest first. Served from cache while it is fresh."""
        if self.cache.is_valid(SUBJECTS):
            return [subject.model_copy() for subject in self.cache.get(SUBJECTS)]

        response = (
            await self.gateway.table(SUBJECTS).select().order("created_at", desc=True).execute()
        )
        _raise_for_error(response)

        subjects = [SubjectRead.model_validate(row) for row in response.data or []]
        self.cache.set(SUBJECTS, subjects)
        return [subject.model_copy() for subject in subjects]

    async def get_subject_by_id(self, subject_id: UUID | str) -> SubjectRead:
        response = await self.gateway.table(SUBJECTS).select().eq("id", subject_id).single().execute()
        _raise_for_error(response)
        if response.data is None:
            raise NotFound("Subject", subject_id)
        return SubjectRead.model_validate(response.data)

    async def add_subject(self, data: SubjectCreate | dict[str, Any]) -> SubjectRead:
        data = SubjectCreate.model_validate(data)

        image = data.image
        if _is_inline_image(image):
            image = self.compressor.compress(image, self.settings.image_max_size)

        record = {
            "name": data.name,
            "description": data.description or "",
            "image": image,
        }
        response = await self.gateway.table(SUBJECTS).insert(record).select().single().execute()
        _raise_for_error(response)

        self.cache.clear(SUBJECTS)
        return SubjectRead.model_validate(response.data)

    async def update_subject(self, subject_id: UUID | str, data: SubjectUpdate | dict[str, Any]) -> SubjectRead:
        data = SubjectUpdate.model_validate(data)

        values: dict[str, Any] = {
            "name": data.name,
            "description": data.description or "",
            "updated_at": _utcnow(),
        }
        if data.image is not None:
            image = data.image
            if _is_inline_image(image):
                image = self.compressor.compress(image, self.settings.image_max_size)
            values["image"] = image

        response = await self.gateway.table(SUBJECTS).update(values).eq("id", subject_id).select().execute()
        _raise_for_error(response)

        self.cache.clear(SUBJECTS)
        if not response.data:
            raise NotFound("Subject", subject_id)
        return SubjectRead.model_validate(response.data[0])

    async def delete_subject(self, subject_id: UUID | str) -> None:
        """
        Delete a subject together with its documents.

        Documents go first, one by one; if any of them fails the subject is left
        in place and the error propagates.
        """
        documents = await self.get_documents_by_subject(subject_id)
        for document in documents:
            await self._remove_document(document)

        response = await self.gateway.table(SUBJECTS).delete().eq("id", subject_id).execute()
        _raise_for_error(response)

        self.cache.clear()
        logger.info("Deleted subject %s with %d documents", subject_id, len(documents))

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    async def get_all_documents(self) -> list[DocumentRead]:
        """All documents, newest first. Served from cache while it is fresh."""
        if self.cache.is_valid(DOCUMENTS):
            return [document.model_copy() for document in self.cache.get(DOCUMENTS)]

        response = (
            await self.gateway.table(DOCUMENTS).select().order("created_at", desc=True).execute()
        )
        _raise_for_error(response)

        documents = [DocumentRead.model_validate(row) for row in response.data or []]
        self.cache.set(DOCUMENTS, documents)
        return [document.model_copy() for document in documents]

    async def get_documents_by_subject(self, subject_id: UUID | str) -> list[DocumentRead]:
        response = (
            await self.gateway.table(DOCUMENTS)
            .select()
            .eq("subject_id", subject_id)
            .order("created_at", desc=True)
            .execute()
        )
        _raise_for_error(response)
        return [DocumentRead.model_validate(row) for row in response.data or []]

    async def get_document_by_id(self, document_id: UUID | str) -> DocumentRead:
        response = await self.gateway.table(DOCUMENTS).select().eq("id", document_id).single().execute()
        _raise_for_error(response)
        if response.data is None:
            raise NotFound("Document", document_id)
        return DocumentRead.model_validate(response.data)

    async def upload_document(self, data: DocumentCreate | dict[str, Any]) -> DocumentRead:
        """
        Store a new document.

        Files at or below the small-file threshold stay inline as base64;
        larger ones go to the storage bucket and the record keeps the URL.

        Raises:
            FileTooLarge: Before anything is written, if the file exceeds the size limit
            GatewayError: If the record cannot be written; a blob uploaded for it is removed again
        """
        data = DocumentCreate.model_validate(data)
        placement = await self.files.place(data.content, data.name)

        record = {
            "subject_id": data.subject_id,
            "name": data.name,
            "description": data.description or "",
            "type": data.type.value,
            "content": placement.content,
            "is_storage_file": placement.is_storage_file,
            "file_size": placement.file_size,
        }
        try:
            response = await self.gateway.table(DOCUMENTS).insert(record).select().single().execute()
            _raise_for_error(response)
        except GatewayError:
            await self._discard_placement(placement)
            raise

        self.cache.clear(DOCUMENTS)
        return DocumentRead.model_validate(response.data)

    async def add_document(self, data: DocumentCreate | dict[str, Any]) -> DocumentRead:
        return await self.upload_document(data)

    async def update_document(self, document_id: UUID | str, data: DocumentUpdate | dict[str, Any]) -> DocumentRead:
        """
        Update document metadata, and the file itself when new content is given.

        Replacing content re-applies the size limit and tiering. A blob that
        held the previous content is left in storage. A blob uploaded for the new
        content is removed again when the update fails or matches no document.
        """
        data = DocumentUpdate.model_validate(data)
        placement: StoragePlacement | None = None

        values: dict[str, Any] = {
            "name": data.name,
            "description": data.description or "",
            "type": data.type.value,
            "updated_at": _utcnow(),
        }
        if data.content:
            placement = await self.files.place(data.content, data.name)
            values["content"] = placement.content
            values["is_storage_file"] = placement.is_storage_file
            values["file_size"] = placement.file_size

        try:
            response = await self.gateway.table(DOCUMENTS).update(values).eq("id", document_id).select().execute()
            _raise_for_error(response)
            if not response.data:
                raise NotFound("Document", document_id)
        except (GatewayError, NotFound):
            await self._discard_placement(placement)
            raise
        finally:
            self.cache.clear(DOCUMENTS)

        return DocumentRead.model_validate(response.data[0])

    async def delete_document(self, document_id: UUID | str) -> None:
        document = await self.get_document_by_id(document_id)
        await self._remove_document(document)

    async def search_documents(self, query: str, subject_id: UUID | str | None = None) -> list[DocumentRead]:
        """Case-insensitive match on name or description, optionally within one subject."""
        builder = self.gateway.table(DOCUMENTS).select()
        if subject_id:
            builder = builder.eq("subject_id", subject_id)

        pattern = f"%{query}%"
        builder = builder.or_(("name", "ilike", pattern), ("description", "ilike", pattern))

        response = await builder.order("created_at", desc=True).execute()
        _raise_for_error(response)
        return [DocumentRead.model_validate(row) for row in response.data or []]

    async def _remove_document(self, document: DocumentRead) -> None:
        if document.is_storage_file and document.content:
            error = await self.files.remove(document.content)
            if error is not None:
                # The record is deleted even when its blob cannot be
                logger.warning("Failed to remove stored file for document %s: %s", document.id, error)

        response = await self.gateway.table(DOCUMENTS).delete().eq("id", document.id).execute()
        _raise_for_error(response)

        self.cache.clear(DOCUMENTS)

    async def _discard_placement(self, placement: StoragePlacement | None) -> None:
        if placement is None or not placement.is_storage_file:
            return
        error = await self.files.remove(placement.content)
        if error is not None:
            logger.warning("Failed to remove orphaned stored file %s: %s", placement.content, error)

    # =========================================================================
    # PREFERENCES
    # =========================================================================

    async def get_theme(self) -> str:
        return self.preferences.get("theme") or self.settings.default_theme

    async def set_theme(self, theme: str) -> None:
        self.preferences.set("theme", theme)
