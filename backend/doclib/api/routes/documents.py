"""Document CRUD and search routes."""

from uuid import UUID

from fastapi import APIRouter, status

from doclib.api.deps import AdminSession, Service
from doclib.schemas.documents import DocumentCreate, DocumentRead, DocumentUpdate

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("/", response_model=list[DocumentRead])
async def list_documents(
    service: Service,
    subject_id: UUID | None = None,
    q: str | None = None,
) -> list[DocumentRead]:
    """
    List documents, newest first.

    Query params:
    - subject_id: Only documents of this subject
    - q: Case-insensitive search on name and description
    """
    if q:
        return await service.search_documents(q, subject_id)
    if subject_id:
        return await service.get_documents_by_subject(subject_id)
    return await service.get_all_documents()


@router.post("/", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
async def upload_document(data: DocumentCreate, service: AdminSession) -> DocumentRead:
    """Upload a document. Large files are placed in the storage bucket."""
    return await service.upload_document(data)


@router.get("/{document_id}", response_model=DocumentRead)
async def get_document(document_id: UUID, service: Service) -> DocumentRead:
    """Get a specific document by ID."""
    return await service.get_document_by_id(document_id)


@router.put("/{document_id}", response_model=DocumentRead)
async def update_document(document_id: UUID, data: DocumentUpdate, service: AdminSession) -> DocumentRead:
    """Update a document's metadata, and its file when content is supplied."""
    return await service.update_document(document_id, data)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(document_id: UUID, service: AdminSession) -> None:
    """Delete a document and its stored file."""
    await service.delete_document(document_id)
