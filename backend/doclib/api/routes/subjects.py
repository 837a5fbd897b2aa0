"""Subject CRUD routes."""

from uuid import UUID

from fastapi import APIRouter, status

from doclib.api.deps import AdminSession, Service
from doclib.schemas.subjects import SubjectCreate, SubjectRead, SubjectUpdate

router = APIRouter(prefix="/subjects", tags=["subjects"])


@router.get("/", response_model=list[SubjectRead])
async def list_subjects(service: Service) -> list[SubjectRead]:
    """List all subjects, newest first."""
    return await service.get_all_subjects()


@router.post("/", response_model=SubjectRead, status_code=status.HTTP_201_CREATED)
async def create_subject(data: SubjectCreate, service: AdminSession) -> SubjectRead:
    """Create a subject. Inline images are recompressed before storing."""
    return await service.add_subject(data)


@router.get("/{subject_id}", response_model=SubjectRead)
async def get_subject(subject_id: UUID, service: Service) -> SubjectRead:
    """Get a specific subject by ID."""
    return await service.get_subject_by_id(subject_id)


@router.put("/{subject_id}", response_model=SubjectRead)
async def update_subject(subject_id: UUID, data: SubjectUpdate, service: AdminSession) -> SubjectRead:
    """Update a subject."""
    return await service.update_subject(subject_id, data)


@router.delete("/{subject_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subject(subject_id: UUID, service: AdminSession) -> None:
    """Delete a subject and all of its documents."""
    await service.delete_subject(subject_id)
