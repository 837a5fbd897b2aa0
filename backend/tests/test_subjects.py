"""Tests for subject operations on the DataService."""

import logging
from uuid import uuid4

import pytest
from conftest import FakeClock, make_data_url, make_image_data_url, make_settings

from doclib.errors import GatewayError, NotFound
from doclib.gateway.memory import MemoryGateway
from doclib.gateway.protocols import GatewayResponse
from doclib.gateway.query import QueryPlan
from doclib.services.data_service import DataService


class FailingDeleteGateway(MemoryGateway):
    """Rejects the Nth document delete."""

    def __init__(self, fail_on: int, **kwargs):
        super().__init__(**kwargs)
        self.fail_on = fail_on
        self.document_deletes = 0

    async def _execute(self, plan: QueryPlan) -> GatewayResponse:
        if plan.table == "documents" and plan.action == "delete":
            self.document_deletes += 1
            if self.document_deletes == self.fail_on:
                self.calls.append((plan.table, plan.action))
                return GatewayResponse(error=GatewayError("permission denied for table documents"))
        return await super()._execute(plan)


def select_calls(gateway: MemoryGateway, table: str) -> int:
    return gateway.calls.count((table, "select"))


async def add_documents(service: DataService, subject_id, count: int, size: int = 10):
    for i in range(count):
        await service.upload_document(
            {
                "subject_id": subject_id,
                "name": f"doc-{i}.pdf",
                "type": "pdf",
                "content": make_data_url(size),
            }
        )


async def test_get_all_subjects_is_served_from_cache(service: DataService, gateway: MemoryGateway):
    await service.add_subject({"name": "Physics"})

    first = await service.get_all_subjects()
    second = await service.get_all_subjects()

    assert first == second
    assert select_calls(gateway, "subjects") == 1


async def test_cache_expires_after_duration(service: DataService, gateway: MemoryGateway, clock: FakeClock):
    await service.get_all_subjects()
    clock.advance(service.settings.cache_duration)
    await service.get_all_subjects()

    assert select_calls(gateway, "subjects") == 2


async def test_cache_disabled_always_reads_backend(gateway: MemoryGateway, clock: FakeClock):
    service = DataService(gateway, make_settings(use_cache=False), clock=clock)

    await service.get_all_subjects()
    await service.get_all_subjects()

    assert select_calls(gateway, "subjects") == 2


async def test_add_subject_invalidates_cache(service: DataService):
    assert await service.get_all_subjects() == []

    created = await service.add_subject({"name": "Chemistry", "description": "Atoms"})

    subjects = await service.get_all_subjects()
    assert [s.id for s in subjects] == [created.id]


async def test_subjects_are_listed_newest_first(service: DataService):
    await service.add_subject({"name": "First"})
    await service.add_subject({"name": "Second"})

    assert [s.name for s in await service.get_all_subjects()] == ["Second", "First"]


async def test_cached_reads_return_copies(service: DataService):
    await service.add_subject({"name": "Biology"})

    subjects = await service.get_all_subjects()
    subjects[0].name = "Changed"
    subjects.clear()

    assert [s.name for s in await service.get_all_subjects()] == ["Biology"]


async def test_get_subject_by_id(service: DataService, subject):
    found = await service.get_subject_by_id(subject.id)
    assert found.name == "Mathematics"


async def test_get_subject_by_id_accepts_string_id(service: DataService, subject):
    found = await service.get_subject_by_id(str(subject.id))
    assert found.id == subject.id


async def test_get_missing_subject_raises_not_found(service: DataService):
    with pytest.raises(NotFound):
        await service.get_subject_by_id(uuid4())


async def test_add_subject_compresses_inline_image(service: DataService):
    created = await service.add_subject({"name": "Art", "image": make_image_data_url(2400, 1200)})
    assert created.image.startswith("data:image/jpeg;base64,")


async def test_add_subject_keeps_image_url(service: DataService):
    url = "https://example.com/art.png"
    created = await service.add_subject({"name": "Art", "image": url})
    assert created.image == url


async def test_update_subject(service: DataService, subject):
    updated = await service.update_subject(subject.id, {"name": "Algebra", "description": "Letters"})

    assert updated.name == "Algebra"
    assert updated.description == "Letters"
    assert updated.updated_at >= subject.updated_at


async def test_update_subject_keeps_image_when_not_supplied(service: DataService):
    created = await service.add_subject({"name": "Art", "image": "https://example.com/a.png"})

    updated = await service.update_subject(created.id, {"name": "Fine Art"})

    assert updated.image == "https://example.com/a.png"


async def test_update_subject_invalidates_cache(service: DataService, subject):
    await service.get_all_subjects()
    await service.update_subject(subject.id, {"name": "Algebra"})
    assert [s.name for s in await service.get_all_subjects()] == ["Algebra"]


async def test_update_missing_subject_raises_not_found(service: DataService):
    with pytest.raises(NotFound):
        await service.update_subject(uuid4(), {"name": "Nothing"})


async def test_delete_subject_removes_documents_first(service: DataService, gateway: MemoryGateway, subject):
    await add_documents(service, subject.id, 3)
    gateway.calls.clear()

    await service.delete_subject(subject.id)

    deletes = [call for call in gateway.calls if call[1] == "delete"]
    assert deletes == [("documents", "delete")] * 3 + [("subjects", "delete")]
    assert gateway.tables["documents"] == []
    assert gateway.tables["subjects"] == []


async def test_delete_subject_without_documents(service: DataService, gateway: MemoryGateway, subject):
    await service.delete_subject(subject.id)
    assert gateway.tables["subjects"] == []


async def test_delete_subject_clears_whole_cache(service: DataService, gateway: MemoryGateway, subject):
    await add_documents(service, subject.id, 1)
    await service.get_all_subjects()
    await service.get_all_documents()

    await service.delete_subject(subject.id)

    assert await service.get_all_subjects() == []
    assert await service.get_all_documents() == []


async def test_delete_subject_removes_stored_files(service: DataService, gateway: MemoryGateway, subject):
    await add_documents(service, subject.id, 2, size=service.settings.small_file_threshold + 1)
    bucket = gateway.storage(service.settings.storage_bucket)
    # Both uploads happen at the same clock reading; names differ
    assert len(bucket.objects) == 2

    await service.delete_subject(subject.id)

    assert bucket.objects == {}


async def test_delete_subject_aborts_when_a_document_delete_fails(settings, clock: FakeClock):
    gateway = FailingDeleteGateway(fail_on=2)
    service = DataService(gateway, settings, clock=clock)
    subject = await service.add_subject({"name": "History"})
    await add_documents(service, subject.id, 3)

    with pytest.raises(GatewayError, match="permission denied"):
        await service.delete_subject(subject.id)

    assert ("subjects", "delete") not in gateway.calls
    assert len(gateway.tables["subjects"]) == 1
    assert len(gateway.tables["documents"]) == 2


async def test_blob_removal_failure_is_swallowed(service: DataService, gateway: MemoryGateway, subject, caplog):
    await add_documents(service, subject.id, 1, size=service.settings.small_file_threshold + 1)

    async def failing_remove(paths):
        return GatewayResponse(error=GatewayError("access denied"))

    gateway.storage(service.settings.storage_bucket).remove = failing_remove

    with caplog.at_level(logging.WARNING, logger="doclib.services.data_service"):
        await service.delete_subject(subject.id)

    assert gateway.tables["documents"] == []
    assert gateway.tables["subjects"] == []
    assert "Failed to remove stored file" in caplog.text


async def test_subject_with_documents_cannot_be_deleted_directly(gateway: MemoryGateway, service: DataService, subject):
    await add_documents(service, subject.id, 1)

    response = await gateway.table("subjects").delete().eq("id", subject.id).execute()

    assert isinstance(response.error, GatewayError)
    assert "foreign key" in str(response.error)
