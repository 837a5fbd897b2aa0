"""Tests for the SQL gateway and password auth, on SQLite through aiosqlite."""

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest
from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, make_data_url, make_settings
from jose import jwt

from doclib.db.base import Base
from doclib.db.session import create_engine_from_url, create_session_factory
from doclib.errors import GatewayError
from doclib.gateway.auth import SqlAuthClient
from doclib.gateway.memory import MemoryBucket
from doclib.gateway.sql import SqlGateway
from doclib.services.data_service import DataService


@pytest.fixture
def sql_settings(tmp_path):
    return make_settings(backend="sql", database_url_override=f"sqlite+aiosqlite:///{tmp_path / 'doclib.db'}")


@pytest.fixture
async def sql_gateway(sql_settings):
    engine = create_engine_from_url(sql_settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = create_session_factory(engine)
    gateway = SqlGateway(
        session_factory,
        auth=SqlAuthClient(session_factory, sql_settings),
        buckets={"documents": MemoryBucket("documents", "memory://storage", [])},
        engine=engine,
    )
    yield gateway
    await gateway.close()


async def insert_subject(gateway: SqlGateway, name: str, **values) -> dict:
    response = await gateway.table("subjects").insert({"name": name, **values}).select().single().execute()
    assert response.error is None
    return response.data


async def test_insert_returns_row(sql_gateway: SqlGateway):
    row = await insert_subject(sql_gateway, "Physics")

    assert isinstance(row["id"], UUID)
    assert row["name"] == "Physics"
    assert row["description"] == ""
    assert row["created_at"] is not None


async def test_select_orders_and_filters(sql_gateway: SqlGateway):
    now = datetime.now(timezone.utc)
    older = await insert_subject(sql_gateway, "Older", created_at=now - timedelta(days=1))
    newer = await insert_subject(sql_gateway, "Newer", created_at=now)

    response = await sql_gateway.table("subjects").select().order("created_at", desc=True).execute()
    assert [row["name"] for row in response.data] == ["Newer", "Older"]

    response = await sql_gateway.table("subjects").select("id, name").eq("id", str(older["id"])).execute()
    assert response.data == [{"id": older["id"], "name": "Older"}]
    assert newer["id"] != older["id"]


async def test_single_with_no_rows_returns_none(sql_gateway: SqlGateway):
    response = await sql_gateway.table("subjects").select().eq("id", uuid4()).single().execute()
    assert response.error is None
    assert response.data is None


async def test_or_ilike_is_case_insensitive(sql_gateway: SqlGateway):
    await insert_subject(sql_gateway, "Introduction", description="")
    await insert_subject(sql_gateway, "Geometry", description="an intro course")
    await insert_subject(sql_gateway, "Algebra")

    response = (
        await sql_gateway.table("subjects")
        .select()
        .or_(("name", "ilike", "%INTRO%"), ("description", "ilike", "%INTRO%"))
        .execute()
    )

    assert sorted(row["name"] for row in response.data) == ["Geometry", "Introduction"]


async def test_update_returning(sql_gateway: SqlGateway):
    row = await insert_subject(sql_gateway, "Physics")

    response = await sql_gateway.table("subjects").update({"name": "Mechanics"}).eq("id", row["id"]).select().execute()

    assert [r["name"] for r in response.data] == ["Mechanics"]


async def test_update_missing_row_returns_empty(sql_gateway: SqlGateway):
    response = await sql_gateway.table("subjects").update({"name": "x"}).eq("id", uuid4()).select().execute()
    assert response.data == []


async def test_subject_with_documents_cannot_be_deleted(sql_gateway: SqlGateway):
    subject = await insert_subject(sql_gateway, "Physics")
    await sql_gateway.table("documents").insert(
        {"subject_id": subject["id"], "name": "a.pdf", "type": "pdf", "content": "QQ=="}
    ).execute()

    response = await sql_gateway.table("subjects").delete().eq("id", subject["id"]).execute()

    assert isinstance(response.error, GatewayError)
    remaining = await sql_gateway.table("subjects").select().execute()
    assert len(remaining.data) == 1


async def test_check_constraint_rejects_empty_name(sql_gateway: SqlGateway):
    response = await sql_gateway.table("subjects").insert({"name": ""}).execute()
    assert isinstance(response.error, GatewayError)


async def test_unknown_column_is_an_error(sql_gateway: SqlGateway):
    response = await sql_gateway.table("subjects").select().eq("colour", "red").execute()
    assert isinstance(response.error, GatewayError)


async def test_unknown_table_is_an_error(sql_gateway: SqlGateway):
    response = await sql_gateway.table("comments").select().execute()
    assert isinstance(response.error, GatewayError)


async def test_invalid_uuid_is_an_error(sql_gateway: SqlGateway):
    response = await sql_gateway.table("subjects").select().eq("id", "not-a-uuid").execute()
    assert isinstance(response.error, GatewayError)


async def test_unknown_bucket_is_an_error(sql_gateway: SqlGateway):
    with pytest.raises(GatewayError):
        sql_gateway.storage("images")


async def test_password_sign_in_issues_token(sql_gateway: SqlGateway, sql_settings):
    admin = await sql_gateway.auth.create_admin(ADMIN_EMAIL, ADMIN_PASSWORD)

    response = await sql_gateway.auth.sign_in_with_password(email=ADMIN_EMAIL, password=ADMIN_PASSWORD)

    assert response.error is None
    claims = jwt.decode(
        response.session.access_token, sql_settings.jwt_secret_key, algorithms=[sql_settings.jwt_algorithm]
    )
    assert claims["sub"] == admin.id
    assert await sql_gateway.auth.get_session() == response.session


async def test_wrong_password_is_rejected(sql_gateway: SqlGateway):
    await sql_gateway.auth.create_admin(ADMIN_EMAIL, ADMIN_PASSWORD)

    response = await sql_gateway.auth.sign_in_with_password(email=ADMIN_EMAIL, password="nope")

    assert response.session is None
    assert str(response.error) == "Invalid login credentials"


async def test_duplicate_admin_is_rejected(sql_gateway: SqlGateway):
    await sql_gateway.auth.create_admin(ADMIN_EMAIL, ADMIN_PASSWORD)
    with pytest.raises(GatewayError):
        await sql_gateway.auth.create_admin(ADMIN_EMAIL, "other")


async def test_data_service_on_sql_backend(sql_gateway: SqlGateway, sql_settings):
    await sql_gateway.auth.create_admin(ADMIN_EMAIL, ADMIN_PASSWORD)
    service = DataService(sql_gateway, sql_settings)
    await service.init()

    assert (await service.login("admin", ADMIN_PASSWORD)).success

    subject = await service.add_subject({"name": "Physics"})
    small = await service.upload_document(
        {"subject_id": subject.id, "name": "Intro.pdf", "type": "pdf", "content": make_data_url(10)}
    )
    large = await service.upload_document(
        {
            "subject_id": subject.id,
            "name": "Lecture.pdf",
            "type": "pdf",
            "content": make_data_url(sql_settings.small_file_threshold + 1),
        }
    )
    assert not small.is_storage_file
    assert large.is_storage_file

    assert [d.name for d in await service.search_documents("intro")] == ["Intro.pdf"]

    await service.delete_subject(subject.id)

    assert await service.get_all_subjects() == []
    assert await service.get_all_documents() == []
    assert sql_gateway.storage("documents").objects == {}
