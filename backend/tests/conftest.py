"""Pytest configuration and fixtures."""

import base64
import io
import os
from collections.abc import AsyncGenerator

# Settings() requires a secret; doclib.main builds its module-level app on import
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("BACKEND", "memory")

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from doclib.config import Settings
from doclib.gateway.memory import MemoryGateway
from doclib.main import create_app
from doclib.services.data_service import DataService

ADMIN_EMAIL = "admin@code-mitra.com"
ADMIN_PASSWORD = "correct-horse"

START_MS = 1_700_000_000_000


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, now: float = START_MS):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


def make_data_url(size: int, content_type: str = "application/pdf") -> str:
    """Base64 data URL whose decoded payload is exactly ``size`` bytes."""
    payload = base64.b64encode(b"x" * size).decode("ascii")
    return f"data:{content_type};base64,{payload}"


def make_image_data_url(width: int, height: int, fmt: str = "PNG", color=(200, 40, 40)) -> str:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format=fmt)
    mime = "image/png" if fmt == "PNG" else f"image/{fmt.lower()}"
    return f"data:{mime};base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def make_settings(**overrides) -> Settings:
    values = {
        "_env_file": None,
        "jwt_secret_key": "test-secret-key",
        "backend": "memory",
        "admin_email": ADMIN_EMAIL,
        "admin_password": ADMIN_PASSWORD,
        "max_file_size": 64 * 1024,
        "small_file_threshold": 1024,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway(settings: Settings) -> MemoryGateway:
    return MemoryGateway(users={ADMIN_EMAIL: ADMIN_PASSWORD}, settings=settings)


@pytest.fixture
async def service(gateway: MemoryGateway, settings: Settings, clock: FakeClock) -> DataService:
    service = DataService(gateway, settings, clock=clock)
    await service.init()
    return service


@pytest.fixture
async def admin_service(service: DataService) -> DataService:
    """DataService with the admin signed in."""
    result = await service.login("admin", ADMIN_PASSWORD)
    assert result.success
    return service


@pytest.fixture
async def subject(service: DataService):
    return await service.add_subject({"name": "Mathematics", "description": "Numbers"})


@pytest.fixture
async def client(service: DataService) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    app = create_app(data_service=service)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
