"""UI preference routes."""

from fastapi import APIRouter

from doclib.api.deps import Service
from doclib.schemas.auth import ThemePreference

router = APIRouter(prefix="/preferences", tags=["preferences"])


@router.get("/theme", response_model=ThemePreference)
async def get_theme(service: Service) -> ThemePreference:
    return ThemePreference(theme=await service.get_theme())


@router.put("/theme", response_model=ThemePreference)
async def set_theme(data: ThemePreference, service: Service) -> ThemePreference:
    await service.set_theme(data.theme)
    return data
