"""Backend gateways: the contract the data service consumes and its implementations."""

from doclib.config import Settings
from doclib.gateway.memory import MemoryGateway
from doclib.gateway.protocols import (
    AuthClient,
    AuthResponse,
    BackendGateway,
    GatewayResponse,
    StorageBucket,
    TableQuery,
)


def create_gateway(settings: Settings) -> BackendGateway:
    """Build the gateway selected by ``settings.backend``."""
    if settings.backend == "memory":
        users = {settings.admin_email: settings.admin_password} if settings.admin_password else None
        return MemoryGateway(users=users, settings=settings)

    # Deferred so the memory backend runs without database or AWS drivers configured
    from doclib.gateway.sql import SqlGateway

    return SqlGateway.from_settings(settings)


__all__ = [
    "AuthClient",
    "AuthResponse",
    "BackendGateway",
    "GatewayResponse",
    "MemoryGateway",
    "StorageBucket",
    "TableQuery",
    "create_gateway",
]
