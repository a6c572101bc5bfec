"""API connection endpoints: store, list and remove provider credentials."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import get_current_user
from ..database import (
    create_api_connection,
    delete_api_connection,
    get_api_connection,
    get_db,
    list_api_connections,
    update_api_connection,
)
from ..deps import get_credential_vault, get_registry
from ..services.providers import ProviderRegistry
from ..services.vault import CredentialVault

router = APIRouter(prefix="/api/api-connections", tags=["api-connections"])


class CreateApiConnectionRequest(BaseModel):
    name: str = Field(min_length=1)
    service: str = Field(min_length=1)
    api_key: str = Field(min_length=1)
    validate_key: bool = False


class UpdateApiConnectionRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    service: Optional[str] = Field(default=None, min_length=1)
    api_key: Optional[str] = Field(default=None, min_length=1)
    validate_key: bool = False


class ApiConnectionResponse(BaseModel):
    """API connection metadata. The key itself is never returned."""

    id: str
    name: str
    service: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


async def _check_key(registry: ProviderRegistry, service: str, api_key: str) -> None:
    provider = registry.provider_for_service(service)
    if provider is None:
        raise HTTPException(status_code=400, detail=f"Unknown service: {service}")
    if not await provider.validate_credential(api_key):
        raise HTTPException(status_code=400, detail=f"{provider.display_name} rejected the API key")


@router.get("/services")
async def list_services(
    registry: ProviderRegistry = Depends(get_registry),
) -> dict[str, str]:
    """Provider ids and display names for the service picker."""
    return registry.get_provider_options()


@router.get("", response_model=list[ApiConnectionResponse])
async def list_connections(
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await list_api_connections(db, user_id)


@router.post("", response_model=ApiConnectionResponse, status_code=status.HTTP_201_CREATED)
async def create_connection(
    request: CreateApiConnectionRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    vault: CredentialVault = Depends(get_credential_vault),
):
    """Encrypt and store an API key, optionally checking it with the provider first."""
    if request.validate_key:
        await _check_key(registry, request.service, request.api_key)

    encrypted = vault.encrypt(request.api_key)
    return await create_api_connection(db, user_id, request.name, request.service, encrypted)


@router.get("/{connection_id}", response_model=ApiConnectionResponse)
async def read_connection(
    connection_id: str,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    connection = await get_api_connection(db, connection_id, user_id)
    if not connection:
        raise HTTPException(status_code=404, detail="API connection not found")
    return connection


@router.put("/{connection_id}", response_model=ApiConnectionResponse)
async def update_connection(
    connection_id: str,
    request: UpdateApiConnectionRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    vault: CredentialVault = Depends(get_credential_vault),
):
    """Rename, relabel or rotate a connection. A new key replaces the old one."""
    connection = await get_api_connection(db, connection_id, user_id)
    if not connection:
        raise HTTPException(status_code=404, detail="API connection not found")

    encrypted = None
    if request.api_key is not None:
        if request.validate_key:
            await _check_key(registry, request.service or connection.service, request.api_key)
        encrypted = vault.encrypt(request.api_key)

    return await update_api_connection(
        db,
        connection,
        name=request.name,
        service=request.service,
        encrypted_api_key=encrypted,
    )


@router.delete("/{connection_id}")
async def remove_connection(
    connection_id: str,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, bool]:
    if not await delete_api_connection(db, connection_id, user_id):
        raise HTTPException(status_code=404, detail="API connection not found")
    return {"deleted": True}
