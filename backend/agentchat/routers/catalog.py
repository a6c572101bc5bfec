"""Model catalog endpoints."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import get_current_user
from ..database import get_db, lookup_credential
from ..deps import get_credential_vault, get_registry
from ..errors import VaultError
from ..services.providers import ProviderRegistry
from ..services.vault import CredentialVault

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai/models", tags=["models"])


async def _user_api_key(
    db: AsyncSession, vault: CredentialVault, provider_id: str, user_id: str
) -> Optional[str]:
    """The user's decrypted key for a provider, or None to fall back to defaults."""
    encrypted = await lookup_credential(db, provider_id, user_id)
    if not encrypted:
        return None
    try:
        return vault.decrypt(encrypted)
    except VaultError as e:
        logger.warning(f"Cannot use stored {provider_id} key for catalog: {e}")
        return None


@router.get("")
async def list_models(
    provider: Optional[str] = None,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    vault: CredentialVault = Depends(get_credential_vault),
) -> dict[str, Any]:
    """List models per provider, live when the user has a usable key."""
    if provider:
        provider_ids = [registry.get_provider(provider).provider_id]
    else:
        provider_ids = registry.provider_ids

    catalogs = {}
    for provider_id in provider_ids:
        api_key = await _user_api_key(db, vault, provider_id, user_id)
        models = await registry.get_models(provider_id, api_key)
        catalogs[provider_id] = [model.to_dict() for model in models]
    return {"models": catalogs}


@router.get("/{provider_id}/{model_id}")
async def get_model(
    provider_id: str,
    model_id: str,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    vault: CredentialVault = Depends(get_credential_vault),
) -> dict[str, Any]:
    """Look up one model; short ids such as ``claude-3-opus`` are accepted."""
    provider = registry.get_provider(provider_id)
    api_key = await _user_api_key(db, vault, provider.provider_id, user_id)
    model = await registry.get_model_by_id(provider.provider_id, model_id, api_key)
    if model is None:
        raise HTTPException(status_code=404, detail=f"Model not found: {model_id}")
    return model.to_dict()
