"""Services layer for the agentchat backend."""

from .chat_service import ChatCompletionRouter, RouterState, route_completion
from .stream_adapter import normalize_stream
from .vault import CredentialVault, generate_encryption_key, get_vault

__all__ = [
    "ChatCompletionRouter",
    "CredentialVault",
    "RouterState",
    "generate_encryption_key",
    "get_vault",
    "normalize_stream",
    "route_completion",
]
