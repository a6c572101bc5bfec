"""Typed errors raised by the credential vault and the completion pipeline.

Every error carries the HTTP status code and the user-facing message the
API layer should respond with, so callers never have to inspect message
strings to tell an invalid key apart from a rate limit.
"""

from __future__ import annotations


class AgentChatError(Exception):
    """Base class for all agentchat errors."""

    status_code: int = 500
    user_message: str = "An unexpected error occurred. Please try again."

    @property
    def code(self) -> str:
        return type(self).__name__


# Credential vault


class VaultError(AgentChatError):
    """Failure while encrypting or decrypting a stored credential."""


class KeyConfigurationError(VaultError):
    user_message = "Credential encryption is not configured on the server."


class MalformedCredentialError(VaultError):
    user_message = "The stored API key is corrupted. Please re-enter it."


class AuthenticationFailedError(VaultError):
    user_message = "The stored API key could not be verified. Please re-enter it."


# Providers


class ProviderError(AgentChatError):
    """Failure while selecting or calling an upstream provider."""

    def __init__(self, message: str, *, provider: str | None = None, model: str | None = None):
        super().__init__(message)
        self.provider = provider
        self.model = model


class UnsupportedProviderError(ProviderError):
    status_code = 400
    user_message = "This model is not supported by any configured provider."


class CredentialNotFoundError(ProviderError):
    status_code = 400
    user_message = "No API connection is configured for this model's provider."


class UpstreamAuthError(ProviderError):
    status_code = 401
    user_message = "The provider rejected your API key. Check your API connection."


class RateLimitError(ProviderError):
    status_code = 429
    user_message = "The provider's rate limit or quota was exceeded. Try again later."


class UpstreamModelNotFoundError(ProviderError):
    status_code = 404
    user_message = "The provider does not recognize this model."


class UpstreamError(ProviderError):
    status_code = 502
    user_message = "The provider failed to generate a response. Please try again."


class UnsupportedStreamTypeError(ProviderError):
    user_message = "The provider returned a response that could not be streamed."


__all__ = [
    "AgentChatError",
    "AuthenticationFailedError",
    "CredentialNotFoundError",
    "KeyConfigurationError",
    "MalformedCredentialError",
    "ProviderError",
    "RateLimitError",
    "UnsupportedProviderError",
    "UnsupportedStreamTypeError",
    "UpstreamAuthError",
    "UpstreamError",
    "UpstreamModelNotFoundError",
    "VaultError",
]
