"""Constants and configuration used across the agentchat backend."""

from __future__ import annotations

from typing import Final

# Credential vault (AES-256-GCM)
ENCRYPTION_KEY_ENV: Final[str] = "API_KEY_ENCRYPTION_KEY"
KEY_LENGTH: Final[int] = 32  # 256 bits
IV_LENGTH: Final[int] = 16
AUTH_TAG_LENGTH: Final[int] = 16

# Model catalogs
CATALOG_TTL_SECONDS: Final[float] = 3600.0
DEFAULT_TEMPERATURE: Final[float] = 0.7

# OpenAI
OPENAI_PROVIDER_ID: Final[str] = "openai"
OPENAI_MODEL_PREFIXES: Final[tuple[str, ...]] = ("gpt", "chatgpt", "o1", "o3", "o4")
NON_CHAT_MODEL_MARKERS: Final[tuple[str, ...]] = ("whisper", "embedding", "tts", "dall-e")

# Anthropic
ANTHROPIC_PROVIDER_ID: Final[str] = "anthropic"
ANTHROPIC_MODEL_MARKER: Final[str] = "claude"
ANTHROPIC_DEFAULT_MAX_TOKENS: Final[int] = 1000
ANTHROPIC_MIN_TEMPERATURE: Final[float] = 0.0
ANTHROPIC_MAX_TEMPERATURE: Final[float] = 1.0
CONTINUATION_PROMPT: Final[str] = "Please continue."
