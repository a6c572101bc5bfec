"""Normalize provider-native streams into a plain UTF-8 byte stream."""

from __future__ import annotations

import codecs
import inspect
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Union

from ..errors import UnsupportedStreamTypeError

logger = logging.getLogger(__name__)

StreamCallback = Callable[[str], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class StreamToken:
    """One extracted token, its encoded bytes and all text seen so far."""

    text: str
    data: bytes
    cumulative: str


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def extract_token(event: Any) -> str | None:
    """Pull the text delta out of an OpenAI chunk or Anthropic stream event.

    Events that carry no text (role deltas, message_start, ping, ...) return None.
    """
    choices = _field(event, "choices")
    if choices:
        return _field(_field(choices[0], "delta"), "content")
    if _field(event, "type") == "content_block_delta":
        return _field(_field(event, "delta"), "text")
    return None


async def _close_handle(handle: Any) -> None:
    close = getattr(handle, "aclose", None) or getattr(handle, "close", None)
    if not callable(close):
        return
    try:
        result = close()
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning(f"Failed to release stream handle: {e}")


async def iter_tokens(handle: Any) -> AsyncIterator[StreamToken]:
    """
    Yield tokens from a native stream handle.

    Accepts an async iterable of event records (SDK objects or dicts), an
    async iterable of bytes or str, or a response object exposing
    ``aiter_bytes()``. Anything else raises UnsupportedStreamTypeError on
    the first pull.
    """
    if hasattr(handle, "aiter_bytes"):
        source = handle.aiter_bytes()
    elif hasattr(handle, "__aiter__"):
        source = handle
    else:
        raise UnsupportedStreamTypeError(
            f"Unsupported stream type: {type(handle).__name__} is not an async stream"
        )

    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    cumulative = ""
    try:
        async for item in source:
            if isinstance(item, (bytes, bytearray)):
                data = bytes(item)
                # A multi-byte character may be split across chunks
                text = decoder.decode(data)
            else:
                text = item if isinstance(item, str) else extract_token(item)
                if not text:
                    continue
                data = text.encode("utf-8")
            if not data:
                continue
            cumulative += text
            yield StreamToken(text=text, data=data, cumulative=cumulative)

        # Bytes of a truncated character were already emitted; account for them
        tail = decoder.decode(b"", final=True)
        if tail:
            cumulative += tail
            yield StreamToken(text=tail, data=b"", cumulative=cumulative)
    finally:
        await _close_handle(handle)


async def _invoke(callback: StreamCallback, value: str, name: str) -> None:
    try:
        result = callback(value)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception(f"Error in {name} callback")


async def normalize_stream(
    handle: Any,
    on_token: StreamCallback | None = None,
    on_completion: StreamCallback | None = None,
) -> AsyncIterator[bytes]:
    """
    Convert a provider-native stream into UTF-8 byte chunks.

    ``on_token`` runs for each token before its chunk is yielded;
    ``on_completion`` runs once with the full text after the last token.
    Callback exceptions are logged and never interrupt the stream. If the
    consumer stops early, the native handle is released and
    ``on_completion`` is not called.
    """
    completion = ""
    async with aclosing(iter_tokens(handle)) as tokens:
        async for token in tokens:
            completion = token.cumulative
            if on_token is not None and token.text:
                await _invoke(on_token, token.text, "on_token")
            if token.data:
                yield token.data

    if on_completion is not None:
        await _invoke(on_completion, completion, "on_completion")
