"""Token counting utilities using tiktoken."""

import math
from typing import Dict, List, Optional, Protocol

import tiktoken

from ..utils.logging import LogEvent, LogRecord, warning

APPROXIMATE_ENCODER = "approximate"
CHARS_PER_TOKEN = 4


class TokenEncoder(Protocol):
    def encode(self, text: str) -> List[int]: ...

    def decode(self, tokens: List[int]) -> str: ...


class ApproximateEncoder:
    """Encoder that treats every four characters as one token."""

    name = APPROXIMATE_ENCODER

    def encode(self, text: str) -> List[int]:
        return list(range(0, len(text), CHARS_PER_TOKEN))

    def truncate(self, text: str, max_tokens: int) -> str:
        return text[: max_tokens * CHARS_PER_TOKEN]


# Cache for token encoders
_token_encoder_cache: Dict[str, TokenEncoder] = {}


def get_token_encoder(encoding_name: str = "cl100k_base", request_id: Optional[str] = None) -> TokenEncoder:
    """Gets a tiktoken encoder, caching it for performance."""
    if encoding_name not in _token_encoder_cache:
        if encoding_name == APPROXIMATE_ENCODER:
            _token_encoder_cache[encoding_name] = ApproximateEncoder()
        else:
            try:
                _token_encoder_cache[encoding_name] = tiktoken.get_encoding(encoding_name)
            except Exception as exc:
                warning(
                    LogRecord(
                        event=LogEvent.TOKEN_ENCODER_LOAD_FAILED.value,
                        message=f"Could not load tiktoken encoding '{encoding_name}', token counts will be approximate.",
                        request_id=request_id,
                        data={"encoding_tried": encoding_name},
                    ),
                    exc=exc,
                )
                _token_encoder_cache[encoding_name] = ApproximateEncoder()
    return _token_encoder_cache[encoding_name]


def count_text_tokens(text: Optional[str], encoder: TokenEncoder) -> int:
    if not text:
        return 0
    if isinstance(encoder, ApproximateEncoder):
        return math.ceil(len(text) / CHARS_PER_TOKEN)
    return len(encoder.encode(text))


def count_message_tokens(messages: List[Dict[str, str]], encoder: TokenEncoder) -> int:
    """Count prompt tokens for the plain messages sent to the backend."""
    total_tokens = 0
    for msg in messages:
        total_tokens += 4  # Base tokens per message
        total_tokens += count_text_tokens(msg.get("role"), encoder)
        total_tokens += count_text_tokens(msg.get("content"), encoder)
    if messages:
        total_tokens += 2  # Reply priming
    return total_tokens


def truncate_to_tokens(text: str, max_tokens: int, encoder: TokenEncoder) -> str:
    """Cut text down to at most ``max_tokens`` tokens."""
    if isinstance(encoder, ApproximateEncoder):
        return encoder.truncate(text, max_tokens)
    tokens = encoder.encode(text)
    if len(tokens) <= max_tokens:
        return text
    return encoder.decode(tokens[:max_tokens])
