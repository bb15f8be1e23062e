"""
Token counting for streamed responses.

Providers do not always report usage at the end of a stream; the streaming
manager estimates it from the prompt and the accumulated text instead.
"""
import logging
from typing import List

import tiktoken

from .models import Message

logger = logging.getLogger(__name__)


class TokenCounter:
    """
    Token counting for messages and generated text.

    Uses tiktoken cl100k_base; falls back to a 4-characters-per-token estimate
    when the encoding data cannot be loaded.
    """

    def __init__(self, encoding_name: str = "cl100k_base"):
        self.encoding_name = encoding_name
        self._encoder = None
        self._encoder_failed = False

    def _get_encoder(self):
        if self._encoder is None and not self._encoder_failed:
            try:
                self._encoder = tiktoken.get_encoding(self.encoding_name)
            except Exception as e:
                # Encoding files are fetched on first use; offline hosts estimate instead
                logger.warning(f"tiktoken encoding {self.encoding_name} unavailable: {e}")
                self._encoder_failed = True
        return self._encoder

    def count_tokens(self, text: str) -> int:
        """
        Count tokens in text.

        Args:
            text: Text to count

        Returns:
            Approximate token count
        """
        if not text:
            return 0

        encoder = self._get_encoder()
        if encoder is not None:
            return len(encoder.encode(text))

        return max(1, len(text) // 4)

    def count_message_tokens(self, messages: List[Message]) -> int:
        """Count tokens across all message contents."""
        return sum(self.count_tokens(msg.content) for msg in messages)
