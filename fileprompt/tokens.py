"""Token counters reported next to each copy job.

Exactly one counter is chosen when the CLI starts; the pipeline never probes for
optional packages itself.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
from abc import ABC, abstractmethod

from fileprompt.errors import SettingsError
from fileprompt.models import TokenizerChoice

logger = logging.getLogger(__name__)

TIKTOKEN_ENCODING = "cl100k_base"


class TokenCounter(ABC):
    name: str

    @abstractmethod
    def count(self, text: str) -> int:
        ...


class WhitespaceTokenCounter(TokenCounter):
    """Approximates tokens as whitespace separated words."""
    name = "whitespace"

    def count(self, text: str) -> int:
        return len(text.split())


class TiktokenTokenCounter(TokenCounter):
    name = "tiktoken"

    def __init__(self, encoding: str = TIKTOKEN_ENCODING):
        tiktoken = importlib.import_module("tiktoken")
        self._encoder = tiktoken.get_encoding(encoding)

    def count(self, text: str) -> int:
        return len(self._encoder.encode(text, disallowed_special=()))


def tiktoken_available() -> bool:
    return importlib.util.find_spec("tiktoken") is not None


def select_token_counter(choice: str = TokenizerChoice.AUTO.value) -> TokenCounter:
    """Pick the counter named by the settings; `auto` prefers tiktoken when it is installed."""
    choice = TokenizerChoice(choice)
    if choice == TokenizerChoice.WHITESPACE:
        return WhitespaceTokenCounter()
    if tiktoken_available():
        return TiktokenTokenCounter()
    if choice == TokenizerChoice.TIKTOKEN:
        raise SettingsError("tokenizer 'tiktoken' requested but the tiktoken package is not installed "
                            "(pip install 'fileprompt[tokens]')")
    logger.info("tiktoken not installed, counting whitespace separated words")
    return WhitespaceTokenCounter()
