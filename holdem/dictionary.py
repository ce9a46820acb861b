from __future__ import annotations
import bisect
import logging
from typing import Iterable, List, Optional, Set

from .config import Config

logger = logging.getLogger(__name__)

class DictionaryService:
    """Read-only word list shared by every session.

    Words shorter than two letters are dropped; lookups are case-insensitive.
    """

    def __init__(self, words: Optional[Iterable[str]] = None):
        cleaned = {w.strip().upper() for w in (words or ())}
        self._words: Set[str] = {w for w in cleaned if len(w) >= 2}
        # Sorted copy for prefix lookups during best-word search
        self._sorted: List[str] = sorted(self._words)

    @classmethod
    def load(cls, path: str) -> 'DictionaryService':
        try:
            with open(path, encoding='utf-8') as fh:
                service = cls(fh.read().split('\n'))
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Failed to load dictionary from %s: %s", path, exc)
            return cls()
        logger.info("Dictionary loaded: %d words", len(service))
        return service

    def __len__(self) -> int:
        return len(self._words)

    def contains(self, word: str) -> bool:
        if not word:
            return False
        return word.upper() in self._words

    is_valid = contains

    def words(self) -> List[str]:
        return list(self._sorted)

    def has_prefix(self, prefix: str) -> bool:
        p = prefix.upper()
        i = bisect.bisect_left(self._sorted, p)
        return i < len(self._sorted) and self._sorted[i].startswith(p)

# Singleton instance
service = DictionaryService.load(Config.WORDS_PATH)
