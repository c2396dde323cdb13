import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class TranslationCache:
    """
    In-memory memo of translations keyed by (source text, locale).

    Entries live as long as the owning session. Nothing is persisted or invalidated,
    so a cache miss only ever costs an extra request.
    """

    def __init__(self):
        self._entries: Dict[Tuple[str, str], str] = {}
        self.hits = 0
        self.misses = 0

    def get(self, text: str, locale: str) -> Optional[str]:
        return self._entries.get((text, locale))

    def put(self, text: str, locale: str, translation: str) -> None:
        self._entries[(text, locale)] = translation

    def __contains__(self, item: Tuple[str, str]) -> bool:
        return item in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_translate(
            self,
            text: str,
            locale: str,
            translate: Callable[[str], Awaitable[str]]
    ) -> str:
        """
        Return the cached translation, or call `translate(text)` and remember its result.

        Args:
            text: The source text.
            locale: The target locale identifier.
            translate: Coroutine function performing the actual request.

        Returns:
            str: The translated text.
        """
        cached = self.get(text, locale)
        if cached is not None:
            self.hits += 1
            logger.debug("Cache hit for '%s' (%s).", text, locale)
            return cached

        self.misses += 1
        translation = await translate(text)
        self.put(text, locale, translation)
        return translation
