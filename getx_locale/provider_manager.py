import logging
from typing import Callable, Dict, List, Optional

from getx_locale.errors import (
    ProviderNotAvailableError,
    ProviderNotConfiguredError,
    ProviderNotFoundError
)
from getx_locale.providers import TranslationProvider

logger = logging.getLogger(__name__)


class ProviderManager:
    """
    Registry of translation providers with a single "current" provider.

    The current provider id is always either None or a key of the registry. Failed
    translations fail over to the other registered providers in registration order.

    Args:
        persist_choice: Called with the provider id whenever `set_current_provider`
            succeeds, so the choice can be saved to the configuration file.
    """

    def __init__(self, persist_choice: Optional[Callable[[str], None]] = None):
        self._providers: Dict[str, TranslationProvider] = {}
        self._current_provider: Optional[str] = None
        self._persist_choice = persist_choice

    @property
    def current_provider_id(self) -> Optional[str]:
        return self._current_provider

    def register_provider(self, provider_id: str, provider: TranslationProvider) -> None:
        self._providers[provider_id] = provider
        if self._current_provider is None:
            self._current_provider = provider_id
        logger.debug("Registered translation provider '%s' (%s).", provider_id, provider.get_model())

    def unregister_provider(self, provider_id: str) -> None:
        if self._current_provider == provider_id:
            self._current_provider = None
        self._providers.pop(provider_id, None)

    async def set_current_provider(self, provider_id: str) -> None:
        """
        Make `provider_id` the current provider and persist the choice.

        Raises:
            ProviderNotFoundError: If the id is not registered.
            ProviderNotAvailableError: If the provider holds no credential.
        """
        provider = self._providers.get(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)
        if not await provider.is_available():
            raise ProviderNotAvailableError(provider_id)

        self._current_provider = provider_id
        if self._persist_choice is not None:
            self._persist_choice(provider_id)
        logger.info("Using translation provider '%s' (%s).", provider_id, provider.get_model())

    def get_current_provider(self) -> TranslationProvider:
        if self._current_provider is None or self._current_provider not in self._providers:
            raise ProviderNotConfiguredError(
                "No translation provider configured. Please configure a provider in settings."
            )
        return self._providers[self._current_provider]

    def available_providers(self) -> List[str]:
        """Registered provider ids in registration order."""
        return list(self._providers)

    def get_provider(self, provider_id: str) -> TranslationProvider:
        provider = self._providers.get(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)
        return provider

    async def current_provider_name(self) -> str:
        provider = self.get_current_provider()
        return f"{provider.get_name()} ({provider.get_model()})"

    async def translate(self, text: str, target_language: str) -> str:
        """
        Translate with the current provider, failing over to the others on error.

        The first fallback provider that succeeds becomes current. If every provider
        fails, the current provider's original error is re-raised.

        Args:
            text: The text to translate.
            target_language: Human-readable target language name.

        Returns:
            str: The translated text.
        """
        provider = self.get_current_provider()
        failed_id = self._current_provider

        try:
            return await provider.translate(text, target_language)
        except Exception as error:
            logger.warning("Provider '%s' failed: %s", failed_id, error)
            for provider_id, fallback in list(self._providers.items()):
                if provider_id == failed_id or not await fallback.is_available():
                    continue
                try:
                    result = await fallback.translate(text, target_language)
                except Exception as fallback_error:
                    logger.error("Fallback provider '%s' failed: %s", provider_id, fallback_error)
                    continue
                self._current_provider = provider_id
                logger.info("Switched to provider: %s (%s)", provider_id, fallback.get_model())
                return result
            raise
