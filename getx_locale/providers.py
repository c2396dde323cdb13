"""
Network translation backends.

Every provider speaks the chat-completions protocol through the `openai` SDK; the
Groq backend is reached by pointing the client at Groq's OpenAI-compatible base URL.
"""
import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple, Type

import tiktoken
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    OpenAIError
)
from openai.types.chat import (
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam
)

from getx_locale.app_config import AppConfig
from getx_locale.errors import (
    AuthenticationFailure,
    InvalidResponseError,
    ProviderConnectionError,
    ProviderNotFoundError,
    RateLimitFailure,
    ServerFailure,
    TranslationRequestError,
    TranslationTimeoutError
)

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_RATE_LIMIT_RETRY_DELAY = 5.0
DEFAULT_CONNECTION_RETRY_DELAY = 1.0
# One initial request plus a single retry for rate limits and dropped connections.
MAX_PROVIDER_ATTEMPTS = 2
MIN_COMPLETION_TOKENS = 100
TEMPERATURE = 0.3

SYSTEM_PROMPT_TEMPLATE = """You are a translation engine specialized in {target_language}. Rules:
1. Translate the given text precisely to {target_language}
2. ONLY return the direct translation in the target language
3. DO NOT use translations from other languages
4. DO NOT include explanations or alternatives
5. DO NOT wrap the translation in quotes
6. DO NOT add any additional text
7. Maintain cultural appropriateness for {target_language}
Example format: if input is "Email" and target is Urdu, output only "ای میل\""""


def build_system_prompt(target_language: str) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(target_language=target_language)


def sanitize_translation(text: Optional[str]) -> str:
    """
    Reduce a model reply to the bare translation.

    Keeps only the first line, strips one pair of surrounding quotes, drops anything
    from the first `.`, `,`, `;` or `:` onwards and trims whitespace.

    Args:
        text: The raw message content returned by the backend.

    Returns:
        str: The cleaned translation, possibly empty.
    """
    if not text:
        return ''
    cleaned = text.strip().split('\n')[0].strip()
    cleaned = re.sub(r'^["\']|["\']$', '', cleaned)
    cleaned = re.split(r'[.,;:]', cleaned)[0]
    return cleaned.strip()


def count_tokens(text: str, model_name: str = 'gpt-3.5-turbo') -> int:
    """Count the number of tokens in ``text`` for ``model_name``.

    Models unknown to ``tiktoken`` (every Groq model, for instance) fall back to the
    ``gpt2`` encoding that ships with the library. As a last resort a whitespace
    split is used.
    """
    try:
        encoding = tiktoken.encoding_for_model(model_name)
    except Exception:
        try:
            encoding = tiktoken.get_encoding("gpt2")
        except Exception:
            return len(text.split())

    try:
        return len(encoding.encode(text))
    except Exception:
        return len(text.split())


def completion_token_budget(text: str, model_name: str) -> int:
    """Allow a translation several times longer than its source, never less than 100 tokens."""
    return max(MIN_COMPLETION_TOKENS, count_tokens(text, model_name) * 4)


def classify_failure(
        message: str,
        status_code: Optional[int],
        error_code: Optional[str],
        provider: str
) -> TranslationRequestError:
    """Map an HTTP status / backend error code onto the translation error hierarchy."""
    if status_code == 401 or error_code == 'invalid_api_key':
        error_class: Type[TranslationRequestError] = AuthenticationFailure
    elif status_code == 429 or error_code == 'rate_limit_exceeded':
        error_class = RateLimitFailure
    elif status_code is not None and status_code >= 500:
        error_class = ServerFailure
    else:
        error_class = TranslationRequestError
    return error_class(message, status_code=status_code, error_code=error_code, provider=provider)


class TranslationProvider(ABC):
    """The capability set every translation backend implements."""

    @abstractmethod
    async def translate(self, text: str, target_language: str) -> str:
        """Translate `text` into the language named `target_language` (e.g. "French")."""

    @abstractmethod
    async def is_available(self) -> bool:
        """True when the provider holds a credential. Reachability is not checked."""

    @abstractmethod
    def get_name(self) -> str:
        pass

    @abstractmethod
    def get_model(self) -> str:
        pass


class ChatCompletionProvider(TranslationProvider):
    """
    A provider backed by an OpenAI-compatible chat-completions endpoint.

    Subclasses only declare their identity, endpoint and models.
    """
    provider_id: str = ''
    display_name: str = ''
    base_url: str = ''
    default_model: str = ''
    supported_models: Tuple[str, ...] = ()

    def __init__(
            self,
            api_key: Optional[str],
            model: Optional[str] = None,
            timeout: float = DEFAULT_REQUEST_TIMEOUT,
            rate_limit_retry_delay: float = DEFAULT_RATE_LIMIT_RETRY_DELAY,
            connection_retry_delay: float = DEFAULT_CONNECTION_RETRY_DELAY,
            client: Optional[AsyncOpenAI] = None
    ):
        self._api_key = api_key or ''
        self.model = model or self.default_model
        if self.supported_models and self.model not in self.supported_models:
            logger.warning("Model '%s' is not a known %s model; using it anyway.", self.model, self.display_name)
        self.timeout = timeout
        self.rate_limit_retry_delay = rate_limit_retry_delay
        self.connection_retry_delay = connection_retry_delay
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            # Retries are handled here, not by the SDK.
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0
            )
        return self._client

    async def is_available(self) -> bool:
        return bool(self._api_key)

    def get_name(self) -> str:
        return self.display_name

    def get_model(self) -> str:
        return self.model

    async def translate(self, text: str, target_language: str) -> str:
        """
        Translate a single text, retrying once on rate limits and dropped connections.

        Args:
            text: The literal text to translate.
            target_language: Human-readable target language name.

        Returns:
            str: The sanitized translation.

        Raises:
            TranslationRequestError: A classified failure once the retry budget is spent.
        """
        for attempt in range(1, MAX_PROVIDER_ATTEMPTS + 1):
            try:
                return await self._request(text, target_language)
            except (RateLimitFailure, ProviderConnectionError) as exc:
                if attempt == MAX_PROVIDER_ATTEMPTS:
                    raise
                if isinstance(exc, RateLimitFailure):
                    delay = self.rate_limit_retry_delay
                else:
                    delay = self.connection_retry_delay
                logger.info(
                    "%s request failed (%s). Retrying in %.2f seconds (Attempt %d/%d)",
                    self.display_name, exc, delay, attempt, MAX_PROVIDER_ATTEMPTS
                )
                await asyncio.sleep(delay)
        raise AssertionError("unreachable")

    async def _request(self, text: str, target_language: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    ChatCompletionSystemMessageParam(role="system", content=build_system_prompt(target_language)),
                    ChatCompletionUserMessageParam(role="user", content=text)
                ],
                temperature=TEMPERATURE,
                max_tokens=completion_token_budget(text, self.model),
                timeout=self.timeout,
            )
        except APITimeoutError as exc:
            raise TranslationTimeoutError("Request timed out", provider=self.provider_id) from exc
        except APIConnectionError as exc:
            raise ProviderConnectionError(f"Network error: {exc}", provider=self.provider_id) from exc
        except APIStatusError as exc:
            raise classify_failure(
                f"HTTP Error {exc.status_code}: {exc.message}",
                exc.status_code,
                getattr(exc, 'code', None),
                self.provider_id
            ) from exc
        except OpenAIError as exc:
            raise InvalidResponseError(
                f"Failed to parse {self.display_name} response: {exc}", provider=self.provider_id
            ) from exc

        # Some compatible backends report errors in a 200 body instead of a status code.
        error = getattr(response, 'error', None)
        if isinstance(error, dict):
            raise classify_failure(
                error.get('message') or f"{self.display_name} returned an error",
                None,
                error.get('code'),
                self.provider_id
            )

        content = response.choices[0].message.content if response.choices else None
        translated_text = sanitize_translation(content)
        if not translated_text:
            raise InvalidResponseError(
                f"Invalid response format from {self.display_name} API", provider=self.provider_id
            )

        logger.debug("%s translated '%s' to '%s' (%s).", self.display_name, text, translated_text, target_language)
        return translated_text


class OpenAIProvider(ChatCompletionProvider):
    provider_id = 'openai'
    display_name = 'OpenAI'
    base_url = 'https://api.openai.com/v1'
    default_model = 'gpt-3.5-turbo'
    supported_models = ('gpt-3.5-turbo', 'gpt-4')


class GroqProvider(ChatCompletionProvider):
    provider_id = 'groq'
    display_name = 'Groq'
    base_url = 'https://api.groq.com/openai/v1'
    default_model = 'meta-llama/llama-4-scout-17b-16e-instruct'
    supported_models = ('meta-llama/llama-4-scout-17b-16e-instruct',)


PROVIDER_CLASSES: Dict[str, Type[ChatCompletionProvider]] = {
    OpenAIProvider.provider_id: OpenAIProvider,
    GroqProvider.provider_id: GroqProvider,
}


def build_provider(provider_id: str, api_key: str, config: Optional[AppConfig] = None) -> ChatCompletionProvider:
    """
    Instantiate the provider registered under `provider_id`.

    Args:
        provider_id: "openai" or "groq".
        api_key: The credential to authenticate with.
        config: Supplies the preferred model and network timings; defaults are used when omitted.

    Raises:
        ProviderNotFoundError: If `provider_id` is not a known backend.
    """
    provider_class = PROVIDER_CLASSES.get(provider_id)
    if provider_class is None:
        raise ProviderNotFoundError(provider_id)
    if config is None:
        return provider_class(api_key)
    return provider_class(
        api_key,
        model=config.preferred_models.get(provider_id),
        timeout=config.request_timeout_seconds,
        rate_limit_retry_delay=config.rate_limit_retry_delay_seconds,
    )
