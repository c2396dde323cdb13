"""Exception hierarchy shared by the extraction, merge and translation pipeline."""
from typing import List, Optional


class GetxLocaleError(Exception):
    """Base class for all errors raised by getx_locale."""


class NoKeysFoundError(GetxLocaleError):
    """No `.tr` keys were found in the scanned text. Informational only."""


class NoTargetStoresError(GetxLocaleError):
    """No locale files were located for the invocation."""


class StoreParseError(GetxLocaleError):
    """The `Map<String, String>` table could not be located in a locale file."""

    def __init__(self, path: str):
        super().__init__(f"Could not find translation map in '{path}'")
        self.path = path


class InvalidCredentialError(GetxLocaleError):
    """An API key was rejected, either by format checks or by the backend."""


class ProviderError(GetxLocaleError):
    """Base class for provider registry errors."""


class ProviderNotFoundError(ProviderError):
    def __init__(self, provider_id: str):
        super().__init__(f"Translation provider '{provider_id}' not found")
        self.provider_id = provider_id


class ProviderNotAvailableError(ProviderError):
    def __init__(self, provider_id: str):
        super().__init__(f"Translation provider '{provider_id}' is not available")
        self.provider_id = provider_id


class ProviderNotConfiguredError(ProviderError):
    """Raised when no current provider is selected."""

    terminal = True

    def __init__(self, message: str = "No translation provider configured. Please configure a provider first."):
        super().__init__(message)


class ProviderUnavailableError(ProviderError):
    """No credential is stored for any provider; the setup flow must run first."""


class TranslationRequestError(GetxLocaleError):
    """
    A translation request failed.

    Attributes:
        status_code: HTTP status returned by the backend, if any.
        error_code: The backend's own error code (e.g. ``invalid_api_key``), if any.
        provider: Identifier of the provider that raised the error.
    """

    # Terminal failures cannot be fixed by retrying or by falling back per key.
    terminal = False

    def __init__(
            self,
            message: str,
            status_code: Optional[int] = None,
            error_code: Optional[str] = None,
            provider: Optional[str] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.provider = provider


class AuthenticationFailure(TranslationRequestError):
    terminal = True


class RateLimitFailure(TranslationRequestError):
    pass


class ServerFailure(TranslationRequestError):
    pass


class InvalidResponseError(TranslationRequestError):
    """The backend answered, but without a usable translation."""


class ProviderConnectionError(TranslationRequestError):
    pass


class TranslationTimeoutError(TranslationRequestError):
    pass


class AllProvidersExhaustedError(GetxLocaleError):
    """
    Every registered provider failed terminally while a locale file was being translated.

    Attributes:
        path: The locale file being processed.
        locale: The locale identifier of that file.
        remaining_keys: Keys of that file that have not been translated yet.
    """

    def __init__(self, path: str, locale: str, remaining_keys: List[str], cause: Exception):
        super().__init__(f"Failed to translate keys for '{locale}': {cause}")
        self.path = path
        self.locale = locale
        self.remaining_keys = remaining_keys
        self.cause = cause
