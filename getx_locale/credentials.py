"""
API key storage, verification and provider registration.

Keys live in the project's `.env` file (`OPENAI_API_KEY`, `GROQ_API_KEY`); a key
exported in the environment takes precedence over the file.
"""
import logging
import os
import pathlib
from typing import Dict, Optional

from dotenv import dotenv_values, set_key, unset_key

from getx_locale.app_config import AppConfig
from getx_locale.errors import (
    InvalidCredentialError,
    ProviderNotFoundError,
    ProviderUnavailableError,
    TranslationRequestError
)
from getx_locale.orchestrator import TranslationSession
from getx_locale.providers import PROVIDER_CLASSES, build_provider

logger = logging.getLogger(__name__)

SECRET_IDS = {
    'openai': 'OPENAI_API_KEY',
    'groq': 'GROQ_API_KEY',
}

OPENAI_KEY_MIN_LENGTH = 40


class DotenvCredentialStore:
    """
    Credential store backed by a dotenv file.

    Args:
        env_file_path: The `.env` file keys are written to. It is created on first write.
    """

    def __init__(self, env_file_path: str):
        self.env_file_path = env_file_path

    def get(self, secret_id: str) -> Optional[str]:
        value = os.environ.get(secret_id)
        if value:
            return value
        if not os.path.exists(self.env_file_path):
            return None
        return dotenv_values(self.env_file_path).get(secret_id) or None

    def store(self, secret_id: str, value: str) -> None:
        env_dir = os.path.dirname(self.env_file_path)
        if env_dir:
            os.makedirs(env_dir, exist_ok=True)
        pathlib.Path(self.env_file_path).touch()
        set_key(self.env_file_path, secret_id, value)
        os.environ[secret_id] = value

    def delete(self, secret_id: str) -> None:
        os.environ.pop(secret_id, None)
        if os.path.exists(self.env_file_path) and secret_id in dotenv_values(self.env_file_path):
            unset_key(self.env_file_path, secret_id)


def secret_id_for(provider_id: str) -> str:
    secret_id = SECRET_IDS.get(provider_id)
    if secret_id is None:
        raise ProviderNotFoundError(provider_id)
    return secret_id


def validate_api_key_format(provider_id: str, api_key: str) -> None:
    """
    Reject keys that cannot belong to the provider before any request is made.

    Raises:
        InvalidCredentialError: With a message suitable for the user.
    """
    if not api_key:
        raise InvalidCredentialError("API Key cannot be empty")
    if provider_id == 'openai':
        if not api_key.startswith('sk-'):
            raise InvalidCredentialError('Invalid API key format. OpenAI API keys must start with "sk-"')
        if len(api_key) < OPENAI_KEY_MIN_LENGTH:
            raise InvalidCredentialError(
                "Invalid API key length. OpenAI API keys should be at least 40 characters long"
            )
    elif provider_id == 'groq':
        if not api_key.startswith('gsk_'):
            raise InvalidCredentialError('Groq API Key should start with "gsk_"')
    else:
        raise ProviderNotFoundError(provider_id)


def describe_credential_failure(provider_id: str, error: Exception) -> str:
    """Turn a failed verification request into the message shown to the user."""
    name = PROVIDER_CLASSES[provider_id].display_name
    status_code = getattr(error, 'status_code', None)
    error_code = getattr(error, 'error_code', None)
    if status_code == 401 or error_code == 'invalid_api_key':
        return f"Invalid API key. The key was not accepted by {name}."
    if error_code == 'insufficient_quota':
        return f"Your {name} account has insufficient quota. Please check your billing settings."
    return f"Failed to verify API key: {error}"


async def test_api_key(provider_id: str, api_key: str, config: Optional[AppConfig] = None) -> str:
    """
    Verify a key with a one-word translation.

    Returns:
        str: The translation returned by the backend.

    Raises:
        TranslationRequestError: If the backend rejects the request.
    """
    provider = build_provider(provider_id, api_key, config)
    return await provider.translate("test", "English")


async def configure_api_key(
        store: DotenvCredentialStore,
        provider_id: str,
        api_key: str,
        config: Optional[AppConfig] = None
) -> None:
    """
    Store a key and verify it, removing it again if the backend rejects it.

    Args:
        store: Where the key is saved.
        provider_id: "openai" or "groq".
        api_key: The key to store.
        config: Model and network settings used for the verification request.

    Raises:
        InvalidCredentialError: If the format is wrong or verification fails.
    """
    api_key = api_key.strip()
    validate_api_key_format(provider_id, api_key)
    secret_id = secret_id_for(provider_id)

    store.store(secret_id, api_key)
    logger.info("Verifying %s API key...", provider_id)
    try:
        await test_api_key(provider_id, api_key, config)
    except TranslationRequestError as exc:
        store.delete(secret_id)
        raise InvalidCredentialError(describe_credential_failure(provider_id, exc)) from exc
    logger.info("%s API key verified and saved.", provider_id)


def delete_api_key(store: DotenvCredentialStore, provider_id: str) -> None:
    store.delete(secret_id_for(provider_id))


def key_status(store: DotenvCredentialStore) -> Dict[str, bool]:
    """Map each provider id to whether a key is stored for it."""
    return {provider_id: bool(store.get(secret_id)) for provider_id, secret_id in SECRET_IDS.items()}


def initialize_providers(session: TranslationSession, store: DotenvCredentialStore, config: AppConfig) -> None:
    """
    Rebuild the session's provider registry from the stored keys.

    The configured provider is registered first, so it becomes current and is tried
    first; the others follow as fallbacks.

    Raises:
        ProviderUnavailableError: If no key is stored for any provider.
    """
    manager = session.provider_manager
    for provider_id in manager.available_providers():
        manager.unregister_provider(provider_id)

    ordered_ids = sorted(SECRET_IDS, key=lambda provider_id: provider_id != config.translation_provider)
    for provider_id in ordered_ids:
        api_key = store.get(SECRET_IDS[provider_id])
        if api_key:
            manager.register_provider(provider_id, build_provider(provider_id, api_key, config))

    if not manager.available_providers():
        raise ProviderUnavailableError("No API keys configured. Please configure an OpenAI or Groq API key.")
    if manager.current_provider_id != config.translation_provider:
        logger.warning(
            "No API key for the configured provider '%s'; using '%s' instead.",
            config.translation_provider, manager.current_provider_id
        )
