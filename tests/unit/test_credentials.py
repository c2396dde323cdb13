"""Unit tests for API key storage, verification and provider registration."""
import os
import tempfile
import unittest
from unittest.mock import patch

from dotenv import dotenv_values

from getx_locale.credentials import (
    DotenvCredentialStore,
    configure_api_key,
    initialize_providers,
    key_status,
    validate_api_key_format
)
from getx_locale.errors import (
    AuthenticationFailure,
    InvalidCredentialError,
    ProviderUnavailableError,
    RateLimitFailure,
    ServerFailure
)
from getx_locale.orchestrator import TranslationSession
from getx_locale.providers import GroqProvider, OpenAIProvider
from support import FakeProvider, make_config

OPENAI_KEY = "sk-" + "a" * 45
GROQ_KEY = "gsk_" + "b" * 20


class CredentialTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.env_file = os.path.join(self.temp_dir.name, '.env')
        self.store = DotenvCredentialStore(self.env_file)
        self.config = make_config(self.temp_dir.name)

        env_patcher = patch.dict(os.environ)
        env_patcher.start()
        self.addCleanup(env_patcher.stop)
        os.environ.pop('OPENAI_API_KEY', None)
        os.environ.pop('GROQ_API_KEY', None)


class TestDotenvCredentialStore(CredentialTestCase):

    async def test_store_get_delete(self):
        self.assertIsNone(self.store.get('OPENAI_API_KEY'))

        self.store.store('OPENAI_API_KEY', OPENAI_KEY)
        self.assertEqual(self.store.get('OPENAI_API_KEY'), OPENAI_KEY)
        self.assertEqual(dotenv_values(self.env_file)['OPENAI_API_KEY'], OPENAI_KEY)

        self.store.delete('OPENAI_API_KEY')
        self.assertIsNone(self.store.get('OPENAI_API_KEY'))
        self.assertNotIn('OPENAI_API_KEY', dotenv_values(self.env_file))

    async def test_file_is_read_when_environment_is_empty(self):
        with open(self.env_file, 'w', encoding='utf-8') as f:
            f.write(f"GROQ_API_KEY={GROQ_KEY}\n")
        self.assertEqual(self.store.get('GROQ_API_KEY'), GROQ_KEY)

    async def test_environment_takes_precedence(self):
        with open(self.env_file, 'w', encoding='utf-8') as f:
            f.write("GROQ_API_KEY=gsk_from_file\n")
        os.environ['GROQ_API_KEY'] = 'gsk_from_env'
        self.assertEqual(self.store.get('GROQ_API_KEY'), 'gsk_from_env')

    async def test_key_status(self):
        self.store.store('GROQ_API_KEY', GROQ_KEY)
        self.assertEqual(key_status(self.store), {'openai': False, 'groq': True})


class TestValidateApiKeyFormat(unittest.TestCase):

    def test_openai_rules(self):
        validate_api_key_format('openai', OPENAI_KEY)
        with self.assertRaisesRegex(InvalidCredentialError, 'must start with "sk-"'):
            validate_api_key_format('openai', "pk-" + "a" * 45)
        with self.assertRaisesRegex(InvalidCredentialError, "at least 40 characters"):
            validate_api_key_format('openai', "sk-short")

    def test_groq_rules(self):
        validate_api_key_format('groq', GROQ_KEY)
        with self.assertRaisesRegex(InvalidCredentialError, 'start with "gsk_"'):
            validate_api_key_format('groq', OPENAI_KEY)

    def test_empty_key(self):
        with self.assertRaisesRegex(InvalidCredentialError, "cannot be empty"):
            validate_api_key_format('groq', '')


class TestConfigureApiKey(CredentialTestCase):

    async def test_verified_key_is_kept(self):
        provider = FakeProvider(translations={"test": "test"})
        with patch("getx_locale.credentials.build_provider", return_value=provider) as build:
            await configure_api_key(self.store, 'openai', OPENAI_KEY, self.config)

        build.assert_called_once_with('openai', OPENAI_KEY, self.config)
        self.assertEqual(provider.calls, [("test", "English")])
        self.assertEqual(self.store.get('OPENAI_API_KEY'), OPENAI_KEY)

    async def test_rejected_key_is_removed(self):
        provider = FakeProvider(error=AuthenticationFailure(
            "HTTP Error 401: Incorrect API key", status_code=401, error_code="invalid_api_key"
        ))
        with patch("getx_locale.credentials.build_provider", return_value=provider):
            with self.assertRaises(InvalidCredentialError) as ctx:
                await configure_api_key(self.store, 'groq', GROQ_KEY, self.config)

        self.assertEqual(str(ctx.exception), "Invalid API key. The key was not accepted by Groq.")
        self.assertIsNone(self.store.get('GROQ_API_KEY'))

    async def test_insufficient_quota(self):
        provider = FakeProvider(error=RateLimitFailure(
            "HTTP Error 429: quota", status_code=429, error_code="insufficient_quota"
        ))
        with patch("getx_locale.credentials.build_provider", return_value=provider):
            with self.assertRaises(InvalidCredentialError) as ctx:
                await configure_api_key(self.store, 'openai', OPENAI_KEY, self.config)

        self.assertIn("insufficient quota", str(ctx.exception))
        self.assertIsNone(self.store.get('OPENAI_API_KEY'))

    async def test_other_failures(self):
        provider = FakeProvider(error=ServerFailure("HTTP Error 503: busy", status_code=503))
        with patch("getx_locale.credentials.build_provider", return_value=provider):
            with self.assertRaises(InvalidCredentialError) as ctx:
                await configure_api_key(self.store, 'openai', OPENAI_KEY, self.config)

        self.assertEqual(str(ctx.exception), "Failed to verify API key: HTTP Error 503: busy")

    async def test_malformed_key_is_never_stored(self):
        with patch("getx_locale.credentials.build_provider") as build:
            with self.assertRaises(InvalidCredentialError):
                await configure_api_key(self.store, 'openai', "sk-short", self.config)

        build.assert_not_called()
        self.assertFalse(os.path.exists(self.env_file))


class TestInitializeProviders(CredentialTestCase):

    async def test_configured_provider_is_registered_first(self):
        self.store.store('OPENAI_API_KEY', OPENAI_KEY)
        self.store.store('GROQ_API_KEY', GROQ_KEY)
        self.config.translation_provider = 'groq'
        session = TranslationSession()

        initialize_providers(session, self.store, self.config)

        manager = session.provider_manager
        self.assertEqual(manager.available_providers(), ['groq', 'openai'])
        self.assertEqual(manager.current_provider_id, 'groq')
        self.assertIsInstance(manager.get_provider('groq'), GroqProvider)
        self.assertIsInstance(manager.get_provider('openai'), OpenAIProvider)

    async def test_falls_back_to_the_provider_with_a_key(self):
        self.store.store('GROQ_API_KEY', GROQ_KEY)
        session = TranslationSession()

        initialize_providers(session, self.store, self.config)

        self.assertEqual(session.provider_manager.current_provider_id, 'groq')
        self.assertEqual(await session.provider_manager.current_provider_name(),
                         "Groq (meta-llama/llama-4-scout-17b-16e-instruct)")

    async def test_registry_is_rebuilt(self):
        session = TranslationSession()
        session.provider_manager.register_provider('openai', FakeProvider())
        self.store.store('GROQ_API_KEY', GROQ_KEY)

        initialize_providers(session, self.store, self.config)

        self.assertEqual(session.provider_manager.available_providers(), ['groq'])

    async def test_no_keys(self):
        with self.assertRaises(ProviderUnavailableError):
            initialize_providers(TranslationSession(), self.store, self.config)
