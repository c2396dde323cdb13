"""Shared fakes and builders for the test suite."""
import os
from typing import Dict, List, Optional, Tuple

from getx_locale.app_config import (
    DEFAULT_LANGUAGE_NAMES,
    DEFAULT_PREFERRED_MODELS,
    DEFAULT_TRANSLATION_GLOBS,
    AppConfig
)
from getx_locale.locale_validation import build_script_rules
from getx_locale.providers import TranslationProvider

EMPTY_LOCALE_FILE = "final Map<String, String> {name} = {{}};\n"


class FakeProvider(TranslationProvider):
    """
    In-memory provider.

    `translations` maps (text, language) or text to the reply; unknown texts are echoed
    back with the language appended. `errors` is consumed one item per call before
    any translation is returned; `error` is raised on every call.
    """

    def __init__(
            self,
            name: str = 'Fake',
            model: str = 'fake-1',
            translations: Optional[Dict] = None,
            error: Optional[Exception] = None,
            errors: Optional[List[Exception]] = None,
            available: bool = True
    ):
        self.name = name
        self.model = model
        self.translations = translations or {}
        self.error = error
        self.errors = list(errors or [])
        self.available = available
        self.calls: List[Tuple[str, str]] = []

    async def translate(self, text: str, target_language: str) -> str:
        self.calls.append((text, target_language))
        if self.errors:
            raise self.errors.pop(0)
        if self.error is not None:
            raise self.error
        if (text, target_language) in self.translations:
            return self.translations[(text, target_language)]
        if text in self.translations:
            return self.translations[text]
        return f"{text} ({target_language})"

    async def is_available(self) -> bool:
        return self.available

    def get_name(self) -> str:
        return self.name

    def get_model(self) -> str:
        return self.model


def make_config(project_root: str = '/tmp/project', **overrides) -> AppConfig:
    """An AppConfig with no pacing delays, suitable for tests."""
    values = dict(
        project_root=project_root,
        config_file_path=os.path.join(project_root, 'config.yaml'),
        env_file_path=os.path.join(project_root, '.env'),
        translation_provider='openai',
        preferred_models=dict(DEFAULT_PREFERRED_MODELS),
        base_locales=['en', 'en_US'],
        locale_file_extension='.dart',
        source_globs=['**/*.dart'],
        translation_globs=list(DEFAULT_TRANSLATION_GLOBS),
        batch_size=2,
        batch_delay_seconds=0,
        request_timeout_seconds=10.0,
        rate_limit_retry_delay_seconds=0,
        server_error_max_attempts=3,
        max_requests_per_minute=600,
        language_names=dict(DEFAULT_LANGUAGE_NAMES),
        script_rules=build_script_rules(),
    )
    values.update(overrides)
    return AppConfig(**values)


def write_file(path: str, content: str) -> str:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, 'w', encoding='utf-8', newline='') as f:
        f.write(content)
    return path


def read_file(path: str) -> str:
    with open(path, 'r', encoding='utf-8', newline='') as f:
        return f.read()
