"""Unit tests for the app_config module."""
import os
from unittest.mock import patch

import pytest
import yaml

from getx_locale.app_config import (
    AppConfig,
    language_name_for,
    load_app_config,
    save_config_value
)
from getx_locale.locale_validation import ScriptRule


@pytest.fixture(autouse=True)
def isolated_environment():
    with patch.dict(os.environ, {}, clear=True), patch("getx_locale.app_config.setup_logger"):
        yield


def write_config(directory, data, name='config.yaml'):
    path = os.path.join(str(directory), name)
    with open(path, 'w', encoding='utf-8') as f:
        if isinstance(data, str):
            f.write(data)
        else:
            yaml.safe_dump(data, f)
    return path


class TestLoadAppConfig:

    def test_missing_file_uses_defaults(self, tmp_path, capsys):
        config = load_app_config(project_root=str(tmp_path))

        assert isinstance(config, AppConfig)
        assert config.project_root == str(tmp_path)
        assert config.config_file_path == os.path.join(str(tmp_path), 'config.yaml')
        assert config.env_file_path == os.path.join(str(tmp_path), '.env')
        assert config.translation_provider == 'openai'
        assert config.preferred_models['openai'] == 'gpt-3.5-turbo'
        assert config.base_locales == ['en', 'en_US']
        assert config.batch_size == 2
        assert config.request_timeout_seconds == 10.0
        assert config.server_error_max_attempts == 3
        assert config.language_names['pt_BR'] == 'Portuguese (Brazil)'
        assert "not found" in capsys.readouterr().err

    def test_valid_file(self, tmp_path):
        write_config(tmp_path, {
            'translation_provider': 'groq',
            'preferred_models': {'openai': 'gpt-4'},
            'batch_size': 5,
            'batch_delay_seconds': 0.25,
            'supported_locales': [{'code': 'pt_PT', 'name': 'Portuguese (Portugal)'}],
            'script_rules': {'sr': {'required': ['cyrillic']}},
            'logging': {'log_level': 'DEBUG'},
        })

        config = load_app_config(project_root=str(tmp_path))

        assert config.translation_provider == 'groq'
        assert config.preferred_models == {
            'openai': 'gpt-4',
            'groq': 'meta-llama/llama-4-scout-17b-16e-instruct',
        }
        assert config.batch_size == 5
        assert config.batch_delay_seconds == 0.25
        assert config.language_names['pt_PT'] == 'Portuguese (Portugal)'
        assert config.language_names['fr'] == 'French'
        assert config.script_rules['sr'] == ScriptRule(required=('cyrillic',))

    def test_schema_violation_falls_back_to_defaults(self, tmp_path, capsys):
        write_config(tmp_path, {'batch_size': 0, 'translation_provider': 'groq'})

        config = load_app_config(project_root=str(tmp_path))

        assert config.batch_size == 2
        assert config.translation_provider == 'openai'
        assert "batch_size" in capsys.readouterr().err

    def test_unknown_provider_is_rejected_by_schema(self, tmp_path):
        write_config(tmp_path, {'translation_provider': 'deepl'})
        assert load_app_config(project_root=str(tmp_path)).translation_provider == 'openai'

    def test_invalid_yaml_falls_back_to_defaults(self, tmp_path, capsys):
        write_config(tmp_path, "translation_provider: [unclosed\n")

        config = load_app_config(project_root=str(tmp_path))

        assert config.translation_provider == 'openai'
        assert "Invalid YAML" in capsys.readouterr().err

    def test_config_path_from_environment(self, tmp_path):
        other = write_config(tmp_path, {'batch_size': 9}, name='other.yaml')
        os.environ['GETX_LOCALE_CONFIG_FILE'] = other

        config = load_app_config(project_root=str(tmp_path))

        assert config.config_file_path == other
        assert config.batch_size == 9

    def test_explicit_relative_path_is_resolved_against_the_project(self, tmp_path):
        write_config(tmp_path, {'batch_size': 4}, name='locale.yaml')
        config = load_app_config('locale.yaml', project_root=str(tmp_path))
        assert config.batch_size == 4

    def test_environment_overrides(self, tmp_path):
        write_config(tmp_path, {'translation_provider': 'openai', 'batch_delay_seconds': 2})
        os.environ['GETX_LOCALE_PROVIDER'] = 'groq'
        os.environ['GETX_LOCALE_BATCH_DELAY'] = '0'

        config = load_app_config(project_root=str(tmp_path))

        assert config.translation_provider == 'groq'
        assert config.batch_delay_seconds == 0.0

    def test_dotenv_file_is_loaded(self, tmp_path):
        with open(os.path.join(str(tmp_path), '.env'), 'w', encoding='utf-8') as f:
            f.write("GETX_LOCALE_PROVIDER=groq\n")

        config = load_app_config(project_root=str(tmp_path))

        assert config.translation_provider == 'groq'


class TestSaveConfigValue:

    def test_creates_the_file(self, tmp_path):
        path = os.path.join(str(tmp_path), 'config.yaml')
        save_config_value(path, 'translation_provider', 'groq')

        with open(path, encoding='utf-8') as f:
            assert yaml.safe_load(f) == {'translation_provider': 'groq'}

    def test_other_settings_are_kept(self, tmp_path):
        path = write_config(tmp_path, {'translation_provider': 'openai', 'batch_size': 3})

        save_config_value(path, 'translation_provider', 'groq')
        save_config_value(path, 'preferred_models.openai', 'gpt-4')

        with open(path, encoding='utf-8') as f:
            assert yaml.safe_load(f) == {
                'translation_provider': 'groq',
                'batch_size': 3,
                'preferred_models': {'openai': 'gpt-4'},
            }


class TestLanguageNameFor:

    def test_lookup_order(self):
        names = {'pt': 'Portuguese', 'pt_BR': 'Portuguese (Brazil)', 'fr': 'French'}
        assert language_name_for('pt_BR', names) == 'Portuguese (Brazil)'
        assert language_name_for('fr_CA', names) == 'French'
        assert language_name_for('xx', names) == 'xx'
