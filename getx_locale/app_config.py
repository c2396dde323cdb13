"""Application configuration module for getx-locale."""
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import jsonschema
import yaml
from dotenv import load_dotenv

from getx_locale.locale_validation import SCRIPT_PATTERNS, ScriptRule, build_script_rules
from getx_locale.logging_config import setup_logger

CONFIG_FILE_ENV_VAR = 'GETX_LOCALE_CONFIG_FILE'
DEFAULT_CONFIG_FILE_NAME = 'config.yaml'

PROVIDER_IDS = ('openai', 'groq')

DEFAULT_PREFERRED_MODELS = {
    'openai': 'gpt-3.5-turbo',
    'groq': 'meta-llama/llama-4-scout-17b-16e-instruct',
}

DEFAULT_TRANSLATION_GLOBS = [
    '**/lib/**/translations/*.dart',
    '**/lib/**/translation/*.dart',
    '**/lib/**/localization/*.dart',
    '**/lib/**/locale/*.dart',
    '**/lib/**/lang/*.dart',
]

DEFAULT_LANGUAGE_NAMES = {
    'en': 'English',
    'en_US': 'English',
    'id': 'Indonesian',
    'id_ID': 'Indonesian',
    'fr': 'French',
    'es': 'Spanish',
    'pt': 'Portuguese',
    'pt_BR': 'Portuguese (Brazil)',
    'ur': 'Urdu',
    'ur_PK': 'Urdu',
    'ar': 'Arabic',
    'zh': 'Chinese (Simplified)',
    'zh_CN': 'Chinese (Simplified)',
    'ja': 'Japanese',
    'ko': 'Korean',
    'de': 'German',
    'it': 'Italian',
    'ru': 'Russian',
    'nl': 'Dutch',
    'tr': 'Turkish',
    'hi': 'Hindi',
    'th': 'Thai',
    'vi': 'Vietnamese',
}

_SCRIPT_LIST_SCHEMA = {"type": "array", "items": {"enum": list(SCRIPT_PATTERNS)}}

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "translation_provider": {"enum": list(PROVIDER_IDS)},
        "preferred_models": {
            "type": "object",
            "properties": {provider_id: {"type": "string"} for provider_id in PROVIDER_IDS},
        },
        "base_locales": {"type": "array", "items": {"type": "string"}, "minItems": 1},
        "locale_file_extension": {"type": "string", "pattern": r"^\."},
        "source_globs": {"type": "array", "items": {"type": "string"}},
        "translation_globs": {"type": "array", "items": {"type": "string"}},
        "batch_size": {"type": "integer", "minimum": 1},
        "batch_delay_seconds": {"type": "number", "minimum": 0},
        "request_timeout_seconds": {"type": "number", "exclusiveMinimum": 0},
        "rate_limit_retry_delay_seconds": {"type": "number", "minimum": 0},
        "server_error_max_attempts": {"type": "integer", "minimum": 1},
        "max_requests_per_minute": {"type": "integer", "minimum": 1},
        "supported_locales": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"code": {"type": "string"}, "name": {"type": "string"}},
                "required": ["code", "name"],
            },
        },
        "script_rules": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {"required": _SCRIPT_LIST_SCHEMA, "forbidden": _SCRIPT_LIST_SCHEMA},
                "additionalProperties": False,
            },
        },
        "env_file": {"type": "string"},
        "logging": {
            "type": "object",
            "properties": {
                "log_level": {"type": "string"},
                "log_file_path": {"type": ["string", "null"]},
                "log_to_console": {"type": "boolean"},
            },
        },
    },
}


@dataclass
class AppConfig:
    """Application configuration dataclass."""
    # Core paths
    project_root: str
    config_file_path: str
    env_file_path: str

    # Provider configuration
    translation_provider: str
    preferred_models: Dict[str, str]

    # Locale files
    base_locales: List[str]
    locale_file_extension: str
    source_globs: List[str]
    translation_globs: List[str]

    # Processing settings
    batch_size: int = 2
    batch_delay_seconds: float = 1.0
    request_timeout_seconds: float = 10.0
    rate_limit_retry_delay_seconds: float = 5.0
    server_error_max_attempts: int = 3
    max_requests_per_minute: int = 60

    # Language configuration
    language_names: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_LANGUAGE_NAMES))
    script_rules: Dict[str, ScriptRule] = field(default_factory=build_script_rules)


def _load_dotenv_files(project_root: str) -> Optional[str]:
    """Load the project's .env file, returning its path if one was found."""
    dotenv_path = os.path.join(project_root, '.env')
    if os.path.exists(dotenv_path):
        load_dotenv(dotenv_path)
        return dotenv_path
    return None


def _resolve_config_path(project_root: str, config_file: Optional[str]) -> str:
    default_config_path = os.path.join(project_root, DEFAULT_CONFIG_FILE_NAME)
    path = config_file or os.environ.get(CONFIG_FILE_ENV_VAR, default_config_path)
    # Ensure we have an absolute path for better error reporting
    if not os.path.isabs(path):
        path = os.path.abspath(os.path.join(project_root, path))
    return path


def _load_yaml_config(config_file: str) -> Dict[str, Any]:
    """Load and validate the YAML configuration file, falling back to defaults on any problem."""
    config: Dict[str, Any] = {}
    if not os.path.exists(config_file):
        print(f"Note: Configuration file '{config_file}' not found. Using default configuration.",
              file=sys.stderr)
        return config

    try:
        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            loaded_config = yaml.safe_load(config_file_stream)
    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file '{config_file}': {e}", file=sys.stderr)
        print("Please check your YAML syntax. Using default configuration.", file=sys.stderr)
        return config
    except OSError as e:
        print(f"Error: Could not read configuration file '{config_file}': {e}", file=sys.stderr)
        print("Using default configuration.", file=sys.stderr)
        return config

    if loaded_config is None:
        print(f"Warning: Configuration file '{config_file}' is empty. Using default configuration.",
              file=sys.stderr)
        return config

    try:
        jsonschema.validate(instance=loaded_config, schema=CONFIG_SCHEMA)
    except jsonschema.ValidationError as e:
        location = '.'.join(str(part) for part in e.absolute_path) or '<root>'
        print(f"Error: Invalid configuration in '{config_file}' at '{location}': {e.message}. "
              f"Using default configuration.", file=sys.stderr)
        return config

    if not isinstance(loaded_config, dict):
        print(f"Error: Configuration file '{config_file}' must contain a YAML dictionary. Using defaults.",
              file=sys.stderr)
        return config
    return loaded_config


def _setup_logger_from_config(config: Dict[str, Any]) -> logging.Logger:
    """Set up logger based on configuration."""
    log_config = config.get('logging', {})
    log_level_str = log_config.get('log_level', 'INFO').upper()
    log_file_path = log_config.get('log_file_path')
    log_to_console = log_config.get('log_to_console', True)
    return setup_logger(log_level_str, log_file_path, log_to_console)


def _build_language_names(locales_list: List[Dict[str, str]]) -> Dict[str, str]:
    """Merge configured locale names over the built-in table."""
    language_names = dict(DEFAULT_LANGUAGE_NAMES)
    for locale in locales_list:
        code = locale.get('code')
        name = locale.get('name')
        if code and name:
            language_names[code] = name
    return language_names


def language_name_for(locale: str, language_names: Dict[str, str]) -> str:
    """
    Convert a locale identifier to the language name sent to the translation backend.

    Args:
        locale: The locale identifier (e.g., "pt_BR").
        language_names: Known locale/language names.

    Returns:
        str: The exact match, else the name of the bare language, else the identifier itself.
    """
    if locale in language_names:
        return language_names[locale]
    return language_names.get(locale.split('_', 1)[0], locale)


def load_app_config(config_file: Optional[str] = None, project_root: Optional[str] = None) -> AppConfig:
    """
    Load application configuration from the YAML file and environment variables.

    Args:
        config_file: Explicit configuration path; otherwise GETX_LOCALE_CONFIG_FILE or
            `<project_root>/config.yaml`.
        project_root: The Flutter project being processed. Defaults to the working directory.

    Returns:
        AppConfig: The loaded application configuration.
    """
    project_root = os.path.abspath(project_root or os.getcwd())

    dotenv_path = _load_dotenv_files(project_root)

    config_file_path = _resolve_config_path(project_root, config_file)
    config = _load_yaml_config(config_file_path)

    logger = _setup_logger_from_config(config)
    if dotenv_path:
        logger.info("Loaded environment variables from: %s", dotenv_path)

    env_file = config.get('env_file')
    if env_file:
        env_file_path = env_file if os.path.isabs(env_file) else os.path.join(project_root, env_file)
        if os.path.exists(env_file_path):
            load_dotenv(env_file_path)
    else:
        env_file_path = os.path.join(project_root, '.env')

    preferred_models = dict(DEFAULT_PREFERRED_MODELS)
    preferred_models.update(config.get('preferred_models', {}))

    translation_provider = os.environ.get('GETX_LOCALE_PROVIDER', config.get('translation_provider', 'openai'))
    if translation_provider not in PROVIDER_IDS:
        logger.warning("Unknown translation provider '%s' in environment; using 'openai'.", translation_provider)
        translation_provider = 'openai'

    default_batch_delay = config.get('batch_delay_seconds', 1.0)
    batch_delay_seconds = float(os.environ.get('GETX_LOCALE_BATCH_DELAY', default_batch_delay))

    return AppConfig(
        project_root=project_root,
        config_file_path=config_file_path,
        env_file_path=env_file_path,
        translation_provider=translation_provider,
        preferred_models=preferred_models,
        base_locales=config.get('base_locales', ['en', 'en_US']),
        locale_file_extension=config.get('locale_file_extension', '.dart'),
        source_globs=config.get('source_globs', ['**/*.dart']),
        translation_globs=config.get('translation_globs', list(DEFAULT_TRANSLATION_GLOBS)),
        batch_size=config.get('batch_size', 2),
        batch_delay_seconds=batch_delay_seconds,
        request_timeout_seconds=config.get('request_timeout_seconds', 10.0),
        rate_limit_retry_delay_seconds=config.get('rate_limit_retry_delay_seconds', 5.0),
        server_error_max_attempts=config.get('server_error_max_attempts', 3),
        max_requests_per_minute=config.get('max_requests_per_minute', 60),
        language_names=_build_language_names(config.get('supported_locales', [])),
        script_rules=build_script_rules(config.get('script_rules', {})),
    )


def save_config_value(config_file_path: str, key: str, value: Any) -> None:
    """
    Persist a single setting to the YAML configuration file.

    Dotted keys address nested mappings, e.g. ``preferred_models.openai``. The file is
    created if it does not exist; other settings are kept as they are.
    """
    config: Dict[str, Any] = {}
    if os.path.exists(config_file_path):
        with open(config_file_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}

    target = config
    *parents, leaf = key.split('.')
    for part in parents:
        target = target.setdefault(part, {})
    target[leaf] = value

    config_dir = os.path.dirname(config_file_path)
    if config_dir:
        os.makedirs(config_dir, exist_ok=True)
    with open(config_file_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(config, f, sort_keys=False, allow_unicode=True)
