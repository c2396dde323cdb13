"""
Command line entry point: `getx-locale`.

    getx-locale extract lib/pages/home_page.dart
    getx-locale scan .
    getx-locale keys set groq
    getx-locale switch-provider openai
"""
import argparse
import asyncio
import getpass
import logging
import os
import sys
from typing import Callable, List, Optional

from getx_locale.app_config import PROVIDER_IDS, AppConfig, load_app_config, save_config_value
from getx_locale.credentials import (
    DotenvCredentialStore,
    configure_api_key,
    delete_api_key,
    initialize_providers,
    key_status,
    secret_id_for,
    test_api_key
)
from getx_locale.errors import (
    AllProvidersExhaustedError,
    GetxLocaleError,
    InvalidCredentialError,
    NoKeysFoundError,
    NoTargetStoresError,
    ProviderError,
    ProviderUnavailableError,
    TranslationRequestError
)
from getx_locale.file_discovery import find_source_files, find_translation_files
from getx_locale.key_extractor import extract_keys_from_files
from getx_locale.orchestrator import (
    ExhaustedChoice,
    ExhaustedCallback,
    InvocationReport,
    Orchestrator,
    SetupCallback,
    TranslationSession,
    write_error_report
)
from getx_locale.provider_manager import ProviderManager
from getx_locale.providers import PROVIDER_CLASSES

logger = logging.getLogger(__name__)

SETUP_MESSAGE = """API Provider Setup

You can use multiple providers for translations:

OpenAI:
- Fast and reliable translations

Groq:
- Llama models on Groq's OpenAI-compatible API
- Alternative pricing

Which provider would you like to configure?"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='getx-locale',
        description="Extract GetX `.tr` keys into Dart locale files and translate the new ones."
    )
    parser.add_argument('--config', help="Path of the YAML configuration file (default: <project>/config.yaml)")
    parser.add_argument('--root', help="Flutter project root (default: current directory)")
    subparsers = parser.add_subparsers(dest='command', required=True)

    extract = subparsers.add_parser('extract', help="Add the keys used in one source file to every locale file")
    extract.add_argument('file', help="Dart source file to scan")
    _add_pipeline_arguments(extract)

    scan = subparsers.add_parser('scan', help="Add the keys used anywhere in the project to every locale file")
    scan.add_argument('project_root', nargs='?', help="Project root to scan (overrides --root)")
    _add_pipeline_arguments(scan)

    keys = subparsers.add_parser('keys', help="Manage provider API keys")
    keys.add_argument('action', choices=['status', 'set', 'delete', 'test'])
    keys.add_argument('provider', nargs='?', choices=PROVIDER_IDS)
    keys.add_argument('--key', help="API key for `set`; prompted for when omitted")

    switch = subparsers.add_parser('switch-provider', help="Select and persist the translation provider")
    switch.add_argument('provider', nargs='?', choices=PROVIDER_IDS)
    return parser


def _add_pipeline_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--no-translate', action='store_true',
                        help="Write new keys with the key as value, without calling any provider")
    parser.add_argument('--report-file', help="Write a markdown report of locale files that could not be updated")
    parser.add_argument('--yes-proceed', action='store_true',
                        help="If every provider fails, continue without translation instead of asking")


def prompt_choice(message: str, options: List[str]) -> Optional[str]:
    """Print numbered options and return the selected one, or None."""
    print(message)
    for index, option in enumerate(options, 1):
        print(f"  {index}. {option}")
    try:
        answer = input("Select an option: ").strip()
    except EOFError:
        return None
    if answer.isdigit() and 1 <= int(answer) <= len(options):
        return options[int(answer) - 1]
    if answer in options:
        return answer
    return None


def make_persist_choice(config: AppConfig) -> Callable[[str], None]:
    def persist_choice(provider_id: str) -> None:
        save_config_value(config.config_file_path, 'translation_provider', provider_id)
        config.translation_provider = provider_id
    return persist_choice


async def prompt_api_key(store: DotenvCredentialStore, config: AppConfig, provider_id: Optional[str] = None,
                         api_key: Optional[str] = None) -> bool:
    """Ask for (or take) a key, verify and store it. Returns True on success."""
    if provider_id is None:
        provider_id = prompt_choice(SETUP_MESSAGE, list(PROVIDER_IDS))
        if provider_id is None:
            return False
    name = PROVIDER_CLASSES[provider_id].display_name
    if api_key is None:
        api_key = getpass.getpass(f"Enter your {name} API Key: ")

    try:
        await configure_api_key(store, provider_id, api_key, config)
    except InvalidCredentialError as exc:
        print(f"❌ {exc}\n\nPlease check your API key and try again.", file=sys.stderr)
        return False
    print(f"✅ {name} API Key verified and saved successfully!")
    return True


def make_setup_callback(store: DotenvCredentialStore, config: AppConfig) -> SetupCallback:
    async def setup_provider(session: TranslationSession) -> None:
        if await prompt_api_key(store, config):
            initialize_providers(session, store, config)
    return setup_provider


def make_exhausted_callback(session: TranslationSession, yes_proceed: bool) -> ExhaustedCallback:
    async def on_exhausted(error: AllProvidersExhaustedError) -> ExhaustedChoice:
        if yes_proceed:
            return ExhaustedChoice.PROCEED_WITHOUT_TRANSLATION

        manager = session.provider_manager
        others = [provider_id for provider_id in manager.available_providers()
                  if provider_id != manager.current_provider_id]
        options = (['Switch Provider'] if others else []) + ['Proceed Without Translation', 'Abort']
        choice = prompt_choice(
            f"Failed to translate keys for '{error.locale}' ({len(error.remaining_keys)} left): {error.cause}",
            options
        )

        if choice == 'Switch Provider':
            target = others[0] if len(others) == 1 else prompt_choice("Select Translation Provider", others)
            if target is None:
                return ExhaustedChoice.ABORT
            try:
                await manager.set_current_provider(target)
            except ProviderError as exc:
                print(f"Failed to switch provider: {exc}", file=sys.stderr)
                return ExhaustedChoice.ABORT
            print(f"✓ Now using {PROVIDER_CLASSES[target].display_name} for translations")
            return ExhaustedChoice.SWITCH_PROVIDER
        if choice == 'Proceed Without Translation':
            return ExhaustedChoice.PROCEED_WITHOUT_TRANSLATION
        return ExhaustedChoice.ABORT
    return on_exhausted


async def run_pipeline(args: argparse.Namespace, config: AppConfig, keys: List[str]) -> InvocationReport:
    locale_files = find_translation_files(
        config.project_root, config.translation_globs, config.locale_file_extension
    )
    store = DotenvCredentialStore(config.env_file_path)
    session = TranslationSession(ProviderManager(persist_choice=make_persist_choice(config)))

    translate = not args.no_translate
    if translate and locale_files and keys:
        try:
            initialize_providers(session, store, config)
        except ProviderUnavailableError:
            logger.info("No API key stored yet.")

    orchestrator = Orchestrator(
        session,
        config,
        on_exhausted=make_exhausted_callback(session, args.yes_proceed),
        setup_provider=make_setup_callback(store, config)
    )
    report = await orchestrator.run(keys, locale_files, translate=translate)

    if args.report_file:
        write_error_report(report, args.report_file)

    if report.translation_disabled or not translate:
        print(f"Added {report.keys_added} new keys to {len(locale_files)} translation files (without translation)")
    else:
        provider = await session.provider_manager.current_provider_name()
        message = (f"✅ Added and translated {report.keys_added} new keys using {provider} "
                   f"to {len(locale_files)} translation files")
        if report.files_errored:
            message += f" ({report.files_errored} files had errors)"
        print(message)
    return report


async def run_keys_command(args: argparse.Namespace, config: AppConfig) -> int:
    store = DotenvCredentialStore(config.env_file_path)

    if args.action == 'status':
        print("API Key Status:")
        for provider_id, configured in key_status(store).items():
            state = "✓ Configured" if configured else "✗ Not Configured"
            print(f"{PROVIDER_CLASSES[provider_id].display_name}: {state}")
        return 0

    if args.action == 'set':
        return 0 if await prompt_api_key(store, config, args.provider, args.key) else 1

    if args.action == 'delete':
        if args.provider is None:
            print("Please name the provider whose key should be deleted.", file=sys.stderr)
            return 2
        delete_api_key(store, args.provider)
        print(f"Deleted the {PROVIDER_CLASSES[args.provider].display_name} API key.")
        return 0

    exit_code = 0
    provider_ids = [args.provider] if args.provider else list(PROVIDER_IDS)
    for provider_id in provider_ids:
        name = PROVIDER_CLASSES[provider_id].display_name
        api_key = store.get(secret_id_for(provider_id))
        if not api_key:
            if args.provider:
                print(f"No {name} API key configured.", file=sys.stderr)
                exit_code = 1
            continue
        try:
            await test_api_key(provider_id, api_key, config)
        except TranslationRequestError as exc:
            print(f"❌ {name} API Key error: {exc}", file=sys.stderr)
            exit_code = 1
        else:
            print(f"✅ {name} API Key is working")
    return exit_code


async def run_switch_provider(args: argparse.Namespace, config: AppConfig) -> int:
    store = DotenvCredentialStore(config.env_file_path)
    session = TranslationSession(ProviderManager(persist_choice=make_persist_choice(config)))
    try:
        initialize_providers(session, store, config)
    except ProviderUnavailableError:
        if not await prompt_api_key(store, config, args.provider):
            return 1
        initialize_providers(session, store, config)

    manager = session.provider_manager
    target = args.provider
    if target is None:
        options = manager.available_providers()
        target = prompt_choice(f"Select Translation Provider (current: {manager.current_provider_id})", options)
        if target is None:
            return 1

    try:
        await manager.set_current_provider(target)
    except ProviderError as exc:
        print(f"Failed to switch provider: {exc}", file=sys.stderr)
        return 1
    print(f"✓ Now using {await manager.current_provider_name()} for translations")
    return 0


async def main_async(args: argparse.Namespace) -> int:
    project_root = getattr(args, 'project_root', None) or args.root or os.getcwd()
    config = load_app_config(args.config, project_root)

    try:
        if args.command == 'keys':
            return await run_keys_command(args, config)
        if args.command == 'switch-provider':
            return await run_switch_provider(args, config)

        if args.command == 'extract':
            keys = extract_keys_from_files([args.file])
            if not keys:
                print("No .tr keys found in current file")
                return 0
        else:
            source_files = find_source_files(config.project_root, config.source_globs)
            keys = extract_keys_from_files(source_files)
            logger.info("Found %d unique key(s) in %d source file(s).", len(keys), len(source_files))

        await run_pipeline(args, config, keys)
        return 0
    except NoKeysFoundError as exc:
        print(str(exc))
        return 0
    except (NoTargetStoresError, ProviderUnavailableError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except AllProvidersExhaustedError as exc:
        print(f"Failed to translate keys: {exc}", file=sys.stderr)
        return 1
    except GetxLocaleError as exc:
        logger.error("Unexpected error: %s", exc)
        return 1


def run(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    sys.exit(asyncio.run(main_async(args)))


if __name__ == "__main__":
    run()
