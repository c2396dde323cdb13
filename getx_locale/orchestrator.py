"""
Drives one extract-and-merge invocation over a set of locale files.

The base-locale file is always completed first with keys as values; its entries
become the English fallback table used whenever a translation fails or is rejected.
Every other file gets its new keys translated in small sequential batches.
"""
import asyncio
import logging
import os
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from aiolimiter import AsyncLimiter
from tqdm import tqdm

from getx_locale.app_config import AppConfig, language_name_for
from getx_locale.errors import (
    AllProvidersExhaustedError,
    NoKeysFoundError,
    NoTargetStoresError,
    ProviderNotConfiguredError,
    ProviderUnavailableError,
    ServerFailure,
    StoreParseError,
    TranslationRequestError
)
from getx_locale.locale_store import (
    find_new_keys,
    is_base_locale,
    locale_from_filename,
    merge_entries,
    read_locale_file,
    write_locale_file
)
from getx_locale.locale_validation import check_translation
from getx_locale.provider_manager import ProviderManager
from getx_locale.translation_cache import TranslationCache

logger = logging.getLogger(__name__)

SERVER_ERROR_BASE_DELAY = 1.0


class ExhaustedChoice(Enum):
    SWITCH_PROVIDER = 'switch_provider'
    PROCEED_WITHOUT_TRANSLATION = 'proceed_without_translation'
    ABORT = 'abort'


class FileState(Enum):
    PENDING = 'pending'
    DIFFING = 'diffing'
    NO_NEW_KEYS = 'no_new_keys'
    TRANSLATING = 'translating'
    WRITING = 'writing'
    DONE = 'done'
    FAILED = 'failed'


@dataclass
class LocaleFileResult:
    """Outcome of processing one locale file."""
    path: str
    locale: str
    state: FileState = FileState.PENDING
    keys_added: int = 0
    translated: int = 0
    fallbacks: int = 0
    errors: List[str] = field(default_factory=list)
    history: List[FileState] = field(default_factory=lambda: [FileState.PENDING])

    def transition(self, state: FileState) -> None:
        self.state = state
        self.history.append(state)


@dataclass
class InvocationReport:
    """Totals of one run. `files_touched` counts files actually rewritten."""
    keys_added: int = 0
    files_touched: int = 0
    files_errored: int = 0
    translation_disabled: bool = False
    files: List[LocaleFileResult] = field(default_factory=list)

    def add(self, result: LocaleFileResult) -> None:
        self.files.append(result)
        if result.state is FileState.FAILED:
            self.files_errored += 1
        elif result.keys_added:
            self.keys_added += result.keys_added
            self.files_touched += 1

    @property
    def errored_files(self) -> Dict[str, List[str]]:
        return {result.path: result.errors for result in self.files if result.state is FileState.FAILED}


class TranslationSession:
    """
    State shared by every invocation of one process: the provider registry, the
    translation cache and the English fallback table.
    """

    def __init__(self, provider_manager: Optional[ProviderManager] = None, cache: Optional[TranslationCache] = None):
        self.provider_manager = provider_manager or ProviderManager()
        self.cache = cache or TranslationCache()
        self.english_fallback: Dict[str, str] = {}

    def fallback_value(self, key: str) -> str:
        return self.english_fallback.get(key) or key


ExhaustedCallback = Callable[[AllProvidersExhaustedError], Awaitable[ExhaustedChoice]]
SetupCallback = Callable[[TranslationSession], Awaitable[None]]


class Orchestrator:
    """
    Merge extracted keys into locale files, translating the new ones.

    Args:
        session: The session holding providers, cache and fallback table.
        config: Batching, pacing, retry and validation settings.
        on_exhausted: Asked what to do when every provider failed terminally.
            Without it the run is aborted.
        setup_provider: Called when translation is requested but no provider is
            registered, e.g. to prompt for an API key.
        show_progress: Show a tqdm bar per translated file.
    """

    def __init__(
            self,
            session: TranslationSession,
            config: AppConfig,
            on_exhausted: Optional[ExhaustedCallback] = None,
            setup_provider: Optional[SetupCallback] = None,
            show_progress: bool = True
    ):
        self.session = session
        self.config = config
        self.on_exhausted = on_exhausted
        self.setup_provider = setup_provider
        self.show_progress = show_progress
        self._rate_limiter = AsyncLimiter(max_rate=config.max_requests_per_minute, time_period=60)
        self._translate_enabled = True
        self._switches = 0

    async def run(self, keys: List[str], locale_files: List[str], translate: bool = True) -> InvocationReport:
        """
        Merge `keys` into every file of `locale_files`.

        Args:
            keys: Extracted keys, in source order.
            locale_files: Paths of the locale files to update.
            translate: When False every new key is written with the key as its value.

        Returns:
            InvocationReport: Per-file results and totals.

        Raises:
            NoKeysFoundError: If `keys` is empty.
            NoTargetStoresError: If `locale_files` is empty.
            ProviderUnavailableError: If translation is requested and no provider can be set up.
            AllProvidersExhaustedError: If the run is aborted after a terminal provider failure.
        """
        keys = list(dict.fromkeys(keys))
        if not keys:
            raise NoKeysFoundError("No .tr keys found")
        if not locale_files:
            raise NoTargetStoresError(
                "No translation files found. Make sure you have files like en_US.dart, pt_BR.dart in your project"
            )

        self._translate_enabled = translate
        self._switches = 0
        if translate:
            await self._ensure_providers()

        base_files = [path for path in locale_files
                      if is_base_locale(locale_from_filename(path), self.config.base_locales)]
        target_files = [path for path in locale_files if path not in base_files]

        report = InvocationReport()
        for path in base_files:
            report.add(await self._process_file(path, keys, is_base=True))
        for path in target_files:
            report.add(await self._process_file(path, keys, is_base=False))

        report.translation_disabled = translate and not self._translate_enabled
        logger.info(
            "Added %d key(s) across %d file(s); %d file(s) failed.",
            report.keys_added, report.files_touched, report.files_errored
        )
        return report

    async def _ensure_providers(self) -> None:
        manager = self.session.provider_manager
        if manager.available_providers():
            return
        if self.setup_provider is not None:
            await self.setup_provider(self.session)
        if not manager.available_providers():
            raise ProviderUnavailableError("No translation provider is configured. Please add an API key first.")

    async def _process_file(self, path: str, keys: List[str], is_base: bool) -> LocaleFileResult:
        result = LocaleFileResult(path=path, locale=locale_from_filename(path))

        result.transition(FileState.DIFFING)
        try:
            content, table = read_locale_file(path)
        except (StoreParseError, OSError) as exc:
            logger.error("Error processing file %s: %s", path, exc)
            result.transition(FileState.FAILED)
            result.errors.append(str(exc))
            return result

        if is_base:
            for key, value in table.entries.items():
                if value:
                    self.session.english_fallback.setdefault(key, value)

        new_keys = find_new_keys(table, keys)
        if not new_keys:
            logger.info("No new keys for '%s'.", path)
            result.transition(FileState.NO_NEW_KEYS)
            result.transition(FileState.DONE)
            return result

        if is_base or not self._translate_enabled:
            entries = [(key, key) for key in new_keys]
        else:
            result.transition(FileState.TRANSLATING)
            entries = await self._translate_keys(result, new_keys)

        result.transition(FileState.WRITING)
        try:
            write_locale_file(path, merge_entries(content, table, entries))
        except OSError as exc:
            logger.error("Could not write '%s': %s", path, exc)
            result.transition(FileState.FAILED)
            result.errors.append(str(exc))
            return result

        if is_base:
            for key, value in entries:
                self.session.english_fallback.setdefault(key, value)

        result.keys_added = len(entries)
        result.transition(FileState.DONE)
        logger.info("Added %d key(s) to '%s'.", result.keys_added, path)
        return result

    async def _translate_keys(self, result: LocaleFileResult, new_keys: List[str]) -> List[Tuple[str, str]]:
        """Translate `new_keys` in sequential batches, falling back per key."""
        language = language_name_for(result.locale, self.config.language_names)
        batch_size = max(1, self.config.batch_size)
        entries: List[Tuple[str, str]] = []

        with tqdm(total=len(new_keys), desc=f"Translating {result.locale}", unit="key",
                  disable=not self.show_progress, leave=False) as progress_bar:
            for start in range(0, len(new_keys), batch_size):
                if start and self.config.batch_delay_seconds > 0 and self._translate_enabled:
                    await asyncio.sleep(self.config.batch_delay_seconds)
                for offset, key in enumerate(new_keys[start:start + batch_size]):
                    if self._translate_enabled:
                        remaining = new_keys[start + offset:]
                        value = await self._translate_with_recovery(result, key, language, remaining)
                    else:
                        value = key
                    entries.append((key, value))
                    progress_bar.update(1)
        return entries

    async def _translate_with_recovery(
            self,
            result: LocaleFileResult,
            key: str,
            language: str,
            remaining: List[str]
    ) -> str:
        while True:
            try:
                return await self._translate_key(result, key, language)
            except (TranslationRequestError, ProviderNotConfiguredError) as exc:
                exhausted = AllProvidersExhaustedError(result.path, result.locale, list(remaining), exc)
                logger.error("%s", exhausted)
                choice = await self._ask_on_exhausted(exhausted)

                if choice is ExhaustedChoice.SWITCH_PROVIDER:
                    if self._switches < len(self.session.provider_manager.available_providers()):
                        self._switches += 1
                        logger.info("Retrying the remaining %d key(s) for '%s' with provider '%s'.",
                                    len(remaining), result.locale,
                                    self.session.provider_manager.current_provider_id)
                        continue
                    logger.error("No other provider left to switch to.")
                elif choice is ExhaustedChoice.PROCEED_WITHOUT_TRANSLATION:
                    logger.warning("Continuing without translation; keys are written as their own values.")
                    self._translate_enabled = False
                    return key
                raise exhausted from exc

    async def _ask_on_exhausted(self, exhausted: AllProvidersExhaustedError) -> ExhaustedChoice:
        if self.on_exhausted is None:
            return ExhaustedChoice.ABORT
        return await self.on_exhausted(exhausted)

    async def _translate_key(self, result: LocaleFileResult, key: str, language: str) -> str:
        """Translate one key through the cache, substituting the fallback on non-terminal failures."""
        try:
            translation = await self.session.cache.get_or_translate(
                key, result.locale, lambda text: self._request_with_backoff(text, language)
            )
        except TranslationRequestError as exc:
            if exc.terminal:
                raise
            logger.warning("Translation failed for key '%s' (%s): %s", key, result.locale, exc)
            result.fallbacks += 1
            return self.session.fallback_value(key)

        problems = check_translation(translation, result.locale, self.config.script_rules)
        if problems:
            logger.warning("Rejected translation '%s' for key '%s': %s", translation, key, ' '.join(problems))
            result.fallbacks += 1
            return self.session.fallback_value(key)

        result.translated += 1
        return translation

    async def _request_with_backoff(self, text: str, language: str) -> str:
        """Call the provider manager, retrying 5xx failures with exponential backoff and jitter."""
        max_attempts = max(1, self.config.server_error_max_attempts)
        for attempt in range(1, max_attempts + 1):
            try:
                async with self._rate_limiter:
                    return await self.session.provider_manager.translate(text, language)
            except ServerFailure as exc:
                if attempt == max_attempts:
                    logger.error("Translation failed for key '%s' after %d attempts.", text, max_attempts)
                    raise
                delay = SERVER_ERROR_BASE_DELAY * (2 ** (attempt - 1)) + random.uniform(0, 1)
                logger.info("Server error (%s). Retrying in %.2f seconds (Attempt %d/%d)",
                            exc, delay, attempt, max_attempts)
                await asyncio.sleep(delay)
        raise AssertionError("unreachable")


def write_error_report(report: InvocationReport, report_path: str) -> bool:
    """
    Write a markdown summary of the locale files that could not be updated.

    An old report is removed when nothing failed.

    Returns:
        bool: True if a report was written.
    """
    errored = report.errored_files
    if not errored:
        if os.path.exists(report_path):
            os.remove(report_path)
        return False

    report_dir = os.path.dirname(report_path)
    if report_dir:
        os.makedirs(report_dir, exist_ok=True)
    logger.info("Some files were skipped. Writing report to %s", report_path)
    with open(report_path, 'w', encoding='utf-8') as f:
        f.write("## ⚠️ Locale Update Warnings\n\n")
        f.write("The following locale files could not be updated. These issues must be addressed manually.\n\n")
        for path, errors in errored.items():
            f.write(f"### 📄 `{path}`\n")
            for error in errors:
                f.write(f"- {error}\n")
            f.write("\n")
    return True
