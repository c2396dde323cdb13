import glob
import logging
import os
from typing import Iterable, List, Optional

from getx_locale.app_config import DEFAULT_TRANSLATION_GLOBS
from getx_locale.locale_store import is_locale_filename

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_GLOBS = ['**/*.dart']

# Flutter build output and tool caches never hold hand-written sources.
EXCLUDED_DIRS = {'build', '.dart_tool', '.git', '.idea'}


def _glob_files(root: str, patterns: Iterable[str]) -> List[str]:
    """Expand glob patterns relative to `root` into a sorted, de-duplicated list of files."""
    found = set()
    for pattern in patterns:
        for path in glob.glob(os.path.join(root, pattern), recursive=True):
            if not os.path.isfile(path):
                continue
            relative_parts = os.path.relpath(path, root).split(os.sep)
            if EXCLUDED_DIRS.intersection(relative_parts[:-1]):
                continue
            found.add(os.path.normpath(path))
    return sorted(found)


def find_translation_files(
        root: str,
        patterns: Optional[Iterable[str]] = None,
        extension: str = '.dart'
) -> List[str]:
    """
    Locate the locale files of a Flutter project.

    Args:
        root: The project root.
        patterns: Glob patterns relative to `root`. Defaults to the usual
            `lib/**/translations|translation|localization|locale|lang` folders.
        extension: The locale file extension.

    Returns:
        List[str]: Paths whose file name is a locale identifier, e.g. `en_US.dart` or `fr.dart`.
    """
    candidates = _glob_files(root, patterns or DEFAULT_TRANSLATION_GLOBS)
    translation_files = [path for path in candidates if is_locale_filename(path, extension)]
    logger.debug("Found %d translation file(s) under '%s'.", len(translation_files), root)
    return translation_files


def find_source_files(root: str, globs: Optional[Iterable[str]] = None) -> List[str]:
    """Return the source files to scan for `.tr` keys."""
    return _glob_files(root, globs or DEFAULT_SOURCE_GLOBS)
