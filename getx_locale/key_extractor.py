import logging
import re
from typing import Iterable, List

logger = logging.getLogger(__name__)

# A quoted literal immediately followed by `.tr` (or one of GetX's `trParams`,
# `trPlural`, `trPluralParams` variants). The opening and closing quote are
# matched independently. `.trim()` is not a translation call.
TR_KEY_PATTERN = re.compile(r'["\']([^"\']+)["\']\.tr(?:Params|Plural(?:Params)?)?\b')


def extract_keys(text: str) -> List[str]:
    """
    Extract the localization keys used in a block of source text.

    Args:
        text: The source text to scan.

    Returns:
        The unique keys in order of first occurrence.
    """
    if not text:
        return []
    return list(dict.fromkeys(match.group(1) for match in TR_KEY_PATTERN.finditer(text)))


def extract_keys_from_files(file_paths: Iterable[str]) -> List[str]:
    """
    Extract keys from several source files, keeping first-seen order across files.

    Files that cannot be read are logged and skipped.
    """
    keys: dict = {}
    for file_path in file_paths:
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read source file '%s': %s", file_path, e)
            continue
        for key in extract_keys(content):
            keys.setdefault(key, None)
    return list(keys)
