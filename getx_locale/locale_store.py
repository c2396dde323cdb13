import os
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from getx_locale.errors import StoreParseError

# The declaration opening the single translation table of a GetX locale file, e.g.
#   final Map<String, String> enUS = { "hello": "Hello", };
# The match ends just after the opening brace.
TABLE_PATTERN = re.compile(r'Map<String,\s*String>\s+\w+\s*=\s*{')

# One `"key": "value"` entry. Either quote style is accepted and escaped
# characters inside the literals are skipped over.
ENTRY_PATTERN = re.compile(
    r'(["\'])((?:\\.|(?!\1)[^\\])+)\1\s*:\s*(["\'])((?:\\.|(?!\3)[^\\])*)\3',
    re.DOTALL
)

LOCALE_ID_PATTERN = re.compile(r'^[a-z]{2}(_[A-Z]{2})?$')

ENTRY_INDENT = '  '


@dataclass
class LocaleTable:
    """
    The parsed translation table of one locale file.

    Attributes:
        path: Path of the file the content was read from.
        entries_start: Offset of the first character after the opening brace.
        entries_end: Offset of the closing brace.
        entries: Existing key/value pairs in file order.
    """
    path: str
    entries_start: int
    entries_end: int
    entries: Dict[str, str] = field(default_factory=dict)

    @property
    def keys(self) -> List[str]:
        return list(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries


def _find_table_end(content: str, start: int) -> int:
    """
    Return the offset of the brace closing the table whose entries begin at `start`.

    Braces inside quoted literals and comments are ignored, so values like
    "Hi {name}" do not end the table. Returns -1 if the table is never closed.
    """
    depth = 0
    quote = None
    index = start
    while index < len(content):
        char = content[index]
        if quote:
            if char == '\\':
                index += 1
            elif char == quote:
                quote = None
        elif content.startswith('//', index):
            newline = content.find('\n', index)
            index = len(content) if newline < 0 else newline
            continue
        elif content.startswith('/*', index):
            close = content.find('*/', index + 2)
            index = len(content) if close < 0 else close + 2
            continue
        elif char in '"\'':
            quote = char
        elif char == '{':
            depth += 1
        elif char == '}':
            if depth == 0:
                return index
            depth -= 1
        index += 1
    return -1


def parse_locale_content(content: str, path: str = '<memory>') -> LocaleTable:
    """
    Locate the translation table in a locale file's content.

    Args:
        content: Full text of the locale file.
        path: The file path, used for error reporting.

    Returns:
        LocaleTable: The entries span and the existing entries.

    Raises:
        StoreParseError: If the file declares no `Map<String, String>` table.
    """
    match = TABLE_PATTERN.search(content)
    if not match:
        raise StoreParseError(path)
    entries_start = match.end()
    entries_end = _find_table_end(content, entries_start)
    if entries_end < 0:
        raise StoreParseError(path)

    body = content[entries_start:entries_end]
    entries: Dict[str, str] = {}
    for entry in ENTRY_PATTERN.finditer(body):
        # keep the first occurrence of a duplicated key
        entries.setdefault(entry.group(2), entry.group(4))

    return LocaleTable(
        path=path,
        entries_start=entries_start,
        entries_end=entries_end,
        entries=entries
    )


def find_new_keys(table: LocaleTable, keys: Iterable[str]) -> List[str]:
    """Return the keys not present in the table, in the given order and without duplicates."""
    return [key for key in dict.fromkeys(keys) if key not in table.entries]


def _escape_value(value: str) -> str:
    """Escape unescaped double quotes and `$` so the value stays a plain Dart string literal."""
    return re.sub(r'(?<!\\)(["$])', r'\\\1', value)


def format_entry(key: str, value: str) -> str:
    return f'{ENTRY_INDENT}"{key}": "{_escape_value(value)}"'


def merge_entries(content: str, table: LocaleTable, new_entries: List[Tuple[str, str]]) -> str:
    """
    Append new entries to the table, leaving every other byte of the file untouched.

    A non-empty table gets a comma and newline before the new entries (the comma is
    omitted when the last existing entry already has a trailing one). An empty table
    receives the entries directly.

    Args:
        content: The original file content the table was parsed from.
        table: The parsed table of that content.
        new_entries: (key, value) pairs to append, in write order.

    Returns:
        str: The updated file content.
    """
    if not new_entries:
        return content

    body = content[table.entries_start:table.entries_end]
    new_entries_text = ',\n'.join(format_entry(key, value) for key, value in new_entries)

    if body.strip():
        existing = body.rstrip()
        trailing_whitespace = body[len(existing):] or '\n'
        separator = '\n' if existing.endswith(',') else ',\n'
        new_body = existing + separator + new_entries_text + trailing_whitespace
    else:
        new_body = '\n' + new_entries_text + '\n'

    return content[:table.entries_start] + new_body + content[table.entries_end:]


def read_locale_file(file_path: str) -> Tuple[str, LocaleTable]:
    """
    Read a locale file and parse its table.

    Returns:
        Tuple[str, LocaleTable]: The raw content and the parsed table.
    """
    with open(file_path, 'r', encoding='utf-8', newline='') as f:
        content = f.read()
    return content, parse_locale_content(content, file_path)


def write_locale_file(file_path: str, content: str) -> None:
    # newline='' keeps the file's own line endings
    with open(file_path, 'w', encoding='utf-8', newline='') as f:
        f.write(content)


def locale_from_filename(file_path: str) -> str:
    """Derive the locale identifier from a file name, e.g. `lib/lang/pt_BR.dart` -> `pt_BR`."""
    return os.path.splitext(os.path.basename(file_path))[0]


def is_locale_filename(filename: str, extension: str = '.dart') -> bool:
    stem, ext = os.path.splitext(os.path.basename(filename))
    return ext == extension and bool(LOCALE_ID_PATTERN.match(stem))


def language_of(locale: str) -> str:
    """Return the language part of a locale identifier (`pt_BR` -> `pt`)."""
    return locale.split('_', 1)[0].lower()


def is_base_locale(locale: str, base_locales: Optional[Iterable[str]] = None) -> bool:
    return locale in (base_locales if base_locales is not None else ('en', 'en_US'))
