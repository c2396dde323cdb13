"""Script-based sanity checks for machine translations."""
import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from getx_locale.locale_store import language_of

logger = logging.getLogger(__name__)

SCRIPT_PATTERNS: Dict[str, re.Pattern] = {
    'arabic': re.compile(r'[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF]'),
    'cjk': re.compile(r'[\u3400-\u4DBF\u4E00-\u9FFF\uF900-\uFAFF]'),
    'kana': re.compile(r'[\u3040-\u30FF]'),
    'hangul': re.compile(r'[\u1100-\u11FF\u3130-\u318F\uAC00-\uD7AF]'),
    'cyrillic': re.compile(r'[\u0400-\u04FF]'),
    'devanagari': re.compile(r'[\u0900-\u097F]'),
    'thai': re.compile(r'[\u0E00-\u0E7F]'),
    'hebrew': re.compile(r'[\u0590-\u05FF]'),
    'greek': re.compile(r'[\u0370-\u03FF]'),
}

NON_LATIN_SCRIPTS: Tuple[str, ...] = tuple(SCRIPT_PATTERNS)


@dataclass(frozen=True)
class ScriptRule:
    """
    Expectations on the characters of a translation.

    Attributes:
        required: The translation must contain at least one character of one of these scripts.
        forbidden: The translation must not contain any character of these scripts.
    """
    required: Tuple[str, ...] = ()
    forbidden: Tuple[str, ...] = ()


# Languages written in Latin script get this rule unless the table says otherwise.
LATIN_RULE = ScriptRule(forbidden=NON_LATIN_SCRIPTS)

DEFAULT_SCRIPT_RULES: Dict[str, ScriptRule] = {
    'ar': ScriptRule(required=('arabic',)),
    'ur': ScriptRule(required=('arabic',)),
    'fa': ScriptRule(required=('arabic',)),
    'zh': ScriptRule(required=('cjk',)),
    'ja': ScriptRule(required=('kana', 'cjk')),
    'ko': ScriptRule(required=('hangul',)),
    'ru': ScriptRule(required=('cyrillic',)),
    'uk': ScriptRule(required=('cyrillic',)),
    'bg': ScriptRule(required=('cyrillic',)),
    'be': ScriptRule(required=('cyrillic',)),
    'kk': ScriptRule(required=('cyrillic',)),
    'mk': ScriptRule(required=('cyrillic',)),
    'mn': ScriptRule(required=('cyrillic',)),
    'sr': ScriptRule(),
    'hi': ScriptRule(required=('devanagari',)),
    'mr': ScriptRule(required=('devanagari',)),
    'ne': ScriptRule(required=('devanagari',)),
    'th': ScriptRule(required=('thai',)),
    'he': ScriptRule(required=('hebrew',)),
    'el': ScriptRule(required=('greek',)),
}


def build_script_rules(overrides: Optional[Mapping[str, Mapping[str, Iterable[str]]]] = None) -> Dict[str, ScriptRule]:
    """
    Merge configured per-language rules over the built-in table.

    Args:
        overrides: Mapping of language or locale code to {"required": [...], "forbidden": [...]}.

    Returns:
        Dict[str, ScriptRule]: The effective rule table.
    """
    rules = dict(DEFAULT_SCRIPT_RULES)
    for code, rule in (overrides or {}).items():
        required = tuple(rule.get('required', ()))
        forbidden = tuple(rule.get('forbidden', ()))
        unknown = [script for script in required + forbidden if script not in SCRIPT_PATTERNS]
        if unknown:
            logger.warning("Ignoring unknown script(s) %s in the rule for '%s'.", unknown, code)
        rules[code] = ScriptRule(
            required=tuple(s for s in required if s in SCRIPT_PATTERNS),
            forbidden=tuple(s for s in forbidden if s in SCRIPT_PATTERNS),
        )
    return rules


def rule_for_locale(locale: str, rules: Optional[Mapping[str, ScriptRule]] = None) -> ScriptRule:
    """Find the rule for a locale: exact locale first (`pt_BR`), then its language (`pt`)."""
    table = DEFAULT_SCRIPT_RULES if rules is None else rules
    if locale in table:
        return table[locale]
    return table.get(language_of(locale), LATIN_RULE)


def contains_script(text: str, script: str) -> bool:
    return bool(SCRIPT_PATTERNS[script].search(text))


def check_translation(text: str, locale: str, rules: Optional[Mapping[str, ScriptRule]] = None) -> List[str]:
    """
    Check a translation against the script expectations of its locale.

    Args:
        text: The translated text.
        locale: The target locale identifier, e.g. "ar" or "zh_CN".
        rules: The rule table; the built-in one when omitted.

    Returns:
        A list of problems. An empty list means the translation is acceptable.
    """
    problems = []
    if not text or not text.strip():
        return ["Translation is empty."]

    if '\uFFFD' in text:
        problems.append("Translation contains the Unicode replacement character (U+FFFD).")

    rule = rule_for_locale(locale, rules)
    if rule.required and not any(contains_script(text, script) for script in rule.required):
        problems.append(f"Expected {' or '.join(rule.required)} characters for '{locale}'.")
    for script in rule.forbidden:
        if contains_script(text, script):
            problems.append(f"Unexpected {script} characters for '{locale}'.")
    return problems


def is_valid_translation(text: str, locale: str, rules: Optional[Mapping[str, ScriptRule]] = None) -> bool:
    return not check_translation(text, locale, rules)
