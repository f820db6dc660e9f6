"""Text normalization shared by the statement parsers and the rule engine."""

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")
_WORD_START = re.compile(r"\b\w")


def collapse_whitespace(value) -> str:
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value)).strip()


def strip_accents(value: str) -> str:
    """Drop combining marks: 'Débito' → 'Debito'."""
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def fold(value) -> str:
    """Case- and accent-insensitive form used for every keyword comparison."""
    if value is None:
        return ""
    return strip_accents(str(value)).casefold()


def title_case(value: str) -> str:
    return _WORD_START.sub(lambda m: m.group(0).upper(), value.lower())


def matches_any_pattern(text: str, patterns) -> bool:
    folded = fold(text)
    return any(re.search(pattern, folded) for pattern in patterns)
