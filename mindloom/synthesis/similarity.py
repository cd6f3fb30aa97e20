"""
Lexical helpers shared by the linker and the combiner.
"""

import re
from typing import Iterable, Set

from fuzzywuzzy import fuzz


_WHITESPACE = re.compile(r'\s+')
_PUNCTUATION = re.compile(r'[^\w\s]')


def normalize_title(title: str) -> str:
    """
    Normalize a title for comparison: casefolded, punctuation stripped,
    whitespace collapsed.
    """
    text = _WHITESPACE.sub(' ', title.casefold().strip())
    text = _PUNCTUATION.sub(' ', text)
    return _WHITESPACE.sub(' ', text).strip()


def title_similarity(first: str, second: str) -> int:
    """
    Score how much two titles overlap, 0-100.

    token_set_ratio scores 100 when one title's words are contained in the
    other's, so "State Management" matches "Redux State Management".
    """
    a = normalize_title(first)
    b = normalize_title(second)
    if not a or not b:
        return 0
    if a == b:
        return 100
    return fuzz.token_set_ratio(a, b)


def fold_tags(tags: Iterable[str]) -> Set[str]:
    """Lowercase a tag collection for case-insensitive comparison."""
    return {tag.casefold() for tag in tags if tag}


def tag_overlap(first: Iterable[str], second: Iterable[str]) -> float:
    """Jaccard overlap of two tag sets, compared case-insensitively."""
    a = fold_tags(first)
    b = fold_tags(second)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def mentions(text: str, phrase: str) -> bool:
    """True when phrase occurs in text as whole words, ignoring case."""
    needle = phrase.strip().casefold()
    if not needle:
        return False
    return re.search(r'(?<!\w)' + re.escape(needle) + r'(?!\w)', text.casefold()) is not None
