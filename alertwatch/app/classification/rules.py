"""
Ordered first-match rules.

Type and severity inference from free text is a list of (keyword, result)
pairs checked in declaration order; the first keyword found in the text
wins. Keeping the rules as tuples, not dicts, makes the tie-break explicit:
"Coastal Flood Fire Weather Watch" resolves by whichever keyword is
declared first, never by hash or alphabetical order.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, NamedTuple, Optional, Sequence, TypeVar

T = TypeVar("T")


class KeywordRule(NamedTuple, Generic[T]):
    """Case-insensitive substring rule."""
    keyword: str
    result: T

    def matches(self, text: str) -> bool:
        return self.keyword.casefold() in text.casefold()


class CodeRule(NamedTuple, Generic[T]):
    """Numeric predicate rule for weather condition codes."""
    name: str
    predicate: Callable[[int], bool]
    result: T


def first_keyword_match(
    text: Any,
    rules: Sequence[KeywordRule[T]],
) -> Optional[T]:
    """Result of the first rule whose keyword occurs in text, else None."""
    if not text or not isinstance(text, str):
        return None
    for rule in rules:
        if rule.matches(text):
            return rule.result
    return None


def first_code_match(code: int, rules: Sequence[CodeRule[T]]) -> Optional[T]:
    for rule in rules:
        if rule.predicate(code):
            return rule.result
    return None
