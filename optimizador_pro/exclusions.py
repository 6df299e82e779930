"""Substring exclusion lists shared by every optimizer."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple, Union

PatternSource = Union[str, Iterable[str], None]


def parse_patterns(source: PatternSource) -> Tuple[str, ...]:
    """Normalize newline-delimited text (or a sequence) into a pattern tuple."""
    if not source:
        return ()
    if isinstance(source, str):
        items: Iterable[str] = source.splitlines()
    else:
        items = source
    patterns = []
    for item in items:
        pattern = str(item).strip()
        if pattern and pattern not in patterns:
            patterns.append(pattern)
    return tuple(patterns)


def merge_patterns(user: PatternSource, defaults: Iterable[str] = ()) -> Tuple[str, ...]:
    """User patterns first, then any defaults not already listed."""
    merged = list(parse_patterns(user))
    for pattern in parse_patterns(tuple(defaults)):
        if pattern not in merged:
            merged.append(pattern)
    return tuple(merged)


def is_excluded(candidate: Optional[str], patterns: Iterable[str]) -> bool:
    """Return True when any non-empty pattern occurs in ``candidate``.

    Matching is a plain case-sensitive substring test.
    """
    if not candidate:
        return False
    for pattern in patterns:
        pattern = pattern.strip()
        if pattern and pattern in candidate:
            return True
    return False
