"""String helpers."""

from __future__ import annotations


def reverse(value: str) -> str:
    """Return *value* reversed."""
    return value[::-1]


def downcase(value: str) -> str:
    """Return *value* in lower case."""
    return value.lower()


def length(value: str) -> int:
    """Return the number of characters in *value*."""
    return len(value)


def shout(value: str) -> str:
    """Return *value* reversed and upper-cased."""
    return reverse(value).upper()
