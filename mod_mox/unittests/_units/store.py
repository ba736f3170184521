"""In-memory key/value store."""

from __future__ import annotations

_DATA: dict[str, str] = {"greeting": "hello", "subject": "world"}


def get(key: str, default: str | None = None) -> str | None:
    """Return the value stored under *key*."""
    return _DATA.get(key, default)


def put(key: str, value: str) -> None:
    """Store *value* under *key*."""
    _DATA[key] = value


def keys() -> list[str]:
    """Return the stored keys in sorted order."""
    return sorted(_DATA)
