"""Greeting functions and a class with every kind of method."""

from __future__ import annotations


def hello(name: str) -> str:
    """Return a greeting for *name*."""
    return f"Hello, {name}"


def farewell(name: str, punctuation: str = ".") -> str:
    """Return a farewell for *name*."""
    return f"Goodbye, {name}{punctuation}"


def greet_all(*names: str) -> list[str]:
    """Greet every name through the module-level ``hello``."""
    return [hello(name) for name in names]


class Greeter:
    """Greets with a configurable salutation."""

    salutation = "Hello"

    def __init__(self, salutation: str | None = None) -> None:
        if salutation is not None:
            self.salutation = salutation

    def greet(self, name: str) -> str:
        """Return a greeting using this instance's salutation."""
        return f"{self.salutation}, {name}"

    @staticmethod
    def shout(name: str) -> str:
        """Return an upper-case greeting."""
        return f"HELLO, {name.upper()}"

    @classmethod
    def default_salutation(cls) -> str:
        """Return the class-level salutation."""
        return cls.salutation


class PoliteGreeter(Greeter):
    """Greeter whose own methods are all inherited."""

    salutation = "Good day"
