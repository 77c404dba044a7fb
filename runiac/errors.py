"""Exceptions raised when running tools or reading their output."""

from __future__ import annotations

from typing import Any


def _quoted(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)


class OutputKeyNotFound(LookupError):
    """The output of a run holds no value for the requested key."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"output doesn't contain a value for the key {_quoted(key)}")


class OutputValueNotMap(TypeError):
    """An output value was expected to be a mapping."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"Output value {_quoted(value)} is not a map")


class OutputValueNotList(TypeError):
    """An output value was expected to be a list."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"Output value {_quoted(value)} is not a list")


class EmptyOutput(ValueError):
    """A required output was empty."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Required output {name} was empty")


class UnexpectedOutputType(TypeError):
    """An output value had a different type than expected."""

    def __init__(self, key: str, expected_type: str, actual_type: str) -> None:
        self.key = key
        self.expected_type = expected_type
        self.actual_type = actual_type
        super().__init__(
            f"Expected output '{key}' to be of type '{expected_type}' but got '{actual_type}'"
        )


class CommandError(RuntimeError):
    """An external command finished unsuccessfully."""

    def __init__(self, command: str, output: str = "", exit_code: int = 1) -> None:
        self.command = command
        self.output = output
        self.exit_code = exit_code
        super().__init__(f"command {command!r} exited with code {exit_code}")