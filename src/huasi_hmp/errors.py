"""Errors raised while encoding text commands.

All of them subclass :class:`ValueError`, so callers that only care about
"bad input, do not transmit" can catch that.
"""

from __future__ import annotations

from typing import Any


class HmpError(ValueError):
    """Base class for command encoding errors."""


class InvalidInputError(HmpError):
    """A checksum or framing primitive received unusable input."""


class UnknownCommandError(HmpError):
    """The command identifier is not part of the protocol."""

    def __init__(self, command: Any) -> None:
        self.command = command
        super().__init__(f"Unknown text command {command!r}")


class MissingParameterError(HmpError):
    """A parameter required by the command was not supplied."""

    def __init__(self, command: str, parameter: str) -> None:
        self.command = command
        self.parameter = parameter
        super().__init__(f"{command}: missing required parameter '{parameter}'")


class InvalidParameterError(HmpError):
    """A supplied parameter violates the command's constraints."""

    def __init__(self, command: str, parameter: str, value: Any, reason: str = "") -> None:
        self.command = command
        self.parameter = parameter
        self.value = value
        message = f"{command}: invalid value {value!r} for '{parameter}'"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
