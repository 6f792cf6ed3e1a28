"""Structured error objects for AIR.

Every usage error is machine-readable: a kind, a message and a details
dict. ``UsageError`` is the exception that carries them out of a session.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    USAGE_ERROR = "usage_error"
    NAME_ERROR = "name_error"
    ASSIGN_ERROR = "assign_error"
    LABEL_ERROR = "label_error"
    TYPE_ERROR = "type_error"
    OPTION_ERROR = "option_error"
    SYNTAX_ERROR = "syntax_error"
    CONFIG_ERROR = "config_error"


@dataclass
class AirError:
    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.details:
            d["details"] = self.details
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __str__(self) -> str:
        return f"[{self.kind.value}]: {self.message}"


def usage_error(message: str, **details: Any) -> AirError:
    return AirError(kind=ErrorKind.USAGE_ERROR, message=message, details=details)


def name_error(name: str, reason: str = "undeclared") -> AirError:
    if reason == "redeclared":
        message = f"Name '{name}' is already declared"
    else:
        message = f"Undefined name '{name}'"
    return AirError(
        kind=ErrorKind.NAME_ERROR,
        message=message,
        details={"name": name, "reason": reason},
    )


def assign_error(variable: str) -> AirError:
    return AirError(
        kind=ErrorKind.ASSIGN_ERROR,
        message=f"Assignment to '{variable}', which is not a declared mutable variable",
        details={"variable": variable},
    )


def label_error(label: str) -> AirError:
    return AirError(
        kind=ErrorKind.LABEL_ERROR,
        message=f"Duplicate assertion label '{label}'",
        details={"label": label},
    )


def type_error(term: str, reason: str) -> AirError:
    return AirError(
        kind=ErrorKind.TYPE_ERROR,
        message=f"Ill-formed term {term}: {reason}",
        details={"term": term, "reason": reason},
    )


def option_error(option: str, value: Any, reason: str) -> AirError:
    return AirError(
        kind=ErrorKind.OPTION_ERROR,
        message=f"Could not set option '{option}' to {value!r}: {reason}",
        details={"option": option, "value": str(value)},
    )


def syntax_error(message: str, line: Optional[int] = None) -> AirError:
    details: dict[str, Any] = {}
    if line is not None:
        details["line"] = line
        message = f"line {line}: {message}"
    return AirError(kind=ErrorKind.SYNTAX_ERROR, message=message, details=details)


def config_error(key: str, value: Any, reason: str) -> AirError:
    return AirError(
        kind=ErrorKind.CONFIG_ERROR,
        message=f"Invalid configuration value for '{key}': {reason}",
        details={"key": key, "value": str(value)},
    )


class UsageError(Exception):
    """Exception wrapping one or more AirErrors.

    Raised for malformed command sequences. A session never recovers from
    one on its own; the operation that raised it has not been applied.
    """

    def __init__(self, errors: list[AirError] | AirError):
        if isinstance(errors, AirError):
            errors = [errors]
        self.errors = errors
        super().__init__(self._format())

    @property
    def kind(self) -> ErrorKind:
        return self.errors[0].kind

    def _format(self) -> str:
        return "\n".join(str(e) for e in self.errors)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps([e.to_dict() for e in self.errors], indent=indent)
