from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class JobRunnerError(Exception):
    code: str
    message: str
    data: dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(JobRunnerError):
    pass


class ConfigError(JobRunnerError):
    pass


class ArgumentsInvalid(ValidationError):
    pass


class JobValidationError(JobRunnerError):
    """
    Target refused before (or instead of) execution.

    Never retried: the allowlist and type metadata do not change mid-run.
    """


class TypeNotFound(JobValidationError):
    pass


class TypeNotPermitted(JobValidationError):
    pass


class MethodNotFound(JobValidationError):
    pass


class MethodNotPublic(JobValidationError):
    pass


class IntrospectionError(JobValidationError):
    pass
