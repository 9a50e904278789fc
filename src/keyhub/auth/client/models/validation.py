"""Structural validation of untrusted JSON.

Validation produces a tagged result instead of raising, so services can keep
their happy path linear and map ``Invalid`` to their own error type at one
place.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from pydantic import TypeAdapter, ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T


@dataclass(frozen=True)
class Invalid:
    reason: str


ValidationResult = Union[Valid[T], Invalid]


def validate(adapter: TypeAdapter[T], payload: Any) -> ValidationResult[T]:
    """Validate ``payload`` against ``adapter``.

    Returns:
        Valid with the parsed value, or Invalid with a readable reason
    """
    try:
        return Valid(adapter.validate_python(payload))
    except ValidationError as e:
        return Invalid(reason=_summarize(e))


def _summarize(error: ValidationError) -> str:
    parts = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue["loc"]) or "<root>"
        parts.append(f"{location}: {issue['msg']}")
    return "; ".join(parts)
