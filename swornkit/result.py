from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying ``value``."""

    value: T


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed outcome carrying ``error``; recoverable failures are data, not raises."""

    error: E


Result = Union[Ok[T], Err[E]]


def ok_value(result: Any) -> Any:
    """Return the value of an ``Ok`` result, or ``None`` for anything else."""
    if isinstance(result, Ok):
        return result.value
    return None
