from dataclasses import dataclass
from functools import wraps
from typing import Callable, Generic, Optional, TypeVar

from spotnere.domain.exceptions import ErrorKind, SpotnereError

T = TypeVar("T")


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a lifecycle operation: either a value or a Failure whose
    kind is one of the closed ErrorKind members.
    """

    value: Optional[T] = None
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "Result[T]":
        return cls(failure=Failure(kind=kind, message=message))

    def unwrap(self) -> T:
        if self.failure is not None:
            raise ValueError(
                f"Result holds a failure: {self.failure.kind.value}: {self.failure.message}"
            )
        return self.value


def returns_result(func: Callable[..., T]) -> Callable[..., Result[T]]:
    """Runs func and folds any SpotnereError it raises into a Result."""

    @wraps(func)
    def wrapper(*args, **kwargs) -> Result[T]:
        try:
            return Result.success(func(*args, **kwargs))
        except SpotnereError as exc:
            return Result.fail(exc.kind, str(exc))

    return wrapper
