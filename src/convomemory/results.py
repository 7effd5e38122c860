"""Explicit success/failure values for async memory operations.

The core raises ``ConvoMemoryError`` subclasses; callers that want to keep
going after a failure (fire-and-forget updates, batch reporting) capture the
outcome as a ``Result`` with ``attempt`` instead of writing try/except around
each await.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .errors import ConvoMemoryError, ErrorKind

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an operation: either a value or a ``ConvoMemoryError``.

    Attributes:
        value: The successful value (None on failure).
        error: The failure (None on success).
    """
    value: Optional[T] = None
    error: Optional[ConvoMemoryError] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ConvoMemoryError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        """Error kind of a failed result, None when successful."""
        return self.error.kind if self.error is not None else None

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        """Transform the value of a successful result."""
        if not self.ok:
            return Result(error=self.error)
        return Result(value=fn(self.value))

    def map_error(
        self, fn: Callable[[ConvoMemoryError], ConvoMemoryError]
    ) -> "Result[T]":
        """Transform the error of a failed result."""
        if self.ok:
            return self
        return Result(error=fn(self.error))

    def unwrap(self) -> T:
        """Return the value, or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.value

    def __repr__(self) -> str:
        if self.ok:
            return f"Result(ok, value={self.value!r})"
        return f"Result(failed, kind={self.kind.value}, error='{self.error}')"


async def attempt(awaitable: Awaitable[T]) -> Result[T]:
    """Await and capture the outcome as a ``Result``.

    Only ``ConvoMemoryError`` is captured. Anything else is a bug and
    propagates.
    """
    try:
        return Result.success(await awaitable)
    except ConvoMemoryError as e:
        return Result.failure(e)


async def run_after(awaitable: Awaitable[T], cleanup: Callable[[], None]) -> T:
    """Await, then run ``cleanup`` whatever the outcome was."""
    try:
        return await awaitable
    finally:
        cleanup()
