"""Result pattern for explicit error handling in the FSM engine.

Every engine operation that can fail returns a Result instead of raising:
- Ok: Success with a value
- Err: Failure with error message, error code, retryable flag and
  structured details

Two failure kinds are surfaced as dedicated Err subclasses so callers can
branch on them without parsing messages:
- StateNotFound: lookup of a state name that was never registered
- TransitionNotFound: no keyed transition or fallback resolved an event

Results compose through bind and map_result.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Hashable, Optional, TypeVar, cast

T = TypeVar("T")
U = TypeVar("U")


class FSMError(ValueError):
    """Raised by Err.unwrap(); carries the originating Err."""

    def __init__(self, err: "Err[Any]"):
        self.err = err
        super().__init__(err.error)

    @property
    def code(self) -> Optional[str]:
        return self.err.code


class Result(ABC, Generic[T]):
    """Outcome of an engine operation.

    Exactly one of:
    - Ok[T]: the operation succeeded and produced a T
    - Err: the operation failed; the machine was left consistent
    """

    @abstractmethod
    def is_ok(self) -> bool:
        """True on success."""
        pass

    @abstractmethod
    def is_err(self) -> bool:
        """True on failure."""
        pass

    @abstractmethod
    def unwrap(self) -> T:
        """Return the value from Ok, or raise FSMError.

        Raises:
            FSMError: If this is an Err result.
        """
        pass

    @abstractmethod
    def unwrap_or(self, default: T) -> T:
        """Return the value from Ok, or default otherwise."""
        pass

    @abstractmethod
    def to_json(self) -> str:
        """JSON form, for logs and the CLI."""
        pass

    def bind(self, func: Callable[[T], "Result[U]"]) -> "Result[U]":
        """Feed the Ok value to ``func`` and return its Result.

        An Err is returned unchanged and ``func`` is not called.
        """
        if self.is_ok():
            return func(self.unwrap())
        return cast(Any, self)  # type: ignore[return-value]


class Ok(Result[T]):
    """Successful outcome."""

    def __init__(self, value: T):
        self._value = value

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self._value

    def unwrap_or(self, default: T) -> T:
        return self._value

    def to_json(self) -> str:
        return json.dumps({"type": "ok", "value": self._value}, default=str)

    def __repr__(self) -> str:
        return f"Ok({self._value!r})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Ok):
            return False
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(("Ok", self._value))


class Err(Result[T]):
    """Failed outcome: message, machine-readable code and details."""

    def __init__(
        self,
        error: str,
        code: Optional[str] = None,
        retryable: bool = False,
        details: Optional[dict[str, Any]] = None,
    ):
        """Describe a failure.

        Args:
            error: Human-readable message.
            code: Machine-readable kind, e.g. ``"TRANSITION_NOT_FOUND"``.
            retryable: Whether firing again may succeed (default: False).
            details: Structured fields such as the state name or phase.
        """
        self.error = error
        self.code = code
        self.retryable = retryable
        self.details: dict[str, Any] = details or {}

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        raise FSMError(self)

    def unwrap_or(self, default: T) -> T:
        return default

    def to_json(self) -> str:
        return json.dumps(
            {
                "type": "err",
                "error": self.error,
                "code": self.code,
                "retryable": self.retryable,
                "details": self.details,
            },
            default=str,
        )

    def __repr__(self) -> str:
        if self.code:
            return f"{type(self).__name__}({self.error!r}, code={self.code!r})"
        return f"{type(self).__name__}({self.error!r})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Err):
            return False
        return (
            self.error == other.error
            and self.code == other.code
            and self.retryable == other.retryable
        )

    def __hash__(self) -> int:
        return hash(("Err", self.error, self.code, self.retryable))


class StateNotFound(Err[T]):
    """No state is registered under the requested name."""

    def __init__(self, name: str):
        super().__init__(
            f"State not found: {name}",
            code="STATE_NOT_FOUND",
            details={"name": name},
        )
        self.name = name


class TransitionNotFound(Err[T]):
    """No transition or fallback resolved the event from the given state."""

    def __init__(self, state_name: str, key: Hashable):
        super().__init__(
            f"Transition not found: no transition from state {state_name} for event {key!r}",
            code="TRANSITION_NOT_FOUND",
            details={"state": state_name, "key": key},
        )
        self.state_name = state_name
        self.key = key


def bind(result: Result[T], func: Callable[[T], Result[U]]) -> Result[U]:
    """Chain a function over a Result.

    Example:
        >>> bind(Ok(10), lambda x: Ok(x * 2)).unwrap()
        20
    """
    return result.bind(func)


def map_result(result: Result[T], func: Callable[[T], U]) -> Result[U]:
    """Transform the value inside an Ok result.

    Example:
        >>> map_result(Ok(10), lambda x: x * 2).unwrap()
        20
    """
    if result.is_ok():
        return Ok(func(result.unwrap()))
    return cast(Any, result)  # type: ignore[return-value]
