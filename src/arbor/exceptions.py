"""Exceptions for the arbor tree core."""

from __future__ import annotations


class InvalidArgumentError(ValueError):
    """Malformed input passed to a tree operation.

    Raised by validation helpers (record checks, position parsing, import
    payload parsing). Public mutation operations catch it and report a
    soft failure instead of letting it escape.

    Attributes:
        argument: Name of the offending argument
        message: Human-readable error message
    """

    def __init__(self, argument: str, message: str) -> None:
        self.argument = argument
        self.message = message
        super().__init__(message)


class AllocationExhaustedError(RuntimeError):
    """Identity allocator could not produce an unused internal id.

    Raised when every candidate generated within the retry bound was
    already issued. This only happens with a broken entropy source.

    Attributes:
        attempts: Number of candidates tried
        message: Human-readable error message
    """

    def __init__(
        self,
        attempts: int,
        message: str | None = None,
    ) -> None:
        self.attempts = attempts
        self.message = message or self._default_message()
        super().__init__(self.message)

    def _default_message(self) -> str:
        return (
            f"Unable to generate a unique internal ID after {self.attempts} attempts. "
            f"The allocator's clock or random source may be returning constant values."
        )


class TreeConfigError(Exception):
    """Raised when tree configuration is invalid."""

    pass
