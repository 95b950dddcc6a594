"""Caller contract violations raised by the signal pipeline."""


class IllegalStateError(RuntimeError):
    """Operation attempted before the required configuration exists
    (e.g. a frame pushed before sampling parameters were set)."""


class SizeMismatchError(ValueError):
    """Input length disagrees with the configured dimension."""

    def __init__(self, what: str, actual: int, expected: int):
        super().__init__(f"Unexpected {what} size {actual}, expected {expected}")
        self.actual = actual
        self.expected = expected
