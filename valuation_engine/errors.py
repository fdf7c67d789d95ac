"""Engine exception types.

All engine errors derive from ``ValueError`` so callers that already
guard numeric conversions keep working.
"""

from __future__ import annotations


class ValuationError(ValueError):
    """Base class for engine errors."""


class MissingRequiredInputError(ValuationError):
    """A Required-nonzero fundamentals field is absent, zero, or NaN.

    Attributes:
        field: Name of the offending field.
        symbol: Symbol being normalized.
    """

    def __init__(self, field: str, symbol: str) -> None:
        self.field = field
        self.symbol = symbol
        super().__init__(
            f"{symbol}: required field '{field}' is missing, zero, or not a number"
        )


class InvalidSymbolError(ValuationError):
    """Symbol is not 2-6 alphabetic characters after normalization."""

    def __init__(self, symbol: object) -> None:
        self.symbol = symbol
        super().__init__(
            f"Invalid symbol {symbol!r}: expected 2-6 alphabetic characters"
        )


class InvalidParameterInvariant(ValuationError):
    """A model precondition on its parameters is violated.

    Attributes:
        model: Name of the model that rejected its inputs.
        invariant: Short machine-readable name of the violated invariant,
            e.g. ``"required_return > growth_rate"``.
    """

    def __init__(self, model: str, invariant: str, message: str) -> None:
        self.model = model
        self.invariant = invariant
        super().__init__(f"{model}: {message} (requires {invariant})")
