"""Exceptions raised at the input boundaries of the chart pipeline.

The numeric functions themselves never raise: insufficient data yields
``None`` or an empty result. These are only raised when a caller asks for
something that cannot exist, such as a histogram over an unknown field.
"""


class AnalyticsError(Exception):
    """Base exception for the analytics package."""


class UnknownFieldError(AnalyticsError):
    """Requested field does not exist on the record type."""

    def __init__(self, field: str, allowed: tuple[str, ...]):
        self.field = field
        self.allowed = allowed
        super().__init__(f"Unknown field {field!r}; expected one of {', '.join(allowed)}")
