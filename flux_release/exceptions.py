"""Exceptions related to flux-release."""

__all__ = [
    "FluxReleaseException",
    "InputException",
]


class FluxReleaseException(Exception):
    """Generic base exception used for this library."""


class InputException(FluxReleaseException):
    """Raised when the input documents or values are not formatted as expected."""
