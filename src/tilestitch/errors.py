"""Error types raised by the stitching core.

Every failure carries a structured `kind` plus a readable message that names
the operation which failed. All of them are recoverable: a caller in a
capture loop can log the error and skip the frame.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    INCOMPATIBLE_FORMAT = "IncompatibleFormat"
    INVALID_DIMENSIONS = "InvalidDimensions"
    UNSUPPORTED_FORMAT = "UnsupportedFormat"
    NO_MOSAIC_AVAILABLE = "NoMosaicAvailable"
    ALLOCATION_FAILED = "AllocationFailed"
    INTERNAL = "Internal"


class StitchError(Exception):
    """Base error; `kind` tells callers which failure case occurred."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, reason: str, operation: Optional[str] = None) -> None:
        self.reason = reason
        self.operation = operation
        if operation:
            self.message = f"{operation}(): {reason}"
        else:
            self.message = reason
        super().__init__(self.message)

    @classmethod
    def wrap(cls, exc: BaseException, operation: Optional[str] = None) -> "StitchError":
        """Wrap an unexpected fault so it surfaces as a per-frame error."""
        return cls(f"EXCEPTION: {type(exc).__name__}: {exc}", operation=operation)


class IncompatibleFormatError(StitchError, ValueError):
    kind = ErrorKind.INCOMPATIBLE_FORMAT


class InvalidDimensionsError(StitchError, ValueError):
    kind = ErrorKind.INVALID_DIMENSIONS


class UnsupportedFormatError(StitchError, ValueError):
    kind = ErrorKind.UNSUPPORTED_FORMAT


class NoMosaicAvailableError(StitchError, LookupError):
    kind = ErrorKind.NO_MOSAIC_AVAILABLE


class AllocationFailedError(StitchError, MemoryError):
    kind = ErrorKind.ALLOCATION_FAILED
