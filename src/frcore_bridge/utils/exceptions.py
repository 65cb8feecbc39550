"""Custom exceptions for the FR-Core HL7 bridge."""

from typing import Optional


class FRCoreBridgeException(Exception):
    """Base exception for all bridge exceptions."""

    def __init__(self, message: str, code: Optional[str] = None):
        """Initialize exception.

        Args:
            message: Error message
            code: Optional error code
        """
        super().__init__(message)
        self.message = message
        self.code = code


class CatalogError(FRCoreBridgeException):
    """Raised when the FR-Core rule catalog cannot be loaded."""

    def __init__(self, message: str = "FR-Core rule catalog could not be loaded"):
        """Initialize CatalogError."""
        super().__init__(message, "CATALOG_ERROR")


class SegmentShapeError(FRCoreBridgeException):
    """Raised when an HL7 field cannot be destructured as a builder expects."""

    def __init__(self, message: str = "Unexpected HL7 field structure"):
        """Initialize SegmentShapeError."""
        super().__init__(message, "SEGMENT_SHAPE")


class ValidationInputError(FRCoreBridgeException):
    """Raised when the validator is handed something that is not a Bundle."""

    def __init__(self, message: str = "Resource is not a valid Bundle"):
        """Initialize ValidationInputError."""
        super().__init__(message, "INVALID_BUNDLE")


class ConversionFault(FRCoreBridgeException):
    """Failure of a family handler, carried back to the dispatcher.

    Never raised out of ``convert``; the dispatcher turns it into an
    OperationOutcome entry.
    """

    def __init__(self, message_type: str, reason: str):
        """Initialize ConversionFault.

        Args:
            message_type: Message type being converted (e.g. ``ADT^A01``)
            reason: Human readable failure reason
        """
        super().__init__(
            f"Conversion error for {message_type}: {reason}", "CONVERSION_FAULT"
        )
        self.message_type = message_type
        self.reason = reason
