"""
Custom exceptions for transaction ingestion and querying.
"""
from typing import Any, Dict, Optional


class TransactionManagerException(Exception):
    """Base exception for all transaction manager errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize exception.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(TransactionManagerException, ValueError):
    """Raised when a request has a malformed or inconsistent shape."""
    pass


class InconsistentKindError(ValidationError):
    """Raised when start and end of a date range have different kinds."""
    pass


class InvalidKindError(ValidationError):
    """Raised when a date range has a kind the query does not accept."""
    pass


class InvalidDateRangeError(ValidationError):
    """Raised when date range bounds are missing, reversed or carry an offset."""
    pass


class IncompleteDateSpecError(ValidationError):
    """Raised when a day is given without a month."""
    pass


class ImpossibleDateError(ValidationError):
    """Raised when year/month/day do not form a real calendar date."""
    pass


class MissingTimezoneHeaderError(ValidationError):
    """Raised when the caller timezone header is absent."""
    pass


class InvalidTimezoneError(ValidationError):
    """Raised when a timezone is not a canonical IANA identifier."""
    pass


class ParsingError(TransactionManagerException):
    """Raised when CSV ingestion fails."""
    pass


class InvalidFormatError(ParsingError):
    """Raised when the uploaded file is empty or not a CSV."""
    pass


class SchemaMismatchError(ParsingError):
    """Raised when the CSV header does not match the mapper's columns."""
    pass


class RowReadError(ParsingError):
    """Raised when a CSV line cannot be read."""
    pass


class FormatError(ParsingError):
    """Raised when a CSV field value is malformed."""
    pass


class GeoResolutionError(TransactionManagerException):
    """Raised when coordinates cannot be resolved to a timezone."""
    pass


class DataNotFoundError(TransactionManagerException):
    """Raised when a query yields no transactions."""
    pass


class ExportError(TransactionManagerException):
    """Raised when Excel export fails."""
    pass


class ConfigurationError(TransactionManagerException):
    """Raised when configuration is invalid."""
    pass
