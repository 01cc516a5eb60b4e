"""
Custom exceptions for the mpracount pipeline.

Fatal conditions (bad configuration, malformed inputs, failed units) are raised
with these types. Recoverable filtering events such as merge drops or barcodes
missing from the association are never raised; they are tallied in the stats
objects each stage returns.
"""


class MPRACountError(Exception):
    """Base exception for mpracount pipeline errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(MPRACountError):
    """Raised when configuration or the set of run inputs is invalid."""
    pass


class InputFormatError(MPRACountError):
    """Raised when a manifest row or a read stream is malformed."""
    pass


class AssociationError(InputFormatError):
    """Raised when a design, association or label file cannot be parsed."""
    pass


class ProcessingError(MPRACountError):
    """Raised when data processing fails."""
    pass


class UnitFailedError(ProcessingError):
    """Raised when the count chain of a single dataset fails."""

    def __init__(self, dataset_id: str, message: str, details: dict = None):
        super().__init__(message, details)
        self.dataset_id = dataset_id
