"""Project-wide custom exceptions."""

from __future__ import annotations


class ManualError(Exception):
    """Base exception for the EHI manual tooling."""


class ConfigurationError(ManualError):
    """Raised when configuration loading or validation fails."""


class DatasetError(ManualError):
    """Raised for problems with the reference dataset snapshot."""


class DatasetLoadError(DatasetError):
    """Raised when the snapshot cannot be fetched or opened."""


class QueryError(DatasetError):
    """Raised when query orchestration fails outside of the query text itself."""


class BuildError(ManualError):
    """Raised when site generation cannot continue."""


class BakeIntegrityError(BuildError):
    """Raised when an extracted query block has no baked result."""
