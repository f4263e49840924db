"""
Custom exceptions for pync250.
Provides domain-specific error handling with informative messages.

Bad input (unknown species, invalid measurements) and bad reference data
(a species group without coefficients) raise distinct exception types so the
two can be told apart by callers.
"""
from typing import Iterable, Sequence


class NC250Error(Exception):
    """Base exception for all pync250 errors."""
    pass


class ConfigurationError(NC250Error):
    """Raised when there are configuration or reference data issues."""
    pass


class ReferenceDataError(ConfigurationError):
    """Raised when the reference tables are inconsistent with each other."""
    pass


class MissingCoefficientError(ConfigurationError):
    """Raised when a resolved species group has no usable coefficient row."""
    def __init__(self, table: str, species_groups: Iterable[str] = (), coefficient: str = ""):
        self.table = table
        self.species_groups = sorted(set(species_groups))
        self.coefficient = coefficient
        if coefficient:
            message = f"Missing coefficient '{coefficient}' in '{table}'"
        else:
            message = f"No coefficients in '{table}'"
        if self.species_groups:
            message += f" for species group(s): {self.species_groups}"
        super().__init__(message)


class ResolutionError(NC250Error):
    """Raised when species codes cannot be assigned to a species group."""
    pass


class UnresolvedSpeciesError(ResolutionError):
    """Raised when species codes have neither a group nor a major group."""
    def __init__(self, species_codes: Iterable[int]):
        self.species_codes = sorted(set(species_codes))
        super().__init__(
            f"Could not assign a species group to FIA species code(s) {self.species_codes}. "
            f"Codes must be listed in species_groups.yaml or ref_species.csv"
        )


class ParameterError(NC250Error):
    """Raised when parameters are invalid or out of bounds."""
    pass


class InvalidParameterError(ParameterError):
    """Raised when a parameter value is invalid."""
    def __init__(self, param_name: str, value: any, reason: str = ""):
        self.param_name = param_name
        self.value = value
        self.reason = reason
        message = f"Invalid value for parameter '{param_name}': {value}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class DataError(NC250Error):
    """Raised when there are data-related issues."""
    pass


class DataFileNotFoundError(DataError):
    """Raised when a required data file is not found."""
    def __init__(self, file_path: str, file_type: str = "file"):
        self.file_path = file_path
        self.file_type = file_type
        super().__init__(f"Required {file_type} not found: {file_path}")


class InvalidDataError(DataError):
    """Raised when data is malformed or invalid."""
    def __init__(self, data_description: str, reason: str):
        self.data_description = data_description
        self.reason = reason
        super().__init__(f"Invalid {data_description}: {reason}")


# Validation utilities
def validate_same_length(sizes: Sequence[int], param_names: Sequence[str]) -> int:
    """Validate that parallel sequences can be broadcast together.

    Scalars (size 1) broadcast against any length; every other size must agree.

    Args:
        sizes: Number of elements in each argument
        param_names: Parameter names, aligned with sizes

    Returns:
        The common length of the batch

    Raises:
        InvalidParameterError: If two non-scalar arguments differ in length
    """
    lengths = {name: size for name, size in zip(param_names, sizes) if size != 1}
    if len(set(lengths.values())) > 1:
        raise InvalidParameterError(
            ", ".join(lengths), lengths, "sequences must have the same length"
        )
    return next(iter(lengths.values()), 1)
