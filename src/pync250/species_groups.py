"""
Species group assignment for the RP NC-250 equations.

Every FIA species code is assigned to one of the publication's species
groups:

1. species listed in Appendix III take their listed group
2. other softwoods (FIA major group 1 or 2) go to "Other softwoods"
3. other hardwoods (FIA major group 3 or 4) go to "Other hardwoods"
4. anything else cannot be assigned and is an error

Usage:
    >>> from pync250.species_groups import assign_species_group
    >>> assign_species_group([318, 95, 97])
    array(['Hard maple', 'Black spruce', 'Other softwoods'], dtype=object)
"""
import math
import numbers
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

import numpy as np

from .exceptions import InvalidParameterError, UnresolvedSpeciesError
from .logging_config import get_logger
from .reference_data import (
    HARDWOOD_MAJOR_GROUPS,
    SOFTWOOD_MAJOR_GROUPS,
    ReferenceData,
    get_reference_data,
)

__all__ = [
    'MatchKind',
    'Resolution',
    'SpeciesGroupResolver',
    'assign_species_group',
    'normalize_species_code',
]

logger = get_logger(__name__)


class MatchKind(Enum):
    """How a species code was assigned to its species group."""

    DIRECT = "direct"
    """Species is listed under a group in the publication."""

    FALLBACK_SOFTWOOD = "fallback_softwood"
    """Unlisted softwood (FIA major group 1 or 2)."""

    FALLBACK_HARDWOOD = "fallback_hardwood"
    """Unlisted hardwood (FIA major group 3 or 4)."""

    UNRESOLVED = "unresolved"
    """Species is neither listed nor classified by major group."""


@dataclass(frozen=True)
class Resolution:
    """Species group assignment of a single species code."""
    species_code: int
    kind: MatchKind
    species_group: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.kind is not MatchKind.UNRESOLVED


def normalize_species_code(species_code: Union[int, float, str]) -> int:
    """Convert a species code to an integer FIA code.

    Accepts integers, integral floats (e.g. 318.0 from a float column) and
    numeric strings.

    Raises:
        InvalidParameterError: If the value is missing or not an integral number
    """
    if isinstance(species_code, str):
        stripped = species_code.strip()
        if not stripped.isdigit():
            raise InvalidParameterError('species_codes', species_code, "not a numeric FIA species code")
        return int(stripped)
    if isinstance(species_code, numbers.Integral):
        return int(species_code)
    if isinstance(species_code, numbers.Real):
        if math.isnan(species_code) or not float(species_code).is_integer():
            raise InvalidParameterError('species_codes', species_code, "not an integral FIA species code")
        return int(species_code)
    raise InvalidParameterError('species_codes', species_code, "not a numeric FIA species code")


class SpeciesGroupResolver:
    """Assigns FIA species codes to RP NC-250 species groups.

    Attributes:
        reference: Reference data providing the crosswalk and major groups
    """

    def __init__(self, reference: ReferenceData):
        self.reference = reference

    def classify(self, species_code: Union[int, float, str]) -> Resolution:
        """Classify a single species code without raising for unknown codes.

        Args:
            species_code: FIA species code

        Returns:
            Resolution describing the match
        """
        code = normalize_species_code(species_code)

        group = self.reference.group_by_species.get(code)
        if group is not None:
            return Resolution(code, MatchKind.DIRECT, group)

        major_group = self.reference.major_group(code)
        if major_group in SOFTWOOD_MAJOR_GROUPS:
            return Resolution(code, MatchKind.FALLBACK_SOFTWOOD, self.reference.fallback_softwood)
        if major_group in HARDWOOD_MAJOR_GROUPS:
            return Resolution(code, MatchKind.FALLBACK_HARDWOOD, self.reference.fallback_hardwood)
        return Resolution(code, MatchKind.UNRESOLVED)

    def resolve_one(self, species_code: Union[int, float, str]) -> str:
        """Get the species group of a single species code.

        Raises:
            UnresolvedSpeciesError: If the code cannot be assigned
        """
        resolution = self.classify(species_code)
        if not resolution.is_resolved:
            raise UnresolvedSpeciesError([resolution.species_code])
        return resolution.species_group

    def resolve(self, species_codes: Iterable[Union[int, float, str]]) -> np.ndarray:
        """Get the species group of every species code.

        Args:
            species_codes: FIA species codes (any iterable or a scalar)

        Returns:
            Object array of species group labels in input order

        Raises:
            InvalidParameterError: If the codes are nested more than one level
            UnresolvedSpeciesError: Listing every code that cannot be assigned
        """
        codes = np.asarray(species_codes, dtype=object)
        if codes.ndim > 1:
            raise InvalidParameterError(
                'species_codes', codes.shape, "must be a scalar or a one-dimensional sequence"
            )
        codes = np.atleast_1d(codes)

        # Classify each distinct code once; batches repeat species heavily
        resolutions = {}
        for code in codes:
            code = normalize_species_code(code)
            if code not in resolutions:
                resolutions[code] = self.classify(code)

        unresolved = [r.species_code for r in resolutions.values() if not r.is_resolved]
        if unresolved:
            raise UnresolvedSpeciesError(unresolved)

        kinds = Counter(r.kind for r in resolutions.values())
        if kinds[MatchKind.FALLBACK_SOFTWOOD] or kinds[MatchKind.FALLBACK_HARDWOOD]:
            logger.debug(
                "Assigned %d unlisted softwood and %d unlisted hardwood species by major group",
                kinds[MatchKind.FALLBACK_SOFTWOOD], kinds[MatchKind.FALLBACK_HARDWOOD]
            )

        groups = np.empty(len(codes), dtype=object)
        for i, code in enumerate(codes):
            groups[i] = resolutions[normalize_species_code(code)].species_group
        return groups


def assign_species_group(species_codes: Iterable[Union[int, float, str]],
                         reference: Optional[ReferenceData] = None) -> np.ndarray:
    """Assign FIA species codes to RP NC-250 species groups.

    Args:
        species_codes: FIA species codes
        reference: Reference data. Defaults to the packaged tables.

    Returns:
        Object array of species group labels in input order
    """
    if reference is None:
        reference = get_reference_data()
    return SpeciesGroupResolver(reference).resolve(species_codes)
