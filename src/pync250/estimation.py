"""
Tree height, volume and biomass estimation with the RP NC-250 equations.

Each public function takes parallel sequences of tree attributes (scalars
broadcast against sequences) and returns a numpy array with one value per
tree, in input order. Species codes are resolved to species groups first; if
any code in the batch cannot be resolved the whole call fails and nothing is
returned.

Usage:
    >>> from pync250 import estimate_height, estimate_volume, estimate_biomass
    >>> ht = estimate_height([318, 95], dbh=[12, 8], site_index=65,
    ...                      top_dob=4, stand_basal_area=88)
    >>> estimate_volume([318, 95], dbh=[12, 8], height=ht, vol_type='cubic-feet')
    >>> estimate_biomass([318, 95], dbh=[12, 4], site_index=65, stand_basal_area=88)
"""
from enum import Enum
from typing import Dict, Optional, Union

import numpy as np

from .equations import (
    MERCH_DBH_LIMIT,
    apply_bark_correction_eq,
    apply_bark_weight_eq,
    apply_bole_weight_eq,
    apply_height_eq,
    apply_small_tree_biomass_eq,
    apply_stump_volume_eq,
    apply_top_weight_eq,
    apply_volume_eq,
)
from .exceptions import InvalidParameterError, validate_same_length
from .logging_config import get_logger, log_batch_summary
from .reference_data import ReferenceData, get_reference_data
from .species_groups import SpeciesGroupResolver

__all__ = [
    'VolumeType',
    'TreeEstimator',
    'get_estimator',
    'estimate_height',
    'estimate_volume',
    'estimate_biomass',
    'estimate_biomass_components',
    'estimate_stump_volume',
    'get_bark_correction_factor',
    'estimate_bark_weight',
    'estimate_bole_weight',
    'estimate_top_weight',
    'PULPWOOD_TOP_DOB',
    'SAWTIMBER_TOP_DOB',
]

PULPWOOD_TOP_DOB = 4.0  # inches; cubic volume and biomass merchantable top
SAWTIMBER_TOP_DOB = 9.0  # inches; board volume merchantable top


class VolumeType(str, Enum):
    """Volume unit, selecting the coefficient table of the volume equation."""

    CUBIC_FEET = "cubic-feet"
    """Gross cubic-foot volume to a 4-inch top (Table 2)."""

    BOARD_FEET = "board-feet"
    """Gross board-foot volume to a 9-inch top (Table 3)."""

    @property
    def table(self) -> str:
        return 'cubic_volume' if self is VolumeType.CUBIC_FEET else 'board_volume'

    @classmethod
    def from_string(cls, value: Union[str, 'VolumeType']) -> 'VolumeType':
        """Convert a string to a VolumeType.

        Accepts the enum values and the short forms 'cuft' and 'bdft'.

        Raises:
            InvalidParameterError: If the value is not a known volume type
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key in _VOLUME_TYPE_ALIASES:
                return _VOLUME_TYPE_ALIASES[key]
        raise InvalidParameterError(
            'vol_type', value, f"must be one of {sorted(_VOLUME_TYPE_ALIASES)}"
        )


_VOLUME_TYPE_ALIASES = {
    'cubic-feet': VolumeType.CUBIC_FEET,
    'cuft': VolumeType.CUBIC_FEET,
    'board-feet': VolumeType.BOARD_FEET,
    'bdft': VolumeType.BOARD_FEET,
}


def _offending(values: np.ndarray, limit: int = 5) -> list:
    return values[:limit].tolist()


def _require_positive(values: np.ndarray, param_name: str, mask: Optional[np.ndarray] = None) -> None:
    """Reject missing, zero or negative values (only where mask is True)."""
    checked = values if mask is None else values[mask]
    bad = checked[~(checked > 0)]
    if bad.size:
        raise InvalidParameterError(param_name, _offending(bad), "must be positive and not missing")


class TreeEstimator:
    """Applies the RP NC-250 equations to batches of trees.

    Attributes:
        reference: Reference data providing the crosswalk and coefficients
        resolver: Species group resolver built on the same reference data
    """

    def __init__(self, reference: Optional[ReferenceData] = None):
        """Initialize the estimator.

        Args:
            reference: Reference data. Defaults to the packaged tables.
        """
        self.reference = reference if reference is not None else get_reference_data()
        self.resolver = SpeciesGroupResolver(self.reference)
        self.logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Input handling
    # ------------------------------------------------------------------

    @staticmethod
    def _batch(species_codes=None, **measurements) -> Dict[str, np.ndarray]:
        """Broadcast scalar and one-dimensional inputs to a common length.

        Raises:
            InvalidParameterError: If an input has more than one dimension or
                sequence lengths disagree
        """
        arrays = {}
        if species_codes is not None:
            arrays['species_codes'] = np.asarray(species_codes, dtype=object)
        for name, values in measurements.items():
            arrays[name] = np.asarray(values, dtype=float)
        for name, a in arrays.items():
            if a.ndim > 1:
                raise InvalidParameterError(
                    name, a.shape, "must be a scalar or a one-dimensional sequence"
                )
        arrays = {name: np.atleast_1d(a) for name, a in arrays.items()}

        n = validate_same_length([a.size for a in arrays.values()], list(arrays))
        return {name: np.broadcast_to(a, (n,)) for name, a in arrays.items()}

    @staticmethod
    def _validate_top_dob(top_dob: np.ndarray, dbh: np.ndarray) -> None:
        bad = top_dob[~(top_dob >= 0)]
        if bad.size:
            raise InvalidParameterError('top_dob', _offending(bad), "must be zero or positive and not missing")
        too_large = top_dob > dbh
        if np.any(too_large):
            raise InvalidParameterError(
                'top_dob', _offending(top_dob[too_large]), "must not exceed dbh"
            )

    # ------------------------------------------------------------------
    # Equation chains on resolved species groups (no validation)
    # ------------------------------------------------------------------

    def _height(self, groups, dbh, site_index, top_dob, stand_basal_area) -> np.ndarray:
        coef = self.reference.join('height', groups)
        return apply_height_eq(
            dbh=dbh,
            site_index=site_index,
            top_dob=top_dob,
            stand_basal_area=stand_basal_area,
            b1=coef['b1'],
            b2=coef['b2'],
            b3=coef['b3'],
            b4=coef['b4'],
            b5=coef['b5'],
            b6=coef['b6'],
        )

    def _volume(self, groups, dbh, height, vol_type: VolumeType) -> np.ndarray:
        coef = self.reference.join(vol_type.table, groups)
        return apply_volume_eq(dbh=dbh, height=height, b0=coef['b0'], b1=coef['b1'])

    # ------------------------------------------------------------------
    # Public estimators
    # ------------------------------------------------------------------

    def assign_species_group(self, species_codes) -> np.ndarray:
        """Get the species group of each species code."""
        batch = self._batch(species_codes)
        return self.resolver.resolve(batch['species_codes'])

    def estimate_height(self, species_codes, dbh, site_index, top_dob, stand_basal_area) -> np.ndarray:
        """Estimate height to a top diameter.

        Args:
            species_codes: FIA species codes
            dbh: Diameter at breast height (inches)
            site_index: Site index, base age 50 (feet)
            top_dob: Top diameter outside bark to estimate height to (inches)
            stand_basal_area: Stand basal area (square feet per acre)

        Returns:
            Height from ground to top_dob (feet), one per tree

        Raises:
            InvalidParameterError: For invalid measurements or top_dob > dbh
            UnresolvedSpeciesError: If any species code cannot be assigned
        """
        batch = self._batch(species_codes, dbh=dbh, site_index=site_index,
                            top_dob=top_dob, stand_basal_area=stand_basal_area)
        _require_positive(batch['dbh'], 'dbh')
        _require_positive(batch['site_index'], 'site_index')
        _require_positive(batch['stand_basal_area'], 'stand_basal_area')
        self._validate_top_dob(batch['top_dob'], batch['dbh'])

        groups = self.resolver.resolve(batch['species_codes'])
        log_batch_summary(self.logger, 'estimate_height', groups.size)
        return self._height(groups, batch['dbh'], batch['site_index'],
                            batch['top_dob'], batch['stand_basal_area'])

    def estimate_volume(self, species_codes, dbh, height,
                        vol_type: Union[str, VolumeType] = VolumeType.CUBIC_FEET) -> np.ndarray:
        """Estimate gross merchantable volume.

        Trees below 5.0 inches dbh have no merchantable volume and get NaN.

        Args:
            species_codes: FIA species codes
            dbh: Diameter at breast height (inches)
            height: Height to the merchantable top (feet): to a 4-inch top for
                cubic feet, to a 9-inch top for board feet
            vol_type: 'cubic-feet' or 'board-feet'

        Returns:
            Gross volume per tree (NaN where dbh < 5)

        Raises:
            InvalidParameterError: For an unknown vol_type or invalid measurements
            UnresolvedSpeciesError: If any species code cannot be assigned
        """
        vol_type = VolumeType.from_string(vol_type)
        batch = self._batch(species_codes, dbh=dbh, height=height)
        dbh = batch['dbh']
        _require_positive(dbh, 'dbh')
        merchantable = dbh >= MERCH_DBH_LIMIT
        _require_positive(batch['height'], 'height', mask=merchantable)

        groups = self.resolver.resolve(batch['species_codes'])
        log_batch_summary(self.logger, f'estimate_volume ({vol_type.value})',
                          groups.size, int(np.count_nonzero(~merchantable)))

        volume = self._volume(groups, dbh, batch['height'], vol_type)
        return np.where(merchantable, volume, np.nan)

    def estimate_biomass_components(self, species_codes, dbh, site_index,
                                    stand_basal_area) -> Dict[str, np.ndarray]:
        """Estimate biomass and the intermediate quantities it is built from.

        For trees at or above 5.0 inches dbh the chain is: height to a 4-inch
        top, gross cubic volume, stump volume, bark correction factor, bark
        weight, bole weight, top weight; biomass is bole + top weight. Trees
        below 5.0 inches use the small-tree equation and the intermediate
        quantities are NaN. site_index and stand_basal_area are only required
        for the larger trees.

        Returns:
            Dictionary of arrays: height_ft, gross_vol_cuft, stump_vol_cuft,
            bark_correction_factor, bark_weight_lbs, bole_weight_tons,
            top_weight_tons, biomass_tons

        Raises:
            InvalidParameterError: For invalid measurements
            UnresolvedSpeciesError: If any species code cannot be assigned
        """
        batch = self._batch(species_codes, dbh=dbh, site_index=site_index,
                            stand_basal_area=stand_basal_area)
        dbh = batch['dbh']
        _require_positive(dbh, 'dbh')
        merchantable = dbh >= MERCH_DBH_LIMIT
        _require_positive(batch['site_index'], 'site_index', mask=merchantable)
        _require_positive(batch['stand_basal_area'], 'stand_basal_area', mask=merchantable)

        groups = self.resolver.resolve(batch['species_codes'])
        n_small = int(np.count_nonzero(~merchantable))
        log_batch_summary(self.logger, 'estimate_biomass', groups.size, n_small)

        names = ('height_ft', 'gross_vol_cuft', 'stump_vol_cuft', 'bark_correction_factor',
                 'bark_weight_lbs', 'bole_weight_tons', 'top_weight_tons')
        components = {name: np.full(groups.size, np.nan) for name in names}
        components['biomass_tons'] = apply_small_tree_biomass_eq(dbh).copy()

        if np.any(merchantable):
            m_groups = groups[merchantable]
            m_dbh = dbh[merchantable]
            bio = self.reference.join('biomass', m_groups)

            height = self._height(m_groups, m_dbh, batch['site_index'][merchantable],
                                  PULPWOOD_TOP_DOB, batch['stand_basal_area'][merchantable])
            gross = self._volume(m_groups, m_dbh, height, VolumeType.CUBIC_FEET)
            stump = apply_stump_volume_eq(m_dbh, bio['stump_coef'])
            factor = apply_bark_correction_eq(m_dbh, bio['bark_b0'], bio['bark_b1'])
            bark = apply_bark_weight_eq(gross, stump, factor)
            bole = apply_bole_weight_eq(gross, stump, bark, bio['biomass_lbs_per_ft3'])
            top = apply_top_weight_eq(bark, gross, bio['biomass_lbs_per_ft3'])

            for name, values in zip(names, (height, gross, stump, factor, bark, bole, top)):
                components[name][merchantable] = values
            components['biomass_tons'][merchantable] = bole + top

        return components

    def estimate_biomass(self, species_codes, dbh, site_index, stand_basal_area) -> np.ndarray:
        """Estimate above-ground tree biomass in tons.

        See estimate_biomass_components for the equation chain.

        Returns:
            Biomass (short tons) per tree
        """
        return self.estimate_biomass_components(
            species_codes, dbh, site_index, stand_basal_area
        )['biomass_tons']

    def estimate_stump_volume(self, species_codes, dbh) -> np.ndarray:
        """Estimate stump volume in cubic feet."""
        batch = self._batch(species_codes, dbh=dbh)
        _require_positive(batch['dbh'], 'dbh')
        groups = self.resolver.resolve(batch['species_codes'])
        bio = self.reference.join('biomass', groups)
        return apply_stump_volume_eq(batch['dbh'], bio['stump_coef'])

    def get_bark_correction_factor(self, species_codes, dbh) -> np.ndarray:
        """Get the bark correction factor of each tree."""
        batch = self._batch(species_codes, dbh=dbh)
        _require_positive(batch['dbh'], 'dbh')
        groups = self.resolver.resolve(batch['species_codes'])
        bio = self.reference.join('biomass', groups)
        return apply_bark_correction_eq(batch['dbh'], bio['bark_b0'], bio['bark_b1'])

    def estimate_bark_weight(self, gross_vol_cuft, stump_vol_cuft, bark_correction_factor) -> np.ndarray:
        """Estimate bark weight in pounds from volumes and the bark correction factor."""
        batch = self._batch(gross_vol_cuft=gross_vol_cuft, stump_vol_cuft=stump_vol_cuft,
                            bark_correction_factor=bark_correction_factor)
        return apply_bark_weight_eq(batch['gross_vol_cuft'], batch['stump_vol_cuft'],
                                    batch['bark_correction_factor'])

    def estimate_bole_weight(self, species_codes, gross_vol_cuft, stump_vol_cuft,
                             bark_weight_lbs) -> np.ndarray:
        """Estimate bole weight in tons."""
        batch = self._batch(species_codes, gross_vol_cuft=gross_vol_cuft,
                            stump_vol_cuft=stump_vol_cuft, bark_weight_lbs=bark_weight_lbs)
        groups = self.resolver.resolve(batch['species_codes'])
        bio = self.reference.join('biomass', groups)
        return apply_bole_weight_eq(batch['gross_vol_cuft'], batch['stump_vol_cuft'],
                                    batch['bark_weight_lbs'], bio['biomass_lbs_per_ft3'])

    def estimate_top_weight(self, species_codes, bark_weight_lbs, gross_vol_cuft) -> np.ndarray:
        """Estimate top and limb weight in tons."""
        batch = self._batch(species_codes, bark_weight_lbs=bark_weight_lbs,
                            gross_vol_cuft=gross_vol_cuft)
        groups = self.resolver.resolve(batch['species_codes'])
        bio = self.reference.join('biomass', groups)
        return apply_top_weight_eq(batch['bark_weight_lbs'], batch['gross_vol_cuft'],
                                   bio['biomass_lbs_per_ft3'])

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(reference={self.reference!r})"


# Estimator bound to the packaged reference data
_estimator: Optional[TreeEstimator] = None


def get_estimator() -> TreeEstimator:
    """Get the shared estimator for the packaged reference data.

    Rebuilt whenever the packaged reference data has been reloaded (see
    clear_reference_data_cache).
    """
    global _estimator
    reference = get_reference_data()
    if _estimator is None or _estimator.reference is not reference:
        _estimator = TreeEstimator(reference)
    return _estimator


def estimate_height(species_codes, dbh, site_index, top_dob, stand_basal_area) -> np.ndarray:
    """Estimate height to a top diameter. See TreeEstimator.estimate_height."""
    return get_estimator().estimate_height(species_codes, dbh, site_index, top_dob, stand_basal_area)


def estimate_volume(species_codes, dbh, height,
                    vol_type: Union[str, VolumeType] = VolumeType.CUBIC_FEET) -> np.ndarray:
    """Estimate gross volume. See TreeEstimator.estimate_volume."""
    return get_estimator().estimate_volume(species_codes, dbh, height, vol_type)


def estimate_biomass(species_codes, dbh, site_index, stand_basal_area) -> np.ndarray:
    """Estimate biomass in tons. See TreeEstimator.estimate_biomass."""
    return get_estimator().estimate_biomass(species_codes, dbh, site_index, stand_basal_area)


def estimate_biomass_components(species_codes, dbh, site_index, stand_basal_area) -> Dict[str, np.ndarray]:
    """Estimate biomass with intermediates. See TreeEstimator.estimate_biomass_components."""
    return get_estimator().estimate_biomass_components(species_codes, dbh, site_index, stand_basal_area)


def estimate_stump_volume(species_codes, dbh) -> np.ndarray:
    """Estimate stump volume in cubic feet."""
    return get_estimator().estimate_stump_volume(species_codes, dbh)


def get_bark_correction_factor(species_codes, dbh) -> np.ndarray:
    """Get the bark correction factor of each tree."""
    return get_estimator().get_bark_correction_factor(species_codes, dbh)


def estimate_bark_weight(gross_vol_cuft, stump_vol_cuft, bark_correction_factor) -> np.ndarray:
    """Estimate bark weight in pounds."""
    return get_estimator().estimate_bark_weight(gross_vol_cuft, stump_vol_cuft, bark_correction_factor)


def estimate_bole_weight(species_codes, gross_vol_cuft, stump_vol_cuft, bark_weight_lbs) -> np.ndarray:
    """Estimate bole weight in tons."""
    return get_estimator().estimate_bole_weight(species_codes, gross_vol_cuft, stump_vol_cuft,
                                                bark_weight_lbs)


def estimate_top_weight(species_codes, bark_weight_lbs, gross_vol_cuft) -> np.ndarray:
    """Estimate top and limb weight in tons."""
    return get_estimator().estimate_top_weight(species_codes, bark_weight_lbs, gross_vol_cuft)
