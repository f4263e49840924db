"""
Tree list helpers for pync250.

Applies the RP NC-250 estimators to a pandas DataFrame of trees (for example
an FIA TREE table extract) and summarizes the results per acre by species
group.
"""
from typing import Optional

import numpy as np
import pandas as pd

from .estimation import SAWTIMBER_TOP_DOB, TreeEstimator, VolumeType, get_estimator
from .exceptions import InvalidDataError
from .tree_utils import calculate_tree_basal_area

__all__ = [
    'ESTIMATE_COLUMNS',
    'estimate_tree_list',
    'summarize_by_species_group',
]

ESTIMATE_COLUMNS = (
    'species_group',
    'ht_4in_ft',
    'ht_9in_ft',
    'vol_cuft',
    'vol_bdft',
    'biomass_tons',
)


def _column_or_value(trees: pd.DataFrame, column: str, value, description: str) -> np.ndarray:
    if value is not None:
        return np.broadcast_to(np.asarray(value, dtype=float), (len(trees),))
    if column not in trees.columns:
        raise InvalidDataError(
            "tree list", f"no '{column}' column and no {description} value was given"
        )
    return trees[column].to_numpy(dtype=float)


def estimate_tree_list(trees: pd.DataFrame,
                       site_index: Optional[float] = None,
                       stand_basal_area: Optional[float] = None,
                       species_col: str = 'spcd',
                       dbh_col: str = 'dbh',
                       estimator: Optional[TreeEstimator] = None) -> pd.DataFrame:
    """Add height, volume and biomass estimates to a tree list.

    Heights and cubic volume are reported for trees of at least 5.0 inches
    dbh; board-foot height and volume for trees of at least 9.0 inches.
    Biomass is reported for every tree.

    Args:
        trees: One row per tree with species code and dbh columns
        site_index: Site index for all trees. Defaults to the 'site_index' column.
        stand_basal_area: Stand basal area for all trees. Defaults to the
            'stand_basal_area' column.
        species_col: Name of the FIA species code column
        dbh_col: Name of the dbh column (inches)
        estimator: Estimator to use. Defaults to the packaged reference data.

    Returns:
        Copy of trees with the ESTIMATE_COLUMNS added

    Raises:
        InvalidDataError: If required columns are missing
    """
    for column in (species_col, dbh_col):
        if column not in trees.columns:
            raise InvalidDataError("tree list", f"missing '{column}' column")

    if estimator is None:
        estimator = get_estimator()

    species_codes = trees[species_col].to_numpy(dtype=object)
    dbh = trees[dbh_col].to_numpy(dtype=float)
    si = _column_or_value(trees, 'site_index', site_index, 'site index')
    ba = _column_or_value(trees, 'stand_basal_area', stand_basal_area, 'stand basal area')

    result = trees.copy()
    if len(trees) == 0:
        for column in ESTIMATE_COLUMNS:
            result[column] = pd.Series(dtype=object if column == 'species_group' else float)
        return result

    components = estimator.estimate_biomass_components(species_codes, dbh, si, ba)

    sawtimber = dbh >= SAWTIMBER_TOP_DOB
    ht_9in = np.full(len(trees), np.nan)
    vol_bdft = np.full(len(trees), np.nan)
    if np.any(sawtimber):
        ht_9in[sawtimber] = estimator.estimate_height(
            species_codes[sawtimber], dbh[sawtimber], si[sawtimber],
            SAWTIMBER_TOP_DOB, ba[sawtimber]
        )
        vol_bdft[sawtimber] = estimator.estimate_volume(
            species_codes[sawtimber], dbh[sawtimber], ht_9in[sawtimber], VolumeType.BOARD_FEET
        )

    result['species_group'] = estimator.assign_species_group(species_codes)
    result['ht_4in_ft'] = components['height_ft']
    result['ht_9in_ft'] = ht_9in
    result['vol_cuft'] = components['gross_vol_cuft']
    result['vol_bdft'] = vol_bdft
    result['biomass_tons'] = components['biomass_tons']
    return result


def summarize_by_species_group(estimates: pd.DataFrame,
                               tpa_col: str = 'tpa_unadj',
                               dbh_col: str = 'dbh') -> pd.DataFrame:
    """Summarize tree list estimates per acre by species group.

    Args:
        estimates: Output of estimate_tree_list
        tpa_col: Trees-per-acre expansion factor column
        dbh_col: Name of the dbh column (inches)

    Returns:
        DataFrame indexed by species group with trees_per_acre,
        basal_area_sqft, vol_cuft, vol_bdft and biomass_tons per acre
    """
    missing = [c for c in ('species_group', 'vol_cuft', 'vol_bdft', 'biomass_tons', tpa_col, dbh_col)
               if c not in estimates.columns]
    if missing:
        raise InvalidDataError("tree list estimates", f"missing column(s) {missing}")

    tpa = estimates[tpa_col].astype(float)
    per_acre = pd.DataFrame({
        'species_group': estimates['species_group'],
        'trees_per_acre': tpa,
        'basal_area_sqft': calculate_tree_basal_area(estimates[dbh_col].to_numpy(dtype=float)) * tpa,
        # Missing volumes (small trees) count as zero per acre
        'vol_cuft': estimates['vol_cuft'].fillna(0.0) * tpa,
        'vol_bdft': estimates['vol_bdft'].fillna(0.0) * tpa,
        'biomass_tons': estimates['biomass_tons'] * tpa,
    })
    return per_acre.groupby('species_group', sort=True).sum()
