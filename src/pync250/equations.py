"""
Equations from Hahn (1984) RP NC-250.

All functions are element-wise over numpy arrays (scalars broadcast) and take
coefficients as arguments; looking coefficients up by species group is the
job of pync250.estimation.

Units: diameters in inches, heights in feet, volumes in cubic (or board)
feet, bark weight in pounds and bole/top/tree weights in short tons.
"""
import numpy as np

from .exceptions import MissingCoefficientError

__all__ = [
    'BREAST_HEIGHT',
    'MERCH_DBH_LIMIT',
    'apply_height_eq',
    'apply_volume_eq',
    'apply_stump_volume_eq',
    'apply_bark_correction_eq',
    'apply_bark_weight_eq',
    'apply_bole_weight_eq',
    'apply_top_weight_eq',
    'apply_small_tree_biomass_eq',
]

BREAST_HEIGHT = 4.5  # feet
MERCH_DBH_LIMIT = 5.0  # inches; volume equations apply at or above this dbh

LBS_PER_TON = 2000.0

# Bark weight: (1.1646 - bark factor) converts to bark volume, 37 lbs/ft^3 bark density
BARK_VOLUME_CONSTANT = 1.1646
BARK_DENSITY_LBS_PER_FT3 = 37.0

# Top and limbs as a proportion of merchantable stem weight
TOP_WEIGHT_RATIO = 0.4545

# Trees below 5.0 inches dbh
SMALL_TREE_B0 = 4.8900625
SMALL_TREE_B1 = 2.4323866
SMALL_TREE_DRY_RATIO = 0.8


def _check_coefficients(equation: str, **coefficients) -> None:
    """Raise if any coefficient is missing (None or NaN)."""
    for name, value in coefficients.items():
        if value is None or np.any(np.isnan(np.asarray(value, dtype=float))):
            raise MissingCoefficientError(equation, coefficient=name)


def apply_height_eq(dbh, site_index, top_dob, stand_basal_area,
                    b1, b2, b3, b4, b5, b6):
    """Height to a top diameter (equation 2).

    H = 4.5 + b1 * (1 - exp(-b2 * D))^b3 * S^b4 * T^b5 * B^b6
    T = 1.00001 - d / D

    top_dob greater than dbh makes T negative and the result NaN; callers
    are expected to reject such input.

    Args:
        dbh: Diameter at breast height (inches)
        site_index: Site index, base age 50 (feet)
        top_dob: Top diameter outside bark the height is estimated to (inches)
        stand_basal_area: Stand basal area (square feet per acre)
        b1, b2, b3, b4, b5, b6: Table 1 coefficients

    Returns:
        Height from ground to top_dob (feet)
    """
    _check_coefficients('height equation', b1=b1, b2=b2, b3=b3, b4=b4, b5=b5, b6=b6)
    dbh = np.asarray(dbh, dtype=float)
    t_term = 1.00001 - np.asarray(top_dob, dtype=float) / dbh

    return (BREAST_HEIGHT
            + b1 * (1 - np.exp(-b2 * dbh)) ** b3
            * np.asarray(site_index, dtype=float) ** b4
            * t_term ** b5
            * np.asarray(stand_basal_area, dtype=float) ** b6)


def apply_volume_eq(dbh, height, b0, b1):
    """Gross volume (equation 3), cubic or board feet depending on the coefficients.

    V = b0 + b1 * D^2 * H

    Args:
        dbh: Diameter at breast height (inches)
        height: Height to the merchantable top (feet)
        b0, b1: Table 2 (cubic feet) or Table 3 (board feet) coefficients

    Returns:
        Gross volume
    """
    _check_coefficients('volume equation', b0=b0, b1=b1)
    dbh = np.asarray(dbh, dtype=float)
    return b0 + b1 * dbh ** 2 * np.asarray(height, dtype=float)


def apply_stump_volume_eq(dbh, stump_coef):
    """Stump volume in cubic feet: stump_coef * D^2."""
    _check_coefficients('stump volume equation', stump_coef=stump_coef)
    return stump_coef * np.asarray(dbh, dtype=float) ** 2


def apply_bark_correction_eq(dbh, bark_b0, bark_b1):
    """Bark correction factor: (bark_b0 + bark_b1 * D) / 100."""
    _check_coefficients('bark correction equation', bark_b0=bark_b0, bark_b1=bark_b1)
    return (bark_b0 + bark_b1 * np.asarray(dbh, dtype=float)) / 100


def apply_bark_weight_eq(gross_vol_cuft, stump_vol_cuft, bark_correction_factor):
    """Bark weight of the bole in pounds.

    bark = (gross + stump) * (1.1646 - factor) * 37
    """
    wood_volume = np.asarray(gross_vol_cuft, dtype=float) + np.asarray(stump_vol_cuft, dtype=float)
    return (wood_volume
            * (BARK_VOLUME_CONSTANT - np.asarray(bark_correction_factor, dtype=float))
            * BARK_DENSITY_LBS_PER_FT3)


def apply_bole_weight_eq(gross_vol_cuft, stump_vol_cuft, bark_weight_lbs, biomass_lbs_per_ft3):
    """Bole weight (stem from ground to 4-inch top, with bark) in tons.

    bole = (bark + (gross + stump) * density) / 2000
    """
    _check_coefficients('bole weight equation', biomass_lbs_per_ft3=biomass_lbs_per_ft3)
    wood_volume = np.asarray(gross_vol_cuft, dtype=float) + np.asarray(stump_vol_cuft, dtype=float)
    return (np.asarray(bark_weight_lbs, dtype=float) + wood_volume * biomass_lbs_per_ft3) / LBS_PER_TON


def apply_top_weight_eq(bark_weight_lbs, gross_vol_cuft, biomass_lbs_per_ft3):
    """Top and limb weight in tons.

    top = 0.4545 * (bark + gross * density) / 2000
    """
    _check_coefficients('top weight equation', biomass_lbs_per_ft3=biomass_lbs_per_ft3)
    return TOP_WEIGHT_RATIO * (
        np.asarray(bark_weight_lbs, dtype=float)
        + np.asarray(gross_vol_cuft, dtype=float) * biomass_lbs_per_ft3
    ) / LBS_PER_TON


def apply_small_tree_biomass_eq(dbh):
    """Whole-tree biomass in tons for trees below 5.0 inches dbh.

    Species independent: 4.8900625 * D^2.4323866 * 0.8 / 2000
    """
    dbh = np.asarray(dbh, dtype=float)
    return SMALL_TREE_B0 * dbh ** SMALL_TREE_B1 * SMALL_TREE_DRY_RATIO / LBS_PER_TON
