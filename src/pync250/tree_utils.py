"""
Tree utility functions for pync250.

Basal area helpers used to derive the stand basal area input of the height
equation from a tree list.
"""
import math

import numpy as np

__all__ = [
    'BASAL_AREA_FACTOR',
    'calculate_tree_basal_area',
    'calculate_stand_basal_area',
]


# Basal area constant: pi / 576 (converts DBH in inches to BA in square feet)
# Formula: BA = pi * (DBH/24)^2 = pi * DBH^2 / 576
BASAL_AREA_FACTOR = math.pi / 576.0  # Approximately 0.005454


def calculate_tree_basal_area(dbh):
    """Calculate basal area of trees.

    Basal area is the cross-sectional area of a tree at breast height (4.5 feet).

    Args:
        dbh: Diameter at breast height in inches (scalar or array)

    Returns:
        Basal area in square feet
    """
    dbh = np.asarray(dbh, dtype=float)
    return BASAL_AREA_FACTOR * dbh * dbh


def calculate_stand_basal_area(dbh, trees_per_acre) -> float:
    """Calculate basal area per acre for a list of trees.

    Args:
        dbh: Diameter at breast height of each tree record (inches)
        trees_per_acre: Expansion factor of each tree record

    Returns:
        Basal area in square feet per acre
    """
    return float(np.sum(calculate_tree_basal_area(dbh) * np.asarray(trees_per_acre, dtype=float)))
