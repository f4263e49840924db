"""
pync250: Lake States tree volume and biomass equations for Python

Estimates tree height, gross cubic- and board-foot volume and above-ground
biomass from FIA species code, diameter, site index and stand basal area with
the species group equations of Hahn (1984), USDA Forest Service Research
Paper NC-250.

Quick Start:
    >>> from pync250 import estimate_height, estimate_volume, estimate_biomass
    >>> ht = estimate_height(318, dbh=12, site_index=65, top_dob=4, stand_basal_area=88)
    >>> estimate_volume(318, dbh=12, height=ht, vol_type='cubic-feet')
    >>> estimate_biomass(318, dbh=[12, 4], site_index=65, stand_basal_area=88)
"""

# =============================================================================
# Package Metadata
# =============================================================================
__version__ = "0.1.0"
__author__ = "pync250 Development Team"

# =============================================================================
# Estimation - Primary API
# =============================================================================
from .estimation import (
    TreeEstimator,
    VolumeType,
    get_estimator,
    estimate_height,
    estimate_volume,
    estimate_biomass,
    estimate_biomass_components,
    estimate_stump_volume,
    get_bark_correction_factor,
    estimate_bark_weight,
    estimate_bole_weight,
    estimate_top_weight,
)

# =============================================================================
# Species Groups
# =============================================================================
from .species_groups import (
    MatchKind,
    Resolution,
    SpeciesGroupResolver,
    assign_species_group,
)

# =============================================================================
# Equations
# =============================================================================
from .equations import (
    apply_height_eq,
    apply_volume_eq,
    apply_stump_volume_eq,
    apply_bark_correction_eq,
    apply_bark_weight_eq,
    apply_bole_weight_eq,
    apply_top_weight_eq,
    apply_small_tree_biomass_eq,
)

# =============================================================================
# Reference Data and Configuration
# =============================================================================
from .reference_data import ReferenceData, get_reference_data
from .config_loader import ConfigLoader, get_config_loader

# =============================================================================
# Tree Lists
# =============================================================================
from .tree_list import estimate_tree_list, summarize_by_species_group
from .tree_utils import calculate_tree_basal_area, calculate_stand_basal_area

# =============================================================================
# Exceptions
# =============================================================================
from .exceptions import (
    NC250Error,
    ConfigurationError,
    ReferenceDataError,
    MissingCoefficientError,
    ResolutionError,
    UnresolvedSpeciesError,
    ParameterError,
    InvalidParameterError,
    DataError,
    InvalidDataError,
)

# =============================================================================
# Public API Definition
# =============================================================================
__all__ = [
    # Package Metadata
    "__version__",
    "__author__",
    # Estimation
    "TreeEstimator",
    "VolumeType",
    "get_estimator",
    "estimate_height",
    "estimate_volume",
    "estimate_biomass",
    "estimate_biomass_components",
    "estimate_stump_volume",
    "get_bark_correction_factor",
    "estimate_bark_weight",
    "estimate_bole_weight",
    "estimate_top_weight",
    # Species Groups
    "MatchKind",
    "Resolution",
    "SpeciesGroupResolver",
    "assign_species_group",
    # Equations
    "apply_height_eq",
    "apply_volume_eq",
    "apply_stump_volume_eq",
    "apply_bark_correction_eq",
    "apply_bark_weight_eq",
    "apply_bole_weight_eq",
    "apply_top_weight_eq",
    "apply_small_tree_biomass_eq",
    # Reference Data and Configuration
    "ReferenceData",
    "get_reference_data",
    "ConfigLoader",
    "get_config_loader",
    # Tree Lists
    "estimate_tree_list",
    "summarize_by_species_group",
    "calculate_tree_basal_area",
    "calculate_stand_basal_area",
    # Exceptions
    "NC250Error",
    "ConfigurationError",
    "ReferenceDataError",
    "MissingCoefficientError",
    "ResolutionError",
    "UnresolvedSpeciesError",
    "ParameterError",
    "InvalidParameterError",
    "DataError",
    "InvalidDataError",
]
