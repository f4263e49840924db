"""
Shared pytest fixtures for pync250 tests.

Provides the packaged reference data, estimators and the reference tree used
in the publication checks (sugar maple, 12 inches dbh).
"""
import dataclasses
import shutil
from pathlib import Path

import pytest

import pync250
from pync250.estimation import TreeEstimator
from pync250.reference_data import ReferenceData, get_reference_data


# =============================================================================
# Reference Data Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def reference():
    """Reference data built from the packaged cfg/ files."""
    return get_reference_data()


@pytest.fixture(scope="session")
def estimator(reference):
    """Estimator bound to the packaged reference data."""
    return TreeEstimator(reference)


@pytest.fixture
def cfg_copy(tmp_path):
    """Writable copy of the packaged cfg/ directory."""
    source = Path(pync250.__file__).parent / 'cfg'
    target = tmp_path / 'cfg'
    shutil.copytree(source, target)
    return target


def rebuild_reference(reference, table, group, check_coverage=True, **changes):
    """Build a new ReferenceData with one coefficient row changed.

    Passing no changes removes the row from the table.
    """
    tables = {name: dict(reference.table(name)) for name in reference.table_names}
    if changes:
        tables[table][group] = dataclasses.replace(tables[table][group], **changes)
    else:
        del tables[table][group]
    return ReferenceData(
        reference.members,
        reference.species.values(),
        tables,
        fallback_softwood=reference.fallback_softwood,
        fallback_hardwood=reference.fallback_hardwood,
        check_coverage=check_coverage,
        provisional=reference.provisional_tables,
    )


@pytest.fixture
def rebuild(reference):
    """Function building modified copies of the packaged reference data."""
    def _rebuild(table, group, check_coverage=True, **changes):
        return rebuild_reference(reference, table, group, check_coverage, **changes)
    return _rebuild


# =============================================================================
# Reference Tree - Sugar Maple (Hard maple group)
# =============================================================================

@pytest.fixture
def sugar_maple():
    """Sugar maple used in the publication checks.

    - FIA species code: 318 (Hard maple group)
    - DBH: 12.0 inches
    - Site index: 65 feet (base age 50)
    - Stand basal area: 88 sq ft/acre
    """
    return {
        'species_codes': 318,
        'dbh': 12.0,
        'site_index': 65.0,
        'stand_basal_area': 88.0,
    }


@pytest.fixture
def hard_maple_coefficients(reference):
    """Coefficient rows of the Hard maple group, by table name."""
    return {name: reference.coefficient_row(name, 'Hard maple') for name in reference.table_names}

