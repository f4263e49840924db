"""
Reference data store for the RP NC-250 equations.

Holds, read-only:
- the species -> species group crosswalk from Appendix III of the publication
- the FIA species reference (major species group of every species code)
- the four coefficient tables, one row per species group:
    height (Table 1), cubic volume (Table 2), board volume (Table 3),
    stump/bark/biomass (Table 4)

Every species group produced by the crosswalk must have exactly one row in
every table and every table row must belong to a group of the crosswalk.
This is checked when the store is built, so a bad data file fails at load
time instead of during an estimation call.
"""
import math
from dataclasses import dataclass, fields
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Type

import numpy as np

from .config_loader import COEFFICIENT_FILES, ConfigLoader, get_config_loader
from .exceptions import InvalidDataError, MissingCoefficientError, ReferenceDataError
from .logging_config import get_logger

__all__ = [
    'SpeciesReference',
    'SpeciesGroupMember',
    'HeightCoefficients',
    'CubicVolumeCoefficients',
    'BoardVolumeCoefficients',
    'BiomassCoefficients',
    'ReferenceData',
    'filter_reference_table',
    'get_reference_data',
    'clear_reference_data_cache',
]

logger = get_logger(__name__)

# FIA MAJOR_SPGRPCD: 1 pines, 2 other softwoods, 3 soft hardwoods, 4 hard hardwoods
SOFTWOOD_MAJOR_GROUPS = frozenset({1, 2})
HARDWOOD_MAJOR_GROUPS = frozenset({3, 4})

# The publication splits oaks and hickories into "select" and "other" groups.
# Only the select groups are kept and they take the labels of the crosswalk.
GROUP_RELABELS = {
    'Select red oak': 'Red oak',
    'Select white oak': 'White oak',
    'Select hickory': 'Hickory',
}
DROPPED_GROUPS = frozenset({'Other red oak', 'Other hickory'})


@dataclass(frozen=True)
class SpeciesReference:
    """One FIA species (REF_SPECIES record)."""
    species_code: int
    scientific_name: str
    common_name: str
    major_group_code: int

    @property
    def is_softwood(self) -> bool:
        return self.major_group_code in SOFTWOOD_MAJOR_GROUPS

    @property
    def is_hardwood(self) -> bool:
        return self.major_group_code in HARDWOOD_MAJOR_GROUPS


@dataclass(frozen=True)
class SpeciesGroupMember:
    """A botanical species assigned to a species group by the publication."""
    species_group: str
    scientific_name: str
    common_name: str
    species_code: int


@dataclass(frozen=True)
class HeightCoefficients:
    """Table 1: height model coefficients and standard error (feet)."""
    b1: float
    b2: float
    b3: float
    b4: float
    b5: float
    b6: float
    std_err: float = math.nan


@dataclass(frozen=True)
class CubicVolumeCoefficients:
    """Table 2: gross cubic-foot volume model and cull percentages."""
    b0: float
    b1: float
    n: float = math.nan
    std_err: float = math.nan
    r2: float = math.nan
    growing_stock_cull_pct: float = math.nan
    rough_cull_pct: float = math.nan
    rotten_cull_pct: float = math.nan


@dataclass(frozen=True)
class BoardVolumeCoefficients:
    """Table 3: gross board-foot volume model and cull percentages."""
    b0: float
    b1: float
    n: float = math.nan
    std_err: float = math.nan
    r2: float = math.nan
    growing_stock_cull_pct: float = math.nan
    short_log_cull_pct: float = math.nan


@dataclass(frozen=True)
class BiomassCoefficients:
    """Table 4: stump volume, bark correction and wood density."""
    stump_coef: float
    bark_b0: float
    bark_b1: float
    biomass_lbs_per_ft3: float


COEFFICIENT_ROW_TYPES: Dict[str, Type] = {
    'height': HeightCoefficients,
    'cubic_volume': CubicVolumeCoefficients,
    'board_volume': BoardVolumeCoefficients,
    'biomass': BiomassCoefficients,
}

# Coefficients each equation consumes; these must never be missing
EQUATION_COEFFICIENTS: Dict[str, Tuple[str, ...]] = {
    'height': ('b1', 'b2', 'b3', 'b4', 'b5', 'b6'),
    'cubic_volume': ('b0', 'b1'),
    'board_volume': ('b0', 'b1'),
    'biomass': ('stump_coef', 'bark_b0', 'bark_b1', 'biomass_lbs_per_ft3'),
}


def filter_reference_table(rows: Mapping[str, Any]) -> Dict[str, Any]:
    """Align the species group labels of a raw publication table with the crosswalk.

    Drops "Other red oak" and "Other hickory" and renames the "Select ..."
    groups (e.g. "Select red oak" -> "Red oak").

    Args:
        rows: Mapping of species group label -> coefficient row

    Returns:
        New mapping with publication labels replaced

    Raises:
        InvalidDataError: If two rows end up with the same label
    """
    filtered = {}
    for label, row in rows.items():
        if label in DROPPED_GROUPS:
            continue
        label = GROUP_RELABELS.get(label, label)
        if label in filtered:
            raise InvalidDataError("coefficient table", f"duplicate species group '{label}'")
        filtered[label] = row
    return filtered


def _coerce_coefficient(value: Any) -> float:
    if value is None:
        return math.nan
    return float(value)


def build_coefficient_rows(table: str, rows: Mapping[str, Mapping[str, Any]]) -> Dict[str, Any]:
    """Convert raw table rows into typed coefficient rows.

    Null values load as NaN and are reported when the row is used.

    Args:
        table: Table name ('height', 'cubic_volume', 'board_volume', 'biomass')
        rows: Mapping of species group label -> dict of coefficient values

    Returns:
        Mapping of species group label -> coefficient dataclass

    Raises:
        InvalidDataError: If a row lacks an equation coefficient entirely
    """
    row_type = COEFFICIENT_ROW_TYPES[table]
    field_names = {f.name for f in fields(row_type)}
    built = {}
    for label, row in rows.items():
        missing = [name for name in EQUATION_COEFFICIENTS[table] if name not in row]
        if missing:
            raise InvalidDataError(
                f"{table} coefficient table", f"species group '{label}' has no {missing}"
            )
        values = {name: _coerce_coefficient(value)
                  for name, value in row.items() if name in field_names}
        built[label] = row_type(**values)
    return built


class ReferenceData:
    """Immutable store of the species crosswalk and coefficient tables.

    Attributes:
        fallback_softwood: Group assigned to unlisted softwood species
        fallback_hardwood: Group assigned to unlisted hardwood species
    """

    def __init__(self,
                 members: Sequence[SpeciesGroupMember],
                 species: Iterable[SpeciesReference],
                 tables: Mapping[str, Mapping[str, Any]],
                 fallback_softwood: str = 'Other softwoods',
                 fallback_hardwood: str = 'Other hardwoods',
                 check_coverage: bool = True,
                 provisional: Optional[Mapping[str, Iterable[str]]] = None):
        """Build the store.

        Args:
            members: Species group crosswalk records
            species: FIA species reference records
            tables: Table name -> (species group -> coefficient dataclass)
            fallback_softwood: Group for unlisted softwoods
            fallback_hardwood: Group for unlisted hardwoods
            check_coverage: Verify that groups and tables line up
            provisional: Table name -> verified species groups, for tables
                whose other rows are not the published coefficients

        Raises:
            InvalidDataError: If a species code is assigned to two groups
            ReferenceDataError: If the coverage check fails
        """
        group_by_species: Dict[int, str] = {}
        group_labels: Dict[str, None] = {}
        for member in members:
            existing = group_by_species.get(member.species_code)
            if existing is not None and existing != member.species_group:
                raise InvalidDataError(
                    "species group crosswalk",
                    f"species code {member.species_code} is listed under "
                    f"'{existing}' and '{member.species_group}'"
                )
            group_by_species[member.species_code] = member.species_group
            group_labels[member.species_group] = None

        self.fallback_softwood = fallback_softwood
        self.fallback_hardwood = fallback_hardwood
        group_labels.setdefault(fallback_softwood, None)
        group_labels.setdefault(fallback_hardwood, None)

        self._members = tuple(members)
        self._group_by_species = MappingProxyType(group_by_species)
        self._species = MappingProxyType({s.species_code: s for s in species})
        self._species_groups = tuple(group_labels)
        self._tables = MappingProxyType(
            {name: MappingProxyType(dict(rows)) for name, rows in tables.items()}
        )
        self._provisional = MappingProxyType(
            {name: frozenset(verified) for name, verified in (provisional or {}).items()}
        )

        if check_coverage:
            self.check_coverage()

    @property
    def members(self) -> Tuple[SpeciesGroupMember, ...]:
        return self._members

    @property
    def group_by_species(self) -> Mapping[int, str]:
        """Direct species code -> species group crosswalk."""
        return self._group_by_species

    @property
    def species(self) -> Mapping[int, SpeciesReference]:
        return self._species

    @property
    def species_groups(self) -> Tuple[str, ...]:
        """All species group labels the resolver can produce, in file order."""
        return self._species_groups

    @property
    def table_names(self) -> Tuple[str, ...]:
        return tuple(self._tables)

    @property
    def provisional_tables(self) -> Mapping[str, frozenset]:
        """Provisional table name -> species groups whose rows are verified."""
        return self._provisional

    def unverified_groups(self, table: str) -> Tuple[str, ...]:
        """Species groups of a provisional table whose rows are placeholders."""
        if table not in self._provisional:
            return ()
        verified = self._provisional[table]
        return tuple(g for g in self.table(table) if g not in verified)

    def table(self, name: str) -> Mapping[str, Any]:
        """Get a coefficient table by name.

        Raises:
            MissingCoefficientError: If the table was not loaded
        """
        if name not in self._tables:
            raise MissingCoefficientError(name)
        return self._tables[name]

    def major_group(self, species_code: int) -> Optional[int]:
        """Get the FIA major species group code, or None if the code is unknown."""
        record = self._species.get(species_code)
        return None if record is None else record.major_group_code

    def check_coverage(self) -> None:
        """Verify that every table has exactly the resolver's species groups.

        Raises:
            ReferenceDataError: If a table lacks groups or has extra groups
        """
        expected = set(self._species_groups)
        problems = []
        for name in COEFFICIENT_ROW_TYPES:
            if name not in self._tables:
                problems.append(f"table '{name}' is missing")
                continue
            present = set(self._tables[name])
            missing = sorted(expected - present)
            extra = sorted(present - expected)
            if missing:
                problems.append(f"table '{name}' has no rows for {missing}")
            if extra:
                problems.append(f"table '{name}' has rows for unknown groups {extra}")
        if problems:
            raise ReferenceDataError(
                "Species groups and coefficient tables do not line up: " + "; ".join(problems)
            )

    def coefficient_row(self, table: str, species_group: str) -> Any:
        """Get the coefficient row of one species group.

        Raises:
            MissingCoefficientError: If the group has no row in the table
        """
        rows = self.table(table)
        if species_group not in rows:
            raise MissingCoefficientError(table, [species_group])
        return rows[species_group]

    def join(self, table: str, species_groups: Sequence[str]) -> Dict[str, np.ndarray]:
        """Join equation coefficients onto a sequence of species groups.

        Args:
            table: Table name ('height', 'cubic_volume', 'board_volume', 'biomass')
            species_groups: One species group label per observation

        Returns:
            Coefficient name -> float array aligned with species_groups

        Raises:
            MissingCoefficientError: If a group has no row, or a needed coefficient is NaN
        """
        rows = self.table(table)
        unique_groups = list(dict.fromkeys(species_groups))
        absent = [group for group in unique_groups if group not in rows]
        if absent:
            raise MissingCoefficientError(table, absent)

        coefficients = {}
        for name in EQUATION_COEFFICIENTS[table]:
            lookup = {group: getattr(rows[group], name) for group in unique_groups}
            invalid = [group for group, value in lookup.items() if math.isnan(value)]
            if invalid:
                raise MissingCoefficientError(table, invalid, coefficient=name)
            coefficients[name] = np.array(
                [lookup[group] for group in species_groups], dtype=float
            )
        return coefficients

    @classmethod
    def from_loader(cls, loader: Optional[ConfigLoader] = None) -> 'ReferenceData':
        """Build the store from reference data files.

        Args:
            loader: ConfigLoader to read from. Defaults to the packaged data.

        Returns:
            Validated ReferenceData
        """
        if loader is None:
            loader = get_config_loader()

        crosswalk = loader.load_species_groups()
        members = [
            SpeciesGroupMember(
                species_group=group,
                scientific_name=entry['scientific_name'],
                common_name=entry.get('common_name', ''),
                species_code=int(entry['spcd']),
            )
            for group, entries in crosswalk['species_groups'].items()
            for entry in entries
        ]

        ref_species = loader.load_ref_species()
        species = [
            SpeciesReference(
                species_code=int(row.spcd),
                scientific_name=row.scientific_name,
                common_name=row.common_name,
                major_group_code=int(row.major_spgrpcd),
            )
            for row in ref_species.itertuples(index=False)
        ]

        tables = {}
        provisional = {}
        for name in COEFFICIENT_FILES:
            data = loader.load_coefficient_file(name)
            tables[name] = build_coefficient_rows(name, filter_reference_table(data['species_groups']))
            if data.get('provisional', False):
                provisional[name] = data.get('verified_groups', [])

        fallback = crosswalk['fallback_groups']
        reference = cls(
            members,
            species,
            tables,
            fallback_softwood=fallback.get('softwood', 'Other softwoods'),
            fallback_hardwood=fallback.get('hardwood', 'Other hardwoods'),
            provisional=provisional,
        )
        for name, verified in reference.provisional_tables.items():
            logger.warning(
                "Coefficient table '%s' in %s is provisional: only %s reproduce RP NC-250, "
                "%d other species groups carry placeholder values",
                name, loader.cfg_dir, sorted(verified) or 'no groups',
                len(reference.unverified_groups(name))
            )
        logger.info(
            "Loaded RP NC-250 reference data from %s: %d species groups, %d listed species, "
            "%d FIA species codes",
            loader.cfg_dir, len(reference.species_groups), len(reference.group_by_species),
            len(reference.species)
        )
        return reference

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(species_groups={len(self._species_groups)}, "
                f"species={len(self._species)})")


_reference_data: Optional[ReferenceData] = None


def get_reference_data() -> ReferenceData:
    """Get the reference data built from the packaged cfg/ files (loaded once)."""
    global _reference_data
    if _reference_data is None:
        _reference_data = ReferenceData.from_loader()
    return _reference_data


def clear_reference_data_cache() -> None:
    """Forget the packaged reference data so the cfg/ files are re-read on next use.

    Also empties the file cache of the shared ConfigLoader; the shared
    estimator picks up the reloaded data through get_estimator().
    """
    global _reference_data
    _reference_data = None
    get_config_loader().clear_coefficient_cache()
