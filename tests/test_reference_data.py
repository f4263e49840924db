"""
Tests for reference data loading and validation.
"""
import json
import logging
import math

import pytest
import yaml

from pync250 import config_loader, estimation, reference_data
from pync250.config_loader import (
    COEFFICIENT_FILES,
    ConfigLoader,
    get_config_loader,
    load_coefficient_file,
)
from pync250.exceptions import (
    ConfigurationError,
    DataFileNotFoundError,
    InvalidDataError,
    MissingCoefficientError,
    ReferenceDataError,
)
from pync250.reference_data import (
    BiomassCoefficients,
    HeightCoefficients,
    ReferenceData,
    build_coefficient_rows,
    clear_reference_data_cache,
    filter_reference_table,
    get_reference_data,
)


def _edit_json(path, edit):
    with open(path, encoding='utf-8') as f:
        data = json.load(f)
    edit(data)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f)


# =============================================================================
# Packaged Data
# =============================================================================

class TestPackagedData:
    """The shipped tables line up with the crosswalk."""

    def test_loads(self, reference):
        assert len(reference.species_groups) == 40
        assert set(reference.table_names) == set(COEFFICIENT_FILES)

    def test_every_group_has_every_table(self, reference):
        for name in reference.table_names:
            assert set(reference.table(name)) == set(reference.species_groups)

    def test_fallback_groups(self, reference):
        assert reference.fallback_softwood == "Other softwoods"
        assert reference.fallback_hardwood == "Other hardwoods"
        assert "Other softwoods" in reference.species_groups
        assert "Other hardwoods" in reference.species_groups

    def test_select_groups_relabelled(self, reference):
        for name in reference.table_names:
            rows = reference.table(name)
            assert "Red oak" in rows
            assert "White oak" in rows
            assert "Hickory" in rows
            assert "Select red oak" not in rows
            assert "Other red oak" not in rows
            assert "Other hickory" not in rows

    def test_hard_maple_rows(self, hard_maple_coefficients):
        assert isinstance(hard_maple_coefficients['height'], HeightCoefficients)
        assert isinstance(hard_maple_coefficients['biomass'], BiomassCoefficients)
        assert hard_maple_coefficients['biomass'].biomass_lbs_per_ft3 == 56

    def test_equation_coefficients_present(self, reference):
        for name in reference.table_names:
            coefficients = reference.join(name, list(reference.species_groups))
            for values in coefficients.values():
                assert not any(math.isnan(v) for v in values)

    def test_species_reference(self, reference):
        sugar_maple = reference.species[318]
        assert sugar_maple.scientific_name == "Acer saccharum"
        assert sugar_maple.is_hardwood
        assert reference.species[95].is_softwood
        assert reference.major_group(999) is None

    def test_cached(self):
        assert get_reference_data() is get_reference_data()

    def test_clear_cache(self):
        first = get_reference_data()
        clear_reference_data_cache()
        second = get_reference_data()
        assert second is not first
        assert second.species_groups == first.species_groups

    def test_clear_cache_rereads_files(self, cfg_copy, monkeypatch):
        monkeypatch.setattr(config_loader, '_config_loader', ConfigLoader(cfg_copy))
        monkeypatch.setattr(reference_data, '_reference_data', None)
        monkeypatch.setattr(estimation, '_estimator', None)
        before = estimation.estimate_height(318, 12.0, 65, 4, 88)[0]

        def edit(data):
            data['species_groups']['Hard maple']['b1'] *= 2
        _edit_json(cfg_copy / 'nc250_table1_height.json', edit)
        assert estimation.estimate_height(318, 12.0, 65, 4, 88)[0] == pytest.approx(before)

        clear_reference_data_cache()
        assert get_reference_data().coefficient_row('height', 'Hard maple').b1 == pytest.approx(2 * 9.5646)
        assert estimation.estimate_height(318, 12.0, 65, 4, 88)[0] == pytest.approx(4.5 + 2 * (before - 4.5))
        assert estimation.get_estimator().reference is get_reference_data()

    def test_tables_are_read_only(self, reference):
        with pytest.raises(TypeError):
            reference.table('height')['Hard maple'] = None


# =============================================================================
# Table Filtering
# =============================================================================

class TestFilterReferenceTable:
    """Tests for aligning publication labels with the crosswalk."""

    def test_relabel_and_drop(self):
        rows = {
            'Select red oak': 1,
            'Other red oak': 2,
            'Select white oak': 3,
            'Select hickory': 4,
            'Other hickory': 5,
            'Basswood': 6,
        }
        assert filter_reference_table(rows) == {
            'Red oak': 1, 'White oak': 3, 'Hickory': 4, 'Basswood': 6,
        }

    def test_duplicate_after_relabel(self):
        with pytest.raises(InvalidDataError):
            filter_reference_table({'Red oak': 1, 'Select red oak': 2})


class TestBuildCoefficientRows:
    """Tests for typed coefficient rows."""

    def test_null_becomes_nan(self):
        rows = build_coefficient_rows('cubic_volume', {'Elm': {'b0': 1.0, 'b1': 0.002, 'n': None}})
        assert math.isnan(rows['Elm'].n)
        assert rows['Elm'].b1 == 0.002

    def test_unknown_fields_ignored(self):
        rows = build_coefficient_rows(
            'biomass',
            {'Elm': {'stump_coef': 0.008, 'bark_b0': 90, 'bark_b1': 0.1,
                     'biomass_lbs_per_ft3': 50, 'comment': 'x'}},
        )
        assert rows['Elm'].bark_b0 == 90.0

    def test_missing_equation_coefficient(self):
        with pytest.raises(InvalidDataError):
            build_coefficient_rows('board_volume', {'Elm': {'b0': 1.0}})


# =============================================================================
# Coverage Checks
# =============================================================================

class TestCoverage:
    """Groups without table rows fail when the data is loaded."""

    def test_missing_row_fails_check(self, rebuild):
        with pytest.raises(ReferenceDataError) as exc_info:
            rebuild('height', 'Tamarack')
        assert 'Tamarack' in str(exc_info.value)

    def test_extra_row_fails_check(self, reference):
        tables = {name: dict(reference.table(name)) for name in reference.table_names}
        tables['cubic_volume']['Ironwood'] = tables['cubic_volume']['Elm']
        with pytest.raises(ReferenceDataError):
            ReferenceData(reference.members, reference.species.values(), tables)

    def test_missing_table_fails_check(self, reference):
        tables = {name: reference.table(name) for name in reference.table_names if name != 'biomass'}
        with pytest.raises(ReferenceDataError):
            ReferenceData(reference.members, reference.species.values(), tables)

    def test_unknown_table(self, reference):
        with pytest.raises(MissingCoefficientError):
            reference.table('weight')

    def test_coefficient_row_missing_group(self, reference):
        with pytest.raises(MissingCoefficientError):
            reference.coefficient_row('height', 'Redwood')

    def test_species_in_two_groups(self, reference):
        member = reference.members[0]
        other = [m for m in reference.members if m.species_group != member.species_group][0]
        duplicate = type(member)(other.species_group, member.scientific_name,
                                 member.common_name, member.species_code)
        with pytest.raises(InvalidDataError):
            ReferenceData(list(reference.members) + [duplicate], reference.species.values(),
                          {name: reference.table(name) for name in reference.table_names})


# =============================================================================
# Loading from Files
# =============================================================================

class TestConfigLoader:
    """Tests for reading modified copies of the reference files."""

    def test_load_copy(self, cfg_copy):
        reference = ReferenceData.from_loader(ConfigLoader(cfg_copy))
        assert len(reference.species_groups) == 40

    def test_missing_directory(self, tmp_path):
        with pytest.raises(DataFileNotFoundError):
            ConfigLoader(tmp_path / 'nowhere')

    def test_missing_file(self, cfg_copy):
        (cfg_copy / 'nc250_table3_board_volume.json').unlink()
        with pytest.raises(DataFileNotFoundError):
            ReferenceData.from_loader(ConfigLoader(cfg_copy))

    def test_unknown_table(self):
        with pytest.raises(ConfigurationError):
            get_config_loader().load_coefficient_file('weight')

    def test_packaged_table(self):
        data = load_coefficient_file('height')
        assert 'Select red oak' in data['species_groups']
        assert 'source' in data

    def test_empty_yaml(self, cfg_copy):
        (cfg_copy / 'species_groups.yaml').write_text("# nothing here\n", encoding='utf-8')
        with pytest.raises(InvalidDataError):
            ConfigLoader(cfg_copy).load_species_groups()

    def test_malformed_yaml(self, cfg_copy):
        (cfg_copy / 'species_groups.yaml').write_text("species_groups: [\n", encoding='utf-8')
        with pytest.raises(InvalidDataError):
            ConfigLoader(cfg_copy).load_species_groups()

    def test_yaml_without_fallback(self, cfg_copy):
        path = cfg_copy / 'species_groups.yaml'
        data = yaml.safe_load(path.read_text(encoding='utf-8'))
        del data['fallback_groups']
        path.write_text(yaml.safe_dump(data), encoding='utf-8')
        with pytest.raises(InvalidDataError):
            ConfigLoader(cfg_copy).load_species_groups()

    def test_malformed_json(self, cfg_copy):
        (cfg_copy / 'nc250_table1_height.json').write_text("{", encoding='utf-8')
        with pytest.raises(InvalidDataError):
            ConfigLoader(cfg_copy).load_coefficient_file('height')

    def test_json_without_rows(self, cfg_copy):
        _edit_json(cfg_copy / 'nc250_table4_biomass.json', lambda d: d.pop('species_groups'))
        with pytest.raises(InvalidDataError):
            ConfigLoader(cfg_copy).load_coefficient_file('biomass')

    def test_dropped_row_fails_at_load(self, cfg_copy):
        _edit_json(cfg_copy / 'nc250_table2_cubic_volume.json',
                   lambda d: d['species_groups'].pop('Basswood'))
        with pytest.raises(ReferenceDataError):
            ReferenceData.from_loader(ConfigLoader(cfg_copy))

    def test_null_coefficient_loads_then_fails_on_use(self, cfg_copy):
        def edit(data):
            data['species_groups']['Hard maple']['b4'] = None
        _edit_json(cfg_copy / 'nc250_table1_height.json', edit)

        reference = ReferenceData.from_loader(ConfigLoader(cfg_copy))
        assert math.isnan(reference.coefficient_row('height', 'Hard maple').b4)
        with pytest.raises(MissingCoefficientError):
            reference.join('height', ['Hard maple'])

    def test_ref_species_missing_column(self, cfg_copy):
        path = cfg_copy / 'ref_species.csv'
        lines = path.read_text(encoding='utf-8').splitlines()
        path.write_text("\n".join(line.rsplit(',', 1)[0] for line in lines) + "\n", encoding='utf-8')
        with pytest.raises(InvalidDataError):
            ConfigLoader(cfg_copy).load_ref_species()

    def test_ref_species_duplicate_code(self, cfg_copy):
        path = cfg_copy / 'ref_species.csv'
        text = path.read_text(encoding='utf-8')
        path.write_text(text + "318,sugar maple,Acer,saccharum,4\n", encoding='utf-8')
        with pytest.raises(InvalidDataError):
            ConfigLoader(cfg_copy).load_ref_species()

    def test_ref_species_upper_case_columns(self, cfg_copy):
        path = cfg_copy / 'ref_species.csv'
        header, body = path.read_text(encoding='utf-8').split("\n", 1)
        path.write_text(header.upper() + "\n" + body, encoding='utf-8')
        ref_species = ConfigLoader(cfg_copy).load_ref_species()
        sassafras = ref_species.set_index('spcd').loc[931]
        assert sassafras.scientific_name == "Sassafras albidum"
        assert sassafras.major_spgrpcd == 4

    def test_file_cache(self, cfg_copy):
        loader = ConfigLoader(cfg_copy)
        first = loader.load_coefficient_file('height')
        assert loader.load_coefficient_file('height') is first
        loader.clear_coefficient_cache()
        assert loader.load_coefficient_file('height') is not first

# =============================================================================
# Provisional Coefficient Tables
# =============================================================================

class TestProvisionalTables:
    """Tables flagged as provisional are reported when loaded."""

    def test_packaged_tables_flagged(self, reference):
        assert set(reference.provisional_tables) == set(COEFFICIENT_FILES)
        for name in reference.table_names:
            assert reference.provisional_tables[name] == {"Hard maple"}
            unverified = reference.unverified_groups(name)
            assert "Hard maple" not in unverified
            assert len(unverified) == len(reference.species_groups) - 1

    def test_load_warns(self, cfg_copy, caplog):
        with caplog.at_level(logging.WARNING, logger='pync250.reference_data'):
            ReferenceData.from_loader(ConfigLoader(cfg_copy))
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == len(COEFFICIENT_FILES)
        assert all('provisional' in r.getMessage() for r in warnings)
        assert any("'biomass'" in r.getMessage() for r in warnings)

    def test_published_tables_load_quietly(self, cfg_copy, caplog):
        for filename in COEFFICIENT_FILES.values():
            _edit_json(cfg_copy / filename, lambda d: d.pop('provisional'))
        with caplog.at_level(logging.WARNING, logger='pync250.reference_data'):
            reference = ReferenceData.from_loader(ConfigLoader(cfg_copy))
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
        assert not reference.provisional_tables
        assert reference.unverified_groups('height') == ()

    def test_flag_survives_rebuild(self, rebuild):
        changed = rebuild('height', 'Elm', b1=50.0)
        assert set(changed.provisional_tables) == set(COEFFICIENT_FILES)
