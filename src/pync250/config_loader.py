"""
Configuration loader for pync250.
Provides unified access to the YAML, JSON and CSV reference data files.

Supports:
- YAML (.yaml, .yml) - species group membership
- JSON (.json) - coefficient tables from RP NC-250
- CSV (.csv) - FIA REF_SPECIES extract (read with pandas)

Files are loaded once and cached per loader instance.
"""
import json
from pathlib import Path
from typing import Dict, Any, Optional, Union

import pandas as pd
import yaml

from .exceptions import ConfigurationError, DataFileNotFoundError, InvalidDataError
from .logging_config import get_logger

logger = get_logger(__name__)

SPECIES_GROUPS_FILE = 'species_groups.yaml'
REF_SPECIES_FILE = 'ref_species.csv'

# Coefficient table name -> file in the cfg/ directory
COEFFICIENT_FILES = {
    'height': 'nc250_table1_height.json',
    'cubic_volume': 'nc250_table2_cubic_volume.json',
    'board_volume': 'nc250_table3_board_volume.json',
    'biomass': 'nc250_table4_biomass.json',
}

REF_SPECIES_COLUMNS = ('spcd', 'common_name', 'genus', 'species', 'major_spgrpcd')


class ConfigLoader:
    """Loads and caches reference data from the cfg/ directory.

    Attributes:
        cfg_dir: Path to the configuration directory
    """

    def __init__(self, cfg_dir: Optional[Union[str, Path]] = None):
        """Initialize the configuration loader.

        Args:
            cfg_dir: Path to the configuration directory. Defaults to the cfg/
                directory shipped inside the package.
        """
        if cfg_dir is None:
            cfg_dir = Path(__file__).parent / 'cfg'
        self.cfg_dir = Path(cfg_dir)
        if not self.cfg_dir.is_dir():
            raise DataFileNotFoundError(str(self.cfg_dir), "configuration directory")

        self._file_cache: Dict[str, Any] = {}

    def _load_config_file(self, file_path: Path) -> Any:
        """Load a YAML, JSON or CSV file.

        Args:
            file_path: Path to the file

        Returns:
            Parsed data (dict for YAML/JSON, DataFrame for CSV)

        Raises:
            DataFileNotFoundError: If the file doesn't exist
            ConfigurationError: If the format is not supported or parsing fails
        """
        if not file_path.exists():
            raise DataFileNotFoundError(str(file_path), "reference data file")

        suffix = file_path.suffix.lower()
        logger.debug("Loading reference data file %s", file_path)

        try:
            if suffix in ['.yaml', '.yml']:
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f)
                if data is None:
                    raise InvalidDataError("YAML file", "file is empty or contains only comments")
                return data
            elif suffix == '.json':
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if data is None:
                    raise InvalidDataError("JSON file", "file is empty or contains null")
                return data
            elif suffix == '.csv':
                return pd.read_csv(file_path)
            else:
                raise ConfigurationError(f"Unsupported reference data file format: {suffix}. "
                                         f"Supported formats: .yaml, .yml, .json, .csv")
        except yaml.YAMLError as e:
            raise InvalidDataError("YAML reference data", f"parsing error: {str(e)}") from e
        except json.JSONDecodeError as e:
            raise InvalidDataError("JSON reference data", f"parsing error: {str(e)}") from e
        except pd.errors.ParserError as e:
            raise InvalidDataError("CSV reference data", f"parsing error: {str(e)}") from e

    def _load_cached(self, filename: str) -> Any:
        if filename not in self._file_cache:
            self._file_cache[filename] = self._load_config_file(self.cfg_dir / filename)
        return self._file_cache[filename]

    def load_species_groups(self) -> Dict[str, Any]:
        """Load the species group membership file.

        Returns:
            Dictionary with 'species_groups' (group label -> member list) and
            'fallback_groups' (softwood/hardwood labels)

        Raises:
            InvalidDataError: If required keys are missing
        """
        data = self._load_cached(SPECIES_GROUPS_FILE)
        for key in ('species_groups', 'fallback_groups'):
            if key not in data:
                raise InvalidDataError(SPECIES_GROUPS_FILE, f"missing '{key}' section")
        return data

    def load_ref_species(self) -> pd.DataFrame:
        """Load the FIA species reference table.

        Adds a scientific_name column built from genus and species.

        Returns:
            DataFrame with one row per FIA species code

        Raises:
            InvalidDataError: If columns are missing or species codes repeat
        """
        # FIADB exports use upper case column names (SPCD, MAJOR_SPGRPCD, ...)
        ref_species = self._load_cached(REF_SPECIES_FILE).rename(columns=str.lower)
        missing = [col for col in REF_SPECIES_COLUMNS if col not in ref_species.columns]
        if missing:
            raise InvalidDataError(REF_SPECIES_FILE, f"missing column(s) {missing}")
        if ref_species['spcd'].duplicated().any():
            duplicated = ref_species.loc[ref_species['spcd'].duplicated(), 'spcd'].tolist()
            raise InvalidDataError(REF_SPECIES_FILE, f"duplicated species code(s) {duplicated}")

        ref_species = ref_species.copy()
        ref_species['scientific_name'] = ref_species['genus'] + ' ' + ref_species['species']
        return ref_species

    def load_coefficient_file(self, table: str) -> Dict[str, Any]:
        """Load a coefficient table with caching.

        Args:
            table: Table name ('height', 'cubic_volume', 'board_volume', 'biomass')

        Returns:
            Dictionary containing the coefficient file data

        Raises:
            ConfigurationError: If the table name is unknown
            InvalidDataError: If the file has no 'species_groups' section
        """
        if table not in COEFFICIENT_FILES:
            raise ConfigurationError(
                f"Unknown coefficient table '{table}'. "
                f"Available tables: {list(COEFFICIENT_FILES.keys())}"
            )
        filename = COEFFICIENT_FILES[table]
        data = self._load_cached(filename)
        if 'species_groups' not in data:
            raise InvalidDataError(filename, "missing 'species_groups' section")
        return data

    def clear_coefficient_cache(self) -> None:
        """Clear the file cache.

        Useful for testing or when data files may have changed.
        """
        self._file_cache.clear()


# Global configuration loader instance for the packaged cfg/ directory
_config_loader: Optional[ConfigLoader] = None


def get_config_loader() -> ConfigLoader:
    """Get the configuration loader for the packaged reference data.

    Returns:
        Shared ConfigLoader instance
    """
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


def load_coefficient_file(table: str) -> Dict[str, Any]:
    """Convenience function to load a packaged coefficient table.

    Args:
        table: Table name ('height', 'cubic_volume', 'board_volume', 'biomass')

    Returns:
        Dictionary containing the coefficient file data
    """
    return get_config_loader().load_coefficient_file(table)
