"""
Configuration management and loading.

Handles catalog settings, the compatibility matrix and environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml

from avatar_catalog.core.pricing import normalize_currency
from avatar_catalog.storage.db import DEFAULT_DB_PATH
from avatar_catalog.storage.models import CompatibilityFact

ENV_DB_PATH = "AVATAR_CATALOG_DB"
ENV_CONFIG_PATH = "AVATAR_CATALOG_CONFIG"

VALID_RATINGS = ("no", "partial", "mostly", "yes")

# Built-in facts used when no configuration file provides a matrix
_DEFAULT_FACTS = {
    "Feline3.0": {
        "HumanMale4.2": CompatibilityFact("partial", "yes", "partial", "Limb proportions differ significantly"),
        "HumanFemale4.2": CompatibilityFact("partial", "yes", "partial", "Limb proportions differ significantly"),
        "Fantasy2.0": CompatibilityFact("mostly", "yes", "mostly", "Good compatibility overall with minor adjustments"),
    },
    "HumanMale4.2": {
        "HumanFemale4.2": CompatibilityFact("yes", "yes", "yes", "Excellent compatibility with minimal adjustments"),
        "HumanSlim3.1": CompatibilityFact("mostly", "yes", "mostly", "Some scaling needed for best results"),
    },
}


def freeze_matrix(
    facts: Mapping[str, Mapping[str, CompatibilityFact]],
) -> Mapping[str, Mapping[str, CompatibilityFact]]:
    """Return a read-only copy of a compatibility matrix."""
    return MappingProxyType({
        source: MappingProxyType(dict(targets))
        for source, targets in facts.items()
    })


DEFAULT_MATRIX = freeze_matrix(_DEFAULT_FACTS)


@dataclass(frozen=True)
class ReportConfig:
    """Spend report settings."""
    top_categories: int = 5
    trailing_months: int = 12
    default_currency: str = "USD"

    def __post_init__(self):
        """Validate report windows are positive."""
        if self.top_categories <= 0:
            raise ValueError("top_categories must be > 0")
        if self.trailing_months <= 0:
            raise ValueError("trailing_months must be > 0")


@dataclass(frozen=True)
class CompatibilityConfig:
    """Compatibility resolution settings."""
    self_pair_compatible: bool = True
    matrix: Mapping[str, Mapping[str, CompatibilityFact]] = field(default_factory=lambda: DEFAULT_MATRIX)


@dataclass(frozen=True)
class CatalogConfig:
    """Complete catalog configuration."""
    db_path: str = DEFAULT_DB_PATH
    report: ReportConfig = field(default_factory=ReportConfig)
    compatibility: CompatibilityConfig = field(default_factory=CompatibilityConfig)


def default_config() -> CatalogConfig:
    """Configuration used when no file is given.

    The database path still honours AVATAR_CATALOG_DB.
    """
    return CatalogConfig(db_path=os.environ.get(ENV_DB_PATH, DEFAULT_DB_PATH))


def resolve_config(path: Optional[str] = None) -> CatalogConfig:
    """Load the configuration named by path or AVATAR_CATALOG_CONFIG.

    Falls back to default_config() when neither is set.
    """
    path = path or os.environ.get(ENV_CONFIG_PATH)
    if not path:
        return default_config()
    return load_catalog_config(path)


def load_catalog_config(path: str) -> CatalogConfig:
    """Load and validate catalog configuration from YAML file.

    Strict validation ensures a typo in the matrix is reported instead of
    silently turning a known pair into an unknown one.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated CatalogConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Catalog config file not found: {path}")

    # Load YAML content
    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    # Validate top-level structure
    allowed_top_keys = {'database', 'report', 'compatibility'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    db_path = os.environ.get(ENV_DB_PATH, DEFAULT_DB_PATH)
    if 'database' in raw_config:
        database_data = _section(raw_config, 'database', {'path'})
        if 'path' in database_data:
            if not isinstance(database_data['path'], str) or not database_data['path'].strip():
                raise ValueError("'database.path' must be a non-empty string")
            db_path = database_data['path']

    report = ReportConfig()
    if 'report' in raw_config:
        report = _parse_report_config(
            _section(raw_config, 'report', {'top_categories', 'trailing_months', 'default_currency'})
        )

    compatibility = CompatibilityConfig()
    if 'compatibility' in raw_config:
        compatibility = _parse_compatibility_config(
            _section(raw_config, 'compatibility', {'self_pair_compatible', 'matrix'})
        )

    return CatalogConfig(
        db_path=db_path,
        report=report,
        compatibility=compatibility,
    )


def _section(raw_config: Dict, name: str, allowed_keys: set) -> Dict:
    data = raw_config[name]
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")
    return data


def _parse_report_config(data: Dict) -> ReportConfig:
    values: Dict[str, Any] = {}
    for key in ('top_categories', 'trailing_months'):
        if key in data:
            value = data[key]
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"'report.{key}' must be a positive integer")
            values[key] = value

    if 'default_currency' in data:
        currency = data['default_currency']
        if not isinstance(currency, str) or not currency.strip():
            raise ValueError("'report.default_currency' must be a non-empty string")
        values['default_currency'] = normalize_currency(currency)

    return ReportConfig(**values)


def _parse_compatibility_config(data: Dict) -> CompatibilityConfig:
    self_pair = data.get('self_pair_compatible', True)
    if not isinstance(self_pair, bool):
        raise ValueError("'compatibility.self_pair_compatible' must be true or false")

    if 'matrix' not in data:
        return CompatibilityConfig(self_pair_compatible=self_pair)

    matrix_data = data['matrix'] or {}
    if not isinstance(matrix_data, dict):
        raise ValueError("'compatibility.matrix' must be a dictionary")

    facts: Dict[str, Dict[str, CompatibilityFact]] = {}
    for source, targets in matrix_data.items():
        if not isinstance(targets, dict):
            raise ValueError(f"'compatibility.matrix.{source}' must be a dictionary")
        facts[str(source)] = {
            str(target): _parse_fact(fact_data, f"compatibility.matrix.{source}.{target}")
            for target, fact_data in targets.items()
        }

    return CompatibilityConfig(
        self_pair_compatible=self_pair,
        matrix=freeze_matrix(facts),
    )


def _parse_fact(data: Any, path: str) -> CompatibilityFact:
    """Parse and validate a single compatibility fact.

    Args:
        data: Fact data
        path: Path for error messages

    Returns:
        Validated CompatibilityFact

    Raises:
        ValueError: If the fact is invalid
    """
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")

    # boneStructure is the web client spelling
    data = dict(data)
    if 'boneStructure' in data:
        data['bone_structure'] = data.pop('boneStructure')

    allowed_keys = {'bone_structure', 'materials', 'animations', 'notes'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    ratings = {}
    for key in ('bone_structure', 'materials', 'animations'):
        if key not in data:
            raise ValueError(f"Missing required '{key}' in {path}")
        ratings[key] = _parse_rating(data[key], f"{path}.{key}")

    notes = data.get('notes', "")
    if notes is None:
        notes = ""
    if not isinstance(notes, str):
        raise ValueError(f"'notes' in {path} must be a string")

    return CompatibilityFact(notes=notes, **ratings)


def _parse_rating(value: Any, path: str) -> str:
    # YAML 1.1 reads bare yes/no as booleans
    if value is True:
        return "yes"
    if value is False:
        return "no"
    if not isinstance(value, str) or value.lower() not in VALID_RATINGS:
        raise ValueError(f"'{path}' must be one of: {list(VALID_RATINGS)}")
    return value.lower()
