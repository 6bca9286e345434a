"""
Stock Adjustment Configuration Schema.

Defines the structure and defaults for stock adjustment settings.  Values
are supplied by the host application, either directly, from a dict, or
from a YAML file.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Self

import yaml

from stock_engines.aggregator import RateBasis
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.adjustment.config")

VALID_RATE_BASES = {basis.value for basis in RateBasis}

# Optional top-level key when the settings share a file with other sections.
YAML_SECTION = "stock_adjustment"


@dataclass
class AdjustmentConfig:
    """
    Configuration schema for the stock adjustment module.

        config = AdjustmentConfig(
            reporting_currency_id="USD",
            strict_rates=True,
        )
    """

    # Reporting (required - no sensible default)
    reporting_currency_id: str = ""

    # Rates
    strict_rates: bool = False  # raise on a missing live rate instead of factor 1
    rate_basis: str = RateBasis.LIVE.value  # "live", "historical"

    # Presentation
    display_decimal_places: int = 2

    # Documents
    notes_max_length: int = 500
    reference_prefix: str = "SA"
    reference_padding: int = 6

    def __post_init__(self):
        if isinstance(self.rate_basis, RateBasis):
            self.rate_basis = self.rate_basis.value
        if self.rate_basis not in VALID_RATE_BASES:
            raise ValueError(
                f"rate_basis must be one of {sorted(VALID_RATE_BASES)}, "
                f"got '{self.rate_basis}'"
            )

        self.reporting_currency_id = (self.reporting_currency_id or "").strip().upper()

        if self.display_decimal_places < 0:
            raise ValueError("display_decimal_places cannot be negative")
        if self.notes_max_length <= 0:
            raise ValueError("notes_max_length must be positive")
        if not self.reference_prefix or not self.reference_prefix.strip():
            raise ValueError("reference_prefix is required")
        if self.reference_padding < 1:
            raise ValueError("reference_padding must be at least 1")

        logger.info(
            "adjustment_config_initialized",
            extra={
                "reporting_currency_id": self.reporting_currency_id or None,
                "strict_rates": self.strict_rates,
                "rate_basis": self.rate_basis,
                "display_decimal_places": self.display_decimal_places,
                "reference_prefix": self.reference_prefix,
            },
        )

    @property
    def basis(self) -> RateBasis:
        return RateBasis(self.rate_basis)

    def format_reference(self, sequence: int) -> str:
        """Render a sequence number as a reference, e.g. ``SA-000042``."""
        return f"{self.reference_prefix}-{sequence:0{self.reference_padding}d}"

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with default settings."""
        logger.info("adjustment_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from dictionary (e.g., loaded from database/file)."""
        logger.info(
            "adjustment_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown stock adjustment settings: {unknown}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Path | str) -> Self:
        """
        Load config from a YAML file.

        The settings may sit at the top level or under a
        ``stock_adjustment:`` key.

        Raises:
            FileNotFoundError: if the file does not exist.
            yaml.YAMLError: if the file contains invalid YAML.
            ValueError: on unknown keys or invalid values.
        """
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        if YAML_SECTION in data:
            data = data[YAML_SECTION] or {}
        logger.info("adjustment_config_loading_from_yaml", extra={"path": str(path)})
        return cls.from_dict(data)
