"""
Configuration schema for the garment ERP core.

Frozen dataclasses with validated defaults.  Values come from YAML through
``garment_config.loader``; ``from_dict`` rejects unknown keys and invalid
values with ``ConfigurationError`` rather than falling back silently.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Any, Self

from garment_kernel.domain.currency import CurrencyRegistry
from garment_kernel.domain.values import to_decimal
from garment_kernel.exceptions import ConfigurationError
from garment_kernel.logging_config import get_logger
from garment_engines.bom.types import WastePolicy

logger = get_logger("config.schema")

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _known_keys(cls: type, data: Mapping[str, Any], section: str) -> None:
    allowed = {f.name for f in fields(cls)}
    unknown = set(data) - allowed
    if unknown:
        raise ConfigurationError(
            f"unknown keys {sorted(unknown)}; expected a subset of {sorted(allowed)}",
            source=section,
        )


@dataclass(frozen=True)
class WastePolicySettings:
    """Bounds on BOM waste percentages."""

    max_waste_percentage: Decimal = Decimal("100")
    allow_above_max: bool = False

    def __post_init__(self) -> None:
        try:
            value = to_decimal(self.max_waste_percentage, "max_waste_percentage")
        except ValueError as e:
            raise ConfigurationError(str(e), source="waste_policy") from e
        if value < 0:
            raise ConfigurationError(
                "max_waste_percentage cannot be negative", source="waste_policy"
            )
        object.__setattr__(self, "max_waste_percentage", value)

    def to_policy(self) -> WastePolicy:
        return WastePolicy(
            max_waste_percentage=self.max_waste_percentage,
            allow_above_max=self.allow_above_max,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        _known_keys(cls, data, "waste_policy")
        return cls(**data)


@dataclass(frozen=True)
class IssueSettings:
    """Goods issue numbering and posting behavior."""

    number_prefix: str = "GI"
    number_width: int = 6
    validate_on_create: bool = True
    # None waits forever for a contended material lock
    lock_timeout_seconds: float | None = 30.0

    def __post_init__(self) -> None:
        if not self.number_prefix or not self.number_prefix.strip():
            raise ConfigurationError("number_prefix is required", source="issues")
        if not 1 <= self.number_width <= 12:
            raise ConfigurationError(
                f"number_width must be between 1 and 12, got {self.number_width}",
                source="issues",
            )
        if self.lock_timeout_seconds is not None and self.lock_timeout_seconds <= 0:
            raise ConfigurationError(
                "lock_timeout_seconds must be positive", source="issues"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        _known_keys(cls, data, "issues")
        return cls(**data)


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str = "sqlite+pysqlite:///:memory:"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigurationError("url is required", source="database")
        if self.pool_size <= 0 or self.max_overflow < 0:
            raise ConfigurationError(
                "pool_size must be positive and max_overflow non-negative",
                source="database",
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        _known_keys(cls, data, "database")
        return cls(**data)


@dataclass(frozen=True)
class ErpConfig:
    """
    Top-level configuration.

    Override at instantiation, or load from YAML:

        config = ErpConfig.from_dict(load_yaml_file(path))
    """

    currency: str = "USD"
    log_level: str = "INFO"
    strict_bom_resolution: bool = True
    waste_policy: WastePolicySettings = field(default_factory=WastePolicySettings)
    issues: IssueSettings = field(default_factory=IssueSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)

    def __post_init__(self) -> None:
        currency = (self.currency or "").strip().upper()
        if not CurrencyRegistry.is_valid(currency):
            raise ConfigurationError(f"invalid currency '{self.currency}'", source="currency")
        object.__setattr__(self, "currency", currency)

        level = (self.log_level or "").upper()
        if level not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got '{self.log_level}'",
                source="log_level",
            )
        object.__setattr__(self, "log_level", level)

        logger.debug(
            "erp_config_initialized",
            extra={
                "currency": self.currency,
                "max_waste_percentage": str(self.waste_policy.max_waste_percentage),
                "allow_above_max": self.waste_policy.allow_above_max,
                "validate_on_create": self.issues.validate_on_create,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build from a parsed YAML mapping; nested sections are optional."""
        if not isinstance(data, Mapping):
            raise ConfigurationError("configuration root must be a mapping")
        _known_keys(cls, data, "config")
        values = dict(data)
        try:
            if "waste_policy" in values:
                values["waste_policy"] = WastePolicySettings.from_dict(values["waste_policy"] or {})
            if "issues" in values:
                values["issues"] = IssueSettings.from_dict(values["issues"] or {})
            if "database" in values:
                values["database"] = DatabaseSettings.from_dict(values["database"] or {})
            return cls(**values)
        except TypeError as e:
            raise ConfigurationError(str(e)) from e
