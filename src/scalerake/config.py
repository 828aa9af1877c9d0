"""Raking configuration: engine settings and census target proportions.

A configuration file looks like::

    tolerance: 1.0e-7
    max_iterations: 50
    rescale_targets: false
    missing: exclude
    item_range: [1, 5]
    margins:
      gender: {female: 0.51, male: 0.49}
      region: {north: 0.3, south: 0.7}

Margins are raked in file order.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from scalerake.errors import ConfigError
from scalerake.margins import MarginSpec, build_margin_spec
from scalerake.raking import RakingEngine
from scalerake.tables import CategoryTable


class RakingConfig(BaseModel):
    """Settings for one raking run."""

    tolerance: float = Field(default=1e-7, gt=0, description="Relative deviation tolerance")
    max_iterations: int = Field(default=50, ge=1, description="Maximum full passes")
    rescale_targets: bool = Field(default=False, description="Rescale mismatched margin totals")
    missing: Literal["exclude", "unit"] = "exclude"
    item_range: tuple[int, int] | None = Field(default=None, description="Inclusive item score bounds")
    margins: dict[str, dict[str | int, float]] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @field_validator("item_range")
    @classmethod
    def validate_item_range(cls, value: tuple[int, int] | None) -> tuple[int, int] | None:
        if value is not None and value[0] > value[1]:
            raise ValueError(f"item_range low {value[0]} exceeds high {value[1]}")
        return value

    @property
    def variables(self) -> list[str]:
        return list(self.margins)

    def margin_specs(self, total: float) -> list[MarginSpec]:
        """Target margins for a raking universe of ``total`` cases."""
        return [
            build_margin_spec(var, CategoryTable.from_proportions(props, total), total)
            for var, props in self.margins.items()
        ]

    def engine(self) -> RakingEngine:
        return RakingEngine(
            tolerance=self.tolerance,
            max_iterations=self.max_iterations,
            rescale_targets=self.rescale_targets,
            missing=self.missing,
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> RakingConfig:
        """Load configuration from YAML file."""
        path = Path(path)

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at top level")
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigError(f"{path}: invalid raking configuration\n{e}") from e


def load_config(path: str | Path) -> RakingConfig:
    return RakingConfig.from_yaml(path)
