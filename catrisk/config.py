"""Configuration models for catastrophe risk simulations.

Configurations are plain YAML files validated with Pydantic. A file names the
model type and carries the matching parameter section, plus an optional
simulation window::

    model: beta
    beta:
      max_loss: 1000.0
      years: 2.0
      mean: 150.0
      std_dev: 220.0
      random_seed: 42
    window:
      start: 2025-01-01
      end: 2035-01-01
"""

from datetime import date
import logging
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator
import yaml

logger = logging.getLogger(__name__)


class SimulationWindowConfig(BaseModel):
    """Date window ``[start, end)`` of a simulation run."""

    start: date = Field(description="First date of the window")
    end: date = Field(description="End of the window (exclusive)")

    @model_validator(mode="after")
    def validate_order(self):
        """Ensure the window is not reversed.

        Returns:
            Validated window.

        Raises:
            ValueError: If start is after end.
        """
        if self.start > self.end:
            raise ValueError(f"Window start {self.start} must not be after end {self.end}")
        return self


class BetaRiskConfig(BaseModel):
    """Parameters of the Poisson arrival / Beta severity model.

    Attributes:
        max_loss: Severity scale; no single event exceeds it.
        years: Average number of years between events.
        mean: Mean annual aggregate loss.
        std_dev: Standard deviation of the annual aggregate loss.
        random_seed: Seed for reproducible simulations.
    """

    max_loss: float = Field(gt=0, description="Maximum loss of a single event")
    years: float = Field(gt=0, description="Average number of years between events")
    mean: float = Field(gt=0, description="Mean annual aggregate loss")
    std_dev: float = Field(gt=0, description="Standard deviation of annual aggregate loss")
    random_seed: Optional[int] = Field(
        default=None, ge=0, description="Random seed for reproducibility"
    )

    @model_validator(mode="after")
    def validate_mean_severity(self):
        """Check the implied mean severity stays below the maximum loss.

        Returns:
            Validated configuration.

        Raises:
            ValueError: If mean * years is not below max_loss.
        """
        if self.mean * self.years >= self.max_loss:
            raise ValueError(
                f"Mean severity {self.mean * self.years} implied by mean={self.mean} and "
                f"years={self.years} must be less than max_loss={self.max_loss}"
            )
        return self


class EventSetConfig(BaseModel):
    """Location and observation window of a historical event catalogue."""

    events_file: Path = Field(description="CSV file with one row per event")
    events_start: date = Field(description="First date of the observation window")
    events_end: date = Field(description="End of the observation window (exclusive)")
    date_column: str = Field(default="date", min_length=1)
    loss_column: str = Field(default="loss", min_length=1)

    @model_validator(mode="after")
    def validate_window(self):
        """Ensure the observation window is not reversed.

        Returns:
            Validated configuration.

        Raises:
            ValueError: If events_start is after events_end.
        """
        if self.events_start > self.events_end:
            raise ValueError(
                f"events_start {self.events_start} must not be after events_end {self.events_end}"
            )
        return self


class CatRiskConfig(BaseModel):
    """Complete catastrophe risk configuration."""

    model: Literal["beta", "event_set"] = Field(description="Catastrophe model type")
    beta: Optional[BetaRiskConfig] = None
    event_set: Optional[EventSetConfig] = None
    window: Optional[SimulationWindowConfig] = None

    @field_validator("model", mode="before")
    @classmethod
    def normalize_model(cls, v: Any) -> Any:
        """Accept model names regardless of case or surrounding whitespace.

        Args:
            v: Raw model name.

        Returns:
            Normalized model name.
        """
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @model_validator(mode="after")
    def validate_model_section(self):
        """Require the parameter section matching the model type.

        Returns:
            Validated configuration.

        Raises:
            ValueError: If the section for the selected model is missing.
        """
        if getattr(self, self.model) is None:
            raise ValueError(f"Model '{self.model}' requires a '{self.model}' section")
        return self


def load_config(
    path: Union[str, Path], overrides: Optional[Dict[str, Any]] = None
) -> CatRiskConfig:
    """Load and validate a catastrophe risk configuration file.

    Relative event file paths are resolved against the configuration file's
    directory.

    Args:
        path: YAML configuration file.
        overrides: Values to apply before validation. Supports dot-notation
            keys (``{"beta.random_seed": 7}``) and section-level dicts.

    Returns:
        Validated configuration.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the top level of the file is not a mapping.
        ValidationError: If the configuration is invalid.
    """
    config_file = Path(path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    with open(config_file, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Configuration file {config_file} must contain a mapping at the top level, "
            f"got {type(data).__name__}"
        )

    # Remove YAML anchors
    data = {k: v for k, v in data.items() if not k.startswith("_")}

    for key, value in (overrides or {}).items():
        if "." in key:
            parts = key.split(".")
            current = data
            for part in parts[:-1]:
                if current.get(part) is None:
                    current[part] = {}
                current = current[part]
            current[parts[-1]] = value
        else:
            data[key] = value

    config = CatRiskConfig(**data)

    if config.event_set is not None and not config.event_set.events_file.is_absolute():
        config.event_set.events_file = config_file.parent / config.event_set.events_file

    logger.debug(f"Loaded '{config.model}' configuration from {config_file}")
    return config
