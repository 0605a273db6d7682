"""Runtime settings loaded from the environment or a YAML file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

ENV_PREFIX = "SIGESALUD_"
DEFAULT_ROSTER_SEED = 20250108


class Settings(BaseModel):
    """Where the data lives and which backend answers queries."""

    data_root: Path = Field(
        default=Path("data"),
        description="Directory holding the static JSON collections",
    )
    hr_root: Path | None = Field(
        default=None,
        description="Directory holding the HR roster files, defaults to <data_root>/hr",
    )
    database_url: str = Field(default="sqlite:///sigesalud-demo.sqlite")
    backend: Literal["memory", "relational"] = Field(default="memory")
    log_level: str = Field(default="INFO")
    roster_seed: int = Field(default=DEFAULT_ROSTER_SEED)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept level names in any case."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def default_hr_root(self) -> Settings:
        """Place HR files under the data root unless told otherwise."""
        if self.hr_root is None:
            self.hr_root = self.data_root / "hr"
        return self

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Build settings from ``SIGESALUD_*`` variables."""
        env = os.environ if environ is None else environ
        data = {}
        for field in cls.model_fields:
            value = env.get(f"{ENV_PREFIX}{field.upper()}")
            if value:
                data[field] = value
        return cls.model_validate(data)

    @classmethod
    def from_yaml(cls, path: str) -> Settings:
        """Load settings from YAML file."""
        import yaml

        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.model_validate(data)

    def to_yaml(self, path: str) -> None:
        """Save settings to YAML file."""
        import yaml

        with open(path, "w") as f:
            yaml.safe_dump(
                self.model_dump(mode="json", exclude_none=True),
                f,
                default_flow_style=False,
                sort_keys=False,
            )
