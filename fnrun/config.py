from __future__ import annotations

import json
import os
import re

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigError
from .runtime import Function

# Names end up in image tags, so keep them docker-reference safe.
FUNCTION_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_.\-]{0,62}$")


class FunctionConfig(BaseModel):
    name: str = Field(..., description="Unique function name (lowercase, tag-safe)")
    build_dir: str = Field(..., description="Directory holding the function's Dockerfile and sources")

    @field_validator("name")
    @classmethod
    def _valid_name(cls, v: str) -> str:
        if not FUNCTION_NAME_RE.match(v):
            raise ValueError(
                "Invalid function name. Use lowercase letters/numbers and -_. , starting with a letter or digit (max 63 chars)."
            )
        return v

    @field_validator("build_dir")
    @classmethod
    def _non_empty_dir(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("build_dir must not be empty.")
        return v


class Config(BaseModel):
    config_file: str | None = None
    functions: list[FunctionConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> "Config":
        seen: set[str] = set()
        for f in self.functions:
            if f.name in seen:
                raise ValueError(f"Duplicate function name '{f.name}'.")
            seen.add(f.name)
        return self

    def to_functions(self) -> list[Function]:
        """Functions in configuration order, relative build dirs resolved against the config file."""
        base = os.path.dirname(os.path.abspath(self.config_file)) if self.config_file else os.getcwd()
        out: list[Function] = []
        for f in self.functions:
            build_dir = f.build_dir if os.path.isabs(f.build_dir) else os.path.normpath(os.path.join(base, f.build_dir))
            out.append(Function(name=f.name, build_dir=build_dir))
        return out


def read_config_file(path: str) -> Config:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object.")
    try:
        return Config(config_file=path, **{k: v for k, v in raw.items() if k != "config_file"})
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e
