"""
Engine configuration.

Settings come from keyword overrides, then environment variables
(``SHORTEST_PATH_EPSILON``, ``SHORTEST_PATH_REDUCED_GRAPH``,
``SHORTEST_PATH_CACHE_SIZE``, ``SHORTEST_PATH_LOG_LEVEL``), then defaults.
An optional ``.env`` file is loaded first when a path is given.
"""

from __future__ import annotations

import os
from math import isfinite
from typing import Any, Literal, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .geometry import EPSILON

ENV_PREFIX = "SHORTEST_PATH_"


class NavigationSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    # Coincidence/collinearity tolerance, in coordinate units
    epsilon: float = Field(default=EPSILON, gt=0)
    # Keep only bend-candidate vertices and tangent pairs
    reduced_graph: bool = True
    # Obstacle-only graphs kept per Navigator/cache; 0 disables caching
    cache_size: int = Field(default=8, ge=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"

    @field_validator("epsilon")
    @classmethod
    def _finite_epsilon(cls, v: float) -> float:
        if not isfinite(v):
            raise ValueError("epsilon must be finite")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


def load_settings(
    env_file: Optional[Union[str, os.PathLike]] = None,
    **overrides: Any,
) -> NavigationSettings:
    """Build settings from overrides, the environment and defaults."""
    if env_file is not None:
        load_dotenv(env_file, override=False)

    values = {}
    for name in NavigationSettings.model_fields:
        raw = os.getenv(ENV_PREFIX + name.upper())
        if raw is not None and raw.strip() != "":
            values[name] = raw.strip()
    values.update(overrides)
    return NavigationSettings(**values)
