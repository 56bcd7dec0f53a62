"""Application configuration."""

from __future__ import annotations

import os
from typing import Mapping

from pydantic import BaseModel, Field

ENV_PREFIX = "EPSILON_PIPELINE_"


class AppConfig(BaseModel):
    """Runtime settings for the sequencer and the Dash UI.

    Values come from defaults, then ``PORT`` and ``EPSILON_PIPELINE_*``
    environment variables (e.g. ``EPSILON_PIPELINE_EPSILON=0.25``).  Invalid
    values raise :class:`pydantic.ValidationError` at startup.
    """

    epsilon: float = Field(0.4, gt=0.0, lt=1.0)
    warmup_iterations: int = Field(3, ge=0)
    tick_interval_ms: int = Field(2500, gt=0)
    default_locale: str = Field("en", pattern="^(en|es)$")
    locale_cache_days: int = Field(30, gt=0)
    region_lookup_url: str = "https://ipwho.is/"
    region_lookup_timeout: float = Field(3.0, gt=0.0)
    host: str = "0.0.0.0"
    port: int = Field(7860, gt=0, lt=65536)
    debug: bool = False
    log_level: str = "INFO"

    @property
    def tick_interval(self) -> float:
        """Tick interval in seconds."""
        return self.tick_interval_ms / 1000.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppConfig:
        env = os.environ if environ is None else environ
        raw: dict[str, str] = {}
        if "PORT" in env:
            raw["port"] = env["PORT"]
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in env:
                raw[name] = env[key]
        return cls(**raw)
