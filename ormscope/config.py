from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_PREFIX = "ORMSCOPE_"

DEFAULT_DATABASE_URL = "postgresql+psycopg2://localhost/test"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class BenchConfig(BaseModel):
    """Toggles for one benchmark run.

    ``compute_timing`` switches the run from "show me the SQL" mode to
    "give me meaningful timings" mode: SQL echo is turned off and the database
    is seeded with ``timing_posts`` extra posts (each with an image) so that the
    loading scenarios have real volume to chew through.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    database_url: str = DEFAULT_DATABASE_URL
    compute_timing: bool = False
    eager_loading: bool = False
    timing_posts: int = Field(default=1000, ge=0)
    count_queries: bool = True
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def echo_sql(self) -> bool:
        return not self.compute_timing

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> BenchConfig:
        """Build a config from ``ORMSCOPE_*`` variables, then apply ``overrides``.

        Values are handed to pydantic as strings, so booleans accept the usual
        spellings ("1", "true", "yes", "on", ...).
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None:
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
