"""
Scheduler configuration.

SchedulerConfig is the explicit, immutable configuration handed to the
scheduler, the converter and the queue selector. SchedulerSettings loads the
same values from RECALLCORE_* environment variables (or a .env file) for the
command-line tool. Nothing here is instantiated at import time.
"""

import math
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_DESIRED_RETENTION,
    DEFAULT_LEARNING_STEPS,
    DEFAULT_MAX_INTERVAL,
    DEFAULT_PARAMETERS,
    DEFAULT_RELEARNING_STEPS,
    DEFAULT_SESSION_LIMIT,
    PARAMETER_COUNT,
)


def _check_steps(steps: Tuple[timedelta, ...]) -> Tuple[timedelta, ...]:
    if not steps:
        raise ValueError("at least one step is required")
    for step in steps:
        if step <= timedelta(0):
            raise ValueError(f"steps must be positive durations, got {step}")
    return steps


class SchedulerConfig(BaseModel):
    """Configuration for the FSRS scheduler and its collaborators."""

    model_config = ConfigDict(frozen=True)

    parameters: Tuple[float, ...] = Field(default_factory=lambda: tuple(DEFAULT_PARAMETERS))
    desired_retention: float = Field(default=DEFAULT_DESIRED_RETENTION, gt=0, lt=1)
    learning_steps: Tuple[timedelta, ...] = Field(
        default_factory=lambda: tuple(DEFAULT_LEARNING_STEPS)
    )
    relearning_steps: Tuple[timedelta, ...] = Field(
        default_factory=lambda: tuple(DEFAULT_RELEARNING_STEPS)
    )
    max_interval: int = Field(default=DEFAULT_MAX_INTERVAL, ge=1)
    enable_fuzzing: bool = False
    # Records with review history but no due date are rejected instead of
    # being restarted as new cards.
    reject_inconsistent_records: bool = True
    session_limit: int = Field(default=DEFAULT_SESSION_LIMIT, ge=1)

    @field_validator("parameters")
    @classmethod
    def check_parameters(cls, v: Tuple[float, ...]) -> Tuple[float, ...]:
        if len(v) != PARAMETER_COUNT:
            raise ValueError(
                f"Expected {PARAMETER_COUNT} FSRS parameters, got {len(v)}."
            )
        if not all(math.isfinite(w) for w in v):
            raise ValueError("FSRS parameters must be finite numbers.")
        return v

    @field_validator("learning_steps", "relearning_steps")
    @classmethod
    def check_steps(cls, v: Tuple[timedelta, ...]) -> Tuple[timedelta, ...]:
        return _check_steps(v)


class SchedulerSettings(BaseSettings):
    """
    Scheduler settings loaded from environment variables or a .env file.

    Every field maps to RECALLCORE_<FIELD>, e.g. RECALLCORE_DESIRED_RETENTION=0.85.
    Sequence fields take JSON, e.g. RECALLCORE_LEARNING_STEPS='["PT1M", "PT10M"]'.
    """

    model_config = SettingsConfigDict(
        env_prefix="RECALLCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    parameters: Optional[Tuple[float, ...]] = None
    desired_retention: float = DEFAULT_DESIRED_RETENTION
    learning_steps: Tuple[timedelta, ...] = DEFAULT_LEARNING_STEPS
    relearning_steps: Tuple[timedelta, ...] = DEFAULT_RELEARNING_STEPS
    max_interval: int = DEFAULT_MAX_INTERVAL
    enable_fuzzing: bool = False
    reject_inconsistent_records: bool = True
    session_limit: int = DEFAULT_SESSION_LIMIT

    def to_config(self) -> SchedulerConfig:
        """Build a validated SchedulerConfig from these settings."""
        values: Dict[str, Any] = self.model_dump(exclude={"parameters"})
        if self.parameters is not None:
            values["parameters"] = self.parameters
        return SchedulerConfig(**values)
