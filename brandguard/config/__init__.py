"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    DEFAULT_PROJECT_NAME,
    ComparisonConfig,
    FetchServiceConfig,
    GlobalConfig,
    ReferenceInput,
    RunConfig,
    TargetInput,
)

__all__ = [
    "ComparisonConfig",
    "ConfigLocator",
    "ConfigRepository",
    "DEFAULT_PROJECT_NAME",
    "FetchServiceConfig",
    "GlobalConfig",
    "ReferenceInput",
    "RunConfig",
    "TargetInput",
]
