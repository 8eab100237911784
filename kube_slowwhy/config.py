"""Analysis configuration: output format, parallelism, rule filters."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from kube_slowwhy.errors import ConfigError
from kube_slowwhy.model import SEVERITY_LOW, SEVERITY_ORDER

OUTPUT_FORMATS = ("table", "json", "yaml")

ENV_FORMAT = "KUBE_SLOWWHY_FORMAT"
ENV_PARALLEL = "KUBE_SLOWWHY_PARALLEL"
ENV_MAX_WORKERS = "KUBE_SLOWWHY_MAX_WORKERS"
ENV_MIN_SEVERITY = "KUBE_SLOWWHY_MIN_SEVERITY"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AnalysisConfig:
    output_format: str = "table"
    parallel: bool = False
    max_workers: int | None = None
    enabled_categories: tuple[str, ...] | None = None
    disabled_categories: tuple[str, ...] | None = None
    min_severity: str = SEVERITY_LOW
    correlate: bool = True


def _check_format(value: str) -> str:
    if value not in OUTPUT_FORMATS:
        raise ConfigError(
            f"Unknown output format {value!r}; expected one of {', '.join(OUTPUT_FORMATS)}"
        )
    return value


def _check_severity(value: str) -> str:
    value = value.lower()
    if value not in SEVERITY_ORDER:
        raise ConfigError(
            f"Unknown severity {value!r}; expected one of {', '.join(SEVERITY_ORDER)}"
        )
    return value


def _parse_workers(value: str) -> int:
    try:
        workers = int(value)
    except ValueError as e:
        raise ConfigError(f"{ENV_MAX_WORKERS} must be an integer, got {value!r}") from e
    if workers < 1:
        raise ConfigError(f"{ENV_MAX_WORKERS} must be >= 1, got {workers}")
    return workers


def load_config(args: Any = None, environ: Mapping[str, str] | None = None) -> AnalysisConfig:
    """Build config from defaults, then environment, then CLI args.

    `args` is an argparse namespace; attributes left as None do not
    override lower layers.
    """
    environ = os.environ if environ is None else environ
    config = AnalysisConfig()

    if environ.get(ENV_FORMAT):
        config = replace(config, output_format=_check_format(environ[ENV_FORMAT]))
    if environ.get(ENV_PARALLEL):
        config = replace(
            config, parallel=environ[ENV_PARALLEL].strip().lower() in _TRUTHY
        )
    if environ.get(ENV_MAX_WORKERS):
        config = replace(config, max_workers=_parse_workers(environ[ENV_MAX_WORKERS]))
    if environ.get(ENV_MIN_SEVERITY):
        config = replace(
            config, min_severity=_check_severity(environ[ENV_MIN_SEVERITY])
        )

    if args is None:
        return config

    fmt = getattr(args, "format", None)
    if fmt is not None:
        config = replace(config, output_format=_check_format(fmt))
    if getattr(args, "parallel", False):
        config = replace(config, parallel=True)
    min_severity = getattr(args, "min_severity", None)
    if min_severity is not None:
        config = replace(config, min_severity=_check_severity(min_severity))
    if getattr(args, "raw", False):
        config = replace(config, correlate=False)

    enabled = getattr(args, "enable_categories", None)
    if enabled:
        config = replace(config, enabled_categories=tuple(enabled))
    disabled = getattr(args, "disable_categories", None)
    if disabled:
        config = replace(config, disabled_categories=tuple(disabled))

    return config
