"""Helpers for reading user configuration into typed dataclasses."""

from __future__ import annotations

import os
from importlib import import_module
from pathlib import Path
from typing import Any
from collections.abc import Iterable, Mapping

from compoconf import parse_config
from omegaconf import OmegaConf

from jobmonitor.workers import WorkerType

from . import schema


class ConfigLoaderError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


_REGISTRY_SENTINEL = {"loaded": False}

# Environment variables overriding single monitor settings, e.g. in a pod manifest.
ENV_OVERRIDES = {
    "MONITOR_NAMESPACE": "monitor.namespace",
    "MONITOR_REAPER_INTERVAL": "monitor.reaper_interval_seconds",
    "MONITOR_REAPER_MAX_AGE": "monitor.reaper_max_age_seconds",
    "MONITOR_LOST_JOBS_INTERVAL": "monitor.lost_jobs_interval_seconds",
    "MONITOR_LOST_JOBS_MIN_AGE": "monitor.lost_jobs_min_age_seconds",
    "MONITOR_RECENTLY_PROCESSED_INTERVAL": "monitor.recently_processed_interval_seconds",
    "MONITOR_WATCHING_ENABLED": "monitor.enable_watching",
    "MONITOR_REAPER_ENABLED": "monitor.enable_reaper",
    "MONITOR_LOST_JOBS_ENABLED": "monitor.enable_lost_jobs",
    "MONITOR_LONG_RUNNING_JOBS_INTERVAL": "monitor.long_running_jobs_interval_seconds",
    "MONITOR_LONG_RUNNING_JOBS_ENABLED": "monitor.enable_long_running_jobs",
    "MONITOR_STUCK_JOBS_INTERVAL": "monitor.stuck_jobs_interval_seconds",
    "MONITOR_STUCK_JOBS_MIN_AGE": "monitor.stuck_jobs_min_age_seconds",
    "MONITOR_STUCK_JOBS_ENABLED": "monitor.enable_stuck_jobs",
    **{
        f"MONITOR_TIMEOUT_{worker.name}": f"monitor.timeouts.{worker.value}_minutes"
        for worker in WorkerType
    },
}


def ensure_registrations() -> None:
    if _REGISTRY_SENTINEL["loaded"]:
        return

    for module in (
        "jobmonitor.cluster.fake_client",
        "jobmonitor.cluster.kubernetes_client",
        "jobmonitor.persistence.job_repository",
        "jobmonitor.persistence.run_repository",
        "jobmonitor.transport.sender",
    ):
        import_module(module)

    _REGISTRY_SENTINEL["loaded"] = True


def _env_dotlist(environ: Mapping[str, str]) -> list[str]:
    return [f"{key}={environ[var]}" for var, key in ENV_OVERRIDES.items() if var in environ]


def load_config_data(
    path: str | Path,
    overrides: Iterable[str] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Load YAML, then merge environment and command line overrides.

    Command line overrides (``key.sub=value``) take precedence over the
    ``MONITOR_*`` environment variables, which take precedence over the file.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigLoaderError(f"Configuration file not found: {path}")

    cfg = OmegaConf.load(path)
    if not isinstance(OmegaConf.to_container(cfg), Mapping):
        raise ConfigLoaderError(f"Configuration root must be a mapping: {path}")

    environ = os.environ if environ is None else environ
    layers = [cfg, OmegaConf.from_dotlist(_env_dotlist(environ))]
    overrides = list(overrides or [])
    if overrides:
        try:
            layers.append(OmegaConf.from_dotlist(overrides))
        except Exception as exc:
            raise ConfigLoaderError(f"Invalid override in {overrides}: {exc}") from exc
    merged = OmegaConf.merge(*layers)
    return OmegaConf.to_container(merged, resolve=True)  # type: ignore[return-value]


def parse_app_config(data: Mapping[str, Any]) -> schema.AppConfig:
    ensure_registrations()
    try:
        return parse_config(schema.AppConfig, dict(data))
    except Exception as exc:
        raise ConfigLoaderError(f"Unable to parse config: {exc}") from exc


def load_config(
    path: str | Path,
    overrides: Iterable[str] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> schema.AppConfig:
    """Load and validate a configuration file into ``AppConfig``."""

    data = load_config_data(path, overrides, environ=environ)
    try:
        return parse_app_config(data)
    except ConfigLoaderError as exc:
        raise ConfigLoaderError(f"{path}: {exc}") from exc


__all__ = [
    "ConfigLoaderError",
    "ENV_OVERRIDES",
    "ensure_registrations",
    "load_config",
    "load_config_data",
    "parse_app_config",
]
