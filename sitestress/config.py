"""Application settings and load-test configuration.

``Settings`` carries process-level options from the environment. ``StressConfig``
holds the tunables of a test run with sensible defaults, environment overrides
(``STRESS_`` prefix) and YAML file loading.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings

from sitestress.domain.models import LoadShape, ProbeVariant
from sitestress.exceptions import ConfigError


class Settings(BaseSettings):
    app_name: str = "sitestress"
    app_version: str = "0.1.0"
    log_level: str = "INFO"
    json_logs: bool = False

    output_dir: str = "stress_test_results"

    model_config = {"env_prefix": "SITESTRESS_", "env_file": ".env", "extra": "ignore"}


settings = Settings()


def _default_domains() -> dict[str, list[str]]:
    return {"https://example.com": ["/about", "/contact"]}


@dataclass
class LoadConfig:
    # Capacity escalation
    min_users: int = 20
    max_users: int = 500
    step_size: int = 20
    # Fixed-load runs
    users: int = 100
    shape: LoadShape = LoadShape.RANDOM_URL
    browsers: tuple[ProbeVariant, ...] = (ProbeVariant.CHROMIUM,)


@dataclass
class ThresholdConfig:
    success_rate_pct: float = 90.0
    response_time_ms: float = 60_000.0


@dataclass
class ProbeConfig:
    backend: str = "http"  # "http" | "browser"
    timeout_ms: int = 30_000
    max_retries: int = 0
    retry_backoff_seconds: float = 1.0
    user_delay_min_ms: int = 200
    user_delay_max_ms: int = 1_000
    headless: bool = True


@dataclass
class ConcurrencyConfig:
    per_cpu: int = 2
    cap: int = 20


@dataclass
class StressConfig:
    domains: dict[str, list[str]] = field(default_factory=_default_domains)
    load: LoadConfig = field(default_factory=LoadConfig)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    output_dir: str = field(default_factory=lambda: settings.output_dir)

    def all_urls(self) -> list[str]:
        """Each base URL followed by its subpaths, in configuration order."""
        urls: list[str] = []
        for base, paths in self.domains.items():
            urls.append(base)
            urls.extend(base.rstrip("/") + path for path in paths)
        return urls

    def validate(self) -> None:
        if not self.domains:
            raise ConfigError("at least one domain is required")
        if self.load.min_users < 1 or self.load.step_size < 1:
            raise ConfigError("min_users and step_size must be >= 1")
        if self.load.max_users < self.load.min_users:
            raise ConfigError("max_users must be >= min_users")
        if self.load.users < 1:
            raise ConfigError("users must be >= 1")
        if not self.load.browsers:
            raise ConfigError("at least one browser is required")
        if self.probe.user_delay_min_ms > self.probe.user_delay_max_ms:
            raise ConfigError("user_delay_min_ms must not exceed user_delay_max_ms")
        if self.probe.max_retries < 0:
            raise ConfigError("max_retries must be >= 0")
        if self.probe.backend not in ("http", "browser"):
            raise ConfigError(f"unknown probe backend: {self.probe.backend}")
        if self.concurrency.cap < 1 or self.concurrency.per_cpu < 1:
            raise ConfigError("concurrency cap and per_cpu must be >= 1")

    @classmethod
    def from_env(cls) -> "StressConfig":
        """Load config with env var overrides. Env vars use STRESS_ prefix."""
        config = cls()

        try:
            if v := os.getenv("STRESS_MIN_USERS"):
                config.load.min_users = int(v)
            if v := os.getenv("STRESS_MAX_USERS"):
                config.load.max_users = int(v)
            if v := os.getenv("STRESS_STEP_SIZE"):
                config.load.step_size = int(v)
            if v := os.getenv("STRESS_USERS"):
                config.load.users = int(v)

            if v := os.getenv("STRESS_SUCCESS_THRESHOLD"):
                config.thresholds.success_rate_pct = float(v)
            if v := os.getenv("STRESS_RESPONSE_THRESHOLD_MS"):
                config.thresholds.response_time_ms = float(v)

            if v := os.getenv("STRESS_TIMEOUT_MS"):
                config.probe.timeout_ms = int(v)
            if v := os.getenv("STRESS_MAX_RETRIES"):
                config.probe.max_retries = int(v)

            if v := os.getenv("STRESS_CONCURRENCY_CAP"):
                config.concurrency.cap = int(v)
        except ValueError as exc:
            raise ConfigError(f"invalid STRESS_ environment value: {exc}") from exc

        if v := os.getenv("STRESS_PROBE_BACKEND"):
            config.probe.backend = v

        config.validate()
        return config

    @classmethod
    def from_yaml(cls, path: str | Path) -> "StressConfig":
        try:
            with open(path) as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"cannot read config file {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"config file {path} must contain a mapping")
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "StressConfig":
        config = cls()
        unknown = set(raw) - {f.name for f in fields(cls)}
        if unknown:
            raise ConfigError(f"unknown config keys: {sorted(unknown)}")

        if "domains" in raw:
            domains = raw["domains"]
            if not isinstance(domains, dict):
                raise ConfigError("domains must map base URLs to lists of subpaths")
            config.domains = {str(base): list(paths or []) for base, paths in domains.items()}
        if "output_dir" in raw:
            config.output_dir = str(raw["output_dir"])

        for section in ("load", "thresholds", "probe", "concurrency"):
            if section in raw:
                _apply_section(getattr(config, section), raw[section] or {}, section)

        config.validate()
        return config


def _apply_section(target: Any, values: dict[str, Any], section: str) -> None:
    if not isinstance(values, dict):
        raise ConfigError(f"{section} must be a mapping")
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key not in known:
            raise ConfigError(f"unknown key {section}.{key}")
        current = getattr(target, key)
        try:
            if key == "shape":
                value = LoadShape(value)
            elif key == "browsers":
                value = tuple(ProbeVariant(v) for v in value)
            elif isinstance(current, bool):
                value = bool(value)
            elif isinstance(current, (int, float, str)):
                value = type(current)(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid value for {section}.{key}: {value!r}") from exc
        setattr(target, key, value)


FIXED_RUN_TIMEOUT_MS = 60_000
FIXED_RUN_MAX_RETRIES = 2


def apply_fixed_run_defaults(config: StressConfig) -> None:
    """Fixed-load runs use the cross-product shape and a longer, retried visit
    unless configured otherwise."""
    if config.load.shape == LoadConfig.shape:
        config.load.shape = LoadShape.CROSS_PRODUCT
    probe = config.probe
    if probe.timeout_ms == ProbeConfig.timeout_ms:
        probe.timeout_ms = FIXED_RUN_TIMEOUT_MS
    if probe.max_retries == ProbeConfig.max_retries:
        probe.max_retries = FIXED_RUN_MAX_RETRIES


# Module-level default instance
default_config = StressConfig()
