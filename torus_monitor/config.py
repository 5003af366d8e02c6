# torus_monitor/config.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping
import configparser
import os


@dataclass(frozen=True)
class PortalConfig:
    username: str
    password: str
    base_url: str = "https://toruspowerconnect.com"
    timeout: float = 5.0
    device_timezone_offset: float = 0.0
    login_field_user: str = "ctl00$MainContent$UserName"
    login_field_pass: str = "ctl00$MainContent$Password"
    live_data_path: str = "/MemberPages/LiveData.aspx"
    fallback_login_path: str = "/Default"

    @property
    def live_data_url(self) -> str:
        return f"{self.base_url}{self.live_data_path}"


@dataclass(frozen=True)
class LocalDeviceConfig:
    url: str | None = None
    scrape_interval: int = 300
    timeout: float = 5.0

    @property
    def enabled(self) -> bool:
        return bool(self.url)


@dataclass(frozen=True)
class ArbitrationConfig:
    enable_cloud_backoff: bool = True
    freshness_threshold: int = 60
    backoff_outage_threshold: int = 120
    backoff_divisor: int = 2


@dataclass(frozen=True)
class PushgatewayConfig:
    url: str | None = None
    job_name: str = "torus_power_monitor"
    instance_name: str = "torus_primary"
    timeout: float = 5.0


@dataclass(frozen=True)
class ScheduleConfig:
    job_duration: int = 280
    poll_interval: int = 15


@dataclass(frozen=True)
class LoggingConfig:
    console_level: str = "INFO"
    debug_modules: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AppConfig:
    portal: PortalConfig
    local: LocalDeviceConfig
    arbitration: ArbitrationConfig
    pushgateway: PushgatewayConfig
    schedule: ScheduleConfig
    logging: LoggingConfig


# (section, key) -> environment variable that overrides it
ENV_OVERRIDES: dict[tuple[str, str], str] = {
    ("portal", "base_url"): "BASE_URL",
    ("portal", "username"): "TORUS_USERNAME",
    ("portal", "password"): "TORUS_PASSWORD",
    ("portal", "timeout"): "PORTAL_TIMEOUT",
    ("portal", "device_timezone_offset"): "DEVICE_TIMEZONE_OFFSET",
    ("local", "url"): "TORUS_LOCAL_URL",
    ("local", "scrape_interval"): "LOCAL_SCRAPE_INTERVAL",
    ("local", "timeout"): "LOCAL_TIMEOUT",
    ("arbitration", "enable_cloud_backoff"): "ENABLE_CLOUD_BACKOFF",
    ("arbitration", "freshness_threshold"): "FRESHNESS_THRESHOLD",
    ("arbitration", "backoff_outage_threshold"): "BACKOFF_OUTAGE_THRESHOLD",
    ("arbitration", "backoff_divisor"): "BACKOFF_DIVISOR",
    ("pushgateway", "url"): "PUSHGATEWAY_URL",
    ("pushgateway", "job_name"): "JOB_NAME",
    ("pushgateway", "instance_name"): "INSTANCE_NAME",
    ("pushgateway", "timeout"): "PUSH_TIMEOUT",
    ("schedule", "job_duration"): "JOB_DURATION",
    ("schedule", "poll_interval"): "POLL_INTERVAL",
    ("logging", "console_level"): "LOG_LEVEL",
}


class Config:
    def __init__(self, path: str | None = None, environ: Mapping[str, str] | None = None):
        self.path = Path(path) if path else None
        self.environ = os.environ if environ is None else environ
        self.parser = configparser.ConfigParser(inline_comment_prefixes=("#",), interpolation=None)
        if self.path is not None:
            read = self.parser.read(self.path)
            if not read:
                raise FileNotFoundError(f"Config file not found: {self.path}")

    def get(self, section: str, key: str) -> str | None:
        env_name = ENV_OVERRIDES.get((section, key))
        if env_name:
            env_value = self.environ.get(env_name)
            if env_value is not None and env_value.strip():
                return env_value.strip()
        if section in self.parser and key in self.parser[section]:
            value = self.parser[section][key].strip()
            return value or None
        return None

    @classmethod
    def load(cls, path: str | None = None, environ: Mapping[str, str] | None = None) -> AppConfig:
        cfg = cls(path, environ)
        get = cfg.get

        def _as_bool(raw: str | None, default: bool) -> bool:
            if raw is None:
                return default
            return raw.strip().lower() == "true"

        def _as_int(raw: str | None, default: int) -> int:
            # Unparseable or zero values fall back to the default.
            if raw is None:
                return default
            try:
                value = int(float(raw))
            except (ValueError, OverflowError):
                return default
            return value or default

        def _as_float(raw: str | None, default: float) -> float:
            if raw is None:
                return default
            try:
                return float(raw)
            except ValueError:
                return default

        def _url(raw: str | None) -> str | None:
            if raw is None:
                return None
            return raw.rstrip("/") or None

        # --- Portal ---
        username = get("portal", "username")
        password = get("portal", "password")
        if not username or not password:
            raise ValueError("Portal credentials missing (TORUS_USERNAME / TORUS_PASSWORD)")

        portal_kwargs = {"username": username, "password": password}
        if (base_url := _url(get("portal", "base_url"))) is not None:
            portal_kwargs["base_url"] = base_url
        portal_kwargs["timeout"] = _as_float(get("portal", "timeout"), 5.0)
        portal_kwargs["device_timezone_offset"] = _as_float(get("portal", "device_timezone_offset"), 0.0)
        portal = PortalConfig(**portal_kwargs)

        # --- Local device ---
        local = LocalDeviceConfig(
            url=_url(get("local", "url")),
            scrape_interval=_as_int(get("local", "scrape_interval"), 300),
            timeout=_as_float(get("local", "timeout"), 5.0),
        )

        # --- Arbitration ---
        arbitration = ArbitrationConfig(
            enable_cloud_backoff=_as_bool(get("arbitration", "enable_cloud_backoff"), True),
            freshness_threshold=_as_int(get("arbitration", "freshness_threshold"), 60),
            backoff_outage_threshold=_as_int(get("arbitration", "backoff_outage_threshold"), 120),
            backoff_divisor=_as_int(get("arbitration", "backoff_divisor"), 2),
        )

        # --- Pushgateway ---
        pushgateway_kwargs = {"url": _url(get("pushgateway", "url"))}
        if (job_name := get("pushgateway", "job_name")) is not None:
            pushgateway_kwargs["job_name"] = job_name
        if (instance_name := get("pushgateway", "instance_name")) is not None:
            pushgateway_kwargs["instance_name"] = instance_name
        pushgateway_kwargs["timeout"] = _as_float(get("pushgateway", "timeout"), 5.0)
        pushgateway = PushgatewayConfig(**pushgateway_kwargs)

        # --- Schedule ---
        schedule = ScheduleConfig(
            job_duration=_as_int(get("schedule", "job_duration"), 280),
            poll_interval=_as_int(get("schedule", "poll_interval"), 15),
        )

        logging_kwargs = {}
        if (level := get("logging", "console_level")) is not None:
            logging_kwargs["console_level"] = level
        if (raw := get("logging", "debug_modules")) is not None:
            logging_kwargs["debug_modules"] = tuple(x.strip() for x in raw.split(",") if x.strip())
        logging_cfg = LoggingConfig(**logging_kwargs)

        return AppConfig(
            portal=portal,
            local=local,
            arbitration=arbitration,
            pushgateway=pushgateway,
            schedule=schedule,
            logging=logging_cfg,
        )
