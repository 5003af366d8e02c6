# torus_monitor/services/metric_emitter.py

from __future__ import annotations

from typing import List, Optional

import requests

from torus_monitor.config import PushgatewayConfig
from torus_monitor.models.metrics import DataSource, MetricsRecord
from torus_monitor.services.portal_client import MAX_REDIRECTS


CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

# (metric name, record attribute) in exposition order
METRIC_FIELDS = (
    ("torus_input_voltage_volts", "input_voltage"),
    ("torus_output_voltage_volts", "output_voltage"),
    ("torus_output_current_amps", "output_current"),
    ("torus_output_power_watts", "output_power"),
    ("torus_output_thd_percent", "thd"),
    ("torus_device_last_seen_timestamp", "device_timestamp"),
)


def _format_value(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_exposition(
    record: MetricsRecord,
    source: DataSource,
    now: int,
    *,
    job: str,
    instance: str,
) -> str:
    labels = f'{{instance="{instance}", job="{job}"}}'
    lines: List[str] = []

    def add(name: str, value) -> None:
        if value is None:
            return
        lines.append(f"{name}{labels} {_format_value(value)}")

    for name, attr in METRIC_FIELDS:
        add(name, getattr(record, attr))
    add("torus_scrape_last_success_timestamp", now)
    add("torus_data_source", int(source))

    return "".join(line + "\n" for line in lines) + "\n"


class MetricEmitter:
    """Pushes one sample set to the Pushgateway for the configured job."""

    def __init__(self, cfg: PushgatewayConfig, log, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.log = log
        # Separate session: portal cookies must never reach the sink.
        self.session = session or requests.Session()
        self.session.max_redirects = MAX_REDIRECTS

    @property
    def push_url(self) -> str:
        return f"{(self.cfg.url or '').rstrip('/')}/metrics/job/{self.cfg.job_name}"

    def push(self, record: MetricsRecord, source: DataSource, now: int) -> str:
        if not self.cfg.url:
            raise ValueError("Pushgateway URL is not configured")

        body = format_exposition(
            record,
            source,
            now,
            job=self.cfg.job_name,
            instance=self.cfg.instance_name,
        )
        resp = self.session.post(
            self.push_url,
            data=body.encode("utf-8"),
            headers={"Content-Type": CONTENT_TYPE},
            timeout=self.cfg.timeout,
        )
        resp.raise_for_status()
        self.log.debug("Pushed %d bytes to %s", len(body), self.push_url)
        return body
