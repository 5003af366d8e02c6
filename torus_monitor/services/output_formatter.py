# torus_monitor/services/output_formatter.py

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional

from torus_monitor.models.metrics import MetricsRecord


def _record_to_dict(record: Optional[MetricsRecord]) -> Optional[dict]:
    if record is None:
        return None
    payload = record.as_dict()
    if record.device_timestamp is not None:
        payload["device_time_utc"] = datetime.fromtimestamp(
            record.device_timestamp, tz=timezone.utc
        ).isoformat()
    return payload


def emit_json(
    cloud: Optional[MetricsRecord],
    local: Optional[MetricsRecord],
    *,
    now: int,
) -> None:
    age = None
    if cloud is not None and cloud.device_timestamp is not None:
        age = now - cloud.device_timestamp
    result = {
        "now": now,
        "cloud": _record_to_dict(cloud),
        "cloud_age_s": age,
        "local": _record_to_dict(local),
    }
    print(json.dumps(result, indent=2))


def _format_record_human(label: str, record: Optional[MetricsRecord], now: int) -> str:
    if record is None:
        return f"[{label}] no data"

    def _fmt(value, spec, unit):
        return f"{value:{spec}}{unit}" if value is not None else "n/a"

    parts = [
        f"Vin={_fmt(record.input_voltage, '.1f', 'V')}",
        f"Vout={_fmt(record.output_voltage, '.1f', 'V')}",
        f"Iout={_fmt(record.output_current, '.2f', 'A')}",
        f"Pout={_fmt(record.output_power, '.0f', 'W')}",
    ]
    if record.thd is not None:
        parts.append(f"THD={record.thd:.1f}%")
    if record.device_timestamp is not None:
        seen = datetime.fromtimestamp(record.device_timestamp, tz=timezone.utc)
        parts.append(f"seen={seen.isoformat()} age={now - record.device_timestamp}s")
    return f"[{label}] " + "  ".join(parts)


def emit_human(
    cloud: Optional[MetricsRecord],
    local: Optional[MetricsRecord],
    *,
    now: int,
) -> None:
    print(_format_record_human("CLOUD", cloud, now))
    print(_format_record_human("LOCAL", local, now))
