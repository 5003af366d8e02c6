# torus_monitor/models/metrics.py
from dataclasses import dataclass, fields
from enum import IntEnum


class DataSource(IntEnum):
    """Origin of an emitted sample, ordered by increasing staleness."""

    CLOUD = 0
    LOCAL_FRESH = 1
    CLOUD_STALE = 2
    LOCAL_CACHED = 3


# Fields a local device can report; these are what the cache overlays.
LOCAL_FIELDS = ("input_voltage", "output_voltage", "output_current", "output_power")


@dataclass
class MetricsRecord:
    input_voltage: float | None = None
    output_voltage: float | None = None
    output_current: float | None = None
    output_power: float | None = None     # watts
    thd: float | None = None              # percent
    device_timestamp: int | None = None   # UTC epoch seconds

    def has_data(self) -> bool:
        return self.input_voltage is not None or self.device_timestamp is not None

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}
