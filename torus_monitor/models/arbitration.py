# torus_monitor/models/arbitration.py
from dataclasses import dataclass

from torus_monitor.models.metrics import DataSource, MetricsRecord


@dataclass
class ArbitrationState:
    last_cloud_success_time: int
    last_cloud_check_time: int = 0
    last_local_scrape_time: int = 0
    cached_local: MetricsRecord | None = None
    was_skipping_cloud: bool = False

    @classmethod
    def start(cls, run_start: int) -> "ArbitrationState":
        # Success time starts at run start so back-off cannot trigger on iteration 1.
        return cls(last_cloud_success_time=run_start)


@dataclass
class Decision:
    state: ArbitrationState
    record: MetricsRecord
    source: DataSource
    cloud_skipped: bool
    local_attempted: bool

    @property
    def should_emit(self) -> bool:
        return self.record.has_data()
