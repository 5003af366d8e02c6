# torus_monitor/services/arbitrator.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Protocol

import requests

from torus_monitor.config import ArbitrationConfig
from torus_monitor.models.arbitration import ArbitrationState, Decision
from torus_monitor.models.metrics import LOCAL_FIELDS, DataSource, MetricsRecord


class MetricsSource(Protocol):
    def fetch(self) -> MetricsRecord: ...


class FallbackSource(Protocol):
    enabled: bool

    def scrape(self) -> Optional[MetricsRecord]: ...


def backoff_window(outage: int, cfg: ArbitrationConfig) -> int:
    """Seconds the cloud check is held off for a given outage; 0 below the threshold."""
    if outage <= cfg.backoff_outage_threshold:
        return 0
    return outage // cfg.backoff_divisor


def overlay_local(record: MetricsRecord, local: MetricsRecord) -> MetricsRecord:
    for name in LOCAL_FIELDS:
        setattr(record, name, getattr(local, name))
    return record


class ArbitrationController:
    """
    Per-iteration decision engine between the cloud portal and the local
    device.

    All timing state lives in the ArbitrationState handed to `step()`; the
    controller itself holds only collaborators and config.
    """

    def __init__(
        self,
        cfg: ArbitrationConfig,
        cloud: MetricsSource,
        local: FallbackSource | None,
        log,
        *,
        local_scrape_interval: int = 300,
    ):
        self.cfg = cfg
        self.cloud = cloud
        self.local = local
        self.log = log
        self.local_scrape_interval = local_scrape_interval

    # ------------------------------------------------------------------
    def _should_skip_cloud(self, state: ArbitrationState, now: int) -> bool:
        if not self.cfg.enable_cloud_backoff:
            return False

        outage = now - state.last_cloud_success_time
        window = backoff_window(outage, self.cfg)
        if window <= 0:
            return False

        since_check = now - state.last_cloud_check_time
        if since_check < window:
            self.log.info(
                "[Back-off] Skipping cloud check. Outage: %ss. Next check in %ss.",
                outage,
                window - since_check,
            )
            state.was_skipping_cloud = True
            return True

        if state.was_skipping_cloud:
            self.log.info("[Back-off] Back-off period expired. Checking cloud.")
            state.was_skipping_cloud = False
        return False

    def _fetch_cloud(self, state: ArbitrationState, now: int, iteration: int) -> MetricsRecord:
        state.last_cloud_check_time = now
        try:
            return self.cloud.fetch()
        except requests.RequestException as exc:
            self.log.warning("Iteration %d: cloud fetch failed: %s", iteration, exc)
            return MetricsRecord()

    # ------------------------------------------------------------------
    def step(self, state: ArbitrationState, now: int, iteration: int = 0) -> Decision:
        skip_cloud = self._should_skip_cloud(state, now)
        record = MetricsRecord() if skip_cloud else self._fetch_cloud(state, now, iteration)

        source = DataSource.CLOUD_STALE
        if not skip_cloud and record.device_timestamp is not None:
            age = now - record.device_timestamp
            if iteration == 1:
                device_iso = datetime.fromtimestamp(record.device_timestamp, tz=timezone.utc).isoformat()
                self.log.info("[Time Check] Device: %s | Diff: %ss", device_iso, age)
            if age <= self.cfg.freshness_threshold:
                state.last_cloud_success_time = now
                state.cached_local = None
                source = DataSource.CLOUD
            else:
                self.log.info("[Stale] Cloud data is %ss old.", age)

        local_attempted = False
        if source != DataSource.CLOUD and self.local is not None and self.local.enabled:
            fresh = None
            if now - state.last_local_scrape_time > self.local_scrape_interval:
                local_attempted = True
                state.last_local_scrape_time = now
                fresh = self.local.scrape()
                if fresh is not None:
                    state.cached_local = fresh
                    self.log.info("[Fallback] Updated local cache.")

            if state.cached_local is not None:
                overlay_local(record, state.cached_local)
                source = DataSource.LOCAL_FRESH if fresh is not None else DataSource.LOCAL_CACHED

        decision = Decision(
            state=state,
            record=record,
            source=source,
            cloud_skipped=skip_cloud,
            local_attempted=local_attempted,
        )
        if not decision.should_emit:
            self.log.warning("Iteration %d: no data available.", iteration)
        return decision
