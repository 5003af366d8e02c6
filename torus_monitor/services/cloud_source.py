# torus_monitor/services/cloud_source.py

from __future__ import annotations

import requests

from torus_monitor.config import PortalConfig
from torus_monitor.models.metrics import MetricsRecord
from torus_monitor.services.extractors import extract_cloud_metrics
from torus_monitor.services.portal_client import PortalClient


class CloudSource:
    """Fetches the portal LiveData page over the authenticated session."""

    def __init__(self, cfg: PortalConfig, client: PortalClient, log):
        self.cfg = cfg
        self.client = client
        self.log = log

    def fetch(self) -> MetricsRecord:
        result = self.client.fetch_with_redirects(self.cfg.live_data_url)
        resp = result.response
        if "Login" in result.final_url:
            self.log.warning("Redirected to Login; portal session may have expired.")
        if resp.status_code >= 500:
            raise requests.HTTPError(f"LiveData returned HTTP {resp.status_code}", response=resp)
        return extract_cloud_metrics(resp.text, self.cfg.device_timezone_offset)
