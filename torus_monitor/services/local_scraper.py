# torus_monitor/services/local_scraper.py

from __future__ import annotations

import re
from typing import Optional

import requests
import urllib3
from bs4 import BeautifulSoup

from torus_monitor.config import LocalDeviceConfig
from torus_monitor.models.metrics import MetricsRecord
from torus_monitor.services.extractors import normalize_power, parse_number, unit_from_text
from torus_monitor.services.portal_client import MAX_REDIRECTS


# Left-cell label -> record field. First match wins.
ROW_LABELS = (
    (re.compile(r"voltage\s*in", re.IGNORECASE), "input_voltage"),
    (re.compile(r"voltage\s*out", re.IGNORECASE), "output_voltage"),
    (re.compile(r"current\s*out", re.IGNORECASE), "output_current"),
    (re.compile(r"power\s*out", re.IGNORECASE), "output_power"),
)


def classify_label(label: str) -> Optional[str]:
    for pattern, field_name in ROW_LABELS:
        if pattern.search(label):
            return field_name
    return None


def parse_status_table(html: str) -> MetricsRecord:
    soup = BeautifulSoup(html or "", "html.parser")
    record = MetricsRecord()

    for row in soup.find_all("tr"):
        cells = row.find_all("td")
        if len(cells) < 2:
            continue
        label = cells[0].get_text().strip()
        raw_value = cells[1].get_text().strip()
        value = parse_number(raw_value)
        if value is None:
            continue
        field_name = classify_label(label)
        if field_name is None:
            continue
        if field_name == "output_power":
            value = normalize_power(value, unit_from_text(raw_value))
        setattr(record, field_name, value)

    return record


class LocalScraper:
    """
    Reads the power conditioner's own status page on the LAN.

    Devices ship self-signed certificates, so TLS verification is off on
    this session and urllib3's InsecureRequestWarning is silenced for the
    whole process. Never raises: any failure, including a redirect chain
    longer than MAX_REDIRECTS, is logged and reported as "no data" (None).
    """

    def __init__(self, cfg: LocalDeviceConfig, log, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.log = log
        self.session = session or requests.Session()
        self.session.verify = False
        self.session.max_redirects = MAX_REDIRECTS
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @property
    def enabled(self) -> bool:
        return self.cfg.enabled

    def scrape(self) -> Optional[MetricsRecord]:
        if not self.enabled:
            return None

        self.log.info("[Fallback] Fetching data from local device: %s", self.cfg.url)
        try:
            resp = self.session.get(self.cfg.url, timeout=self.cfg.timeout, verify=False)
        except requests.RequestException as exc:
            self.log.error("[Fallback] Local scrape failed: %s", exc)
            return None

        if resp.status_code >= 400:
            self.log.error("[Fallback] Local device returned HTTP %s", resp.status_code)
            return None

        record = parse_status_table(resp.text)
        if record.input_voltage is None:
            self.log.warning("[Fallback] Parsed table but found no matching metrics.")
            return None
        return record
