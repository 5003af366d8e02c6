# torus_monitor/services/extractors.py

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from bs4 import BeautifulSoup

from torus_monitor.models.metrics import MetricsRecord


_NON_NUMERIC = re.compile(r"[^\d.]")

# US-style formats the portal renders, then common ISO variants.
TIMESTAMP_FORMATS = (
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%b %d, %Y %I:%M:%S %p",
    "%B %d, %Y %I:%M:%S %p",
    "%Y-%m-%d %H:%M:%S",
)


# ============================================================================
# Pure helpers
# ============================================================================

def parse_number(text: str | None) -> Optional[float]:
    """Strip everything but digits and dots, then parse. None if nothing usable."""
    if text is None:
        return None
    cleaned = _NON_NUMERIC.sub("", text)
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        # e.g. "1.2.3" -> take the leading float the way parseFloat would
        match = re.match(r"\d*\.?\d+", cleaned)
        return float(match.group(0)) if match else None


def normalize_power(value: float | None, unit: str | None = "w") -> Optional[float]:
    """Return watts. `unit` is "kw" or "w" (case-insensitive)."""
    if value is None:
        return None
    if unit and unit.strip().lower() == "kw":
        return value * 1000
    return value


def unit_from_text(text: str | None) -> str:
    return "kw" if text and "kw" in text.lower() else "w"


def parse_device_time(text: str | None) -> Optional[datetime]:
    if not text:
        return None
    raw = " ".join(text.split())
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        pass
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    return None


def correct_timestamp(dt: datetime, offset_hours: float) -> int:
    """
    Device clocks report local wall time with no zone. Read the digits as if
    UTC, then subtract the configured offset to get true UTC epoch seconds.
    Zone-aware values are already unambiguous and are converted directly.
    """
    if dt.tzinfo is not None:
        return int(dt.timestamp())
    as_utc = dt.replace(tzinfo=timezone.utc).timestamp()
    return int(as_utc - offset_hours * 3600)


# ============================================================================
# Strategies
# ============================================================================

@dataclass
class Reading:
    value: float
    unit: str = "w"


Strategy = Callable[[BeautifulSoup, str], Optional[Reading]]


def _span_text(soup: BeautifulSoup, suffix: str) -> Optional[str]:
    el = soup.select_one(f'span[id$="{suffix}"]')
    if el is None:
        return None
    text = el.get_text().strip()
    return text or None


def display_element(suffix: str) -> Strategy:
    def _strategy(soup: BeautifulSoup, html: str) -> Optional[Reading]:
        text = _span_text(soup, suffix)
        value = parse_number(text)
        if value is None:
            return None
        return Reading(value, unit_from_text(text))

    _strategy.__name__ = f"display_element({suffix})"
    return _strategy


def gauge_value(gauge_id: str, unit: str = "w") -> Strategy:
    pattern = re.compile(re.escape(gauge_id) + r'[\s\S]*?value":\s*([\d.]+)')

    def _strategy(soup: BeautifulSoup, html: str) -> Optional[Reading]:
        match = pattern.search(html)
        if not match:
            return None
        value = parse_number(match.group(1))
        if value is None:
            return None
        return Reading(value, unit)

    _strategy.__name__ = f"gauge_value({gauge_id})"
    return _strategy


def first_reading(strategies: Sequence[Strategy], soup: BeautifulSoup, html: str) -> Optional[Reading]:
    for strategy in strategies:
        reading = strategy(soup, html)
        if reading is not None:
            return reading
    return None


# Per-field ordered strategies for the portal's LiveData page.
CLOUD_STRATEGIES: dict[str, tuple[Strategy, ...]] = {
    "input_voltage": (
        display_element("lblInputVoltageValue"),
        gauge_value("RadRadialGaugeInputVoltage"),
    ),
    "output_voltage": (
        display_element("lblOutputVoltageValue"),
        gauge_value("RadRadialGaugeOutputVoltage"),
    ),
    "output_current": (
        display_element("lblOutputCurrentValue"),
        gauge_value("RadRadialGaugeOutputCurrent"),
    ),
    "thd": (
        display_element("lblOutputTHD"),
        gauge_value("RadRadialGaugeTHD"),
    ),
    # Gauge reports kW; the display span is watts unless it says otherwise.
    "output_power": (
        display_element("lblOutputPowerValue"),
        gauge_value("RadRadialGaugeOutputPower", unit="kw"),
    ),
}

TIMESTAMP_SUFFIX = "lblSystemStatusTS"


# ============================================================================
# Cloud extractor
# ============================================================================

def extract_cloud_metrics(html: str, offset_hours: float = 0.0) -> MetricsRecord:
    soup = BeautifulSoup(html or "", "html.parser")
    record = MetricsRecord()

    for field_name, strategies in CLOUD_STRATEGIES.items():
        reading = first_reading(strategies, soup, html or "")
        if reading is None:
            continue
        if field_name == "output_power":
            setattr(record, field_name, normalize_power(reading.value, reading.unit))
        else:
            setattr(record, field_name, reading.value)

    device_dt = parse_device_time(_span_text(soup, TIMESTAMP_SUFFIX))
    if device_dt is not None:
        record.device_timestamp = correct_timestamp(device_dt, offset_hours)

    return record
