# torus_monitor/tests/test_extractors.py

from datetime import datetime, timezone

import pytest
from bs4 import BeautifulSoup

from torus_monitor.services.extractors import (
    correct_timestamp,
    display_element,
    extract_cloud_metrics,
    gauge_value,
    normalize_power,
    parse_device_time,
    parse_number,
)

from .fakes import GAUGE_ONLY_PAGE, LIVE_DATA_PAGE


def _utc_epoch(*args):
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


def test_parse_number_strips_units():
    assert parse_number("121.5 V") == 121.5
    assert parse_number("1,234 W") == 1234.0
    assert parse_number("--") is None
    assert parse_number(None) is None
    assert parse_number(".") is None


def test_normalize_power():
    assert normalize_power(1.25, "kw") == 1250
    assert normalize_power(1.25, "KW") == 1250
    assert normalize_power(380.0, "w") == 380.0
    assert normalize_power(None, "kw") is None


def test_parse_device_time_formats():
    assert parse_device_time("3/15/2024 2:30:45 PM") == datetime(2024, 3, 15, 14, 30, 45)
    assert parse_device_time("2024-03-15T14:30:45") == datetime(2024, 3, 15, 14, 30, 45)
    assert parse_device_time("  3/15/2024   2:30 PM ") == datetime(2024, 3, 15, 14, 30)
    assert parse_device_time("never") is None
    assert parse_device_time("") is None


@pytest.mark.parametrize("offset", [-5, -3.5, 0, 5.75, 10])
def test_timezone_correction_is_invertible(offset):
    local = datetime(2024, 3, 15, 14, 30, 45)
    corrected = correct_timestamp(local, offset)
    as_if_utc = _utc_epoch(2024, 3, 15, 14, 30, 45)
    assert corrected == int(as_if_utc - offset * 3600)
    assert corrected + offset * 3600 == as_if_utc


def test_zone_aware_timestamp_ignores_offset():
    aware = datetime(2024, 3, 15, 14, 30, 45, tzinfo=timezone.utc)
    assert correct_timestamp(aware, -5) == _utc_epoch(2024, 3, 15, 14, 30, 45)


def test_strategies_are_independent():
    soup = BeautifulSoup(LIVE_DATA_PAGE.format(ts=""), "html.parser")
    reading = display_element("lblOutputPowerValue")(soup, "")
    assert reading.value == 0.38
    assert reading.unit == "kw"

    gauge = gauge_value("RadRadialGaugeOutputPower", unit="kw")
    assert gauge(soup, GAUGE_ONLY_PAGE).value == 1.25
    assert gauge(soup, "<html></html>") is None


def test_extract_display_elements_with_offset():
    html = LIVE_DATA_PAGE.format(ts="3/15/2024 2:30:45 PM")
    record = extract_cloud_metrics(html, offset_hours=-5)

    assert record.input_voltage == 121.5
    assert record.output_voltage == 120.1
    assert record.output_current == 3.2
    assert record.thd == 1.8
    assert record.output_power == pytest.approx(380.0)
    assert record.device_timestamp == _utc_epoch(2024, 3, 15, 19, 30, 45)


def test_display_power_in_watts_is_not_scaled():
    html = LIVE_DATA_PAGE.format(ts="").replace("0.38 kW", "380 W")
    assert extract_cloud_metrics(html).output_power == 380.0


def test_gauge_fallback_and_kw_normalization():
    record = extract_cloud_metrics(GAUGE_ONLY_PAGE)

    assert record.input_voltage == 119.8
    assert record.output_power == pytest.approx(1250.0)
    # Unresolvable fields are absent, never zero.
    assert record.output_voltage is None
    assert record.output_current is None
    assert record.thd is None
    assert record.device_timestamp is None


def test_empty_page_yields_empty_record():
    record = extract_cloud_metrics("")
    assert record.has_data() is False
