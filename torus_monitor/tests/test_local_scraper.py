# torus_monitor/tests/test_local_scraper.py

import pytest
import requests

from torus_monitor.config import LocalDeviceConfig
from torus_monitor.logging import ConsoleLog, get_logger
from torus_monitor.services.local_scraper import LocalScraper, classify_label, parse_status_table
from torus_monitor.services.portal_client import MAX_REDIRECTS

from .fakes import LOCAL_STATUS_PAGE, FakeResponse, FakeSession


ConsoleLog(level="INFO", quiet=True).setup()
LOG = get_logger("local-test")

LOCAL_URL = "https://192.168.1.50/status.html"


def _scraper(responses, url=LOCAL_URL):
    session = FakeSession({("GET", LOCAL_URL): responses})
    cfg = LocalDeviceConfig(url=url, scrape_interval=300, timeout=5.0)
    return LocalScraper(cfg, LOG, session=session), session


def test_classify_label():
    assert classify_label("Voltage In") == "input_voltage"
    assert classify_label("VOLTAGE  OUT") == "output_voltage"
    assert classify_label("current out (A)") == "output_current"
    assert classify_label("Power Out") == "output_power"
    assert classify_label("Temperature") is None


def test_parse_status_table():
    record = parse_status_table(LOCAL_STATUS_PAGE)
    assert record.input_voltage == 122.0
    assert record.output_voltage == 119.5
    assert record.output_current == 2.5
    assert record.output_power == pytest.approx(300.0)
    assert record.thd is None
    assert record.device_timestamp is None


def test_scrape_success_disables_tls_verification():
    scraper, session = _scraper([FakeResponse(200, text=LOCAL_STATUS_PAGE)])

    record = scraper.scrape()

    assert record.input_voltage == 122.0
    assert session.verify is False
    assert session.calls[0]["verify"] is False
    assert session.calls[0]["timeout"] == 5.0


def test_scrape_without_input_voltage_is_no_data(caplog):
    page = LOCAL_STATUS_PAGE.replace("Voltage In", "Frequency")
    scraper, _ = _scraper([FakeResponse(200, text=page)])

    with caplog.at_level("WARNING"):
        assert scraper.scrape() is None
    assert "no matching metrics" in caplog.text


def test_unparseable_value_row_ignored():
    page = LOCAL_STATUS_PAGE.replace("119.5 V", "n/a")
    record = parse_status_table(page)
    assert record.output_voltage is None
    assert record.input_voltage == 122.0


def test_transport_failure_returns_none():
    scraper, _ = _scraper([requests.ConnectTimeout("timed out")])
    assert scraper.scrape() is None


def test_disabled_without_url():
    scraper, session = _scraper([], url=None)
    assert scraper.enabled is False
    assert scraper.scrape() is None
    assert session.calls == []


class RedirectLoopAdapter(requests.adapters.BaseAdapter):
    """Answers every request with a 302 to the next hop."""

    def __init__(self):
        super().__init__()
        self.hits = 0

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        self.hits += 1
        resp = requests.Response()
        resp.status_code = 302
        resp.headers["Location"] = f"https://192.168.1.50/hop{self.hits}"
        resp.url = request.url
        resp.request = request
        resp._content = b""
        resp._content_consumed = True
        return resp

    def close(self):
        pass


def test_redirect_chain_is_capped():
    adapter = RedirectLoopAdapter()
    session = requests.Session()
    session.mount("https://192.168.1.50", adapter)
    cfg = LocalDeviceConfig(url=LOCAL_URL, scrape_interval=300, timeout=5.0)
    scraper = LocalScraper(cfg, LOG, session=session)

    assert scraper.scrape() is None
    assert session.max_redirects == MAX_REDIRECTS
    assert adapter.hits == MAX_REDIRECTS + 1
