# torus_monitor/services/portal_client.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urljoin, urlsplit

import requests

from torus_monitor.config import PortalConfig
from torus_monitor.services.session_store import SessionStore


MAX_REDIRECTS = 10

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Cache-Control": "max-age=0",
}


@dataclass
class FetchResult:
    response: Any
    final_url: str
    hops: int


def is_redirect(status_code: int) -> bool:
    return 300 <= status_code < 400


def resolve_location(current_url: str, location: str) -> str:
    if location.startswith("http"):
        return location
    parts = urlsplit(current_url)
    return urljoin(f"{parts.scheme}://{parts.netloc}", location)


class PortalClient:
    """
    HTTP client for the cloud portal.

    Redirects are never auto-followed: every hop passes through here so the
    session store sees each Set-Cookie and the portal cookies are attached
    only to portal-origin URLs.
    """

    def __init__(
        self,
        cfg: PortalConfig,
        log,
        session: Optional[requests.Session] = None,
        store: Optional[SessionStore] = None,
    ):
        self.cfg = cfg
        self.log = log
        self.session = session or requests.Session()
        self.store = store or SessionStore(cfg.base_url)

    # ------------------------------------------------------------------
    def _headers(self, url: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = dict(BROWSER_HEADERS)
        cookie = self.store.cookie_header(url)
        if cookie:
            headers["Cookie"] = cookie
        if extra:
            headers.update(extra)
        return headers

    def _absorb(self, resp) -> None:
        raw = getattr(resp, "raw", None)
        raw_headers = getattr(raw, "headers", None)
        self.store.apply_response(raw_headers if raw_headers is not None else resp.headers)

    # ------------------------------------------------------------------
    def get(self, url: str):
        resp = self.session.get(
            url,
            headers=self._headers(url),
            timeout=self.cfg.timeout,
            allow_redirects=False,
        )
        self._absorb(resp)
        return resp

    def post_form(self, url: str, data: Dict[str, str], referer: Optional[str] = None):
        extra = {"Content-Type": "application/x-www-form-urlencoded"}
        if referer:
            extra["Referer"] = referer
        resp = self.session.post(
            url,
            data=data,
            headers=self._headers(url, extra),
            timeout=self.cfg.timeout,
            allow_redirects=False,
        )
        self._absorb(resp)
        return resp

    # ------------------------------------------------------------------
    def fetch_with_redirects(self, start_url: str, max_hops: int = MAX_REDIRECTS) -> FetchResult:
        """GET `start_url`, following redirects by hand up to `max_hops`."""
        url = start_url
        resp = self.get(url)
        hops = 0
        while is_redirect(resp.status_code) and hops < max_hops:
            location = resp.headers.get("Location") or resp.headers.get("location")
            if not location:
                break
            url = resolve_location(url, location)
            self.log.debug("Redirect %d -> %s", hops + 1, url)
            resp = self.get(url)
            hops += 1

        if is_redirect(resp.status_code) and hops >= max_hops:
            self.log.debug("Redirect cap (%d) reached; using last response from %s", max_hops, url)

        return FetchResult(response=resp, final_url=url, hops=hops)
