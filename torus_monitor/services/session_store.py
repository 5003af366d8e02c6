# torus_monitor/services/session_store.py

from __future__ import annotations

from typing import Iterable, Mapping
from urllib.parse import urlsplit


def _origin(url: str) -> tuple[str, str, int | None]:
    parts = urlsplit(url)
    port = parts.port
    if port is None:
        port = {"http": 80, "https": 443}.get(parts.scheme.lower())
    return parts.scheme.lower(), (parts.hostname or "").lower(), port


class SessionStore:
    """
    Cookie jar for the portal session.

    Keeps one `name=value` pair per cookie name (last write wins) and only
    hands them out for requests aimed at the portal origin, so the portal
    session never leaks to the Pushgateway or the local device.
    """

    def __init__(self, portal_url: str):
        self.portal_origin = _origin(portal_url)
        self.cookies: dict[str, str] = {}

    # ------------------------------------------------------------------
    def apply_set_cookie(self, values: str | Iterable[str] | None) -> None:
        if not values:
            return
        if isinstance(values, str):
            values = [values]
        for raw in values:
            pair = raw.split(";", 1)[0].strip()
            if not pair:
                continue
            name = pair.split("=", 1)[0].strip()
            if not name:
                continue
            self.cookies[name] = pair

    def apply_response(self, headers: Mapping[str, str] | None) -> None:
        """
        Merge Set-Cookie headers from a response.

        Prefer passing the urllib3 header container (`response.raw.headers`):
        it keeps repeated Set-Cookie lines separate, whereas the folded
        requests mapping joins them with commas.
        """
        if headers is None:
            return
        if hasattr(headers, "getlist"):
            self.apply_set_cookie(headers.getlist("Set-Cookie"))
            return
        value = headers.get("Set-Cookie") or headers.get("set-cookie")
        if isinstance(value, (list, tuple)):
            self.apply_set_cookie(value)
        elif value:
            self.apply_set_cookie([value])

    # ------------------------------------------------------------------
    def matches_portal(self, url: str) -> bool:
        return _origin(url) == self.portal_origin

    def cookie_header(self, url: str) -> str | None:
        if not self.cookies or not self.matches_portal(url):
            return None
        return "; ".join(self.cookies.values())
