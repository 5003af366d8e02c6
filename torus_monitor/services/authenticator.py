# torus_monitor/services/authenticator.py

from __future__ import annotations

from typing import Dict

from bs4 import BeautifulSoup

from torus_monitor.config import PortalConfig
from torus_monitor.services.portal_client import PortalClient, is_redirect


HIDDEN_FIELD_IDS = (
    "__VIEWSTATE",
    "__EVENTVALIDATION",
    "__VIEWSTATEGENERATOR",
    "__EVENTTARGET",
    "__EVENTARGUMENT",
)
DEFAULT_LOGIN_BUTTON = "ctl00$MainContent$LoginButton"
LOGIN_BUTTON_VALUE = "Log In"
FAILURE_SELECTOR = ".failureNotification, .validation-summary-errors"


class AuthenticationError(RuntimeError):
    """Login cannot proceed or the portal rejected the credentials."""


def extract_hidden_fields(soup: BeautifulSoup) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for field_id in HIDDEN_FIELD_IDS:
        el = soup.find(id=field_id)
        if el is None:
            continue
        value = el.get("value")
        if value:
            fields[field_id] = value
    return fields


def find_submit_name(soup: BeautifulSoup) -> str | None:
    button = soup.find("input", attrs={"type": "submit"})
    if button is None:
        return None
    return button.get("name") or None


class Authenticator:
    """
    Drives the ASP.NET WebForms login for the portal:

        fetch entry page -> locate login form (force /Default if missing)
        -> collect hidden postback fields -> post credentials -> verify

    Any failure here is fatal for the run; the caller decides how to exit.
    """

    def __init__(self, cfg: PortalConfig, client: PortalClient, log):
        self.cfg = cfg
        self.client = client
        self.log = log

    # ------------------------------------------------------------------
    def _has_login_form(self, soup: BeautifulSoup) -> bool:
        return soup.find("input", attrs={"name": self.cfg.login_field_user}) is not None

    def build_payload(self, soup: BeautifulSoup) -> Dict[str, str]:
        hidden = extract_hidden_fields(soup)
        if "__VIEWSTATE" not in hidden:
            raise AuthenticationError("Cannot login: ViewState missing.")

        button_name = find_submit_name(soup)
        if not button_name:
            self.log.warning("Login button not found; falling back to %s", DEFAULT_LOGIN_BUTTON)
            button_name = DEFAULT_LOGIN_BUTTON

        payload = dict(hidden)
        payload[self.cfg.login_field_user] = self.cfg.username
        payload[self.cfg.login_field_pass] = self.cfg.password
        payload[button_name] = LOGIN_BUTTON_VALUE
        return payload

    # ------------------------------------------------------------------
    def login(self) -> str:
        """Authenticate the shared session. Returns the URL the form was posted to."""
        self.log.info("Starting auth flow against %s", self.cfg.base_url)
        result = self.client.fetch_with_redirects(self.cfg.base_url)
        current_url = result.final_url
        soup = BeautifulSoup(result.response.text, "html.parser")

        if not self._has_login_form(soup):
            forced_url = f"{self.cfg.base_url}{self.cfg.fallback_login_path}"
            self.log.info("Username field not found. Forcing navigation to %s", forced_url)
            result = self.client.fetch_with_redirects(forced_url)
            current_url = result.final_url
            soup = BeautifulSoup(result.response.text, "html.parser")

        payload = self.build_payload(soup)

        self.log.info("Posting credentials to: %s", current_url)
        resp = self.client.post_form(current_url, payload, referer=current_url)
        self.log.info("Login status: %s", resp.status_code)

        if resp.status_code >= 500:
            raise AuthenticationError(f"Portal returned HTTP {resp.status_code} to login")
        if resp.status_code == 200:
            failure = BeautifulSoup(resp.text, "html.parser").select(FAILURE_SELECTOR)
            failure_text = "".join(el.get_text() for el in failure).strip()
            if failure_text:
                raise AuthenticationError(f'Server replied: "{failure_text}"')
        elif not is_redirect(resp.status_code):
            self.log.warning("Unexpected login status %s; continuing", resp.status_code)

        return current_url
