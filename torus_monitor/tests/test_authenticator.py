# torus_monitor/tests/test_authenticator.py

import pytest
import requests

from torus_monitor.config import PortalConfig
from torus_monitor.logging import ConsoleLog, get_logger
from torus_monitor.services.authenticator import AuthenticationError, Authenticator
from torus_monitor.services.portal_client import PortalClient

from .fakes import LOGIN_FAILED_PAGE, LOGIN_PAGE, FakeResponse, FakeSession


ConsoleLog(level="INFO", quiet=True).setup()
LOG = get_logger("auth-test")

BASE = "https://portal.test"


def _auth(routes):
    cfg = PortalConfig(username="alice", password="s3cret", base_url=BASE)
    session = FakeSession(routes)
    client = PortalClient(cfg, LOG, session=session)
    return Authenticator(cfg, client, LOG), session


def _posts(session):
    return [c for c in session.calls if c["method"] == "POST"]


def test_login_posts_hidden_fields_and_credentials():
    auth, session = _auth({
        ("GET", BASE): [FakeResponse(302, headers={"Location": "/Account/Login.aspx"})],
        ("GET", f"{BASE}/Account/Login.aspx"): [FakeResponse(200, text=LOGIN_PAGE)],
        ("POST", f"{BASE}/Account/Login.aspx"): [FakeResponse(302, headers={"Location": "/MemberPages/Home.aspx"})],
    })

    posted_to = auth.login()

    assert posted_to == f"{BASE}/Account/Login.aspx"
    post = _posts(session)[0]
    assert post["data"] == {
        "__VIEWSTATE": "vs-token",
        "__VIEWSTATEGENERATOR": "CA0B0334",
        "__EVENTVALIDATION": "ev-token",
        "ctl00$MainContent$UserName": "alice",
        "ctl00$MainContent$Password": "s3cret",
        "ctl00$MainContent$LoginBtn": "Log In",
    }
    assert post["headers"]["Referer"] == f"{BASE}/Account/Login.aspx"


def test_forces_default_when_login_form_missing():
    auth, session = _auth({
        ("GET", BASE): [FakeResponse(200, text="<html><body>Welcome</body></html>")],
        ("GET", f"{BASE}/Default"): [FakeResponse(200, text=LOGIN_PAGE)],
        ("POST", f"{BASE}/Default"): [FakeResponse(302, headers={"Location": "/MemberPages/Home.aspx"})],
    })

    assert auth.login() == f"{BASE}/Default"
    assert [c["url"] for c in session.calls] == [BASE, f"{BASE}/Default", f"{BASE}/Default"]


def test_missing_viewstate_is_fatal():
    page = LOGIN_PAGE.replace('id="__VIEWSTATE" value="vs-token"', 'id="__VIEWSTATE" value=""')
    auth, session = _auth({
        ("GET", BASE): [FakeResponse(200, text=page)],
    })

    with pytest.raises(AuthenticationError, match="ViewState"):
        auth.login()
    assert _posts(session) == []


def test_default_button_name_when_no_submit_input():
    page = LOGIN_PAGE.replace('type="submit" name="ctl00$MainContent$LoginBtn"', 'type="button"')
    auth, session = _auth({
        ("GET", BASE): [FakeResponse(200, text=page)],
        ("POST", BASE): [FakeResponse(302, headers={"Location": "/MemberPages/Home.aspx"})],
    })

    auth.login()

    assert _posts(session)[0]["data"]["ctl00$MainContent$LoginButton"] == "Log In"


def test_failure_notification_raises():
    auth, _ = _auth({
        ("GET", BASE): [FakeResponse(200, text=LOGIN_PAGE)],
        ("POST", BASE): [FakeResponse(200, text=LOGIN_FAILED_PAGE)],
    })

    with pytest.raises(AuthenticationError, match="not successful"):
        auth.login()


def test_status_200_without_failure_text_is_success():
    auth, _ = _auth({
        ("GET", BASE): [FakeResponse(200, text=LOGIN_PAGE)],
        ("POST", BASE): [FakeResponse(200, text="<html><span class='failureNotification'> </span></html>")],
    })
    assert auth.login() == BASE


def test_transport_error_propagates():
    auth, _ = _auth({
        ("GET", BASE): [requests.ConnectionError("portal down")],
    })
    with pytest.raises(requests.ConnectionError):
        auth.login()


def test_login_cookie_sent_on_post():
    auth, session = _auth({
        ("GET", BASE): [FakeResponse(200, text=LOGIN_PAGE, headers={"Set-Cookie": "ASP.NET_SessionId=xyz; path=/"})],
        ("POST", BASE): [FakeResponse(302, headers={"Location": "/MemberPages/Home.aspx", "Set-Cookie": ".ASPXAUTH=tok; path=/"})],
    })

    auth.login()

    assert _posts(session)[0]["headers"]["Cookie"] == "ASP.NET_SessionId=xyz"
    assert auth.client.store.cookies[".ASPXAUTH"] == ".ASPXAUTH=tok"
