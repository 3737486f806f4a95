"""
Shared fixtures: a fake requests session serving canned Management API pages.
"""

import pytest
import requests

from contentful_export.config import ExportConfig

BASE_URL = "https://api.example.test"
ORG_URL = f"{BASE_URL}/organizations/org1"

ENV_VARS = (
    "CONTENTFUL_MANAGEMENT_API_TOKEN",
    "CONTENTFUL_ORGANIZATION_ID",
    "CONTENTFUL_BASE_URL",
    "CONTENTFUL_REQUEST_TIMEOUT",
)


def membership(user_id=None, **fields):
    item = {"sys": {"type": "OrganizationMembership"}}
    if user_id:
        item["sys"]["user"] = {"sys": {"type": "Link", "linkType": "User", "id": user_id}}
    item.update(fields)
    return item


def user(user_id, email="", first_name="", last_name=""):
    return {
        "sys": {"type": "User", "id": user_id},
        "email": email,
        "firstName": first_name,
        "lastName": last_name,
    }


def team(team_id, name):
    item = {"name": name, "sys": {"type": "Team"}}
    if team_id:
        item["sys"]["id"] = team_id
    return item


def page(items, total=None, users=None):
    body = {"items": items, "total": len(items) if total is None else total}
    if users is not None:
        body["includes"] = {"User": users}
    return body


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error", response=None)

    def json(self):
        return self.payload


class FakeSession:
    """Routes GET requests by URL; each route is a list of pages indexed by skip // 100.

    A page may be a dict (served as JSON), a FakeResponse, or an exception to raise.
    Unknown URLs return an empty collection.
    """

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls = []

    def get(self, url, params=None, timeout=None):
        params = dict(params or {})
        self.calls.append((url, params))
        pages = self.routes.get(url, [page([])])
        entry = pages[params.get("skip", 0) // 100]
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, FakeResponse):
            return entry
        return FakeResponse(entry)

    def calls_to(self, url):
        return [params for called_url, params in self.calls if called_url == url]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so values written by load_dotenv are removed on teardown
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.fixture
def config():
    return ExportConfig(api_token="token", organization_id="org1", base_url=BASE_URL)


@pytest.fixture
def fake_session():
    return FakeSession()
