import json
from unittest.mock import MagicMock

import pytest
from requests.structures import CaseInsensitiveDict

from github_merge_lock.client import GitHubClient
from github_merge_lock.config import Settings
from github_merge_lock.rulesets import LockController


def build_response(body=None, status=200, content_type="application/json"):
    response = MagicMock()
    response.status_code = status
    response.headers = CaseInsensitiveDict({"Content-Type": content_type})
    if isinstance(body, str):
        response.text = body
        response.json.side_effect = ValueError("not json")
    else:
        response.text = "" if body is None else json.dumps(body)
        response.json.return_value = body
    response.content = response.text.encode("utf-8")
    return response


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def session():
    fake = MagicMock()
    fake.headers = {}
    return fake


@pytest.fixture
def client(session):
    return GitHubClient(Settings(token="test-token"), session)


@pytest.fixture
def controller(client):
    return LockController.from_client(client)


def ruleset(id=1, name="github-merge-lock:main", enforcement="active"):
    return {"id": id, "name": name, "target": "branch", "enforcement": enforcement}


@pytest.fixture
def make_ruleset():
    return ruleset
