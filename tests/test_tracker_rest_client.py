import json
from dataclasses import dataclass
from typing import Any

import pytest
import requests

from issuebatch.tracker_rest import TrackerAPIError, TrackerRestClient


@dataclass
class _DummyResponse:
    status_code: int
    payload: Any

    def json(self) -> Any:
        if isinstance(self.payload, str):
            raise ValueError("not json")
        return self.payload

    @property
    def text(self) -> str:
        payload = self.payload
        if isinstance(payload, (dict, list)):
            return json.dumps(payload)
        return str(payload)


class _DummySession:
    def __init__(self, responses: list[Any]):
        self._responses = responses
        self.request_log: list[tuple[str, str, dict[str, Any]]] = []
        self.headers: dict[str, str] = {}
        self.auth: Any = None

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: Any | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> _DummyResponse:
        self.request_log.append((method, url, {"json": json, "params": params, "timeout": timeout}))
        if not self._responses:
            raise AssertionError("No response queued for request")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(session: _DummySession) -> TrackerRestClient:
    return TrackerRestClient(
        domain="acme.atlassian.net", email="me@example.com", api_token="tok", session=session
    )


def test_get_issue_types_uses_project_query():
    session = _DummySession(
        [_DummyResponse(200, [{"id": "1", "name": "Story", "subtask": False}, "junk"])]
    )
    client = _client(session)

    types = client.get_issue_types("10000")

    assert types == [{"id": "1", "name": "Story", "subtask": False}]
    method, url, meta = session.request_log[0]
    assert method == "GET"
    assert url == "https://acme.atlassian.net/rest/api/3/issuetype/project"
    assert meta["params"] == {"projectId": "10000"}
    assert session.auth == ("me@example.com", "tok")


def test_search_users_passes_query():
    session = _DummySession([_DummyResponse(200, [{"accountId": "a1"}])])
    assert _client(session).search_users("dev@example.com") == [{"accountId": "a1"}]
    assert session.request_log[0][2]["params"] == {"query": "dev@example.com"}


def test_bulk_create_posts_issue_updates():
    session = _DummySession([_DummyResponse(201, {"issues": [{"key": "PROJ-1"}], "errors": []})])
    updates = [{"fields": {"summary": "A"}}]

    data = _client(session).bulk_create(updates)

    assert data["issues"][0]["key"] == "PROJ-1"
    method, url, meta = session.request_log[0]
    assert method == "POST"
    assert url.endswith("/rest/api/3/issue/bulk")
    assert meta["json"] == {"issueUpdates": updates}


def test_error_status_raises_with_detail():
    session = _DummySession([_DummyResponse(401, {"errorMessages": ["Not authorised"]})])
    with pytest.raises(TrackerAPIError) as excinfo:
        _client(session).myself()
    assert excinfo.value.status == 401
    assert "Not authorised" in str(excinfo.value)
    assert excinfo.value.payload == {"errorMessages": ["Not authorised"]}


def test_transport_failure_wrapped():
    session = _DummySession([requests.ConnectionError("connection refused")])
    with pytest.raises(TrackerAPIError) as excinfo:
        _client(session).get_issue_types("1")
    assert excinfo.value.status is None


def test_non_json_body_is_tolerated():
    session = _DummySession([_DummyResponse(200, "plain text")])
    assert _client(session).get_issue_types("1") == []
