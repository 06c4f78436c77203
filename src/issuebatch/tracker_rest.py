from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import requests

API_PREFIX = "/rest/api/3"
USER_AGENT = "issuebatch-rest/0.2.0"
HTTP_ERROR_STATUS = 400


class TrackerAPIError(RuntimeError):
    """Raised when the tracker REST API returns an error or cannot be reached."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
        payload: Any | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text
        self.payload = payload


def _error_detail(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    parts: list[str] = []
    messages = payload.get("errorMessages")
    if isinstance(messages, list):
        parts.extend(str(m) for m in messages if m)
    errors = payload.get("errors")
    if isinstance(errors, dict):
        parts.extend(f"{k}: {v}" for k, v in errors.items())
    return " ".join(parts)


@dataclass
class TrackerRestClient:
    """Blocking REST client for the tracker's v3 API (HTTP Basic auth)."""

    domain: str
    email: str
    api_token: str
    timeout: float = 30.0
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        self._session.auth = (self.email, self.api_token)
        self._session.headers.setdefault("Accept", "application/json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    @property
    def base_url(self) -> str:
        return f"https://{self.domain.rstrip('/')}{API_PREFIX}"

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._session.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TrackerAPIError(f"Tracker API {method} {path} could not be reached: {exc}") from exc
        payload: Any = None
        if response.text:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
        if response.status_code >= HTTP_ERROR_STATUS:
            detail = _error_detail(payload)
            raise TrackerAPIError(
                f"Tracker API {method} {path} failed with {response.status_code}"
                + (f": {detail}" if detail else ""),
                status=response.status_code,
                response_text=response.text,
                payload=payload,
            )
        return payload

    # ---- Operations ---------------------------------------------------
    def myself(self) -> dict[str, Any]:
        data = self._request("GET", "/myself")
        return data if isinstance(data, dict) else {}

    def get_issue_types(self, project_id: str) -> list[dict[str, Any]]:
        data = self._request("GET", "/issuetype/project", params={"projectId": project_id})
        if not isinstance(data, list):
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    def search_users(self, query: str) -> list[dict[str, Any]]:
        data = self._request("GET", "/user/search", params={"query": query})
        if not isinstance(data, list):
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    def bulk_create(self, issue_updates: Sequence[dict[str, Any]]) -> dict[str, Any]:
        data = self._request(
            "POST", "/issue/bulk", json_body={"issueUpdates": list(issue_updates)}
        )
        return data if isinstance(data, dict) else {}


__all__ = ["TrackerAPIError", "TrackerRestClient", "API_PREFIX"]
