import logging
from typing import Any

import requests

from .config import Settings
from .errors import ConfigurationError, NotFoundError, UpstreamError

log = logging.getLogger(__name__)

MAX_QUERY_PAGES = 20
PAGE_SIZE = 100


def date_equals(prop: str, value: str) -> dict[str, Any]:
    return {"property": prop, "date": {"equals": value}}


def date_between(prop: str, start: str, end: str) -> dict[str, Any]:
    return and_(
        {"property": prop, "date": {"on_or_after": start}},
        {"property": prop, "date": {"on_or_before": end}},
    )


def relation_contains(prop: str, page_id: str) -> dict[str, Any]:
    return {"property": prop, "relation": {"contains": page_id}}


def and_(*filters: dict[str, Any]) -> dict[str, Any]:
    return {"and": list(filters)}


def sort_by(prop: str, direction: str = "ascending") -> list[dict[str, str]]:
    return [{"property": prop, "direction": direction}]


class NotionClient:
    """Blocking client for the handful of Notion REST calls the planner makes.

    Every call is one HTTP round-trip (query pagination aside). A 404 from
    Notion raises NotFoundError; every other failure raises UpstreamError.
    """

    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self.base_url = settings.notion_api_url
        self.api_key = settings.notion_api_key
        self.notion_version = settings.notion_version
        self.timeout = settings.request_timeout
        self.session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("Missing NOTION_API_KEY.")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Notion-Version": self.notion_version,
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.session.request(method, url, headers=self._headers(), json=payload, timeout=self.timeout)
        except requests.RequestException as err:
            log.error("Notion %s %s failed: %s", method, path, err)
            raise UpstreamError(f"Record store request failed: {err}") from err

        if resp.status_code == 404:
            raise NotFoundError(_error_message(resp, "Record not found."))
        if resp.status_code >= 400:
            message = _error_message(resp, resp.text)
            log.error("Notion %s %s returned %s: %s", method, path, resp.status_code, message)
            raise UpstreamError(f"Record store rejected the request: {message}")
        try:
            return resp.json()
        except ValueError as err:
            raise UpstreamError("Record store returned an invalid response.") from err

    def query_database(
        self,
        database_id: str,
        filter: dict[str, Any] | None = None,
        sorts: list[dict[str, str]] | None = None,
    ) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        cursor: str | None = None
        page = 1
        while page <= MAX_QUERY_PAGES:
            body: dict[str, Any] = {"page_size": PAGE_SIZE}
            if filter:
                body["filter"] = filter
            if sorts:
                body["sorts"] = sorts
            if cursor:
                body["start_cursor"] = cursor
            data = self._request("POST", f"databases/{database_id}/query", body)
            results.extend(data.get("results") or [])
            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                break
            page += 1
        else:
            log.warning("Query on %s truncated after %d pages", database_id, MAX_QUERY_PAGES)
        return results

    def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return self._request("GET", f"pages/{page_id}")

    def create_page(self, database_id: str, properties: dict[str, Any]) -> dict[str, Any]:
        return self._request(
            "POST",
            "pages",
            {"parent": {"database_id": database_id}, "properties": properties},
        )

    def update_page(self, page_id: str, properties: dict[str, Any]) -> dict[str, Any]:
        return self._request("PATCH", f"pages/{page_id}", {"properties": properties})

    def archive_page(self, page_id: str) -> dict[str, Any]:
        return self._request("PATCH", f"pages/{page_id}", {"archived": True})


def _error_message(resp: requests.Response, default: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        return default
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return default
