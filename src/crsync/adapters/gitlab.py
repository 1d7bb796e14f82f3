"""GitLab merge request adapter."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import requests

from crsync.domain.review import LedgerNote
from crsync.ports.change_request import ChangeRequest, ChangeRequestClient, ChangeRequestClientError
from crsync.ports.credentials import CredentialProvider

NOTES_PER_PAGE = 100
REQUEST_TIMEOUT = 30


class GitLabClient(ChangeRequestClient):
    """Talks to ``/api/v4`` of a GitLab instance for a single project."""

    def __init__(
        self,
        base_url: str,
        project: str,
        credentials: CredentialProvider,
        session: requests.Session | None = None,
        *,
        max_note_pages: int = 20,
    ) -> None:
        if not base_url or not project:
            raise ChangeRequestClientError("gitlab client requires 'base_url' and 'project'", code="CONFIG_INVALID")
        self._api = f"{base_url.rstrip('/')}/api/v4"
        self._project = quote(project.strip("/"), safe="")
        self._credentials = credentials
        self._session = session or requests.Session()
        self._max_note_pages = max_note_pages
        self._token: Optional[str] = None

    def find_open(self, source_branch: str) -> Optional[ChangeRequest]:
        payload = self._request(
            "GET",
            self._mr_url(),
            params={"source_branch": source_branch, "state": "opened"},
        )
        if not isinstance(payload, list) or not payload:
            return None
        return self.fetch(str(payload[0].get("iid")))

    def fetch(self, iid: str) -> ChangeRequest:
        payload = self._request("GET", self._mr_url(iid))
        return _change_request(payload)

    def update_description(self, iid: str, description: str, *, add_labels: Sequence[str] = ()) -> ChangeRequest:
        body: Dict[str, Any] = {"description": description}
        labels = [label for label in add_labels if label]
        if labels:
            body["add_labels"] = ",".join(labels)
        payload = self._request("PUT", self._mr_url(iid), json=body)
        return _change_request(payload)

    def list_notes(self, iid: str) -> List[LedgerNote]:
        url: Optional[str] = f"{self._mr_url(iid)}/notes"
        params: Optional[Dict[str, Any]] = {"per_page": NOTES_PER_PAGE, "sort": "desc", "order_by": "updated_at"}
        notes: List[LedgerNote] = []
        pages = 0
        while url and pages < self._max_note_pages:
            response = self._send("GET", url, params=params)
            payload = _decode(response)
            if not isinstance(payload, list):
                raise ChangeRequestClientError("gitlab notes response must be a list")
            notes.extend(_note(item) for item in payload if isinstance(item, dict) and not item.get("system"))
            pages += 1
            next_page = response.headers.get("X-Next-Page")
            if next_page:
                params = dict(params or {}, page=next_page)
            else:
                url = _next_link(response.headers.get("Link"))
                params = None
        return notes

    def create_note(self, iid: str, body: str) -> LedgerNote:
        payload = self._request("POST", f"{self._mr_url(iid)}/notes", json={"body": body})
        return _note(payload)

    def update_note(self, iid: str, note_id: str, body: str) -> LedgerNote:
        payload = self._request("PUT", f"{self._mr_url(iid)}/notes/{note_id}", json={"body": body})
        return _note(payload)

    def current_user_email(self) -> Optional[str]:
        try:
            payload = self._request("GET", f"{self._api}/user")
        except ChangeRequestClientError:
            return None
        if not isinstance(payload, dict):
            return None
        return payload.get("email") or payload.get("public_email") or None

    def _mr_url(self, iid: Optional[str] = None) -> str:
        base = f"{self._api}/projects/{self._project}/merge_requests"
        return f"{base}/{iid}" if iid else base

    def _headers(self) -> Dict[str, str]:
        if self._token is None:
            token = self._credentials.resolve()
            if not token:
                raise ChangeRequestClientError("gitlab access token is not available", code="GITLAB_TOKEN_MISSING")
            self._token = token
        return {"PRIVATE-TOKEN": self._token, "Accept": "application/json"}

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        return _decode(self._send(method, url, **kwargs))

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            response = self._session.request(method, url, headers=self._headers(), timeout=REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as exc:
            raise ChangeRequestClientError(f"gitlab request failed: {exc}") from exc
        if response.status_code >= 400:
            raise ChangeRequestClientError(
                f"gitlab request failed: {response.status_code} {response.text}",
                status=response.status_code,
            )
        return response


def _change_request(payload: Any) -> ChangeRequest:
    if not isinstance(payload, dict) or payload.get("iid") is None:
        raise ChangeRequestClientError("gitlab merge request payload is missing 'iid'")
    diff_refs = payload.get("diff_refs") if isinstance(payload.get("diff_refs"), dict) else {}
    labels = payload.get("labels") or []
    return ChangeRequest(
        iid=str(payload["iid"]),
        description=payload.get("description") or "",
        head_commit=diff_refs.get("head_sha") or payload.get("sha") or None,
        web_url=payload.get("web_url"),
        source_branch=payload.get("source_branch"),
        target_branch=payload.get("target_branch"),
        labels=tuple(str(label) for label in labels),
    )


def _note(payload: Any) -> LedgerNote:
    if not isinstance(payload, dict) or payload.get("id") is None:
        raise ChangeRequestClientError("gitlab note payload is missing 'id'")
    return LedgerNote(
        id=str(payload["id"]),
        body=payload.get("body") or "",
        updated_at=payload.get("updated_at") or payload.get("created_at"),
    )


def _next_link(link_header: str | None) -> str | None:
    if not link_header:
        return None
    parts = [part.strip() for part in link_header.split(",")]
    for part in parts:
        if "rel=\"next\"" in part:
            url_part, _ = part.split(";", 1)
            return url_part.strip(" <>")
    return None


def _decode(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise ChangeRequestClientError(
            f"gitlab returned a non-JSON response ({response.status_code}): {response.text[:200]}",
            status=response.status_code,
        ) from exc
