"""HTTP client for the automated code review workflow service."""

from __future__ import annotations

from typing import Any, Dict

import requests

from crsync.ports.credentials import CredentialProvider
from crsync.ports.review import ReviewSubmission, ReviewSubmissionError, ReviewSubmitter

DEFAULT_TASK_ID = "code-review"
DEFAULT_TASK_VERSION = "v1"
REQUEST_TIMEOUT = 60


class HttpReviewSubmitter(ReviewSubmitter):
    def __init__(
        self,
        url: str | None,
        credentials: CredentialProvider,
        session: requests.Session | None = None,
        *,
        task_id: str = DEFAULT_TASK_ID,
        version: str = DEFAULT_TASK_VERSION,
    ) -> None:
        self._url = url
        self._credentials = credentials
        self._session = session or requests.Session()
        self._task_id = task_id
        self._version = version

    def is_configured(self) -> bool:
        return bool(self._url) and bool(self._credentials.resolve())

    def submit(self, submission: ReviewSubmission) -> Dict[str, Any]:
        api_key = self._credentials.resolve()
        if not self._url or not api_key:
            raise ReviewSubmissionError("review service url or api key is not configured")
        if not submission.email:
            raise ReviewSubmissionError("review submission requires an email address")
        body = {
            "taskId": self._task_id,
            "version": self._version,
            "input": {
                "mergeRequestUrl": submission.change_request_url,
                "email": submission.email,
                "headSha": submission.head_commit,
                **submission.extra,
            },
        }
        try:
            response = self._session.post(
                self._url,
                json=body,
                headers={"Content-Type": "application/json", "X-Api-Key": api_key},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise ReviewSubmissionError(f"review request failed: {exc}") from exc
        if response.status_code >= 400:
            raise ReviewSubmissionError(f"review request failed: {response.status_code} {response.text}")
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {"result": payload}
