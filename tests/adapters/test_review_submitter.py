from __future__ import annotations

from typing import Any

import pytest
import requests

from crsync.adapters.credentials import StaticCredentialProvider
from crsync.adapters.review_api import HttpReviewSubmitter
from crsync.ports.review import ReviewSubmission, ReviewSubmissionError

URL = "https://review.example.com/api/tasks"


class DummyResponse:
    def __init__(self, status_code: int, payload: Any = None, *, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


class DummySession:
    def __init__(self, response: DummyResponse | None = None, *, error: Exception | None = None) -> None:
        self._response = response
        self._error = error
        self.calls: list[dict[str, Any]] = []

    def post(self, url: str, **kwargs: Any) -> DummyResponse:
        self.calls.append({"url": url, **kwargs})
        if self._error is not None:
            raise self._error
        assert self._response is not None
        return self._response


def _submission(**overrides: Any) -> ReviewSubmission:
    values: dict[str, Any] = {
        "change_request_url": "https://gitlab.example.com/web/app/-/merge_requests/42",
        "head_commit": "def5678",
        "email": "dev@example.com",
    }
    values.update(overrides)
    return ReviewSubmission(**values)


def test_is_configured_requires_url_and_key() -> None:
    assert HttpReviewSubmitter(URL, StaticCredentialProvider("key")).is_configured()
    assert not HttpReviewSubmitter(None, StaticCredentialProvider("key")).is_configured()
    assert not HttpReviewSubmitter(URL, StaticCredentialProvider(None)).is_configured()


def test_submit_posts_task_payload() -> None:
    session = DummySession(DummyResponse(200, {"jobId": "17"}))
    submitter = HttpReviewSubmitter(URL, StaticCredentialProvider("key"), session, task_id="cr", version="v2")

    response = submitter.submit(_submission(extra={"language": "en"}))

    assert response == {"jobId": "17"}
    call = session.calls[0]
    assert call["url"] == URL
    assert call["headers"]["X-Api-Key"] == "key"
    assert call["json"] == {
        "taskId": "cr",
        "version": "v2",
        "input": {
            "mergeRequestUrl": "https://gitlab.example.com/web/app/-/merge_requests/42",
            "email": "dev@example.com",
            "headSha": "def5678",
            "language": "en",
        },
    }


def test_submit_tolerates_empty_body() -> None:
    session = DummySession(DummyResponse(202))
    assert HttpReviewSubmitter(URL, StaticCredentialProvider("key"), session).submit(_submission()) == {}


def test_submit_requires_email() -> None:
    session = DummySession(DummyResponse(200, {}))
    with pytest.raises(ReviewSubmissionError):
        HttpReviewSubmitter(URL, StaticCredentialProvider("key"), session).submit(_submission(email=None))
    assert session.calls == []


@pytest.mark.parametrize(
    "session",
    [
        DummySession(DummyResponse(500, text="boom")),
        DummySession(error=requests.Timeout("slow")),
    ],
)
def test_submit_failures_raise_submission_error(session: DummySession) -> None:
    submitter = HttpReviewSubmitter(URL, StaticCredentialProvider("key"), session)
    with pytest.raises(ReviewSubmissionError) as excinfo:
        submitter.submit(_submission())
    assert excinfo.value.code == "REVIEW_SUBMISSION_FAILED"
