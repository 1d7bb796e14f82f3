from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from crsync.settings import RuntimeSettings
from crsync.utils import telemetry


@pytest.fixture()
def settings(tmp_path: Path) -> RuntimeSettings:
    return RuntimeSettings(home_dir=tmp_path, log_dir=tmp_path / "logs")


def test_events_are_appended_as_json_lines(settings: RuntimeSettings) -> None:
    telemetry.record_event(settings, "sync", {"ticket": "ABC-1"})
    telemetry.record_structured_event(
        settings,
        "validate",
        payload={"ok": False},
        level="warn",
        status="invalid",
        component="cli",
        duration_ms=12.5,
    )

    lines = settings.telemetry_file.read_text(encoding="utf-8").splitlines()
    second = json.loads(lines[1])
    assert len(lines) == 2
    assert second["durationMs"] == 12.5
    assert second["component"] == "cli"

    events = list(telemetry.iter_events(settings))
    assert [event["event"] for event in events] == ["sync", "validate"]
    assert telemetry.summarize(events) == {
        "total": 2,
        "by_event": {"sync": 1, "validate": 1},
        "by_level": {"info": 1, "warn": 1},
    }


def test_opt_out_disables_recording(settings: RuntimeSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CRSYNC_TELEMETRY", "off")
    telemetry.record_event(settings, "sync")
    assert not settings.telemetry_file.exists()


def test_invalid_records_are_rejected(settings: RuntimeSettings) -> None:
    with pytest.raises(ValueError):
        telemetry.record_structured_event(settings, "sync", level="debug")
    with pytest.raises(ValueError):
        telemetry.record_structured_event(settings, " ")
    with pytest.raises(ValueError):
        telemetry.record_structured_event(settings, "sync", duration_ms=-1)


def test_payload_must_be_serializable_object(settings: RuntimeSettings) -> None:
    with pytest.raises((ValueError, jsonschema.ValidationError)):
        telemetry.record_structured_event(settings, "sync", payload=["not", "a", "dict"])  # type: ignore[arg-type]


def test_iter_events_skips_garbage_and_clear_removes_log(settings: RuntimeSettings) -> None:
    settings.telemetry_file.parent.mkdir(parents=True)
    settings.telemetry_file.write_text('{"event": "sync"}\nnot-json\n\n', encoding="utf-8")

    assert [event["event"] for event in telemetry.iter_events(settings)] == ["sync"]
    assert telemetry.clear(settings) is True
    assert not settings.telemetry_file.exists()
    assert telemetry.clear(settings) is False
    assert list(telemetry.iter_events(settings)) == []


def test_tail_keeps_most_recent_events(settings: RuntimeSettings) -> None:
    for name in ("sync", "validate", "render"):
        telemetry.record_event(settings, name)

    assert [event["event"] for event in telemetry.tail(settings, 2)] == ["validate", "render"]
    assert telemetry.tail(settings, 0) == []
