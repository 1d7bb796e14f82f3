"""Structured JSONL telemetry for crsync commands (opt-out via CRSYNC_TELEMETRY=0)."""

from __future__ import annotations

import json
import os
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

from crsync.resources import schema_validator
from crsync.settings import RuntimeSettings

LEVELS = ("info", "warn", "error")
TELEMETRY_ENV = "CRSYNC_TELEMETRY"

_DISABLED = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class TelemetryEvent:
    """One line of ``telemetry.jsonl``; optional fields are omitted when unset."""

    event: str
    payload: dict[str, Any] = field(default_factory=dict)
    level: str = "info"
    status: str | None = None
    component: str | None = None
    correlation_id: str | None = None
    duration_ms: float | None = None
    ts: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if not isinstance(self.event, str) or not self.event.strip():
            raise ValueError("telemetry event name must be a non-empty string")
        if not isinstance(self.payload, dict):
            raise ValueError("telemetry payload must be a dict")
        if self.level not in LEVELS:
            raise ValueError(f"telemetry level '{self.level}' is not one of {', '.join(LEVELS)}")
        if self.duration_ms is not None and (not isinstance(self.duration_ms, (int, float)) or self.duration_ms < 0):
            raise ValueError("telemetry durationMs must be a non-negative number")

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "ts": float(self.ts),
            "event": self.event,
            "payload": self.payload,
            "level": self.level,
        }
        optional = {
            "status": self.status,
            "component": self.component,
            "correlationId": self.correlation_id,
            "durationMs": self.duration_ms,
        }
        record.update({key: value for key, value in optional.items() if value not in (None, "")})
        return record


def telemetry_enabled() -> bool:
    return os.getenv(TELEMETRY_ENV, "1").strip().lower() not in _DISABLED


def record_event(settings: RuntimeSettings, event: str, payload: dict[str, Any] | None = None, **extra: Any) -> None:
    record_structured_event(settings, event, payload=payload, **extra)


def record_structured_event(
    settings: RuntimeSettings,
    event: str,
    *,
    payload: dict[str, Any] | None = None,
    level: str = "info",
    status: str | None = None,
    component: str | None = None,
    correlation_id: str | None = None,
    duration_ms: float | None = None,
) -> None:
    if not telemetry_enabled():
        return
    entry = TelemetryEvent(
        event=event,
        payload={} if payload is None else payload,
        level=level,
        status=status,
        component=component,
        correlation_id=correlation_id,
        duration_ms=duration_ms,
    )
    record = entry.to_record()
    schema_validator("telemetry.schema.json").validate(record)
    log_path = settings.telemetry_file
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(record, ensure_ascii=False) + "\n")


def iter_events(settings: RuntimeSettings) -> Iterator[dict[str, Any]]:
    """Yield logged events in order; lines that are not JSON objects are skipped."""

    log_path = settings.telemetry_file
    if not log_path.exists():
        return
    with log_path.open("r", encoding="utf-8") as fh:
        for raw in fh:
            raw = raw.strip()
            if not raw:
                continue
            try:
                event = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(event, dict):
                yield event


def tail(settings: RuntimeSettings, limit: int) -> list[dict[str, Any]]:
    if limit <= 0:
        return []
    return list(deque(iter_events(settings), maxlen=limit))


def summarize(events: Iterable[dict[str, Any]]) -> dict[str, Any]:
    by_event: Counter[str] = Counter()
    by_level: Counter[str] = Counter()
    for evt in events:
        by_event[str(evt.get("event", "unknown"))] += 1
        by_level[str(evt.get("level", "info"))] += 1
    return {"total": sum(by_event.values()), "by_event": dict(by_event), "by_level": dict(by_level)}


def clear(settings: RuntimeSettings) -> bool:
    log_path = settings.telemetry_file
    if not log_path.exists():
        return False
    log_path.unlink()
    return True
