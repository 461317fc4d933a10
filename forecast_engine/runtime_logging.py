"""JSON-lines event log for normalization warnings and skipped forecasts."""

from __future__ import annotations

import json
import os
import traceback
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable


ASSUMPTION_NORMALIZATION = "assumption_normalization"
UNKNOWN_ASSUMPTION_KEYS = "unknown_assumption_keys"
FORECAST_SKIPPED = "forecast_skipped"
FORECAST_CALCULATION = "forecast_calculation"
ACTUALS_NORMALIZATION = "actuals_normalization"
LOG_PARSE_ERROR = "log_parse_error"

_DEFAULT_LOG_DIR = Path(".local_store")
_LOG_FILE_NAME = "forecast_events.jsonl"
_STORAGE_ENV_VAR = "FORECAST_STORAGE_ROOT"

LOG_DIR = _DEFAULT_LOG_DIR
RUNTIME_EVENTS_LOG_FILE = LOG_DIR / _LOG_FILE_NAME


@dataclass(frozen=True)
class RuntimeEvent:
    level: str
    event: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    timestamp_utc: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_record(self, exc: BaseException | None = None) -> dict[str, Any]:
        record = asdict(self)
        if exc is not None:
            record.update(_exception_fields(exc))
        return record


def _exception_fields(exc: BaseException) -> dict[str, str]:
    if exc.__traceback__ is not None:
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    else:
        trace = traceback.format_exc()
    return {"exception_type": type(exc).__name__, "exception_message": str(exc), "traceback": trace}


def _json_default(value: Any):
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


def configure_log_root(path_value: str | Path | None) -> Path:
    """Point the event log at ``path_value``; blank values use ``.local_store``."""
    global LOG_DIR, RUNTIME_EVENTS_LOG_FILE
    text = "" if path_value is None else str(path_value).strip()
    LOG_DIR = Path(os.path.expandvars(os.path.expanduser(text))) if text else _DEFAULT_LOG_DIR
    RUNTIME_EVENTS_LOG_FILE = LOG_DIR / _LOG_FILE_NAME
    return LOG_DIR


def _write_records(records: list[dict[str, Any]]) -> None:
    if not records:
        return
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        with RUNTIME_EVENTS_LOG_FILE.open("a", encoding="utf-8") as f:
            for record in records:
                f.write(json.dumps(record, default=_json_default, ensure_ascii=False) + "\n")
    except (OSError, TypeError, ValueError):
        # A forecast never fails because its diagnostics could not be written.
        pass


def append_runtime_event(
    level: str,
    event: str,
    message: str,
    context: dict[str, Any] | None = None,
    exc: BaseException | None = None,
) -> None:
    entry = RuntimeEvent(level=str(level).upper(), event=str(event), message=str(message), context=dict(context or {}))
    _write_records([entry.to_record(exc)])


def log_warnings(event: str, warnings: Iterable[str], context: dict[str, Any] | None = None) -> None:
    """Write a batch of WARNING records, one per message, in a single append.

    Each record's context carries the caller's context plus the message's
    position in the batch.
    """
    messages = [str(m) for m in warnings]
    base = dict(context or {})
    _write_records(
        [
            RuntimeEvent(
                level="WARNING",
                event=event,
                message=message,
                context={**base, "warning_index": idx, "warning_count": len(messages)},
            ).to_record()
            for idx, message in enumerate(messages)
        ]
    )


def _parse_line(line: str) -> dict[str, Any]:
    try:
        return json.loads(line)
    except json.JSONDecodeError:
        return RuntimeEvent(
            level="ERROR",
            event=LOG_PARSE_ERROR,
            message="Malformed log line encountered.",
            context={"line": line},
        ).to_record()


def read_runtime_events(limit: int = 200, event: str | None = None) -> list[dict[str, Any]]:
    """Most recent records, oldest first, optionally only those named ``event``."""
    if limit <= 0 or not RUNTIME_EVENTS_LOG_FILE.exists():
        return []
    try:
        lines = RUNTIME_EVENTS_LOG_FILE.read_text(encoding="utf-8").splitlines()
    except OSError:
        return []
    records = [_parse_line(line) for line in lines if line.strip()]
    if event is not None:
        records = [r for r in records if r.get("event") == event]
    return records[-int(limit) :]


configure_log_root(os.getenv(_STORAGE_ENV_VAR, ""))
