"""Newline-delimited JSON dispatch log for the MCP gateway."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping
from uuid import uuid4


@dataclass
class DispatchLogEvent:
    """In-memory representation of one dispatched JSON-RPC message."""

    ts: datetime
    trace_id: str
    session_id: str | None
    request_id: Any
    method: str | None
    transport: str
    status: str
    duration_ms: float
    tool: str | None = None
    error: Mapping[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialise the event to a JSON-compatible payload."""

        ts = self.ts
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        else:
            ts = ts.astimezone(timezone.utc)
        ts_value = ts.isoformat().replace("+00:00", "Z")

        return {
            "ts": ts_value,
            "trace_id": str(self.trace_id),
            "session_id": self.session_id,
            "request_id": self.request_id,
            "method": self.method,
            "transport": self.transport,
            "status": self.status,
            "duration_ms": float(self.duration_ms),
            "tool": self.tool,
            "error": dict(self.error) if self.error is not None else None,
        }


class JsonLogWriter:
    """Persist dispatch events to newline-delimited JSON.

    Writes are best-effort: an I/O failure keeps the line buffered and closes
    the handle so the next write retries, but never raises into a request.
    """

    def __init__(self, directory: str | Path, *, retention: int = 5) -> None:
        self._run_id = uuid4().hex
        self.directory = Path(directory) / "logs" / "mcp_gateway"
        self.path = self.directory / f"dispatch-{self._run_id}.jsonl"
        self._retention = max(retention, 1)
        self._lock = threading.Lock()
        self._sequence = 0
        self._buffer: list[str] = []
        self._handle = None
        self.directory.mkdir(parents=True, exist_ok=True)
        self._enforce_retention()

    def write(self, event: DispatchLogEvent) -> None:
        payload = event.to_payload()
        payload["run_id"] = self._run_id
        payload["sequence"] = self._sequence
        self._sequence += 1

        serialised = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
        line = f"{serialised}\n"

        with self._lock:
            self._buffer.append(line)
            self._ensure_handle()
            self._flush_buffer()

    def close(self) -> None:
        """Flush buffered events and close the underlying file handle."""

        with self._lock:
            self._ensure_handle()
            self._flush_buffer()
            if self._handle is not None:
                try:
                    self._handle.flush()
                finally:
                    self._handle.close()
                    self._handle = None

    def __enter__(self) -> "JsonLogWriter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _ensure_handle(self) -> None:
        if self._handle is not None:
            return
        try:
            self._handle = self.path.open("a", encoding="utf-8")
        except OSError:
            self._handle = None

    def _flush_buffer(self) -> None:
        if not self._buffer or self._handle is None:
            return
        try:
            self._handle.writelines(self._buffer)
            self._handle.flush()
            self._buffer.clear()
        except OSError:
            # Keep the buffer and drop the handle so the next write reopens it.
            try:
                self._handle.close()
            finally:
                self._handle = None

    def _enforce_retention(self) -> None:
        try:
            candidates = sorted(
                (p for p in self.directory.glob("dispatch-*.jsonl") if p.is_file()),
                key=lambda entry: entry.stat().st_mtime,
            )
        except OSError:
            return

        # Leave room for the file this writer is about to create.
        excess = len(candidates) - (self._retention - 1)
        if excess <= 0:
            return

        for old_path in candidates[:excess]:
            try:
                old_path.unlink()
            except OSError:
                continue


__all__ = ["DispatchLogEvent", "JsonLogWriter"]
