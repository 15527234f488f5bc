from __future__ import annotations

import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Protocol

from jobrunner.core.target import Target

from .log_store_jsonl import JobLogStoreJSONL


JOBS_CHANNEL = "background_jobs"
ERRORS_CHANNEL = "background_jobs_errors"


class LogStore(Protocol):
    def append(self, record: dict[str, Any]) -> None: ...


def format_trace(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


class JobLog:
    """
    Emits one record per job phase transition to its channel.

    Records are appended, never rewritten. Per job the order is:
    started, then completed, or retry* followed by failed.
    """

    def __init__(self, stores: Mapping[str, LogStore], run_id: str):
        missing = [c for c in (JOBS_CHANNEL, ERRORS_CHANNEL) if c not in stores]
        if missing:
            raise KeyError(", ".join(missing))
        self._stores = dict(stores)
        self._run_id = run_id

    @classmethod
    def to_files(cls, log_path: Path, error_log_path: Path, run_id: str) -> "JobLog":
        return cls(
            {
                JOBS_CHANNEL: JobLogStoreJSONL(log_path),
                ERRORS_CHANNEL: JobLogStoreJSONL(error_log_path),
            },
            run_id=run_id,
        )

    @property
    def run_id(self) -> str:
        return self._run_id

    def emit(
        self,
        event_type: str,
        *,
        channel: str,
        level: str,
        target: Target,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "run_id": self._run_id,
            "channel": channel,
            "level": level,
            "event_type": event_type,
            "target": target.as_dict(),
            "message": message,
        }
        if data is not None:
            record["data"] = data

        self._stores[channel].append(record)

    def started(self, target: Target, params: Any) -> None:
        self.emit(
            "job_started",
            channel=JOBS_CHANNEL,
            level="info",
            target=target,
            message=f"Job Started: {target}",
            data={"params": params},
        )

    def completed(self, target: Target, attempt: int) -> None:
        self.emit(
            "job_completed",
            channel=JOBS_CHANNEL,
            level="info",
            target=target,
            message=f"Job Completed: {target}",
            data={"attempt": attempt},
        )

    def retry(self, target: Target, exc: BaseException, retries_left: int, attempt: int) -> None:
        self.emit(
            "job_retry",
            channel=ERRORS_CHANNEL,
            level="warning",
            target=target,
            message=f"Job Retry: {target}",
            data={"error": str(exc), "retries_left": retries_left, "attempt": attempt},
        )

    def failed(self, target: Target, exc: BaseException, *, error_code: str | None = None, attempt: int = 0) -> None:
        data: dict[str, Any] = {"error": str(exc), "trace": format_trace(exc), "attempt": attempt}
        if error_code is not None:
            data["error_code"] = error_code
        self.emit(
            "job_failed",
            channel=ERRORS_CHANNEL,
            level="error",
            target=target,
            message=f"Job Failed: {target}",
            data=data,
        )

    def arguments_defaulted(self, target: Target, payload: str) -> None:
        self.emit(
            "arguments_defaulted",
            channel=ERRORS_CHANNEL,
            level="warning",
            target=target,
            message=f"Unparseable arguments for {target}; running with none",
            data={"payload": payload[:200]},
        )
