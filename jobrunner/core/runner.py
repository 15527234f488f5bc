from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from .errors import JobValidationError, MethodNotFound
from .target import InvocationRequest
from .validator import JobValidator
from ..registry.job_registry import lookup_class_attr

if TYPE_CHECKING:
    from ..joblog.job_log import JobLog


DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 5.0


def _bind(instance: object, method: str) -> Callable[..., object]:
    # Same lookup the validator approved; instance and metaclass attributes are ignored.
    cls = type(instance)
    attr = lookup_class_attr(cls, method)
    if attr is None:
        raise MethodNotFound(
            code="job.method_not_found",
            message=f"Method {method} does not exist in {cls.__qualname__}",
            data={"method": method},
        )
    getter = getattr(type(attr), "__get__", None)
    return getter(attr, instance, cls) if getter is not None else attr


@dataclass(frozen=True)
class JobOutcome:
    ok: bool
    attempts: int = 0
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


class JobRunner:
    """
    Runs one job end-to-end: validate -> invoke -> retry -> log.

    Hard rules:
    - nothing is instantiated before the target is fully validated.
    - validation failures are never retried.
    - no job error escapes run()/execute(); details live in the log stream.
    """

    def __init__(
        self,
        validator: JobValidator,
        log: "JobLog",
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds must be >= 0")
        self._validator = validator
        self._log = log
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        self._sleep = sleep

    @property
    def log(self) -> "JobLog":
        return self._log

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def retry_delay_seconds(self) -> float:
        return self._retry_delay

    def run(self, request: InvocationRequest, retry_budget: Optional[int] = None) -> bool:
        return self.execute(request, retry_budget=retry_budget).ok

    def execute(self, request: InvocationRequest, retry_budget: Optional[int] = None) -> JobOutcome:
        target = request.target
        budget = self._max_retries if retry_budget is None else max(0, int(retry_budget))

        try:
            entry = self._validator.validate(target)
        except JobValidationError as e:
            self._log.failed(target, e, error_code=e.code)
            return JobOutcome(ok=False, attempts=0, error_code=e.code, error_message=e.message)

        self._log.started(target, request.params())

        attempt = 0
        while True:
            attempt += 1
            try:
                instance = entry.instantiate()
                _bind(instance, target.method)(*request.args, **request.kwargs)
            except JobValidationError as e:
                # Raised by the job itself: deterministic, so terminal.
                self._log.failed(target, e, error_code=e.code, attempt=attempt)
                return JobOutcome(ok=False, attempts=attempt, error_code=e.code, error_message=e.message)
            except Exception as e:  # noqa: BLE001
                if budget > 0:
                    self._log.retry(target, e, retries_left=budget, attempt=attempt)
                    self._sleep(self._retry_delay)
                    budget -= 1
                    continue
                self._log.failed(target, e, error_code="job.execution_failed", attempt=attempt)
                return JobOutcome(ok=False, attempts=attempt, error_code="job.execution_failed", error_message=str(e))

            self._log.completed(target, attempt)
            return JobOutcome(ok=True, attempts=attempt)
