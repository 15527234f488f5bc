from __future__ import annotations

import uuid
from typing import Callable, Optional

from jobrunner.config import RunnerConfig
from jobrunner.core.runner import JobRunner
from jobrunner.core.target import normalize_type_id
from jobrunner.core.validator import JobValidator
from jobrunner.joblog.job_log import JobLog
from jobrunner.registry.job_registry import JobRegistry


def build_job_registry(config: RunnerConfig) -> JobRegistry:
    """
    Register every approved job type: namespace discovery first, then explicit `jobs` entries.
    """
    reg = JobRegistry()
    for ns in config.approved_namespaces:
        reg.register_namespace(ns)
    for job in config.jobs:
        if normalize_type_id(job.spec) in reg:
            # Already discovered via its namespace: the explicit entry adds the alias and narrows methods.
            reg.configure(job.spec, alias=job.alias, methods=job.methods)
        else:
            reg.register_spec(job.alias, job.spec, methods=job.methods)
    return reg


def new_run_id() -> str:
    return f"run_{uuid.uuid4().hex[:12]}"


def build_runner(
    config: RunnerConfig,
    *,
    run_id: Optional[str] = None,
    registry: Optional[JobRegistry] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> JobRunner:
    """
    Composition root: one runner per process, wired from configuration.
    """
    reg = registry if registry is not None else build_job_registry(config)
    validator = JobValidator(reg, config.approved_namespaces)
    log = JobLog.to_files(config.log_path, config.error_log_path, run_id=run_id or new_run_id())
    kwargs = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    return JobRunner(
        validator,
        log,
        max_retries=config.max_retries,
        retry_delay_seconds=config.retry_delay_seconds,
        **kwargs,
    )
