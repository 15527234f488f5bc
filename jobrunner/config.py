from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import jsonschema
import yaml

from jobrunner.core.errors import ConfigError
from jobrunner.core.runner import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY_SECONDS
from jobrunner.resources import config_schema_path


DEFAULT_CONFIG_FILENAME = "jobrunner.yml"
DEFAULT_APPROVED_NAMESPACES = ("jobrunner.jobs",)
DEFAULT_LOG_PATH = "logs/background_jobs.jsonl"
DEFAULT_ERROR_LOG_PATH = "logs/background_jobs_errors.jsonl"


@dataclass(frozen=True)
class JobSpec:
    alias: str
    spec: str
    methods: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class RunnerConfig:
    """
    Process-wide settings; loaded once at start, never mutated.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    approved_namespaces: Tuple[str, ...] = DEFAULT_APPROVED_NAMESPACES
    jobs: Tuple[JobSpec, ...] = ()
    log_path: Path = Path(DEFAULT_LOG_PATH)
    error_log_path: Path = Path(DEFAULT_ERROR_LOG_PATH)
    source: Optional[Path] = None


def _config_schema() -> Dict[str, Any]:
    return json.loads(config_schema_path().read_text(encoding="utf-8"))


def validate_config_data(raw: Any) -> List[str]:
    """
    Returns a list of error strings (empty means valid).
    """
    validator = jsonschema.Draft202012Validator(_config_schema())
    errors = []
    for e in sorted(validator.iter_errors(raw), key=str):
        where = "/".join(str(p) for p in e.absolute_path)
        errors.append(f"{where}: {e.message}" if where else e.message)
    return errors


def resolve_config_path(path: Optional[str], env: Mapping[str, str]) -> Optional[Path]:
    if path:
        return Path(path).expanduser()
    env_path = env.get("JOBRUNNER_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    default = Path.cwd() / DEFAULT_CONFIG_FILENAME
    return default if default.exists() else None


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(code="config.not_found", message=f"Config file not found: {path}", data={"path": str(path)})
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(code="config.invalid", message=f"Config is not valid YAML: {path}", data={"error": str(e)}) from e
    if raw is None:
        return {}
    errors = validate_config_data(raw)
    if errors:
        raise ConfigError(code="config.invalid", message=f"Config validation failed: {path}", data={"errors": errors})
    return raw


def _job_specs(raw_jobs: Mapping[str, Any]) -> Tuple[JobSpec, ...]:
    specs: List[JobSpec] = []
    for alias in sorted(raw_jobs.keys()):
        v = raw_jobs[alias]
        if isinstance(v, str):
            specs.append(JobSpec(alias=alias, spec=v))
        else:
            methods = v.get("methods")
            specs.append(JobSpec(alias=alias, spec=v["class"], methods=tuple(methods) if methods is not None else None))
    return tuple(specs)


def _env_number(env: Mapping[str, str], key: str, cast):
    v = env.get(key)
    if v is None or not str(v).strip():
        return None
    try:
        n = cast(v)
    except ValueError as e:
        raise ConfigError(code="config.invalid", message=f"{key} must be a number", data={key: v}) from e
    if n < 0:
        raise ConfigError(code="config.invalid", message=f"{key} must be >= 0", data={key: v})
    return n


def load_config(path: Optional[str] = None, *, env: Optional[Mapping[str, str]] = None) -> RunnerConfig:
    """
    Resolve and load configuration.

    Lookup order: explicit path, $JOBRUNNER_CONFIG, ./jobrunner.yml, built-in defaults.
    Environment overrides (JOBRUNNER_MAX_RETRIES, JOBRUNNER_RETRY_DELAY_SECONDS,
    JOBRUNNER_LOG_PATH, JOBRUNNER_ERROR_LOG_PATH) win over the file.
    """
    env = os.environ if env is None else env
    config_path = resolve_config_path(path, env)
    raw = _read_yaml(config_path) if config_path is not None else {}

    max_retries = raw.get("max_retries", DEFAULT_MAX_RETRIES)
    retry_delay = raw.get("retry_delay_seconds", raw.get("retry_delay", DEFAULT_RETRY_DELAY_SECONDS))
    namespaces = raw.get("approved_namespaces")
    if namespaces is None:
        namespaces = list(DEFAULT_APPROVED_NAMESPACES)
    log_path = raw.get("log_path", DEFAULT_LOG_PATH)
    error_log_path = raw.get("error_log_path", DEFAULT_ERROR_LOG_PATH)

    env_retries = _env_number(env, "JOBRUNNER_MAX_RETRIES", int)
    if env_retries is not None:
        max_retries = env_retries
    env_delay = _env_number(env, "JOBRUNNER_RETRY_DELAY_SECONDS", float)
    if env_delay is not None:
        retry_delay = env_delay
    log_path = env.get("JOBRUNNER_LOG_PATH") or log_path
    error_log_path = env.get("JOBRUNNER_ERROR_LOG_PATH") or error_log_path

    return RunnerConfig(
        max_retries=int(max_retries),
        retry_delay_seconds=float(retry_delay),
        approved_namespaces=tuple(namespaces),
        jobs=_job_specs(raw.get("jobs") or {}),
        log_path=Path(os.path.expanduser(log_path)),
        error_log_path=Path(os.path.expanduser(error_log_path)),
        source=config_path,
    )
