from __future__ import annotations

import argparse
import dataclasses
import json
import os
import re
from pathlib import Path
from typing import Dict, List, Optional

from jobrunner.bootstrap import build_job_registry, build_runner, new_run_id
from jobrunner.config import RunnerConfig, load_config
from jobrunner.core.arguments import parse_arguments
from jobrunner.core.errors import ArgumentsInvalid, JobRunnerError
from jobrunner.core.target import InvocationRequest, Target
from jobrunner.joblog.job_log import ERRORS_CHANNEL, JOBS_CHANNEL
from jobrunner.joblog.replay import Replay
from jobrunner.launcher import spawn_background_job


_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_DOTENV_NAMES = (".env", "env")


def _parse_dotenv(text: str) -> Dict[str, str]:
    """
    KEY=VALUE pairs from dotenv text.

    Accepts an optional 'export ' prefix, skips blanks and '#' comments,
    and strips one pair of matching surrounding quotes.
    """
    pairs: Dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or line.startswith("#") or not _ENV_KEY_RE.match(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        pairs[key] = value
    return pairs


def _dotenv_dirs(cwd: Path) -> List[Path]:
    dirs = [cwd]
    config = os.environ.get("JOBRUNNER_CONFIG")
    if config:
        parent = Path(config).expanduser().parent
        if parent.resolve() != cwd.resolve():
            dirs.append(parent)
    return dirs


def _maybe_load_dotenv(cwd: Optional[Path] = None) -> None:
    """
    Fill os.environ from .env/env next to the working directory and $JOBRUNNER_CONFIG.

    Variables already set always win; JOBRUNNER_DISABLE_DOTENV=1 turns this off.
    """
    if os.environ.get("JOBRUNNER_DISABLE_DOTENV", "").strip().lower() in ("1", "true", "yes"):
        return
    for d in _dotenv_dirs(cwd or Path.cwd()):
        for name in _DOTENV_NAMES:
            path = d / name
            if not path.is_file():
                continue
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            for key, value in _parse_dotenv(text).items():
                os.environ.setdefault(key, value)


def _format_cli_error(e: Exception) -> str:
    """
    code/message for JobRunnerError, plus its data payload when present.
    """
    if isinstance(e, JobRunnerError) and isinstance(e.data, dict) and e.data:
        return str(e) + "\n" + json.dumps(e.data, ensure_ascii=False, indent=2)
    return str(e)


def _config_from_args(args: argparse.Namespace) -> RunnerConfig:
    config = load_config(getattr(args, "config", None))
    overrides = {}
    if getattr(args, "max_retries", None) is not None:
        overrides["max_retries"] = args.max_retries
    if getattr(args, "retry_delay", None) is not None:
        overrides["retry_delay_seconds"] = args.retry_delay
    return dataclasses.replace(config, **overrides) if overrides else config


def cmd_run(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    runner = build_runner(config, run_id=args.run_id or new_run_id())
    target = Target(type_id=args.type_id, method=args.method)

    try:
        pos, kw, ok = parse_arguments(args.params, strict=bool(args.strict_args))
    except ArgumentsInvalid as e:
        runner.log.failed(target, e, error_code=e.code)
        print(_format_cli_error(e))
        return 1
    if not ok:
        runner.log.arguments_defaulted(target, args.params or "")

    outcome = runner.execute(InvocationRequest(target=target, args=pos, kwargs=kw))
    print(
        json.dumps(
            {
                "ok": outcome.ok,
                "attempts": outcome.attempts,
                "error_code": outcome.error_code,
                "run_id": runner.log.run_id,
            },
            ensure_ascii=False,
        )
    )
    return 0 if outcome.ok else 1


def cmd_spawn(args: argparse.Namespace) -> int:
    pos, kw, _ok = parse_arguments(args.params, strict=bool(args.strict_args))
    params = kw if kw else list(pos)
    run_id = args.run_id or new_run_id()
    proc = spawn_background_job(args.type_id, args.method, params, config_path=args.config, run_id=run_id)
    print(json.dumps({"pid": proc.pid, "run_id": run_id}))
    return 0


def cmd_list_jobs(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    jobs = build_job_registry(config).list_jobs()
    if args.json:
        print(json.dumps(jobs, ensure_ascii=False, indent=2))
    else:
        for j in jobs:
            aliases = ", ".join(j["aliases"])
            suffix = f" ({aliases})" if aliases else ""
            print("{type_id}{suffix} - {doc}".format(type_id=j["type_id"], suffix=suffix, doc=j["doc"]))
    return 0


def cmd_check_config(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    reg = build_job_registry(config)
    source = str(config.source) if config.source else "(defaults)"
    print(f"Config OK: {source} ({len(reg)} job types)")
    return 0


def cmd_show_log(args: argparse.Namespace) -> int:
    if args.log:
        path = Path(args.log)
    else:
        config = load_config(args.config)
        path = config.log_path if args.channel == JOBS_CHANNEL else config.error_log_path
    events = list(Replay(path).iter_events())

    if args.event_type:
        events = [e for e in events if e.get("event_type") == args.event_type]
    if args.run_id:
        events = [e for e in events if e.get("run_id") == args.run_id]

    if args.tail is not None and args.tail >= 0:
        events = events[-args.tail :] if args.tail else []

    for e in events:
        if args.pretty:
            print(json.dumps(e, ensure_ascii=False, indent=2))
        else:
            print(json.dumps(e, ensure_ascii=False))
    return 0


def main(argv=None) -> int:
    _maybe_load_dotenv()
    parser = argparse.ArgumentParser(prog="jobrunner", description="Run an approved job with bounded retries")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Validate and run one job synchronously (exit 0 on success, 1 on failure)")
    p_run.add_argument("type_id", help="Job type (e.g. app.jobs.SendEmail, app.jobs:SendEmail or a configured alias)")
    p_run.add_argument("method", help="Public method to invoke")
    p_run.add_argument("params", nargs="?", default="[]", help="JSON array (positional) or object (keyword) arguments")
    p_run.add_argument("--config", help="Config YAML (default: $JOBRUNNER_CONFIG or ./jobrunner.yml)")
    p_run.add_argument("--max-retries", type=int, help="Override max_retries")
    p_run.add_argument("--retry-delay", type=float, help="Override retry_delay_seconds")
    p_run.add_argument("--strict-args", action="store_true", help="Fail on unparseable params instead of running with none")
    p_run.add_argument("--run-id", help="Run ID for log correlation (default: random)")
    p_run.set_defaults(func=cmd_run)

    p_spawn = sub.add_parser("spawn", help="Run a job in a detached background process")
    p_spawn.add_argument("type_id", help="Job type")
    p_spawn.add_argument("method", help="Public method to invoke")
    p_spawn.add_argument("params", nargs="?", default="[]", help="JSON array or object arguments")
    p_spawn.add_argument("--config", help="Config YAML passed through to the child")
    p_spawn.add_argument("--strict-args", action="store_true", help="Refuse unparseable params instead of spawning with none")
    p_spawn.add_argument("--run-id", help="Run ID for log correlation (default: random)")
    p_spawn.set_defaults(func=cmd_spawn)

    p_list = sub.add_parser("list-jobs", help="List approved job types")
    p_list.add_argument("--config", help="Config YAML")
    p_list.add_argument("--json", action="store_true", help="Output JSON")
    p_list.set_defaults(func=cmd_list_jobs)

    p_check = sub.add_parser("check-config", help="Validate config and approved namespaces")
    p_check.add_argument("--config", help="Config YAML")
    p_check.set_defaults(func=cmd_check_config)

    p_show = sub.add_parser("show-log", help="Show job log records from a JSONL channel file")
    p_show.add_argument("--log", help="Log path (jsonl); overrides --channel")
    p_show.add_argument(
        "--channel",
        default=JOBS_CHANNEL,
        choices=[JOBS_CHANNEL, ERRORS_CHANNEL],
        help="Channel to read from the configured log paths",
    )
    p_show.add_argument("--config", help="Config YAML (for channel paths)")
    p_show.add_argument("--event-type", help="Filter by event_type")
    p_show.add_argument("--run-id", help="Filter by run_id")
    p_show.add_argument("--tail", type=int, help="Show only last N records")
    p_show.add_argument("--pretty", action="store_true", help="Pretty-print each record")
    p_show.set_defaults(func=cmd_show_log)

    ns = parser.parse_args(argv)
    try:
        return int(ns.func(ns))
    except Exception as e:  # noqa: BLE001
        print(_format_cli_error(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
