from __future__ import annotations

import json
import subprocess
import sys
from typing import Any, Dict, List, Optional


def build_command(
    type_id: str,
    method: str,
    params: Any = None,
    *,
    config_path: Optional[str] = None,
    run_id: Optional[str] = None,
) -> List[str]:
    cmd = [sys.executable, "-m", "jobrunner", "run", type_id, method, json.dumps(params if params is not None else [])]
    if config_path:
        cmd += ["--config", config_path]
    if run_id:
        cmd += ["--run-id", run_id]
    return cmd


def _detach_kwargs(platform: str) -> Dict[str, Any]:
    if platform.startswith("win"):
        flags = getattr(subprocess, "DETACHED_PROCESS", 0x00000008) | getattr(
            subprocess, "CREATE_NEW_PROCESS_GROUP", 0x00000200
        )
        return {"creationflags": flags}
    return {"start_new_session": True}


def spawn_background_job(
    type_id: str,
    method: str,
    params: Any = None,
    *,
    config_path: Optional[str] = None,
    run_id: Optional[str] = None,
    platform: Optional[str] = None,
) -> subprocess.Popen:
    """
    Run a job in a detached child process and return immediately.

    The child is a plain `jobrunner run` invocation, so validation, retries and
    logging all happen there; the caller only gets the process handle.
    """
    cmd = build_command(type_id, method, params, config_path=config_path, run_id=run_id)
    return subprocess.Popen(
        cmd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        close_fds=True,
        **_detach_kwargs(platform or sys.platform),
    )
