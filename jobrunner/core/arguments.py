from __future__ import annotations

import json
from typing import Any, Dict, Optional, Tuple

from .errors import ArgumentsInvalid


ParsedArguments = Tuple[Tuple[Any, ...], Dict[str, Any], bool]


def parse_arguments(payload: Optional[str], *, strict: bool = False) -> ParsedArguments:
    """
    Decode a JSON argument payload into (args, kwargs, ok).

    - array  -> positional arguments
    - object -> keyword arguments
    - empty / None -> no arguments

    Anything else (malformed JSON, a bare scalar) falls back to no arguments
    with ok=False, or raises ArgumentsInvalid when strict.
    """
    if payload is None or not payload.strip():
        return (), {}, True

    try:
        value = json.loads(payload)
    except ValueError as e:
        if strict:
            raise ArgumentsInvalid(
                code="job.args_invalid",
                message="Arguments must be a JSON array or object",
                data={"payload": payload[:200], "error": str(e)},
            ) from e
        return (), {}, False

    if isinstance(value, list):
        return tuple(value), {}, True
    if isinstance(value, dict):
        bad_keys = [k for k in value.keys() if not k.isidentifier()]
        if not bad_keys:
            return (), dict(value), True
        if strict:
            raise ArgumentsInvalid(
                code="job.args_invalid",
                message="Keyword argument names must be identifiers",
                data={"keys": bad_keys},
            )
        return (), {}, False

    if strict:
        raise ArgumentsInvalid(
            code="job.args_invalid",
            message="Arguments must be a JSON array or object",
            data={"type": type(value).__name__},
        )
    return (), {}, False
