from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


def normalize_type_id(type_id: str) -> str:
    """
    Canonical dotted form of a type identifier.

    Accepts "pkg.module.ClassName" and "pkg.module:ClassName".
    """
    return type_id.strip().replace(":", ".")


@dataclass(frozen=True)
class Target:
    type_id: str
    method: str

    def __str__(self) -> str:
        return f"{self.type_id}::{self.method}"

    def as_dict(self) -> Dict[str, str]:
        return {"type": self.type_id, "method": self.method}


@dataclass(frozen=True)
class InvocationRequest:
    target: Target
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def of(cls, type_id: str, method: str, *args: Any, **kwargs: Any) -> "InvocationRequest":
        return cls(target=Target(type_id=type_id, method=method), args=tuple(args), kwargs=dict(kwargs))

    def params(self) -> Any:
        # Shape mirrors the payload the caller sent: array, object, or both.
        if self.kwargs and self.args:
            return {"args": list(self.args), "kwargs": dict(self.kwargs)}
        if self.kwargs:
            return dict(self.kwargs)
        return list(self.args)
