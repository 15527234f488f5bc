from __future__ import annotations

import inspect
from typing import Iterable, Optional, Tuple

from .errors import (
    IntrospectionError,
    MethodNotFound,
    MethodNotPublic,
    TypeNotFound,
    TypeNotPermitted,
)
from .target import Target, normalize_type_id
from ..registry.job_registry import JobEntry, JobRegistry, find_loaded_object, lookup_class_attr, normalize_namespace


class JobValidator:
    """
    Gatekeeper for which targets may execute.

    Invariants:
    - deny-by-default: a type is approved only by registry membership.
    - read-only over the registry, the allowlist and class metadata.
    """

    def __init__(self, registry: JobRegistry, approved_namespaces: Iterable[str] = ()):
        self._registry = registry
        self._namespaces: Tuple[str, ...] = tuple(normalize_namespace(ns) for ns in approved_namespaces)

    @property
    def approved_namespaces(self) -> Tuple[str, ...]:
        return self._namespaces

    def validate(self, target: Target) -> JobEntry:
        entry = self.validate_type(target.type_id)
        self.validate_method(entry, target.method)
        return entry

    def validate_type(self, type_id: str) -> JobEntry:
        if not isinstance(type_id, str) or not type_id.strip():
            raise TypeNotFound(code="job.type_not_found", message="Job type must be a non-empty string")

        entry = self._registry.get(type_id)
        if entry is not None:
            return entry

        key = normalize_type_id(type_id)
        # Never imports: only modules already loaded in this process are consulted.
        try:
            obj = find_loaded_object(key)
        except LookupError:
            obj = None
        except Exception as e:  # noqa: BLE001
            raise IntrospectionError(
                code="job.introspection_error",
                message=f"Failed to resolve {key}: {e!r}",
                data={"type_id": key},
            ) from e

        if obj is None or not inspect.isclass(obj):
            raise TypeNotFound(
                code="job.type_not_found",
                message=f"Class {key} does not exist",
                data={"type_id": key},
            )
        raise TypeNotPermitted(
            code="job.type_not_permitted",
            message=f"Execution of {key} is not permitted",
            data={"type_id": key, "approved_namespaces": list(self._namespaces)},
        )

    def validate_method(self, entry: JobEntry, method: str) -> None:
        if not isinstance(method, str) or not method:
            raise MethodNotFound(
                code="job.method_not_found",
                message=f"Method name must be a non-empty string for {entry.type_id}",
                data={"type_id": entry.type_id},
            )
        try:
            attr = self._lookup(entry.job_cls, method)
        except Exception as e:  # noqa: BLE001
            raise IntrospectionError(
                code="job.introspection_error",
                message=f"Reflection error: {e!r}",
                data={"type_id": entry.type_id, "method": method},
            ) from e

        if attr is None:
            raise MethodNotFound(
                code="job.method_not_found",
                message=f"Method {method} does not exist in {entry.type_id}",
                data={"type_id": entry.type_id, "method": method},
            )

        reason = self._not_public_reason(entry, method, attr)
        if reason is not None:
            raise MethodNotPublic(
                code="job.method_not_public",
                message=f"Method {method} is not publicly accessible",
                data={"type_id": entry.type_id, "method": method, "reason": reason},
            )

    @staticmethod
    def _lookup(job_cls: type, method: str) -> Optional[object]:
        # Class MRO dicts only: no descriptors run, and metaclass members are not methods.
        return lookup_class_attr(job_cls, method)

    @staticmethod
    def _not_public_reason(entry: JobEntry, method: str, attr: object) -> Optional[str]:
        if method.startswith("_"):
            return "underscore"
        if isinstance(attr, (staticmethod, classmethod)):
            attr = attr.__func__
        if isinstance(attr, property) or not callable(attr):
            return "not_callable"
        if entry.methods is not None and method not in entry.methods:
            return "not_exposed"
        return None
