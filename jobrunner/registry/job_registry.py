from __future__ import annotations

import importlib
import inspect
import pkgutil
import sys
from dataclasses import dataclass, field, replace
from types import ModuleType
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from jobrunner.core.errors import ValidationError
from jobrunner.core.target import normalize_type_id


JobFactory = Callable[[], Any]


def normalize_namespace(namespace: str) -> str:
    # Tolerate "app.jobs.", "app.jobs" and the legacy "App\\Jobs\\" spelling.
    ns = namespace.strip().replace("\\", ".")
    return ns.strip(".")


def within_namespace(type_id: str, namespace: str) -> bool:
    """
    Segment-boundary membership: "app.jobs" covers "app.jobs.X" but never "app.jobsevil.X".
    """
    ns = normalize_namespace(namespace)
    if not ns:
        return False
    return type_id == ns or type_id.startswith(ns + ".")


@dataclass(frozen=True)
class JobEntry:
    type_id: str
    job_cls: type
    factory: JobFactory
    methods: Optional[Tuple[str, ...]] = None
    aliases: Tuple[str, ...] = field(default_factory=tuple)

    def instantiate(self) -> Any:
        return self.factory()

    def describe(self) -> Dict[str, Any]:
        return {
            "type_id": self.type_id,
            "class": f"{self.job_cls.__module__}.{self.job_cls.__qualname__}",
            "methods": list(self.methods) if self.methods is not None else None,
            "aliases": list(self.aliases),
            "doc": (inspect.getdoc(self.job_cls) or "").split("\n", 1)[0],
        }


def import_object(spec: str) -> Any:
    """
    Import by "module:attr" or dotted "module.attr" spec.

    Raises LookupError when nothing importable matches.
    """
    spec = spec.strip()
    if ":" in spec:
        mod_name, attr = spec.split(":", 1)
        candidates = [(mod_name, attr)]
    else:
        # Try the longest importable module prefix first.
        parts = spec.split(".")
        candidates = [(".".join(parts[:i]), ".".join(parts[i:])) for i in range(len(parts) - 1, 0, -1)]

    for mod_name, attr in candidates:
        if not mod_name or not attr:
            continue
        try:
            mod = importlib.import_module(mod_name)
        except ImportError:
            continue
        obj: Any = mod
        try:
            for name in attr.split("."):
                obj = getattr(obj, name)
        except AttributeError:
            continue
        return obj
    raise LookupError(spec)


def find_loaded_object(spec: str) -> Any:
    """
    Resolve a spec against modules already in sys.modules, never importing.

    Attribute walks use getattr_static, so module __getattr__ hooks do not run.
    Raises LookupError when nothing loaded matches.
    """
    spec = spec.strip()
    if ":" in spec:
        mod_name, attr = spec.split(":", 1)
        candidates = [(mod_name, attr)]
    else:
        parts = spec.split(".")
        candidates = [(".".join(parts[:i]), ".".join(parts[i:])) for i in range(len(parts) - 1, 0, -1)]

    missing = object()
    for mod_name, attr in candidates:
        if not mod_name or not attr:
            continue
        obj: Any = sys.modules.get(mod_name)
        if obj is None:
            continue
        for name in attr.split("."):
            obj = inspect.getattr_static(obj, name, missing)
            if obj is missing:
                break
        if obj is not missing:
            return obj
    raise LookupError(spec)


def lookup_class_attr(job_cls: type, name: str) -> Optional[Any]:
    """
    Raw attribute from the class's own MRO dicts.

    Metaclass members (type.mro, ABCMeta.register) are invisible here,
    since instances never see them.
    """
    for klass in job_cls.__mro__:
        namespace = vars(klass)
        if name in namespace:
            return namespace[name]
    return None


class JobRegistry:
    """
    Explicit capability registry: type identifier -> job entry.

    Only classes registered here can ever be instantiated by the runner.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, JobEntry] = {}
        self._aliases: Dict[str, str] = {}

    def register(
        self,
        type_id: str,
        job_cls: type,
        *,
        factory: Optional[JobFactory] = None,
        methods: Optional[Iterable[str]] = None,
        alias: Optional[str] = None,
    ) -> JobEntry:
        if not inspect.isclass(job_cls):
            raise ValidationError(
                code="registry.invalid",
                message=f"Job must be a class: {type_id}",
                data={"type_id": type_id},
            )
        key = normalize_type_id(type_id)
        if not key:
            raise ValidationError(code="registry.invalid", message="type_id must be non-empty")
        if key in self._entries or key in self._aliases:
            raise ValidationError(
                code="registry.duplicate",
                message=f"Duplicate job type: {key}",
                data={"type_id": key},
            )
        if alias is not None and (alias in self._entries or alias in self._aliases):
            raise ValidationError(
                code="registry.duplicate",
                message=f"Duplicate job alias: {alias}",
                data={"alias": alias},
            )

        entry = JobEntry(
            type_id=key,
            job_cls=job_cls,
            factory=factory if factory is not None else job_cls,
            methods=tuple(methods) if methods is not None else None,
            aliases=(alias,) if alias else (),
        )
        self._entries[key] = entry
        if alias:
            self._aliases[alias] = key
        return entry

    def configure(self, type_id: str, *, alias: str, methods: Optional[Iterable[str]] = None) -> JobEntry:
        """
        Attach an alias (and optionally a method allowlist) to an already registered job.
        """
        entry = self.get(type_id)
        if entry is None:
            raise ValidationError(code="registry.unknown", message=f"Unknown job type: {type_id}")
        if alias in self._entries or alias in self._aliases:
            raise ValidationError(
                code="registry.duplicate",
                message=f"Duplicate job alias: {alias}",
                data={"alias": alias},
            )
        updated = replace(
            entry,
            methods=tuple(methods) if methods is not None else entry.methods,
            aliases=entry.aliases + (alias,),
        )
        self._entries[entry.type_id] = updated
        self._aliases[alias] = entry.type_id
        return updated

    def register_spec(self, alias: str, spec: str, methods: Optional[Iterable[str]] = None) -> JobEntry:
        """
        Register a configured "module:Class" spec under its dotted name and an alias.
        """
        try:
            obj = import_object(spec)
        except LookupError as e:
            raise ValidationError(
                code="registry.job_not_found",
                message=f"Configured job cannot be imported: {spec}",
                data={"alias": alias, "spec": spec},
            ) from e
        return self.register(normalize_type_id(spec), obj, methods=methods, alias=alias)

    def register_namespace(self, namespace: str) -> List[JobEntry]:
        """
        Import a namespace package and register every public class defined inside it.
        """
        ns = normalize_namespace(namespace)
        try:
            root = importlib.import_module(ns)
        except ImportError as e:
            raise ValidationError(
                code="registry.namespace_not_found",
                message=f"Approved namespace cannot be imported: {ns}",
                data={"namespace": ns},
            ) from e

        modules = [root]
        root_path = getattr(root, "__path__", None)
        if root_path is not None:
            modules.extend(self._walk_namespace(ns, root_path))

        added: List[JobEntry] = []
        for mod in modules:
            for name, obj in sorted(vars(mod).items()):
                if name.startswith("_") or not inspect.isclass(obj):
                    continue
                # Skip re-exports; a class is registered where it is defined.
                if obj.__module__ != mod.__name__ or not within_namespace(obj.__module__, ns):
                    continue
                key = f"{obj.__module__}.{obj.__qualname__}"
                if key in self._entries:
                    continue
                added.append(self.register(key, obj))
        return added

    @staticmethod
    def _walk_namespace(ns: str, root_path: Iterable[str]) -> List[ModuleType]:
        def _failed(module: str, e: BaseException) -> ValidationError:
            return ValidationError(
                code="registry.module_import_failed",
                message=f"Job module cannot be imported: {module}",
                data={"namespace": ns, "module": module, "error": repr(e)},
            )

        def _onerror(module: str) -> None:
            # walk_packages swallows subpackage ImportErrors unless told otherwise.
            raise _failed(module, sys.exc_info()[1])

        modules: List[ModuleType] = []
        current = ns
        try:
            for info in pkgutil.walk_packages(root_path, prefix=ns + ".", onerror=_onerror):
                current = info.name
                modules.append(importlib.import_module(info.name))
        except ValidationError:
            raise
        except Exception as e:  # noqa: BLE001
            raise _failed(current, e) from e
        return modules

    def resolve_key(self, type_id: str) -> str:
        key = normalize_type_id(type_id)
        return self._aliases.get(type_id, self._aliases.get(key, key))

    def get(self, type_id: str) -> JobEntry | None:
        return self._entries.get(self.resolve_key(type_id))

    def list_jobs(self) -> List[Dict[str, Any]]:
        return [self._entries[k].describe() for k in sorted(self._entries.keys())]

    def __contains__(self, type_id: object) -> bool:
        return isinstance(type_id, str) and self.get(type_id) is not None

    def __len__(self) -> int:
        return len(self._entries)
