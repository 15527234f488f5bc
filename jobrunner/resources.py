from __future__ import annotations

from pathlib import Path


def _package_dir(package_name: str) -> Path:
    """
    Return the on-disk directory for an imported package.

    Note:
    This assumes a filesystem-backed install (regular or editable). Under
    zipimport the result may not be a real directory.
    """
    module = __import__(package_name, fromlist=["__file__"])
    p = getattr(module, "__file__", None)
    if not isinstance(p, str) or not p:
        raise RuntimeError(f"Cannot resolve package directory for: {package_name}")
    return Path(p).resolve().parent


def schemas_dir() -> Path:
    return _package_dir("jobrunner") / "schemas"


def config_schema_path() -> Path:
    return schemas_dir() / "config.schema.json"
