from __future__ import annotations

import os
from pathlib import Path


def _expand_user_path(p: str) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(p))).resolve()


class TouchFile:
    """
    Create a file, or bump its mtime when it already exists.
    """

    def run(self, path: str, parents: bool = True) -> None:
        if not isinstance(path, str) or not path:
            raise ValueError("TouchFile.run: 'path' must be a non-empty string")
        p = _expand_user_path(path)
        if parents:
            p.parent.mkdir(parents=True, exist_ok=True)
        p.touch(exist_ok=True)
