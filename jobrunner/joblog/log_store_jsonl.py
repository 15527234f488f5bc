from __future__ import annotations

import json
from pathlib import Path
from typing import Any


class JobLogStoreJSONL:
    """
    Append-only sink for one log channel.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def append(self, record: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=repr) + "\n")
