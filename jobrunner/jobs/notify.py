from __future__ import annotations

import sys


class Notify:
    """
    Send a notification (deterministic stderr implementation).
    """

    def send(self, message: str) -> None:
        if not isinstance(message, str) or not message:
            raise ValueError("Notify.send: 'message' must be a non-empty string")
        # stderr keeps stdout clean for CLI output.
        print(message, file=sys.stderr)
