from __future__ import annotations

import itertools
import os


class InstanceNaming:
    """Names instances so a run can recognise the ones it created.

    Names look like ``<prefix>-<session>-<pid>-<n>``. Instances sharing the
    ``<prefix>-<session>-`` stem are *familial*: created by this run (any
    worker) and therefore safe to reuse. Everything else in the shared cloud
    account belongs to someone else and is never adopted.
    """

    def __init__(self, prefix: str, session_id: str) -> None:
        self._stem = f"{prefix}-{session_id}-"
        self._counter = itertools.count(1)

    def generate_name(self) -> str:
        return f"{self._stem}{os.getpid()}-{next(self._counter)}"

    def is_familial(self, name: str) -> bool:
        return name.startswith(self._stem)
