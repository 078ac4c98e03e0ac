"""Identifier generation for rooms and line items.

Every component that creates an entity takes an optional ``ids`` callable so
tests can pin identifiers; production code falls back to random UUIDs.
"""

from __future__ import annotations

import itertools
import uuid
from typing import Callable

IdGenerator = Callable[[], str]


def new_id() -> str:
    return str(uuid.uuid4())


class SequentialIds:
    """Deterministic generator yielding ``prefix-1``, ``prefix-2``, ..."""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"
