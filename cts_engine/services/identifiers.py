"""
Human-readable identifiers: TKT-1001, REF-1001, ASGN-1001, EVT-1001.
"""

import itertools
import threading
from typing import Dict, Iterator


class IdGenerator:
    """One counter per prefix, unique for the life of the process."""

    TICKET = "TKT"
    REFERENCE = "REF"
    ASSIGNMENT = "ASGN"
    EVENT = "EVT"

    def __init__(self, start: int = 1001):
        self._start = start
        self._counters: Dict[str, Iterator[int]] = {}
        self._lock = threading.Lock()

    def next_id(self, prefix: str) -> str:
        with self._lock:
            counter = self._counters.setdefault(prefix, itertools.count(self._start))
            return f"{prefix}-{next(counter)}"

    def ticket_id(self) -> str:
        return self.next_id(self.TICKET)

    def reference_id(self) -> str:
        return self.next_id(self.REFERENCE)

    def assignment_id(self) -> str:
        return self.next_id(self.ASSIGNMENT)

    def event_id(self) -> str:
        return self.next_id(self.EVENT)
