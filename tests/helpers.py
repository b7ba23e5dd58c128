"""
Shared test doubles: a controllable clock and an in-process stand-in for
the Redis stream commands used by the durable repository.
"""
import itertools
from typing import Dict, List, Tuple

import redis


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStreamClient:
    """
    Minimal Redis stream client: XADD, XRANGE, XDEL, DELETE and close,
    returning values shaped like redis-py with decode_responses=True.
    """

    def __init__(self):
        self.streams: Dict[str, List[Tuple[str, Dict[str, str]]]] = {}
        self.closed = False
        self.fail_on = set()
        self._sequence = itertools.count(1)

    def _check(self, command: str) -> None:
        if self.closed:
            raise redis.ConnectionError("Connection closed")
        if command in self.fail_on:
            raise redis.ConnectionError(f"{command} failed")

    def xadd(self, name, fields, id='*'):
        self._check('xadd')
        entry_id = id if id != '*' else f"{next(self._sequence)}-0"
        self.streams.setdefault(name, []).append(
            (entry_id, {str(k): str(v) for k, v in fields.items()}))
        return entry_id

    def xrange(self, name, min='-', max='+', count=None):
        self._check('xrange')
        return [(entry_id, dict(fields)) for entry_id, fields in self.streams.get(name, [])]

    def xdel(self, name, *ids):
        self._check('xdel')
        entries = self.streams.get(name, [])
        kept = [(entry_id, fields) for entry_id, fields in entries if entry_id not in ids]
        self.streams[name] = kept
        return len(entries) - len(kept)

    def delete(self, *names):
        self._check('delete')
        removed = 0
        for name in names:
            if self.streams.pop(name, None) is not None:
                removed += 1
        return removed

    def close(self):
        self.closed = True
