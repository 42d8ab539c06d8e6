"""
In-memory case store.

Records are kept in insertion order (which is also created_at order). All
mutation (append, prune) and snapshot reads go through one lock, so a
reader always iterates a consistent copy and never sees a half-applied
insert or prune. The on_insert / on_evict hooks run under the same lock,
so observers see every record added before it is evicted.
"""

import copy
import logging
import threading
import uuid
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from dateutil.tz import tzutc

from matching.common import CaseRecord, Incident
from matching.errors import InvalidOutcomeError
from matching.extractor import PatternExtractor, coerce_incident

logger = logging.getLogger(__name__)

MaxAge = Union[float, int, timedelta, None]


def new_case_id() -> str:
    return f"case_{uuid.uuid4().hex}"


def utcnow() -> datetime:
    return datetime.now(tzutc())


class _Snapshot:
    """Restartable view: every iter() takes a fresh snapshot of the store."""

    def __init__(self, store: "CaseStore"):
        self._store = store

    def __iter__(self) -> Iterator[CaseRecord]:
        return iter(self._store.snapshot())


class CaseStore:
    def __init__(self,
                 extractor: Optional[PatternExtractor] = None,
                 max_size: Optional[int] = None,
                 max_age: MaxAge = None,
                 id_factory: Callable[[], str] = new_case_id,
                 clock: Callable[[], datetime] = utcnow,
                 on_insert: Optional[Callable[[CaseRecord], None]] = None,
                 on_evict: Optional[Callable[[CaseRecord], None]] = None):
        self.extractor = extractor or PatternExtractor()
        self.max_size = max_size
        self.max_age = max_age
        self._id_factory = id_factory
        self._clock = clock
        self.on_insert = on_insert
        self.on_evict = on_evict
        self._cases: "OrderedDict[str, CaseRecord]" = OrderedDict()
        self._lock = threading.RLock()
        self._last_created: Optional[datetime] = None

    # ---------- Writes ----------

    def insert(self, incident: Any, outcome: Mapping[str, Any]) -> str:
        """Fingerprint and append a fully analysed incident; returns the new case id."""
        if not isinstance(outcome, Mapping):
            raise InvalidOutcomeError("cannot record a case without an outcome mapping")
        # private copies: later changes by the caller must not reach the stored record
        inc: Incident = coerce_incident(incident).model_copy(deep=True)
        fingerprint = self.extractor.extract(inc)
        outcome = copy.deepcopy(dict(outcome))

        with self._lock:
            case_id = self._id_factory()
            while case_id in self._cases:
                case_id = self._id_factory()
            created = self._clock()
            if self._last_created is not None and created < self._last_created:
                created = self._last_created
            self._last_created = created
            record = CaseRecord(case_id=case_id, incident=inc, outcome=outcome,
                                fingerprint=fingerprint, created_at=created)
            self._cases[case_id] = record
            if self.on_insert:
                self.on_insert(record)
            evicted = self._prune_locked(self.max_size, self.max_age)
            self._notify(evicted)

        logger.debug("recorded %s fingerprint=%s", case_id, ",".join(fingerprint))
        return case_id

    def prune(self, max_size: Optional[int] = None, max_age: MaxAge = None) -> List[CaseRecord]:
        """
        Drop the oldest records beyond max_size and every record older than
        max_age (seconds or timedelta). None disables that bound.
        Returns the removed records, oldest first.
        """
        with self._lock:
            evicted = self._prune_locked(max_size, max_age)
            self._notify(evicted)
        return evicted

    def _prune_locked(self, max_size: Optional[int], max_age: MaxAge) -> List[CaseRecord]:
        evicted: List[CaseRecord] = []
        if max_age is not None:
            if not isinstance(max_age, timedelta):
                max_age = timedelta(seconds=max_age)
            cutoff = self._clock() - max_age
            # created_at is non-decreasing, so expired records sit at the front
            while self._cases:
                oldest = next(iter(self._cases.values()))
                if oldest.created_at >= cutoff:
                    break
                evicted.append(self._cases.popitem(last=False)[1])
        if max_size is not None:
            while len(self._cases) > max(max_size, 0):
                evicted.append(self._cases.popitem(last=False)[1])
        return evicted

    def _notify(self, evicted: List[CaseRecord]):
        if not evicted:
            return
        logger.info("pruned %d case(s), %d remaining", len(evicted), len(self._cases))
        if self.on_evict:
            for rec in evicted:
                self.on_evict(rec)

    # ---------- Reads ----------

    def get(self, case_id: str) -> Optional[CaseRecord]:
        with self._lock:
            return self._cases.get(case_id)

    def snapshot(self) -> Tuple[CaseRecord, ...]:
        with self._lock:
            return tuple(self._cases.values())

    def all_cases(self) -> _Snapshot:
        return _Snapshot(self)

    def stats(self) -> Dict[str, Any]:
        snap = self.snapshot()
        return {
            "cases": len(snap),
            "max_size": self.max_size,
            "oldest": snap[0].created_at.isoformat() if snap else None,
            "newest": snap[-1].created_at.isoformat() if snap else None,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._cases)

    def __contains__(self, case_id: object) -> bool:
        with self._lock:
            return case_id in self._cases
