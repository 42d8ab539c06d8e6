import threading
from collections import Counter
from typing import Dict, Iterable, Optional

from matching.common import CaseRecord


class PatternLearner:
    """
    Running per-token tallies over the recorded cases: how many cases carried
    a feature token, and which outcome severities came with it.
    Kept in step with the store via observe() on insert and forget() on eviction.
    """

    def __init__(self):
        self._seen: Counter = Counter()
        self._severities: Dict[str, Counter] = {}
        self._observed = set()
        self._lock = threading.Lock()

    @staticmethod
    def _severity(record: CaseRecord) -> str:
        return str(record.outcome.get("severity") or "unknown").lower()

    def observe(self, record: CaseRecord):
        sev = self._severity(record)
        with self._lock:
            if record.case_id in self._observed:
                return
            self._observed.add(record.case_id)
            for tok in record.fingerprint:
                self._seen[tok] += 1
                self._severities.setdefault(tok, Counter())[sev] += 1

    def forget(self, record: CaseRecord):
        sev = self._severity(record)
        with self._lock:
            if record.case_id not in self._observed:
                return
            self._observed.discard(record.case_id)
            for tok in record.fingerprint:
                if self._seen[tok] <= 1:
                    self._seen.pop(tok, None)
                    self._severities.pop(tok, None)
                    continue
                self._seen[tok] -= 1
                sevs = self._severities[tok]
                sevs[sev] -= 1
                if sevs[sev] <= 0:
                    del sevs[sev]

    def token_stats(self, token: str) -> Dict[str, object]:
        with self._lock:
            return {"cases": self._seen.get(token, 0),
                    "severities": dict(self._severities.get(token, {}))}

    def likely_severity(self, fingerprint: Iterable[str]) -> Optional[str]:
        total: Counter = Counter()
        with self._lock:
            for tok in fingerprint:
                if tok.startswith("severity:"):
                    continue
                total.update(self._severities.get(tok, {}))
        if not total:
            return None
        return total.most_common(1)[0][0]
