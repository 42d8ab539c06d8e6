import logging
from typing import Any, Callable, Iterable, List, Optional

from matching.common import MatchResult
from matching.scorer import score
from matching.store import CaseStore

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.7


class CaseMatcher:
    """
    Ranks stored cases against a new incident.
    Scores a point-in-time snapshot of the store, so concurrent inserts
    and prunes never disturb a query in flight.
    """

    def __init__(self, store: CaseStore,
                 scorer: Callable[[Iterable[str], Iterable[str]], float] = score):
        self.store = store
        self.scorer = scorer

    def find_similar(self, incident: Any, threshold: float = DEFAULT_THRESHOLD,
                     limit: Optional[int] = None) -> List[MatchResult]:
        query = self.store.extractor.extract(incident)
        cases = self.store.snapshot()

        results: List[MatchResult] = []
        for case in cases:
            s = self.scorer(query, case.fingerprint)
            if s > threshold:
                results.append(MatchResult(case=case, similarity_score=s))

        # score desc, most recent first on ties
        results.sort(key=lambda r: (r.similarity_score, r.case.created_at), reverse=True)
        if limit is not None:
            results = results[:max(limit, 0)]

        logger.debug("matched %d/%d case(s) above %.2f", len(results), len(cases), threshold)
        return results
