from typing import Iterable


def score(a: Iterable[str], b: Iterable[str]) -> float:
    """
    Jaccard overlap |A & B| / |A | B| of two fingerprints.
    Two featureless fingerprints score 0.0, never 1.0.
    """
    sa, sb = set(a), set(b)
    union = sa | sb
    if not union:
        return 0.0
    return len(sa & sb) / len(union)
