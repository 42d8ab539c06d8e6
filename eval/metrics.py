"""
Case matching evaluation.

Usage:
  python eval/metrics.py --incidents incidents.jsonl --k 5 --threshold 0.5

Inputs:
- incidents.jsonl : lines of {"description","indicators","metadata","family"}
                    (as written by data/generate_incidents.py); "noise" is unlabelled

Replays the incidents in order: each one is first matched against the cases
recorded so far, then recorded itself.

Metrics:
- precision@K : share of the top-K matches that come from the same family
- hit rate    : share of labelled queries whose family was already on record
                and that got at least one same-family match
"""

import argparse, json

from matching.common import MatcherSettings
from matching.matcher import CaseMatcher
from matching.store import CaseStore

def load_jsonl(path):
    rows = []
    with open(path) as f:
        for line in f:
            if line.strip():
                rows.append(json.loads(line))
    return rows

def precision_at_k(pred_families, family, k):
    take = pred_families[:max(1, k)]
    if not take:
        return 0.0
    return sum(1 for f in take if f == family) / len(take)

def replay(rows, settings, k):
    store = CaseStore(max_size=settings.max_size, max_age=settings.max_age_seconds)
    matcher = CaseMatcher(store)
    precisions, hits, eligible = [], 0, 0
    seen_families = set()

    for row in rows:
        family = row.get("family", "noise")
        matches = matcher.find_similar(row, threshold=settings.threshold, limit=k)
        if family != "noise":
            preds = [m.case.outcome["family"] for m in matches]
            if preds:
                precisions.append(precision_at_k(preds, family, k))
            if family in seen_families:
                eligible += 1
                hits += int(family in preds)
            seen_families.add(family)
        store.insert(row, {"family": family, "brief_description": row.get("description", "")})

    return {
        "queries": len(rows),
        "precision_at_k": sum(precisions) / len(precisions) if precisions else 0.0,
        "hit_rate": hits / eligible if eligible else 0.0,
    }

if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--incidents", required=True)
    ap.add_argument("--k", type=int, default=5)
    ap.add_argument("--threshold", type=float, default=0.7)
    ap.add_argument("--max_size", type=int, default=500)
    args = ap.parse_args()

    rows = load_jsonl(args.incidents)
    res = replay(rows, MatcherSettings(threshold=args.threshold, max_size=args.max_size), args.k)
    print(f"Queries: {res['queries']}")
    print(f"Precision@{args.k} (same family): {res['precision_at_k']:.3f}")
    print(f"Hit rate (family on record): {res['hit_rate']:.3f}")
