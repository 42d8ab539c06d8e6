import json

from eval.metrics import load_jsonl, precision_at_k, replay
from matching.common import MatcherSettings


def test_precision_at_k():
    assert precision_at_k(["phishing", "phishing", "scan"], "phishing", 2) == 1.0
    assert precision_at_k(["phishing", "scan"], "phishing", 5) == 0.5
    assert precision_at_k([], "phishing", 3) == 0.0


def test_replay_separates_families(tmp_path):
    rows = [
        {"description": "phishing email with link", "indicators": ["evil.com"], "family": "phishing"},
        {"description": "port scan from host", "indicators": ["5.6.7.8"], "family": "port_scan"},
        {"description": "phishing email lure", "indicators": ["bad.org"], "family": "phishing"},
        {"description": "scan and probe", "indicators": ["6.7.8.9"], "family": "port_scan"},
    ]
    path = tmp_path / "incidents.jsonl"
    path.write_text("\n".join(json.dumps(r) for r in rows) + "\n")

    res = replay(load_jsonl(path), MatcherSettings(threshold=0.5), k=3)
    assert res["queries"] == 4
    assert res["precision_at_k"] == 1.0
    assert res["hit_rate"] == 1.0
