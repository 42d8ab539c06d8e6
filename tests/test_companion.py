import httpx
import pytest

from agent.playbooks.incident_companion import IncidentCompanion
from matching.common import MatcherSettings
from matching.errors import InvalidIncidentError
from matching.store import CaseStore


@pytest.fixture
def companion(clock):
    return IncidentCompanion(store=CaseStore(clock=clock), settings=MatcherSettings(threshold=0.3))


def test_first_incident_has_no_related_cases(companion, phishing_a):
    resp = companion.run(phishing_a)
    assert resp["related_cases"] == []
    assert resp["confidence"] == 0.0
    assert resp["message"].startswith("This is a tricky one")
    assert resp["case_id"] in companion.store
    rec = companion.store.get(resp["case_id"])
    assert rec.outcome["brief_description"] == "Phishing, malware incident with 1 indicator(s) (1 ip)"
    assert rec.outcome["severity"] == "medium"


def test_second_incident_recalls_first(companion, clock, phishing_a, phishing_b):
    first = companion.run(phishing_a)
    clock.advance(60)
    resp = companion.run(phishing_b)
    related = resp["related_cases"]
    assert [r["case_id"] for r in related] == [first["case_id"]]
    assert related[0]["similarity"] == 75
    assert related[0]["date"] == "2025-01-15"
    assert related[0]["summary"].startswith("Phishing, malware incident")
    assert resp["confidence"] == 0.75
    assert resp["message"].startswith("This looks interesting")
    assert "reminds me of some cases" in resp["message"]


def test_matcher_failure_is_not_fatal(companion, monkeypatch, phishing_a):
    def boom(*args, **kwargs):
        raise RuntimeError("index unavailable")

    monkeypatch.setattr(companion.matcher, "find_similar", boom)
    resp = companion.run(phishing_a)
    assert resp["related_cases"] == []
    assert len(companion.store) == 1


def test_invalid_incident_is_rejected(companion):
    with pytest.raises(InvalidIncidentError):
        companion.run(None)
    assert len(companion.store) == 0


def test_ti_enrichment_raises_severity(clock):
    def handler(request):
        body = request.read().decode()
        if "1.2.3.4" in body:
            return httpx.Response(200, json={"type": "ip", "ioc": "1.2.3.4", "verdict": "malicious", "sources": ["feed"]})
        return httpx.Response(500)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    comp = IncidentCompanion(store=CaseStore(clock=clock), ti_url="http://ti", http_client=client)
    resp = comp.run({"indicators": ["1.2.3.4", "5.6.7.8"], "description": "odd traffic"})

    assert resp["severity"] == "high"
    assert resp["confidence"] == 0.2
    assert resp["suggestions"][0]["priority"] == "critical"
    assert "1.2.3.4" in resp["suggestions"][0]["action"]
    assert "malicious for 1.2.3.4" in resp["suggestions"][0]["reasoning"]
    assert resp["evidence"] == [{"source": "ti", "finding": "1.2.3.4: malicious", "link": "feed"}]
    rec = comp.store.get(resp["case_id"])
    assert [r["ioc"] for r in rec.outcome["reputation"]] == ["1.2.3.4"]


def test_learner_follows_store_evictions(clock):
    comp = IncidentCompanion(store=CaseStore(clock=clock, max_size=1))
    comp.run({"description": "ransomware encrypted files"})
    comp.run({"description": "port scan"})
    assert comp.learner.token_stats("keyword:ransomware")["cases"] == 0
    assert comp.learner.token_stats("keyword:reconnaissance")["cases"] == 1


def test_response_carries_evidence_and_reasoned_suggestions(companion, clock, phishing_a, phishing_b):
    first = companion.run(phishing_a)
    clock.advance(60)
    resp = companion.run(phishing_b)

    assert resp["evidence"] == [{
        "source": "case_history",
        "finding": f"75% similar to {first['case_id']}: Phishing, malware incident with 1 indicator(s) (1 ip)",
        "link": f"/tools/case/{first['case_id']}",
    }]
    assert resp["suggestions"] == [{
        "priority": "high",
        "action": "Pull the message from all mailboxes and block the sender domain.",
        "reasoning": "Description points to phishing activity.",
    }]


def test_fallback_suggestion_explains_itself(companion):
    resp = companion.run({"description": "printer misbehaving", "metadata": {"severity": "low"}})
    assert resp["evidence"] == []
    assert resp["suggestions"][0]["priority"] == "low"
    assert resp["suggestions"][0]["reasoning"]


def test_learner_never_keeps_a_case_evicted_during_insert(clock):
    comp = IncidentCompanion(store=CaseStore(clock=clock, max_size=0))
    comp.run({"description": "ransomware encrypted files"})
    assert len(comp.store) == 0
    assert comp.learner.token_stats("keyword:ransomware")["cases"] == 0


def test_learner_forgets_after_later_prune(companion):
    companion.run({"description": "ransomware encrypted files"})
    assert companion.learner.token_stats("keyword:ransomware")["cases"] == 1
    companion.store.prune(max_size=0)
    assert companion.learner.token_stats("keyword:ransomware")["cases"] == 0


def test_existing_store_hooks_are_kept(clock):
    evicted, inserted = [], []
    store = CaseStore(clock=clock, max_size=1, on_insert=inserted.append, on_evict=evicted.append)
    comp = IncidentCompanion(store=store)

    first = comp.run({"description": "ransomware encrypted files"})
    comp.run({"description": "port scan"})

    assert len(inserted) == 2
    assert [r.case_id for r in evicted] == [first["case_id"]]
    assert comp.learner.token_stats("keyword:ransomware")["cases"] == 0
    assert comp.learner.token_stats("keyword:reconnaissance")["cases"] == 1
