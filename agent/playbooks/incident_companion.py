import logging
from typing import Any, Callable, List, Optional

import httpx

from matching.common import CaseRecord, Incident, MatchResult, MatcherSettings
from matching.extractor import coerce_incident
from matching.learning import PatternLearner
from matching.matcher import CaseMatcher
from matching.store import CaseStore
from mcp_servers.common import RelatedCase

logger = logging.getLogger(__name__)

# keyword category -> (priority, action)
RECOMMENDATIONS = {
    "phishing": ("high", "Pull the message from all mailboxes and block the sender domain."),
    "malware": ("high", "Quarantine affected hosts and submit samples for analysis."),
    "ransomware": ("critical", "Isolate affected segments and verify offline backups."),
    "credential": ("high", "Force a password reset and review recent sign-ins for the account."),
    "exfiltration": ("critical", "Block egress to the destination and scope the data involved."),
    "lateral_movement": ("high", "Review remote logons between hosts and restrict admin shares."),
    "reconnaissance": ("medium", "Rate-limit or block the scanning source at the perimeter."),
    "c2": ("high", "Sinkhole the callback destination and hunt for other beaconing hosts."),
    "ddos": ("medium", "Engage upstream filtering and confirm service health."),
    "insider": ("high", "Preserve evidence and involve HR / legal before contacting the user."),
    "vulnerability": ("high", "Patch or mitigate the exposed service and check for exploitation."),
}

CATEGORY_LABELS = {"c2": "C2", "ddos": "DDoS", "lateral_movement": "lateral movement"}


def _chain(first: Optional[Callable[[CaseRecord], None]],
           second: Callable[[CaseRecord], None]) -> Callable[[CaseRecord], None]:
    if first is None:
        return second

    def both(record: CaseRecord):
        first(record)
        second(record)
    return both


class IncidentCompanion:
    """
    Enrich → Recall similar cases → Analyse → Respond → Learn
    Optionally talks to the TI service for indicator reputation:
      - TI:     http://localhost:7002
    """

    def __init__(self,
                 store: Optional[CaseStore] = None,
                 settings: Optional[MatcherSettings] = None,
                 learner: Optional[PatternLearner] = None,
                 ti_url: Optional[str] = None,
                 http_client: Optional[httpx.Client] = None):
        self.settings = settings or MatcherSettings()
        self.learner = learner or PatternLearner()
        if store is None:
            store = CaseStore(max_size=self.settings.max_size, max_age=self.settings.max_age_seconds)
        # the learner rides on the store's hooks, after any observer already installed
        store.on_insert = _chain(store.on_insert, self.learner.observe)
        store.on_evict = _chain(store.on_evict, self.learner.forget)
        self.store = store
        self.matcher = CaseMatcher(store)
        self.ti = ti_url
        self.http = http_client

    # ---------- Companion steps ----------

    def enrich(self, incident: Incident) -> dict:
        """TI reputation for each indicator; a failed lookup is skipped, never fatal."""
        reputation = []
        if not self.ti or not incident.indicators:
            return {"reputation": reputation}

        client = self.http or httpx.Client(timeout=30)
        try:
            for ioc in incident.indicators:
                try:
                    r = client.post(f"{self.ti}/tools/reputation", json={"ioc": ioc})
                    r.raise_for_status()
                    reputation.append(r.json())
                except httpx.HTTPError as e:
                    logger.warning("reputation lookup failed for %s: %s", ioc, e)
        finally:
            if self.http is None:
                client.close()
        return {"reputation": reputation}

    def similar_cases(self, incident: Incident) -> List[MatchResult]:
        """Historical context is optional: any matcher failure means no related cases."""
        try:
            return self.matcher.find_similar(incident, threshold=self.settings.threshold)
        except Exception:
            logger.exception("case matching failed, continuing without historical context")
            return []

    def analyze(self, incident: Incident, ctx: dict, matches: List[MatchResult]) -> dict:
        """Policy: TI verdicts + keyword categories + what past cases with these patterns turned into."""
        extractor = self.store.extractor
        fingerprint = extractor.extract(incident)
        categories = extractor.keyword_categories(incident.description)
        kinds = extractor.classify_indicators(incident.indicators)
        malicious = [r["ioc"] for r in ctx.get("reputation", []) if r.get("verdict") == "malicious"]
        learned = self.learner.likely_severity(fingerprint)
        reported = incident.metadata.severity.lower()

        sev = "low"
        if malicious or reported in ("high", "critical") or {"ransomware", "exfiltration"} & set(categories):
            sev = "high"
        elif categories or learned in ("medium", "high") or reported == "medium":
            sev = "medium"

        labels = [CATEGORY_LABELS.get(c, c) for c in categories]
        what = ", ".join(labels) if labels else "uncategorised"
        n_ind = sum(kinds.values())
        brief = f"{what.capitalize()} incident with {n_ind} indicator(s)"
        if kinds:
            brief += " (" + ", ".join(f"{n} {k}" for k, n in kinds.items()) + ")"

        summary = brief + "."
        if malicious:
            summary += f" Threat intel flags {len(malicious)} indicator(s) as malicious."
        if matches:
            summary += f" {len(matches)} similar past case(s) on record."
        if learned:
            summary += f" Past cases with these patterns were mostly rated {learned}."

        recs = [{"priority": RECOMMENDATIONS[c][0], "action": RECOMMENDATIONS[c][1],
                 "reasoning": f"Description points to {CATEGORY_LABELS.get(c, c)} activity."}
                for c in categories if c in RECOMMENDATIONS]
        if malicious:
            recs.insert(0, {"priority": "critical",
                            "action": f"Block known-malicious indicators: {', '.join(malicious)}.",
                            "reasoning": f"Threat intel verdict is malicious for {', '.join(malicious)}."})
        if not recs:
            recs.append({"priority": "low", "action": "Collect more context before escalating.",
                         "reasoning": "No known pattern or malicious indicator was found."})

        return {
            "severity": sev,
            "brief_description": brief,
            "summary": summary,
            "recommendations": recs,
            "reputation": ctx.get("reputation", []),
            "fingerprint": list(fingerprint),
        }

    def confidence(self, outcome: dict, matches: List[MatchResult]) -> float:
        conf = matches[0].similarity_score if matches else 0.0
        if any(r.get("verdict") == "malicious" for r in outcome.get("reputation", [])):
            conf = min(1.0, conf + 0.2)
        return round(conf, 4)

    def format_response(self, outcome: dict, matches: List[MatchResult], confidence: float) -> dict:
        if confidence > 0.8:
            message = "Ah, I've seen something like this before!"
        elif confidence > 0.5:
            message = "This looks interesting. Here's what I found..."
        else:
            message = "This is a tricky one, but let me share what I discovered..."
        message += f" {outcome['summary']}"

        related = [RelatedCase.from_match(m).model_dump() for m in matches]
        if related:
            message += "\n\nBy the way, this reminds me of some cases we've worked on before:"

        evidence = [{"source": "ti",
                     "finding": f"{r.get('ioc')}: {r.get('verdict', 'unknown')}",
                     "link": ", ".join(r.get("sources", []))}
                    for r in outcome.get("reputation", [])]
        evidence += [{"source": "case_history",
                      "finding": f"{rc['similarity']}% similar to {rc['case_id']}: {rc['summary']}",
                      "link": f"/tools/case/{rc['case_id']}"}
                     for rc in related]

        return {
            "message": message,
            "severity": outcome["severity"],
            "confidence": confidence,
            "evidence": evidence,
            "suggestions": outcome["recommendations"],
            "related_cases": related,
        }

    def run(self, incident: Any) -> dict:
        """Execute the full companion pass and record the incident as a new case."""
        inc = coerce_incident(incident)
        ctx = self.enrich(inc)
        matches = self.similar_cases(inc)
        outcome = self.analyze(inc, ctx, matches)
        conf = self.confidence(outcome, matches)
        response = self.format_response(outcome, matches, conf)

        case_id = self.store.insert(inc, outcome)
        record = self.store.get(case_id)
        response["case_id"] = case_id
        response["created_ts"] = record.created_at.isoformat() if record else ""
        return response
