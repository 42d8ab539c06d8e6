"""
Pattern extraction: Incident -> Fingerprint.

A fingerprint is an ordered set of distinct feature tokens:
  - indicator:<kind>   one per indicator shape present (url, hash, ip, domain, other)
  - keyword:<category> one per vocabulary category hit in the description
  - severity:<bucket>  coarse severity bucket (low | medium | high), always last

Token order is first-occurrence order, so the same incident always yields
the same tuple.
"""

import ipaddress
import re
from collections import OrderedDict
from typing import Any, Dict, Iterable, Mapping, Optional

from pydantic import ValidationError

from matching.common import Fingerprint, Incident
from matching.errors import InvalidIncidentError

HASH_RE = re.compile(r"^(?:[a-fA-F0-9]{32}|[a-fA-F0-9]{40}|[a-fA-F0-9]{64})$")
URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://\S+$")
DOMAIN_RE = re.compile(r"^(?=.{4,253}$)(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,63}\.?$")
WORD_RE = re.compile(r"[a-z0-9]+")

# word -> category
KEYWORD_CATEGORIES: Dict[str, str] = {
    # phishing
    "phishing": "phishing", "phish": "phishing", "email": "phishing", "link": "phishing",
    "spoofed": "phishing", "spoof": "phishing", "lure": "phishing", "attachment": "phishing",
    # malware
    "malware": "malware", "malicious": "malware", "trojan": "malware", "virus": "malware",
    "payload": "malware", "dropper": "malware", "backdoor": "malware", "worm": "malware",
    # ransomware
    "ransomware": "ransomware", "ransom": "ransomware", "encrypted": "ransomware", "decryptor": "ransomware",
    # credential
    "credential": "credential", "credentials": "credential", "password": "credential",
    "brute": "credential", "login": "credential", "mfa": "credential", "stuffing": "credential",
    # exfiltration
    "exfiltration": "exfiltration", "exfil": "exfiltration", "upload": "exfiltration", "leak": "exfiltration",
    # lateral movement
    "lateral": "lateral_movement", "pivot": "lateral_movement", "psexec": "lateral_movement", "rdp": "lateral_movement",
    # reconnaissance
    "scan": "reconnaissance", "scanning": "reconnaissance", "probe": "reconnaissance",
    "recon": "reconnaissance", "enumeration": "reconnaissance",
    # command and control
    "beacon": "c2", "beaconing": "c2", "c2": "c2", "callback": "c2",
    # denial of service
    "ddos": "ddos", "flood": "ddos", "dos": "ddos",
    # insider
    "insider": "insider", "disgruntled": "insider",
    # vulnerability
    "exploit": "vulnerability", "cve": "vulnerability", "vulnerability": "vulnerability", "rce": "vulnerability",
}

SEVERITY_BUCKETS = {"low": "low", "info": "low", "medium": "medium", "high": "high", "critical": "high"}


def classify_indicator(value: str) -> str:
    v = value.strip()
    if URL_RE.match(v):
        return "url"
    if HASH_RE.match(v):
        return "hash"
    try:
        ipaddress.ip_address(v)
        return "ip"
    except ValueError:
        pass
    if DOMAIN_RE.match(v):
        return "domain"
    return "other"


def severity_bucket(severity: Optional[str]) -> str:
    return SEVERITY_BUCKETS.get(str(severity or "").strip().lower(), "medium")


def coerce_incident(incident: Any) -> Incident:
    """Accept an Incident or a mapping shaped like one."""
    if isinstance(incident, Incident):
        return incident
    if not isinstance(incident, Mapping):
        raise InvalidIncidentError(f"incident must be a structured record, got {type(incident).__name__}")
    try:
        return Incident.model_validate(dict(incident))
    except ValidationError as e:
        raise InvalidIncidentError(f"incident failed validation: {e.error_count()} error(s)") from e


class PatternExtractor:
    def __init__(self, vocabulary: Optional[Mapping[str, str]] = None):
        self.vocabulary = dict(KEYWORD_CATEGORIES if vocabulary is None else vocabulary)

    def classify_indicators(self, indicators: Iterable[str]) -> "OrderedDict[str, int]":
        counts: "OrderedDict[str, int]" = OrderedDict()
        for ind in indicators:
            kind = classify_indicator(ind)
            counts[kind] = counts.get(kind, 0) + 1
        return counts

    def keyword_categories(self, description: str) -> list:
        seen = []
        for word in WORD_RE.findall(description.lower()):
            cat = self.vocabulary.get(word)
            if cat and cat not in seen:
                seen.append(cat)
        return seen

    def extract(self, incident: Any) -> Fingerprint:
        inc = coerce_incident(incident)
        tokens = [f"indicator:{kind}" for kind in self.classify_indicators(inc.indicators)]
        tokens += [f"keyword:{cat}" for cat in self.keyword_categories(inc.description)]
        tokens.append(f"severity:{severity_bucket(inc.metadata.severity)}")
        # indicator/keyword/severity prefixes never collide, so tokens are already distinct
        return tuple(tokens)


_default = PatternExtractor()


def extract(incident: Any) -> Fingerprint:
    return _default.extract(incident)
