from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Ordered set of distinct feature tokens, e.g. ("indicator:ip", "keyword:phishing", "severity:medium")
Fingerprint = Tuple[str, ...]


class IncidentMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    severity: str = "medium"     # low | medium | high | critical
    source: str = "unknown"      # e.g. "clipboard", "siem", "manual"


class Incident(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    description: str = ""
    indicators: Tuple[str, ...] = ()
    metadata: IncidentMetadata = IncidentMetadata()

    @field_validator("description", mode="before")
    @classmethod
    def _description_default(cls, v):
        return "" if v is None else v

    @field_validator("indicators", mode="before")
    @classmethod
    def _indicators_default(cls, v):
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple, set)):
            return v
        return tuple(str(i).strip() for i in v if i is not None and str(i).strip())

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_default(cls, v):
        return {} if v is None else v


class CaseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    case_id: str
    incident: Incident
    outcome: Dict[str, Any]
    fingerprint: Fingerprint
    created_at: datetime

    @property
    def brief_description(self) -> str:
        return str(self.outcome.get("brief_description") or self.outcome.get("briefDescription") or "")


class MatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    case: CaseRecord
    similarity_score: float = Field(ge=0.0, le=1.0)

    @property
    def percent(self) -> int:
        """Similarity as a whole-number percentage, as shown next to a related case."""
        return round(self.similarity_score * 100)


class MatcherSettings(BaseModel):
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    max_size: Optional[int] = Field(default=500, gt=0)
    max_age_seconds: Optional[float] = Field(default=None, gt=0)
