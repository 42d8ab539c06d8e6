from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any

from matching.common import Incident, MatchResult

class ReputationRequest(BaseModel):
    ioc: str                 # IP, hash or domain

class CreateCaseRequest(BaseModel):
    incident: Incident
    outcome: Dict[str, Any]  # must carry brief_description for display

class FindSimilarRequest(BaseModel):
    incident: Incident
    threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)  # None -> server default
    limit: Optional[int] = Field(default=None, gt=0)

class PruneRequest(BaseModel):
    max_size: Optional[int] = Field(default=None, ge=0)
    max_age_seconds: Optional[float] = Field(default=None, gt=0)

class RelatedCase(BaseModel):
    case_id: str
    date: str                # YYYY-MM-DD
    summary: str
    similarity: int          # whole-number percent

    @classmethod
    def from_match(cls, m: MatchResult) -> "RelatedCase":
        return cls(case_id=m.case.case_id,
                   date=m.case.created_at.date().isoformat(),
                   summary=m.case.brief_description,
                   similarity=m.percent)

class FindSimilarResponse(BaseModel):
    matches: List[RelatedCase] = []
