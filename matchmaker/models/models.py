from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

# Field names mirror the stored document shape (camelCase) so documents
# round-trip through the store without an alias layer.

PROFILES_COLLECTION = "networkingProfiles"
PROJECTS_COLLECTION = "projects"
JOBS_COLLECTION = "matchJobs"
MATCHES_COLLECTION = "matches"
MATCHES_BY_PROJECT_COLLECTION = "matchesProjects"
ERRORS_COLLECTION = "matchesErrors"

WATCHED_COLLECTIONS = (PROFILES_COLLECTION, PROJECTS_COLLECTION)

MATCH_TYPE_AI = "ai"
PARSE_ERROR = "parse_error"


def make_doc_ref(collection: str, doc_id: Any) -> str:
    return f"{collection}/{doc_id}"


def split_doc_ref(doc_ref: str):
    """Split "collection/docId" into its two parts."""
    if not doc_ref or "/" not in doc_ref:
        raise ValueError(f"Invalid document reference: {doc_ref!r}")
    collection, _, doc_id = doc_ref.partition("/")
    if not collection or not doc_id:
        raise ValueError(f"Invalid document reference: {doc_ref!r}")
    return collection, doc_id


class Profile(BaseModel):
    uid: str
    role: str = "seeker"  # seeker, mentor, founder
    headline: str = ""
    skills: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)
    lookingFor: List[str] = Field(default_factory=lambda: ["project"])
    location: str = ""
    openToRemote: bool = False
    experienceMonths: float = 0
    age: Optional[int] = None

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Profile":
        data = data or {}
        return cls(
            uid=str(doc_id),
            role=data.get("role") or "seeker",
            headline=data.get("headline") or "",
            skills=data.get("skills") or [],
            interests=data.get("interests") or [],
            lookingFor=data.get("lookingFor") or ["project"],
            location=data.get("location") or "",
            openToRemote=bool(data.get("openToRemote") or False),
            experienceMonths=data.get("experienceMonths") or 0,
            age=data.get("age") or None,
        )


class Project(BaseModel):
    projectId: str
    title: str = ""
    tags: List[str] = Field(default_factory=list)
    skillsNeeded: List[str] = Field(default_factory=list)
    ownerRole: str = "founder"
    isOpen: bool = True
    mode: str = "remote"  # remote, onsite, hybrid
    description: str = ""

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Project":
        data = data or {}
        is_open = data.get("isOpen")
        return cls(
            projectId=str(doc_id),
            title=data.get("title") or "",
            tags=data.get("tags") or [],
            skillsNeeded=data.get("skillsNeeded") or [],
            ownerRole=data.get("ownerRole") or "founder",
            isOpen=True if is_open is None else bool(is_open),
            mode=data.get("mode") or "remote",
            description=data.get("description") or "",
        )


class MatchJob(BaseModel):
    docRef: str
    createdAt: datetime = Field(default_factory=datetime.utcnow)


class AiMatch(BaseModel):
    """A single pairing proposed by the model, after validation."""
    fromUid: str = Field(..., min_length=1)
    toProjectId: str = Field(..., min_length=1)
    score: float = Field(..., ge=0.0, le=1.0)
    reason: str = ""

    @validator("fromUid", "toProjectId", pre=True)
    def ids_must_be_strings(cls, v):
        if not isinstance(v, str):
            raise ValueError("id must be a string")
        return v.strip()

    @validator("score", pre=True)
    def score_must_be_numeric(cls, v):
        # bool is an int subclass; "0.8" must not be coerced either
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("score must be a number")
        return v

    @validator("reason", pre=True)
    def reason_to_text(cls, v):
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @property
    def match_id(self) -> str:
        return f"{self.fromUid}_{self.toProjectId}"


class MatchRecord(AiMatch):
    matchType: str = MATCH_TYPE_AI
    createdAt: datetime
    expiresAt: datetime

    @validator("expiresAt")
    def expires_after_creation(cls, v, values):
        created = values.get("createdAt")
        if created is not None and v <= created:
            raise ValueError("expiresAt must be after createdAt")
        return v

    @classmethod
    def from_ai_match(cls, match: AiMatch, created_at: datetime, ttl_days: int = 14) -> "MatchRecord":
        return cls(
            fromUid=match.fromUid,
            toProjectId=match.toProjectId,
            score=match.score,
            reason=match.reason,
            createdAt=created_at,
            expiresAt=created_at + timedelta(days=ttl_days),
        )


class ErrorRecord(BaseModel):
    error: str = PARSE_ERROR
    message: str
    rawResponse: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class RejectedEntry(BaseModel):
    entry: Any = None
    reason: str


class ParsedBatch(BaseModel):
    """Outcome of validating one model response.

    Exactly one of two shapes: ``error`` is set and ``matches`` is empty
    (the whole batch was unparsable), or ``error`` is None and ``matches``
    holds the accepted pairings with per-entry rejections in ``rejected``.
    """
    matches: List[AiMatch] = Field(default_factory=list)
    rejected: List[RejectedEntry] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def unparsable(self) -> bool:
        return self.error is not None


class DrainResult(BaseModel):
    jobs_found: int = 0
    jobs_deleted: int = 0
    missing_documents: int = 0
    invalid_documents: int = 0
    profiles: List[Profile] = Field(default_factory=list)
    projects: List[Project] = Field(default_factory=list)
    pending_job_ids: List[Any] = Field(default_factory=list)

    @property
    def has_pairs(self) -> bool:
        return bool(self.profiles) and bool(self.projects)
