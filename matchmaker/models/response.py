from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from matchmaker.models.models import MatchRecord


class ChunkOutcome(BaseModel):
    index: int
    people: int
    status: str  # committed, model_failed, parse_error
    matches_committed: int = 0
    rejected_entries: int = 0
    error: Optional[str] = None


class MatchRunSummary(BaseModel):
    status: str = "skipped"  # skipped, completed, partial
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    jobs_found: int = 0
    jobs_deleted: int = 0
    missing_documents: int = 0
    invalid_documents: int = 0
    profiles: int = 0
    projects: int = 0
    chunks: List[ChunkOutcome] = Field(default_factory=list)
    matches_committed: int = 0
    rejected_entries: int = 0
    parse_errors: int = 0

    @property
    def failed_chunks(self) -> int:
        return sum(1 for c in self.chunks if c.status == "model_failed")


class EnqueueResponse(BaseModel):
    enqueued: bool
    job_id: Optional[str] = None
    doc_ref: Optional[str] = None


class MatchListResponse(BaseModel):
    key: str
    count: int
    matches: List[MatchRecord]


class ErrorRecordResponse(BaseModel):
    id: str
    error: str
    message: str
    rawResponse: Optional[str] = None
    timestamp: Optional[Any] = None
