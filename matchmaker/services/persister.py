"""
Match persister: mirrored, expiring match records committed per chunk
"""
from datetime import datetime
from typing import List

from matchmaker.models.models import (
    ERRORS_COLLECTION, MATCHES_BY_PROJECT_COLLECTION, MATCHES_COLLECTION,
    PARSE_ERROR, AiMatch, ErrorRecord, MatchRecord,
)
from matchmaker.services.db import BatchWrite
from matchmaker.utils.logging_config import get_logger

logger = get_logger(__name__)


def build_match_writes(matches: List[AiMatch], created_at: datetime, ttl_days: int = 14) -> List[BatchWrite]:
    """Two identical writes per pairing: one by seeker, one by project."""
    writes = []
    for match in matches:
        record = MatchRecord.from_ai_match(match, created_at, ttl_days).dict()
        writes.append(BatchWrite(MATCHES_COLLECTION, match.match_id, record))
        writes.append(BatchWrite(MATCHES_BY_PROJECT_COLLECTION, match.match_id, dict(record)))
    return writes


async def persist_matches(store, matches: List[AiMatch], ttl_days: int = 14, now: datetime = None) -> int:
    """Commit all pairings of one chunk atomically; returns the number committed."""
    if not matches:
        return 0
    writes = build_match_writes(matches, now or datetime.utcnow(), ttl_days)
    await store.commit_batch(writes)
    logger.info(f"Committed {len(matches)} matches ({len(writes)} records)")
    return len(matches)


async def record_parse_error(store, message: str, raw_response: str, error: str = PARSE_ERROR):
    record = ErrorRecord(error=error, message=message, rawResponse=raw_response, timestamp=datetime.utcnow())
    error_id = await store.create_document(ERRORS_COLLECTION, record.dict())
    logger.info(f"Recorded {error} {error_id} for offline inspection")
    return error_id
