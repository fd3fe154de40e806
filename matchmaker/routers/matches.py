from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query
from pymongo import DESCENDING

from matchmaker.models.models import (
    ERRORS_COLLECTION, MATCHES_BY_PROJECT_COLLECTION, MATCHES_COLLECTION, MatchRecord,
)
from matchmaker.models.response import ErrorRecordResponse, MatchListResponse
from matchmaker.services.db import get_store
from matchmaker.utils.exceptions import ExceptionContext, ValidationError
from matchmaker.utils.logging_config import get_logger

router = APIRouter(prefix="/matches", tags=["matches"])
logger = get_logger(__name__)


async def _active_matches(store, collection: str, field: str, key: str) -> List[MatchRecord]:
    if not key or not key.strip():
        raise ValidationError(f"{field} cannot be empty", field=field, value=key)
    with ExceptionContext("list_matches", logger, collection=collection, key=key):
        docs = await store.find_documents(
            collection,
            {field: key, "expiresAt": {"$gt": datetime.utcnow()}},
            sort=[("score", DESCENDING)],
        )
    return [MatchRecord(**doc) for doc in docs]


@router.get("/seeker/{uid}", response_model=MatchListResponse)
async def list_matches_for_seeker(uid: str, store=Depends(get_store)):
    """Unexpired AI matches for a seeker, best first"""
    matches = await _active_matches(store, MATCHES_COLLECTION, "fromUid", uid)
    return MatchListResponse(key=uid, count=len(matches), matches=matches)


@router.get("/project/{project_id}", response_model=MatchListResponse)
async def list_matches_for_project(project_id: str, store=Depends(get_store)):
    """Unexpired AI matches for a project, best first"""
    matches = await _active_matches(store, MATCHES_BY_PROJECT_COLLECTION, "toProjectId", project_id)
    return MatchListResponse(key=project_id, count=len(matches), matches=matches)


@router.get("/errors", response_model=List[ErrorRecordResponse])
async def list_match_errors(limit: int = Query(20, ge=1, le=200), store=Depends(get_store)):
    """Most recent pipeline validation failures"""
    with ExceptionContext("list_match_errors", logger, limit=limit):
        docs = await store.find_documents(ERRORS_COLLECTION, {}, sort=[("timestamp", DESCENDING)], limit=limit)
    return [
        ErrorRecordResponse(
            id=str(doc["_id"]),
            error=doc.get("error", ""),
            message=doc.get("message", ""),
            rawResponse=doc.get("rawResponse"),
            timestamp=doc.get("timestamp"),
        )
        for doc in docs
    ]
