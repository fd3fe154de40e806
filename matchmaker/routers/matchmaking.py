from fastapi import APIRouter, Depends, HTTPException, Request

from matchmaker.models.models import make_doc_ref
from matchmaker.models.response import EnqueueResponse, MatchRunSummary
from matchmaker.models.schemas import DocumentCreatedEvent
from matchmaker.services.db import get_store
from matchmaker.services.enqueuer import enqueue_match_job
from matchmaker.services.graph import MatchmakingPipeline
from matchmaker.utils.exceptions import ExceptionContext
from matchmaker.utils.logging_config import get_logger

router = APIRouter(prefix="/matchmaking", tags=["matchmaking"])
logger = get_logger(__name__)


def get_pipeline(request: Request) -> MatchmakingPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Matchmaking pipeline is not initialized")
    return pipeline


@router.post("/events", response_model=EnqueueResponse)
async def document_created(event: DocumentCreatedEvent, store=Depends(get_store)):
    """Creation listener: queue a match job for new profiles and projects"""
    with ExceptionContext("enqueue_match_job", logger, collection=event.collection, doc_id=event.doc_id):
        job_id = await enqueue_match_job(store, event.collection, event.doc_id)

    if job_id is None:
        return EnqueueResponse(enqueued=False)
    return EnqueueResponse(
        enqueued=True,
        job_id=str(job_id),
        doc_ref=make_doc_ref(event.collection, event.doc_id),
    )


@router.post("/run", response_model=MatchRunSummary)
async def run_matchmaking(pipeline: MatchmakingPipeline = Depends(get_pipeline)):
    """Run the matchmaking pipeline out of schedule"""
    if pipeline.is_running:
        raise HTTPException(status_code=409, detail="A matchmaking run is already in progress")
    return await pipeline.run()
