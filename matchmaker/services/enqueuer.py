"""
Match job enqueuer: turns "a profile or project was created" into a queue row
"""
from datetime import datetime
from typing import Any, Optional

from pymongo.errors import PyMongoError

from matchmaker.models.models import JOBS_COLLECTION, WATCHED_COLLECTIONS, MatchJob, make_doc_ref
from matchmaker.utils.logging_config import get_logger

logger = get_logger(__name__)


async def enqueue_match_job(store, collection: str, doc_id: Any) -> Optional[Any]:
    """Create one MatchJob for a newly created profile/project; no-op otherwise."""
    if collection not in WATCHED_COLLECTIONS:
        return None

    job = MatchJob(docRef=make_doc_ref(collection, doc_id), createdAt=datetime.utcnow())
    try:
        job_id = await store.create_document(JOBS_COLLECTION, job.dict())
    except Exception as e:
        # Not retried here; the creation event is lost
        logger.error(f"Failed to enqueue match job for {job.docRef}: {e}")
        raise

    logger.info(f"Enqueued match job {job_id} for {job.docRef}")
    return job_id


async def watch_document_creations(store) -> None:
    """Consume database-wide insert events and enqueue the watched ones."""
    logger.info("Watching document creations for match jobs")
    try:
        async for collection, doc_id in store.watch_inserts():
            if collection not in WATCHED_COLLECTIONS:
                continue
            try:
                await enqueue_match_job(store, collection, doc_id)
            except Exception:
                # One lost event must not stop the listener
                logger.exception(f"Dropped creation event for {collection}/{doc_id}")
    except PyMongoError:
        # Change streams need a replica set; the HTTP listener still works
        logger.exception("Document creation watcher stopped")
