"""
Match job drainer: resolves queued references into profiles and projects
"""
from pydantic import ValidationError as PydanticValidationError

from matchmaker.models.models import (
    JOBS_COLLECTION, PROFILES_COLLECTION, PROJECTS_COLLECTION,
    DrainResult, Profile, Project, split_doc_ref,
)
from matchmaker.utils.logging_config import get_logger, log_function_call

logger = get_logger(__name__)


@log_function_call
async def drain_jobs(store, limit: int = 100, defer_deletion: bool = False) -> DrainResult:
    """
    Read up to ``limit`` pending jobs and accumulate what they point at.

    Jobs without a usable docRef, whose document no longer exists or whose
    document cannot be normalised are always deleted. Resolved jobs
    are deleted right away unless ``defer_deletion`` is set, in which case
    their ids are returned in ``pending_job_ids`` for the caller to
    acknowledge once the run has been persisted.
    """
    jobs = await store.list_documents(JOBS_COLLECTION, limit, order_by="createdAt")
    result = DrainResult(jobs_found=len(jobs))
    logger.info(f"Found {len(jobs)} matchJobs to process")

    if not jobs:
        return result

    seen_profiles = set()
    seen_projects = set()

    for job in jobs:
        job_id = job["_id"]
        doc_ref = job.get("docRef")
        if not doc_ref:
            logger.warning(f"Deleting match job {job_id} without docRef")
            await store.delete_document(JOBS_COLLECTION, job_id)
            result.jobs_deleted += 1
            continue

        try:
            collection, _ = split_doc_ref(doc_ref)
        except ValueError:
            logger.warning(f"Deleting match job {job_id} with malformed docRef {doc_ref!r}")
            await store.delete_document(JOBS_COLLECTION, job_id)
            result.jobs_deleted += 1
            continue

        doc = await store.get_document(doc_ref)
        if doc is None:
            # Deleted between enqueue and drain
            logger.debug(f"Document {doc_ref} no longer exists, dropping job {job_id}")
            await store.delete_document(JOBS_COLLECTION, job_id)
            result.jobs_deleted += 1
            result.missing_documents += 1
            continue

        doc_id = str(doc["_id"])
        if collection == PROFILES_COLLECTION:
            model, seen, accumulated = Profile, seen_profiles, result.profiles
        elif collection == PROJECTS_COLLECTION:
            model, seen, accumulated = Project, seen_projects, result.projects
        else:
            model = None
            logger.warning(f"Match job {job_id} points outside the watched collections: {doc_ref}")

        if model is not None and doc_id not in seen:
            try:
                accumulated.append(model.from_document(doc_id, doc))
            except PydanticValidationError as e:
                # Owned by another service; one bad document must not block the queue
                logger.warning(f"Deleting match job {job_id}: {doc_ref} could not be normalised: {e}")
                await store.delete_document(JOBS_COLLECTION, job_id)
                result.jobs_deleted += 1
                result.invalid_documents += 1
                continue
            seen.add(doc_id)

        if defer_deletion:
            result.pending_job_ids.append(job_id)
        else:
            await store.delete_document(JOBS_COLLECTION, job_id)
            result.jobs_deleted += 1

    logger.info(
        f"Drained {result.jobs_found} jobs: {len(result.profiles)} profiles, "
        f"{len(result.projects)} projects, {result.missing_documents} missing, {result.invalid_documents} invalid"
    )
    return result


async def acknowledge_jobs(store, job_ids) -> int:
    """Delete jobs whose run completed; returns how many were removed."""
    deleted = 0
    for job_id in job_ids:
        if await store.delete_document(JOBS_COLLECTION, job_id):
            deleted += 1
    logger.info(f"Acknowledged {deleted} match jobs")
    return deleted
