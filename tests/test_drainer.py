from datetime import datetime

import pytest

from matchmaker.models.models import JOBS_COLLECTION, PROFILES_COLLECTION, PROJECTS_COLLECTION
from matchmaker.services.drainer import acknowledge_jobs, drain_jobs


class TestDrainJobs:
    """Test cases for draining the match job queue"""

    @pytest.mark.asyncio
    async def test_empty_queue(self, store):
        result = await drain_jobs(store)

        assert result.jobs_found == 0
        assert result.profiles == [] and result.projects == []
        assert not result.has_pairs

    @pytest.mark.asyncio
    async def test_classifies_and_deletes_jobs(self, seeded_store):
        result = await drain_jobs(seeded_store)

        assert result.jobs_found == 3
        assert [p.uid for p in result.profiles] == ["u1", "u2"]
        assert [p.projectId for p in result.projects] == ["p1"]
        assert result.profiles[0].skills == ["flutter"]
        assert result.projects[0].skillsNeeded == ["flutter"]
        assert seeded_store.docs(JOBS_COLLECTION) == []
        assert result.jobs_deleted == 3

    @pytest.mark.asyncio
    async def test_missing_document_drops_job(self, store):
        store.queue_job(PROFILES_COLLECTION, "gone")

        result = await drain_jobs(store)

        assert result.missing_documents == 1
        assert result.profiles == []
        assert store.docs(JOBS_COLLECTION) == []

    @pytest.mark.asyncio
    async def test_job_without_doc_ref_is_deleted(self, store):
        store.insert(JOBS_COLLECTION, "job-x", {"createdAt": None})

        result = await drain_jobs(store)

        assert result.jobs_found == 1
        assert result.jobs_deleted == 1
        assert store.docs(JOBS_COLLECTION) == []

    @pytest.mark.asyncio
    async def test_jobs_without_doc_ref_do_not_block_the_queue(self, store):
        for i in range(3):
            store.insert(JOBS_COLLECTION, f"broken-{i}", {})
        store.insert(PROFILES_COLLECTION, "u1")
        store.queue_job(PROFILES_COLLECTION, "u1")

        first = await drain_jobs(store, limit=3)
        second = await drain_jobs(store, limit=3)

        assert first.profiles == []
        assert [p.uid for p in second.profiles] == ["u1"]
        assert store.docs(JOBS_COLLECTION) == []

    @pytest.mark.asyncio
    async def test_respects_limit(self, store):
        for i in range(5):
            store.insert(PROFILES_COLLECTION, f"u{i}")
            store.queue_job(PROFILES_COLLECTION, f"u{i}")

        result = await drain_jobs(store, limit=2)

        assert result.jobs_found == 2
        assert len(store.docs(JOBS_COLLECTION)) == 3

    @pytest.mark.asyncio
    async def test_duplicate_jobs_accumulate_once(self, store):
        store.insert(PROJECTS_COLLECTION, "p1", {"title": "x"})
        store.queue_job(PROJECTS_COLLECTION, "p1")
        store.queue_job(PROJECTS_COLLECTION, "p1")

        result = await drain_jobs(store)

        assert [p.projectId for p in result.projects] == ["p1"]
        assert store.docs(JOBS_COLLECTION) == []

    @pytest.mark.asyncio
    async def test_defaults_applied_when_normalizing(self, store):
        store.insert(PROFILES_COLLECTION, "u1", {"age": None})
        store.insert(PROJECTS_COLLECTION, "p1", {"isOpen": False})
        store.queue_job(PROFILES_COLLECTION, "u1")
        store.queue_job(PROJECTS_COLLECTION, "p1")

        result = await drain_jobs(store)

        profile, project = result.profiles[0], result.projects[0]
        assert profile.role == "seeker"
        assert profile.lookingFor == ["project"]
        assert profile.age is None
        assert project.isOpen is False
        assert project.mode == "remote"
        assert project.ownerRole == "founder"

    @pytest.mark.asyncio
    async def test_deferred_deletion_keeps_resolved_jobs(self, seeded_store):
        seeded_store.queue_job(PROFILES_COLLECTION, "vanished")

        result = await drain_jobs(seeded_store, defer_deletion=True)

        assert len(result.pending_job_ids) == 3
        assert len(seeded_store.docs(JOBS_COLLECTION)) == 3

        assert await acknowledge_jobs(seeded_store, result.pending_job_ids) == 3
        assert seeded_store.docs(JOBS_COLLECTION) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_fields", [
        {"location": {"city": "Almaty"}},
        {"skills": [{"name": "flutter"}]},
        {"lookingFor": "project"},
    ])
    async def test_malformed_profile_is_dropped(self, seeded_store, bad_fields):
        seeded_store.insert(PROFILES_COLLECTION, "u3", bad_fields)
        seeded_store.queue_job(PROFILES_COLLECTION, "u3")

        result = await drain_jobs(seeded_store)

        assert [p.uid for p in result.profiles] == ["u1", "u2"]
        assert [p.projectId for p in result.projects] == ["p1"]
        assert result.invalid_documents == 1
        assert result.jobs_deleted == 4
        assert seeded_store.docs(JOBS_COLLECTION) == []

    @pytest.mark.asyncio
    async def test_malformed_project_is_dropped_even_when_deferring(self, store):
        store.insert(PROJECTS_COLLECTION, "p1", {"tags": "mobile"})
        store.queue_job(PROJECTS_COLLECTION, "p1")

        result = await drain_jobs(store, defer_deletion=True)

        assert result.projects == []
        assert result.pending_job_ids == []
        assert store.docs(JOBS_COLLECTION) == []

    @pytest.mark.asyncio
    async def test_oldest_jobs_drained_first(self, store):
        for doc_id, created in [("late", datetime(2026, 10, 19, 9)), ("early", datetime(2026, 10, 19, 8))]:
            store.insert(PROFILES_COLLECTION, doc_id)
            store.insert(JOBS_COLLECTION, f"job-{doc_id}", {
                "docRef": f"{PROFILES_COLLECTION}/{doc_id}", "createdAt": created,
            })

        result = await drain_jobs(store, limit=1)

        assert [p.uid for p in result.profiles] == ["early"]
        assert [j["_id"] for j in store.docs(JOBS_COLLECTION)] == ["job-late"]
