import itertools
import os
from collections import defaultdict

import pytest

os.environ.setdefault("ENVIRONMENT", "testing")

from matchmaker.models.models import (  # noqa: E402
    JOBS_COLLECTION, PROFILES_COLLECTION, PROJECTS_COLLECTION, make_doc_ref, split_doc_ref,
)
from matchmaker.utils.exceptions import DatabaseError  # noqa: E402


class InMemoryDocumentStore:
    """Stand-in for MongoDocumentStore keeping collections in dicts"""

    def __init__(self):
        self.collections = defaultdict(dict)
        self.fail_commit = False
        self.commits = []
        self.inserts = []
        self._ids = itertools.count(1)

    def insert(self, collection, doc_id, data=None):
        self.collections[collection][doc_id] = {"_id": doc_id, **(data or {})}

    def queue_job(self, collection, doc_id):
        job_id = f"job-{next(self._ids)}"
        self.insert(JOBS_COLLECTION, job_id, {"docRef": make_doc_ref(collection, doc_id)})
        return job_id

    def docs(self, collection):
        return list(self.collections[collection].values())

    async def list_documents(self, collection, limit, order_by=None):
        docs = list(self.collections[collection].values())
        if order_by:
            # missing values sort first, as in MongoDB
            docs.sort(key=lambda d: (d.get(order_by) is not None, d.get(order_by)))
        return [dict(d) for d in docs[:limit]]

    async def find_documents(self, collection, query, sort=None, limit=None):
        def matches(doc):
            for key, cond in query.items():
                value = doc.get(key)
                if isinstance(cond, dict):
                    if "$gt" in cond and not (value is not None and value > cond["$gt"]):
                        return False
                elif value != cond:
                    return False
            return True

        found = [dict(d) for d in self.collections[collection].values() if matches(d)]
        for key, direction in reversed(sort or []):
            found.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return found[:limit] if limit else found

    async def get_document(self, doc_ref):
        collection, doc_id = split_doc_ref(doc_ref)
        doc = self.collections[collection].get(doc_id)
        return dict(doc) if doc is not None else None

    async def create_document(self, collection, data):
        doc_id = f"{collection}-{next(self._ids)}"
        self.insert(collection, doc_id, data)
        self.inserts.append((collection, doc_id))
        return doc_id

    async def delete_document(self, collection, doc_id):
        return self.collections[collection].pop(doc_id, None) is not None

    async def commit_batch(self, writes):
        if not writes:
            return
        if self.fail_commit:
            raise DatabaseError("Batch commit failed", operation="commit_batch")
        for write in writes:
            self.collections[write.collection][write.doc_id] = {"_id": write.doc_id, **write.data}
        self.commits.append(list(writes))


class FakeMatchingClient:
    """Returns canned responses in order; an Exception instance is raised instead"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        response = self.responses.pop(0) if self.responses else "[]"
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def seeded_store(store):
    """Two people and one project, each with a queued match job"""
    store.insert(PROFILES_COLLECTION, "u1", {"role": "seeker", "skills": ["flutter"]})
    store.insert(PROFILES_COLLECTION, "u2", {"role": "seeker", "skills": ["go"]})
    store.insert(PROJECTS_COLLECTION, "p1", {"title": "EdTech app", "skillsNeeded": ["flutter"]})
    store.queue_job(PROFILES_COLLECTION, "u1")
    store.queue_job(PROFILES_COLLECTION, "u2")
    store.queue_job(PROJECTS_COLLECTION, "p1")
    return store
