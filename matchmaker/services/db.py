from typing import Any, AsyncIterator, Dict, List, NamedTuple, Optional, Tuple

import motor.motor_asyncio
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from matchmaker.models.models import (
    ERRORS_COLLECTION, JOBS_COLLECTION, MATCHES_BY_PROJECT_COLLECTION,
    MATCHES_COLLECTION, split_doc_ref,
)
from matchmaker.utils.config import load_settings
from matchmaker.utils.exceptions import DatabaseError
from matchmaker.utils.logging_config import get_logger

logger = get_logger(__name__)


class BatchWrite(NamedTuple):
    """One upsert staged for an atomic batch commit."""
    collection: str
    doc_id: str
    data: Dict[str, Any]


def _id_candidates(doc_id: Any) -> List[Any]:
    # Documents created by other services may use ObjectId or string keys
    candidates = [doc_id]
    if isinstance(doc_id, str) and ObjectId.is_valid(doc_id):
        candidates.append(ObjectId(doc_id))
    return candidates


class MongoDocumentStore:
    """Document store operations the matching pipeline needs, backed by MongoDB."""

    def __init__(self, client: motor.motor_asyncio.AsyncIOMotorClient, db_name: str):
        self.client = client
        self.db = client[db_name]

    async def list_documents(self, collection: str, limit: int, order_by: str = None) -> List[Dict[str, Any]]:
        cursor = self.db[collection].find({})
        if order_by:
            cursor = cursor.sort(order_by, ASCENDING)
        cursor = cursor.limit(limit)
        return await cursor.to_list(length=limit)

    async def find_documents(
        self,
        collection: str,
        query: Dict[str, Any],
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.db[collection].find(query)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=limit)

    async def get_document(self, doc_ref: str) -> Optional[Dict[str, Any]]:
        collection, doc_id = split_doc_ref(doc_ref)
        return await self.db[collection].find_one({"_id": {"$in": _id_candidates(doc_id)}})

    async def create_document(self, collection: str, data: Dict[str, Any]) -> Any:
        result = await self.db[collection].insert_one(dict(data))
        return result.inserted_id

    async def delete_document(self, collection: str, doc_id: Any) -> bool:
        result = await self.db[collection].delete_one({"_id": doc_id})
        return result.deleted_count > 0

    async def commit_batch(self, writes: List[BatchWrite]) -> None:
        """Apply every write or none of them (multi-document transaction)."""
        if not writes:
            return
        try:
            async with await self.client.start_session() as session:
                async with session.start_transaction():
                    for write in writes:
                        await self.db[write.collection].replace_one(
                            {"_id": write.doc_id},
                            {"_id": write.doc_id, **write.data},
                            upsert=True,
                            session=session,
                        )
        except PyMongoError as e:
            raise DatabaseError(
                f"Batch commit of {len(writes)} writes failed: {e}",
                operation="commit_batch",
                cause=e,
            ) from e

    async def watch_inserts(self) -> AsyncIterator[Tuple[str, Any]]:
        """Yield (collection, document id) for every insert in the database."""
        pipeline = [{"$match": {"operationType": "insert"}}]
        async with self.db.watch(pipeline) as stream:
            async for change in stream:
                yield change["ns"]["coll"], change["documentKey"]["_id"]


_settings = load_settings()

logger.info(f"Initializing MongoDB connection to database: {_settings.db_name}")

try:
    client = motor.motor_asyncio.AsyncIOMotorClient(_settings.mongo_details)
    store = MongoDocumentStore(client, _settings.db_name)
    logger.info("MongoDB client initialized successfully")
except Exception as e:
    logger.error(f"Failed to initialize MongoDB client: {e}")
    raise


def get_store() -> MongoDocumentStore:
    """FastAPI dependency returning the shared store."""
    return store


async def init_indexes(target: MongoDocumentStore = None):
    """Index initialization for the pipeline's collections."""
    db = (target or store).db
    logger.info("Starting database index initialization")

    specs = [
        (MATCHES_COLLECTION, [("fromUid", ASCENDING), ("score", DESCENDING)], {}),
        (MATCHES_BY_PROJECT_COLLECTION, [("toProjectId", ASCENDING), ("score", DESCENDING)], {}),
        # Expired matches are removed by MongoDB's TTL monitor
        (MATCHES_COLLECTION, [("expiresAt", ASCENDING)], {"expireAfterSeconds": 0}),
        (MATCHES_BY_PROJECT_COLLECTION, [("expiresAt", ASCENDING)], {"expireAfterSeconds": 0}),
        (JOBS_COLLECTION, [("createdAt", ASCENDING)], {}),
        (ERRORS_COLLECTION, [("timestamp", DESCENDING)], {}),
    ]
    for collection, keys, options in specs:
        try:
            await db[collection].create_index(keys, **options)
            logger.debug(f"Ensured index on {collection}.{[k for k, _ in keys]}")
        except PyMongoError as e:
            logger.warning(f"Could not create index on {collection}.{[k for k, _ in keys]}: {e}")

    logger.info("Database index initialization completed")
