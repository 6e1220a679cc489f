# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling, transactions and indexes.
"""

import os
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError
from bson import ObjectId
from bson.errors import InvalidId

logger = logging.getLogger(__name__)

T = TypeVar("T")

REQUESTS_COLLECTION = "benefit_requests"
FAMILY_COLLECTION = "family_members"
SERVICES_COLLECTION = "services"
AUDIT_COLLECTION = "audit_logs"


class PaginationResult:
    """Result container for paginated queries."""

    def __init__(self, items: List[Any], total: int, page: int, page_size: int):
        self.items = items
        self.total = total
        self.page = page
        self.page_size = page_size
        self.total_pages = (total + page_size - 1) // page_size
        self.has_next = page < self.total_pages
        self.has_prev = page > 1


def to_object_id(doc_id: str) -> Optional[ObjectId]:
    """Convert a string ID to ObjectId, None when malformed."""
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return None


class MongoDBService:
    """MongoDB service with connection pooling and transaction support."""

    def __init__(self, connection_string: str = None, database_name: str = None,
                 use_transactions: bool = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/musaib_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'musaib_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        # Multi-document transactions need a replica set
        if use_transactions is None:
            use_transactions = os.getenv('MONGODB_TRANSACTIONS', 'true').lower() == 'true'
        self.use_transactions = use_transactions

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True,
                    tz_aware=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except PyMongoError as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    # Transactions

    def run_in_transaction(self, callback: Callable[[Optional[ClientSession]], T]) -> T:
        """
        Run `callback(session)` inside a multi-document transaction.

        Any exception raised by the callback aborts the transaction and is
        re-raised. With transactions disabled the callback runs with
        session=None.
        """
        if not self.use_transactions:
            return callback(None)

        with self.client.start_session() as session:
            return session.with_transaction(callback)

    # CRUD Operations

    def insert(self, collection: str, document: Dict, session: Optional[ClientSession] = None) -> str:
        """Insert a document; DuplicateKeyError propagates to the caller."""
        if "_id" not in document:
            document["_id"] = ObjectId()

        result = self.get_collection(collection).insert_one(document, session=session)
        logger.info(f"Created document in {collection}: {result.inserted_id}")
        return str(result.inserted_id)

    def find(self, collection: str, query: Dict, sort_by: str = None, sort_order: int = DESCENDING,
             session: Optional[ClientSession] = None) -> List[Dict]:
        """Find all documents matching a query."""
        cursor = self.get_collection(collection).find(query, session=session)
        if sort_by:
            cursor = cursor.sort(sort_by, sort_order)
        documents = list(cursor)
        logger.debug(f"Found {len(documents)} documents in {collection}")
        return documents

    def find_by_id(self, collection: str, doc_id: str,
                   session: Optional[ClientSession] = None) -> Optional[Dict]:
        """Find a single document by ID."""
        object_id = to_object_id(doc_id)
        if object_id is None:
            logger.debug(f"Invalid document ID {doc_id} for {collection}")
            return None
        return self.get_collection(collection).find_one({"_id": object_id}, session=session)

    def find_one(self, collection: str, query: Dict,
                 session: Optional[ClientSession] = None) -> Optional[Dict]:
        return self.get_collection(collection).find_one(query, session=session)

    def update_one(self, collection: str, query: Dict, updates: Dict,
                   session: Optional[ClientSession] = None) -> bool:
        """Apply `$set` updates to the first match; True when a document matched."""
        result = self.get_collection(collection).update_one(query, {"$set": updates}, session=session)

        if result.matched_count > 0:
            logger.info(f"Updated document in {collection}", extra={"query_keys": sorted(query)})
            return True

        logger.warning(f"No document matched update in {collection}")
        return False

    def delete_by_id(self, collection: str, doc_id: str,
                     session: Optional[ClientSession] = None) -> bool:
        """Delete a document by ID."""
        object_id = to_object_id(doc_id)
        if object_id is None:
            return False

        result = self.get_collection(collection).delete_one({"_id": object_id}, session=session)
        if result.deleted_count > 0:
            logger.warning(f"Deleted document {doc_id} in {collection}")
            return True
        return False

    def paginate(self, collection: str, query: Dict, page: int = 1, page_size: int = 20,
                 sort_by: str = "createdAt", sort_order: int = DESCENDING) -> PaginationResult:
        """Paginate documents with sorting and filtering."""
        collection_obj = self.get_collection(collection)
        skip = (page - 1) * page_size

        total = collection_obj.count_documents(query)
        documents = list(
            collection_obj.find(query).sort(sort_by, sort_order).skip(skip).limit(page_size)
        )

        logger.debug(f"Paginated {len(documents)} documents from {collection} (page {page})")
        return PaginationResult(documents, total, page, page_size)

    def count(self, collection: str, query: Dict) -> int:
        return self.get_collection(collection).count_documents(query)

    def aggregate(self, collection: str, pipeline: List[Dict]) -> List[Dict]:
        """Run an aggregation pipeline."""
        results = list(self.get_collection(collection).aggregate(pipeline))
        logger.debug(f"Aggregation returned {len(results)} results from {collection}")
        return results

    # Index Management

    def create_indexes(self) -> None:
        """Create constraint and performance indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            # Benefit requests indexes
            requests = self.get_collection(REQUESTS_COLLECTION)
            requests.create_index([("memberId", ASCENDING), ("submittedAt", DESCENDING)])
            requests.create_index([("status", ASCENDING), ("submittedAt", DESCENDING)])
            requests.create_index([("administratorId", ASCENDING), ("status", ASCENDING)])
            requests.create_index("benefitType")

            # Family members: one record per occupancy slot and owner
            family = self.get_collection(FAMILY_COLLECTION)
            family.create_index(
                [("ownerId", ASCENDING), ("slot", ASCENDING)],
                unique=True,
                partialFilterExpression={"slot": {"$type": "string"}},
                name="owner_slot_unique"
            )
            family.create_index([("ownerId", ASCENDING), ("relation", ASCENDING)])

            # Service catalog: one entry per benefit type
            services = self.get_collection(SERVICES_COLLECTION)
            services.create_index("benefitType", unique=True)
            services.create_index("isActive")

            # Audit logs indexes
            audit_logs = self.get_collection(AUDIT_COLLECTION)
            audit_logs.create_index([("timestamp", DESCENDING)])
            audit_logs.create_index([("userId", ASCENDING), ("timestamp", DESCENDING)])
            audit_logs.create_index([("module", ASCENDING), ("timestamp", DESCENDING)])
            audit_logs.create_index([("severity", ASCENDING), ("timestamp", DESCENDING)])
            audit_logs.create_index("traceId")

            logger.info("MongoDB indexes created successfully")

        except PyMongoError as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
