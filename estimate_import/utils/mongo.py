"""MongoDB utility for the estimate import service"""

from typing import Any, Dict, List, Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from .logging import logger
from ..config import settings


class MongoDBManager:
    """MongoDB manager shared by the customer, vehicle and job stores"""

    def __init__(self, uri: Optional[str] = None, database_name: Optional[str] = None):
        self.uri = uri or settings.MONGODB_URI
        self.database_name = database_name or settings.DATABASE_NAME
        self.client: Optional[MongoClient] = None
        self.db: Optional[Database] = None
        self._connected = False

    def _connect(self):
        """Connect to MongoDB"""
        try:
            logger.log_step("mongodb_connection_attempt", {
                "uri": self.uri,
                "database": self.database_name
            })

            self.client = MongoClient(self.uri, serverSelectionTimeoutMS=5000)
            self.db = self.client[self.database_name]

            # Test connection
            self.client.admin.command('ping')
            self._connected = True

            logger.log_step("mongodb_connected", {"status": "success"})

        except Exception as e:
            self._connected = False
            logger.log_error("mongodb_connection_failed", {"error": str(e)})
            raise

    def get_collection(self, collection_name: str) -> Collection:
        """Return a collection, connecting on first use"""
        if not self._connected or self.db is None:
            self._connect()
        return self.db[collection_name]

    def insert(self, collection_name: str, document: Dict[str, Any]) -> str:
        """Insert a document; the caller's dict is left without an ``_id``"""
        try:
            result = self.get_collection(collection_name).insert_one(dict(document))
            logger.log_step("mongodb_document_saved", {
                "document_id": document.get("id"),
                "collection": collection_name
            })
            return str(result.inserted_id)
        except Exception as e:
            logger.log_error("mongodb_save_failed", {"error": str(e), "collection": collection_name})
            raise

    def find(self, collection_name: str, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find documents without Mongo's ``_id`` field"""
        try:
            return list(self.get_collection(collection_name).find(query, {"_id": 0}))
        except Exception as e:
            logger.log_error("mongodb_find_failed", {"error": str(e), "collection": collection_name})
            raise

    def find_one(self, collection_name: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            return self.get_collection(collection_name).find_one(query, {"_id": 0})
        except Exception as e:
            logger.log_error("mongodb_get_by_field_failed", {"error": str(e), "collection": collection_name})
            raise

    def close(self):
        """Close MongoDB connection"""
        if self.client:
            self.client.close()
            self._connected = False
            logger.log_step("mongodb_connection_closed")
