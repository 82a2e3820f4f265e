import logging

import pymongo
from pymongo.errors import PyMongoError

from .errors import StorageUnavailable

logger = logging.getLogger(__name__)


def database(url, db_name, timeout=10.0):
    """Create a database handle with bounded server selection."""
    client = pymongo.MongoClient(url, serverSelectionTimeoutMS=int(timeout * 1000))
    return client[db_name]


class MongoStorage:
    """Whole-document store on MongoDB.

    A budget document is kept as ``{"_id": doc_id, "data": {...}}`` in a
    collection named after the document's collection.
    """

    def __init__(self, db):
        self.db = db

    def load(self, collection, doc_id):
        try:
            found = self.db[collection].find_one({"_id": doc_id})
        except PyMongoError as e:
            raise StorageUnavailable(f"MongoDB read failed: {e}") from e
        if found is None:
            return None
        return found.get("data") or {}

    def save(self, collection, doc_id, doc):
        try:
            self.db[collection].replace_one({"_id": doc_id}, {"_id": doc_id, "data": doc}, upsert=True)
        except PyMongoError as e:
            raise StorageUnavailable(f"MongoDB write failed: {e}") from e
        logger.debug("Saved %s/%s to MongoDB", collection, doc_id)
