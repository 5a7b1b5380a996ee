# exam_practice/core/database.py
import logging
import threading
from typing import Any, Dict, List, Optional

import pymongo

from .config import config
from .models import ExamResult

logger = logging.getLogger(__name__)

# ==================== Results storage ====================

class ResultsStore:
    """Historical exam results, the input of performance analysis"""

    def save_result(self, result: ExamResult) -> bool:
        raise NotImplementedError

    def get_result(self, result_id: str) -> Optional[ExamResult]:
        raise NotImplementedError

    def get_history(self, learner_id: str, limit: Optional[int] = None) -> List[ExamResult]:
        """Results of a learner, newest first"""
        raise NotImplementedError

class InMemoryResultsStore(ResultsStore):
    """Process-local results store used in dummy data mode and tests"""

    def __init__(self):
        self._results: Dict[str, ExamResult] = {}
        self._lock = threading.Lock()

    def save_result(self, result: ExamResult) -> bool:
        with self._lock:
            self._results[result.id] = result
        logger.info(f"✅ Exam result stored in memory: {result.id}")
        return True

    def get_result(self, result_id: str) -> Optional[ExamResult]:
        with self._lock:
            return self._results.get(result_id)

    def get_history(self, learner_id: str, limit: Optional[int] = None) -> List[ExamResult]:
        with self._lock:
            results = [r for r in self._results.values() if r.learner_id == learner_id]
        results.sort(key=lambda r: r.end_time, reverse=True)
        return results if limit is None else results[:limit]

class MongoResultsStore(ResultsStore):
    """Results store backed by a MongoDB collection"""

    def __init__(self, collection):
        self.collection = collection
        try:
            self.collection.create_index("id", unique=True)
            self.collection.create_index([("learner_id", pymongo.ASCENDING), ("end_time", pymongo.DESCENDING)])
            logger.info("✅ Exam result indexes created")
        except Exception as idx_error:
            logger.warning(f"⚠️ Index creation failed: {idx_error}")

    def save_result(self, result: ExamResult) -> bool:
        logger.info(f"💾 Saving exam result to MongoDB: {result.id}")
        try:
            document = result.to_dict()
            document["score_percentage"] = round(result.score_percentage, 1)
            insert = self.collection.insert_one(document)
            if not insert.inserted_id:
                raise Exception("MongoDB save operation failed")
            logger.info(f"✅ Exam result saved: {result.id}")
            return True
        except Exception as e:
            logger.error(f"❌ Save failed: {e}")
            raise Exception(f"Results save failed: {e}")

    def get_result(self, result_id: str) -> Optional[ExamResult]:
        try:
            doc = self.collection.find_one({"id": result_id}, {"_id": 0, "score_percentage": 0})
        except Exception as e:
            logger.error(f"❌ Failed to get exam result: {e}")
            raise Exception(f"Exam result retrieval failed: {e}")
        return ExamResult.from_dict(doc) if doc else None

    def get_history(self, learner_id: str, limit: Optional[int] = None) -> List[ExamResult]:
        try:
            cursor = self.collection.find(
                {"learner_id": learner_id},
                {"_id": 0, "score_percentage": 0}
            ).sort("end_time", pymongo.DESCENDING)
            if limit is not None:
                cursor = cursor.limit(limit)
            documents = list(cursor)
        except Exception as e:
            logger.error(f"❌ Failed to get exam history: {e}")
            raise Exception(f"Exam history retrieval failed: {e}")

        logger.info(f"📚 Retrieved {len(documents)} exam results for learner {learner_id}")
        return [ExamResult.from_dict(doc) for doc in documents]

# ==================== Connection management ====================

class DatabaseManager:
    """MongoDB connection owner; falls back to in-memory storage in dummy mode"""

    def __init__(self):
        logger.info("🔄 Initializing Database Manager")
        self.use_dummy = config.USE_DUMMY_DATA
        self.mongo_client = None
        self.db = None

        if self.use_dummy:
            logger.info("🔧 Database in dummy mode (in-memory storage)")
            self.results_store: ResultsStore = InMemoryResultsStore()
        else:
            self._init_mongodb()
            self.results_store = MongoResultsStore(self.db[config.EXAM_RESULTS_COLLECTION])

    def _init_mongodb(self):
        try:
            self.mongo_client = pymongo.MongoClient(
                config.MONGO_CONNECTION_STRING,
                serverSelectionTimeoutMS=5000,
                maxPoolSize=10,
                minPoolSize=1,
                tz_aware=True
            )
            self.mongo_client.admin.command('ping')
            self.db = self.mongo_client[config.MONGO_DB_NAME]
            logger.info("✅ MongoDB connection established")
        except Exception as e:
            logger.error(f"❌ MongoDB connection failed: {e}")
            raise Exception(f"MongoDB connection failure: {e}")

    def validate_connection(self) -> Dict[str, Any]:
        """Validate database connections"""
        status = {
            "mongodb": False,
            "overall": False,
            "mode": "dummy" if self.use_dummy else "live"
        }

        if self.use_dummy:
            status["mongodb"] = True  # Dummy mode is considered "working"
            status["overall"] = True
            return status

        try:
            self.mongo_client.admin.command('ping')
            status["mongodb"] = True
        except Exception as e:
            logger.error(f"❌ MongoDB validation failed: {e}")

        status["overall"] = status["mongodb"]
        return status

    def close(self):
        """Close database connections"""
        if self.mongo_client:
            self.mongo_client.close()
            logger.info("✅ Database connections closed")

# Singleton pattern for database manager
_db_manager = None

def get_db_manager() -> DatabaseManager:
    """Get database manager instance (singleton)"""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager

def close_db_manager():
    """Close database manager instance"""
    global _db_manager
    if _db_manager:
        _db_manager.close()
        _db_manager = None
