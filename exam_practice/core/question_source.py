# exam_practice/core/question_source.py
import logging
import random
from typing import Dict, Iterable, List, Optional

import pymongo

from .config import config
from .exceptions import QuestionSourceError
from .models import ExamTopic, Question, QuestionDifficulty
from .utils import shuffle

logger = logging.getLogger(__name__)

class QuestionSource:
    """Read-only access to the question bank.

    Lookups by topic may return more candidates than the caller finally
    uses, so callers can sample and shuffle.
    """

    def find_by_topic(self, topic: ExamTopic, limit: Optional[int] = None) -> List[Question]:
        raise NotImplementedError

    def find_by_topic_and_difficulty(self, topic: ExamTopic, difficulty: QuestionDifficulty,
                                     limit: Optional[int] = None) -> List[Question]:
        raise NotImplementedError

    def find_by_id(self, question_id: str) -> Optional[Question]:
        raise NotImplementedError

    def find_by_ids(self, question_ids: Iterable[str]) -> List[Question]:
        raise NotImplementedError

    def count_by_topic(self) -> Dict[ExamTopic, Dict[str, int]]:
        """Question counts per topic, overall and per difficulty"""
        raise NotImplementedError

class InMemoryQuestionSource(QuestionSource):
    """Question source over a fixed list of questions"""

    def __init__(self, questions: Iterable[Question], rng: Optional[random.Random] = None):
        self._questions: Dict[str, Question] = {}
        for question in questions:
            self._questions[question.id] = question
        self.rng = rng

    def add(self, question: Question):
        self._questions[question.id] = question

    def _matching(self, topic: ExamTopic, difficulty: Optional[QuestionDifficulty],
                  limit: Optional[int]) -> List[Question]:
        candidates = [
            q for q in self._questions.values()
            if q.topic == topic and (difficulty is None or q.difficulty == difficulty)
        ]
        candidates = shuffle(candidates, self.rng)
        return candidates if limit is None else candidates[:limit]

    def find_by_topic(self, topic: ExamTopic, limit: Optional[int] = None) -> List[Question]:
        return self._matching(topic, None, limit)

    def find_by_topic_and_difficulty(self, topic: ExamTopic, difficulty: QuestionDifficulty,
                                     limit: Optional[int] = None) -> List[Question]:
        return self._matching(topic, difficulty, limit)

    def find_by_id(self, question_id: str) -> Optional[Question]:
        return self._questions.get(question_id)

    def find_by_ids(self, question_ids: Iterable[str]) -> List[Question]:
        return [self._questions[qid] for qid in question_ids if qid in self._questions]

    def count_by_topic(self) -> Dict[ExamTopic, Dict[str, int]]:
        counts = {
            topic: {"total": 0, **{d.value: 0 for d in QuestionDifficulty}}
            for topic in ExamTopic
        }
        for question in self._questions.values():
            counts[question.topic]["total"] += 1
            counts[question.topic][question.difficulty.value] += 1
        return counts

class MongoQuestionSource(QuestionSource):
    """Question source backed by a MongoDB collection"""

    def __init__(self, collection):
        self.collection = collection
        try:
            self.collection.create_index("id", unique=True)
            self.collection.create_index([("topic", pymongo.ASCENDING), ("difficulty", pymongo.ASCENDING)])
        except Exception as idx_error:
            logger.warning(f"⚠️ Question index creation failed: {idx_error}")

    def _sample(self, query: Dict[str, str], limit: Optional[int]) -> List[Question]:
        pipeline = [{"$match": query}]
        if limit is not None:
            pipeline.append({"$sample": {"size": limit}})
        pipeline.append({"$project": {"_id": 0}})

        try:
            documents = list(self.collection.aggregate(pipeline))
        except Exception as e:
            logger.error(f"❌ Question query failed: {e}")
            raise QuestionSourceError(f"Question query failed: {e}")

        return [Question.from_dict(doc) for doc in documents]

    def find_by_topic(self, topic: ExamTopic, limit: Optional[int] = None) -> List[Question]:
        return self._sample({"topic": topic.value}, limit)

    def find_by_topic_and_difficulty(self, topic: ExamTopic, difficulty: QuestionDifficulty,
                                     limit: Optional[int] = None) -> List[Question]:
        return self._sample({"topic": topic.value, "difficulty": difficulty.value}, limit)

    def find_by_id(self, question_id: str) -> Optional[Question]:
        try:
            doc = self.collection.find_one({"id": question_id}, {"_id": 0})
        except Exception as e:
            logger.error(f"❌ Question lookup failed: {e}")
            raise QuestionSourceError(f"Question lookup failed: {e}")
        return Question.from_dict(doc) if doc else None

    def find_by_ids(self, question_ids: Iterable[str]) -> List[Question]:
        ids = list(question_ids)
        if not ids:
            return []
        try:
            documents = list(self.collection.find({"id": {"$in": ids}}, {"_id": 0}))
        except Exception as e:
            logger.error(f"❌ Question lookup failed: {e}")
            raise QuestionSourceError(f"Question lookup failed: {e}")
        by_id = {doc["id"]: doc for doc in documents}
        return [Question.from_dict(by_id[qid]) for qid in ids if qid in by_id]

    def count_by_topic(self) -> Dict[ExamTopic, Dict[str, int]]:
        pipeline = [
            {"$group": {"_id": {"topic": "$topic", "difficulty": "$difficulty"}, "count": {"$sum": 1}}}
        ]
        counts = {
            topic: {"total": 0, **{d.value: 0 for d in QuestionDifficulty}}
            for topic in ExamTopic
        }
        try:
            for row in self.collection.aggregate(pipeline):
                topic = ExamTopic(row["_id"]["topic"])
                counts[topic]["total"] += row["count"]
                counts[topic][row["_id"]["difficulty"]] += row["count"]
        except Exception as e:
            logger.error(f"❌ Question statistics failed: {e}")
            raise QuestionSourceError(f"Question statistics failed: {e}")
        return counts

def create_question_source(db=None) -> QuestionSource:
    """Build the question source for the configured data mode"""
    if config.USE_DUMMY_DATA or db is None:
        from .dummy_data import build_question_bank
        logger.info("🔧 Question source using dummy question bank")
        return InMemoryQuestionSource(build_question_bank())

    logger.info(f"📚 Question source using MongoDB collection '{config.QUESTIONS_COLLECTION}'")
    return MongoQuestionSource(db[config.QUESTIONS_COLLECTION])
