# backend/usmle_prep/core/store.py

import logging
import math
import random
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

logger = logging.getLogger("usmle.store")

STEPS = ("1", "2", "3")
AI_GENERATED = "ai-generated"
MIXED_PER_STEP_DEFAULT = 20


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _step_collection(step: str) -> str:
    return f"step{step}"


# ------------------------------------------------------------
# Document -> API record
# ------------------------------------------------------------
def _from_step_doc(doc: Dict[str, Any], step: str) -> Dict[str, Any]:
    """Imported step documents use the legacy questionText/optionA..E layout."""
    options = [doc.get(f"option{c}") or "" for c in "ABCDE"]
    return {
        "id": str(doc["_id"]),
        "question": doc.get("questionText") or "",
        "options": [o for o in options if o],
        "correct": doc.get("correctAnswer") or 0,
        "explanation": doc.get("explanation") or "",
        "subject": doc.get("subject") or f"Step {step}",
        "difficulty": doc.get("difficulty") or "Medium",
        "questionNumber": doc.get("questionNumber"),
        "step": step,
    }


def _from_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    record = {k: v for k, v in doc.items() if k != "_id"}
    record["id"] = str(doc["_id"])
    return record


class QuestionStore:
    """Persistence gateway over the quiz database."""

    def __init__(self, db: Database, client: Optional[MongoClient] = None):
        self.db = db
        self._client = client

    @classmethod
    def connect(cls, url: str, default_name: str = "usmle_prep") -> "QuestionStore":
        client = MongoClient(url)
        db = client.get_default_database(default=default_name)
        logger.info(f"Connected to database '{db.name}'")
        return cls(db, client)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("Database connection closed")

    # ---- reads
    def stats(self) -> Dict[str, int]:
        counts = {f"step{s}": self.db[_step_collection(s)].count_documents({}) for s in STEPS}
        ai_generated = self.db.questions.count_documents({})
        step_total = sum(counts.values())
        return {
            **counts,
            "aiGenerated": ai_generated,
            "stepTotal": step_total,
            "total": step_total + ai_generated,
        }

    def recent_scores(self, limit: int = 10) -> List[Dict[str, Any]]:
        cursor = self.db.scores.find({}).sort("createdAt", DESCENDING).limit(limit)
        return [_from_doc(d) for d in cursor]

    def step_questions(self, step: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        # limit 0 means "no limit" to the driver
        cursor = (
            self.db[_step_collection(step)]
            .find({})
            .sort("questionNumber", ASCENDING)
            .limit(limit or 0)
        )
        return [_from_step_doc(d, step) for d in cursor]

    def mixed_questions(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        per_step = math.ceil(limit / 3) if limit else MIXED_PER_STEP_DEFAULT
        merged: List[Dict[str, Any]] = []
        for step in STEPS:
            merged.extend(self.step_questions(step, per_step))
        random.shuffle(merged)
        return merged[:limit] if limit else merged

    def recent_generated(self, limit: int = 10) -> List[Dict[str, Any]]:
        cursor = (
            self.db.questions.find({"type": AI_GENERATED})
            .sort("createdAt", DESCENDING)
            .limit(limit)
        )
        return [_from_doc(d) for d in cursor]

    # ---- writes
    def insert_question(
        self,
        question: str,
        options: List[str],
        correct: int,
        explanation: str = "",
        subject: str = "",
        difficulty: str = "Medium",
    ) -> Dict[str, Any]:
        now = _now()
        doc = {
            "question": question,
            "options": list(options),
            "correct": correct,
            "explanation": explanation or "",
            "subject": subject or "",
            "difficulty": difficulty,
            "createdAt": now,
            "updatedAt": now,
            "type": AI_GENERATED,
        }
        result = self.db.questions.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _from_doc(doc)

    def insert_generated(self, records: Iterable[Dict[str, Any]], difficulty: str) -> List[Dict[str, Any]]:
        """Insert each validated record; a failed insert is logged and skipped."""
        saved = []
        for rec in records:
            try:
                saved.append(self.insert_question(difficulty=difficulty, **rec))
            except PyMongoError:
                logger.error("Error saving question to database", exc_info=True)
        logger.info(f"Saved {len(saved)} generated questions")
        return saved

    def insert_score(
        self,
        score: int,
        total: int,
        percentage: float,
        duration: Optional[int] = None,
        step: str = "mixed",
    ) -> Dict[str, Any]:
        doc = {
            "score": score,
            "total": total,
            "percentage": percentage,
            "duration": duration,
            "step": step,
            "createdAt": _now(),
        }
        result = self.db.scores.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _from_doc(doc)

    def delete_generated(self, ids: Iterable[str]) -> int:
        """Delete AI-generated questions by id. Imported step questions are never touched."""
        object_ids = []
        for qid in ids:
            try:
                object_ids.append(ObjectId(qid))
            except (InvalidId, TypeError):
                logger.warning(f"Ignoring invalid question id {qid!r}")
        if not object_ids:
            return 0
        result = self.db.questions.delete_many({"_id": {"$in": object_ids}, "type": AI_GENERATED})
        logger.info(f"Deleted {result.deleted_count} questions")
        return result.deleted_count
