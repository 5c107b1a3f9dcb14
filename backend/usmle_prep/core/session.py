# backend/usmle_prep/core/session.py
"""
Client-side quiz attempt.

A session loads a question set, accepts one answer per question (instant
feedback, then locked), lets the user move freely between questions, and on
submit computes the score and posts it once.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .errors import AnswerLockedError, SessionStateError, ValidationError

logger = logging.getLogger("usmle.session")

STEP_QUIZ_SIZE = 20
MIXED_QUIZ_SIZE = 15


class SessionState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    ANSWERING = "answering"
    REVIEWING = "reviewing"
    SUBMITTED = "submitted"
    ERROR = "error"


@dataclass
class Answer:
    question_id: str
    selected: int
    is_correct: bool


@dataclass
class Feedback:
    correct: bool
    correct_index: int
    explanation: str


@dataclass
class QuizResult:
    score: int
    total: int
    percentage: float
    duration: int
    step: Optional[str]
    unanswered: int


def format_duration(seconds: int) -> str:
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


class QuizSession:
    def __init__(
        self,
        fetch_questions: Callable[[Optional[str]], List[Dict[str, Any]]],
        save_score: Callable[[Dict[str, Any]], Any],
        step: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch_questions
        self._save = save_score
        self.step = step
        self._clock = clock

        self.state = SessionState.LOADING
        self.questions: List[Dict[str, Any]] = []
        self.answers: Dict[str, Answer] = {}
        self.index = 0
        self.error: Optional[str] = None
        self.result: Optional[QuizResult] = None
        self._started_at: Optional[float] = None

    @classmethod
    def for_api(cls, client, step: Optional[str] = None, **kwargs) -> "QuizSession":
        """Session backed by a QuizAPIClient."""
        limit = STEP_QUIZ_SIZE if step else MIXED_QUIZ_SIZE
        return cls(
            fetch_questions=lambda s: client.questions(step=s, limit=limit),
            save_score=client.save_score,
            step=step,
            **kwargs,
        )

    # ---- loading
    def load(self) -> SessionState:
        self.state = SessionState.LOADING
        self.error = None
        try:
            questions = self._fetch(self.step)
        except Exception as e:
            logger.error(f"Error fetching questions: {e}")
            self.state = SessionState.ERROR
            self.error = str(e) or "Failed to load questions"
            return self.state

        if not questions:
            where = f"Step {self.step} " if self.step else ""
            self.error = f"No {where}questions available."
            self.state = SessionState.ERROR
            return self.state

        self.questions = list(questions)
        self.answers = {}
        self.index = 0
        self.result = None
        self._started_at = self._clock()
        self.state = SessionState.READY
        logger.info(f"Loaded {len(self.questions)} questions (step={self.step or 'mixed'})")
        return self.state

    # ---- per-question flow
    @property
    def current(self) -> Dict[str, Any]:
        return self.questions[self.index]

    def _require_active(self) -> None:
        if self.state not in (SessionState.READY, SessionState.ANSWERING, SessionState.REVIEWING):
            raise SessionStateError(f"Quiz is not in progress (state={self.state.value})")

    def _settle(self) -> SessionState:
        answered = self.current["id"] in self.answers
        self.state = SessionState.REVIEWING if answered else SessionState.ANSWERING
        return self.state

    def answer(self, selected: int) -> Feedback:
        self._require_active()
        question = self.current
        if question["id"] in self.answers:
            raise AnswerLockedError(f"Question {self.index + 1} has already been answered")
        if not 0 <= selected < len(question["options"]):
            raise ValidationError(f"Option {selected} does not exist")

        is_correct = selected == question["correct"]
        self.answers[question["id"]] = Answer(question["id"], selected, is_correct)
        self.state = SessionState.REVIEWING
        return Feedback(is_correct, question["correct"], question.get("explanation") or "")

    def jump(self, index: int) -> SessionState:
        self._require_active()
        if not 0 <= index < len(self.questions):
            raise IndexError(f"No question at position {index}")
        self.index = index
        return self._settle()

    def next(self) -> SessionState:
        return self.jump(min(self.index + 1, len(self.questions) - 1))

    def previous(self) -> SessionState:
        return self.jump(max(self.index - 1, 0))

    def status(self, index: int) -> str:
        answer = self.answers.get(self.questions[index]["id"])
        if answer:
            return "correct" if answer.is_correct else "incorrect"
        return "current" if index == self.index else "unanswered"

    def progress(self) -> Dict[str, Any]:
        answered = len(self.answers)
        correct = sum(1 for a in self.answers.values() if a.is_correct)
        return {
            "correct": correct,
            "total": answered,
            "percentage": correct / answered * 100 if answered else 0.0,
        }

    # ---- submission
    def submit(self) -> QuizResult:
        self._require_active()
        total = len(self.questions)
        score = sum(1 for a in self.answers.values() if a.is_correct)
        result = QuizResult(
            score=score,
            total=total,
            percentage=score / total * 100,
            duration=round(self._clock() - self._started_at),
            step=self.step,
            unanswered=total - len(self.answers),
        )
        if result.unanswered:
            logger.info(f"Submitting with {result.unanswered} unanswered questions")

        self._save({
            "score": result.score,
            "total": result.total,
            "percentage": result.percentage,
            "duration": result.duration,
            "step": result.step,
        })
        self.result = result
        self.state = SessionState.SUBMITTED
        return result
