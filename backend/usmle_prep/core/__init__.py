# backend/usmle_prep/core/__init__.py
"""
Core package for the USMLE prep quiz API.
Exposes the request/response models and the error taxonomy.
"""

from .errors import QuizAPIError
from .schemas import (
    GenerateRequest,
    QuestionCreate,
    ScoreCreate,
    DeleteRequest,
    Question,
    Score,
    Stats,
    GenerateResponse,
    DeleteResponse,
)

__all__ = [
    "QuizAPIError",
    "GenerateRequest",
    "QuestionCreate",
    "ScoreCreate",
    "DeleteRequest",
    "Question",
    "Score",
    "Stats",
    "GenerateResponse",
    "DeleteResponse",
]
