import json
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

Difficulty = Literal["Easy", "Medium", "Hard"]


class APIModel(BaseModel):
    # JSON uses camelCase (createdAt, aiGenerated, ...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ------------------------------------------------------------
# Request models
# ------------------------------------------------------------
class GenerateRequest(BaseModel):
    prompt: str = Field(min_length=1)   # topic, e.g. "heart failure"
    count: int = Field(default=5, ge=1, le=50)
    difficulty: Difficulty = "Medium"

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Valid prompt is required")
        return v


class QuestionCreate(BaseModel):
    question: str = Field(min_length=1)
    options: List[str]                  # list, or a JSON-encoded list
    correct: int
    explanation: str = ""
    subject: str = ""
    difficulty: Difficulty = "Medium"

    @field_validator("options", mode="before")
    @classmethod
    def _parse_options(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError:
                raise ValueError("Options must be a valid JSON array of at least 2 items")
        if not isinstance(v, list) or len(v) < 2:
            raise ValueError("Options must be a valid JSON array of at least 2 items")
        return [o if isinstance(o, str) else str(o) for o in v]

    @model_validator(mode="after")
    def _correct_in_range(self) -> "QuestionCreate":
        if not 0 <= self.correct < len(self.options):
            raise ValueError(
                f"Correct answer index must be between 0 and {len(self.options) - 1}"
            )
        return self


class ScoreCreate(BaseModel):
    type: Literal["score"] = "score"
    score: int = Field(ge=0)
    total: int = Field(gt=0)
    percentage: Optional[float] = None
    duration: Optional[int] = Field(default=None, ge=0)
    step: Optional[str] = None

    @model_validator(mode="after")
    def _score_within_total(self) -> "ScoreCreate":
        if self.score > self.total:
            raise ValueError("Score cannot exceed total")
        if self.percentage is None:
            self.percentage = self.score / self.total * 100
        return self


class DeleteRequest(BaseModel):
    ids: List[str] = Field(min_length=1)


# ------------------------------------------------------------
# Response models
# ------------------------------------------------------------
class Question(APIModel):
    id: str
    question: str
    options: List[str]
    correct: int
    explanation: str = ""
    subject: str = ""
    difficulty: str = "Medium"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    type: Optional[str] = None
    question_number: Optional[int] = None
    step: Optional[str] = None


class Score(APIModel):
    id: str
    score: int
    total: int
    percentage: float
    duration: Optional[int] = None
    step: Optional[str] = None
    created_at: datetime


class Stats(APIModel):
    step1: int
    step2: int
    step3: int
    ai_generated: int
    step_total: int
    total: int


class DeleteResponse(BaseModel):
    message: str
    count: int


class GenerateResponse(BaseModel):
    success: bool
    questions: List[Question]
    count: int
    message: str
