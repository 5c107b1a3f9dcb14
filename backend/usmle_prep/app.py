# backend/usmle_prep/app.py

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Union

import pydantic
from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.status import HTTP_201_CREATED, HTTP_400_BAD_REQUEST

from usmle_prep.core.config import Settings
from usmle_prep.core.errors import InternalError, QuizAPIError, ValidationError
from usmle_prep.core.question_gen import generate_questions
from usmle_prep.core.schemas import (
    DeleteRequest,
    DeleteResponse,
    GenerateRequest,
    GenerateResponse,
    Question,
    QuestionCreate,
    Score,
    ScoreCreate,
    Stats,
)
from usmle_prep.core.store import STEPS, QuestionStore

# ------------------------------------------------------------
# Setup
# ------------------------------------------------------------
settings = Settings.from_env()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("usmle")


@asynccontextmanager
async def lifespan(app: FastAPI):
    current = Settings.from_env()
    url = current.require("database_url")
    app.state.store = QuestionStore.connect(url, current.database_name)
    try:
        yield
    finally:
        app.state.store.close()


app = FastAPI(title="USMLE Prep Quiz API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Middleware to log requests
class LogRequestMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            body = await request.body()
            logger.info(
                f"Incoming {request.method} {request.url.path} body={body.decode('utf-8')}"
            )
        except (RuntimeError, UnicodeDecodeError):
            logger.warning("Could not read request body")
        return await call_next(request)


app.add_middleware(LogRequestMiddleware)


def get_store(request: Request) -> QuestionStore:
    return request.app.state.store


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def _validate(model: type[pydantic.BaseModel], payload: Any) -> Any:
    """Validate a raw body against `model`, reporting failures as 400s."""
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        msg = first["msg"].removeprefix("Value error, ")
        loc = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"{loc}: {msg}" if loc else msg) from e


def jsonable_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    return [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]


# ------------------------------------------------------------
# Exception handlers
# ------------------------------------------------------------
@app.exception_handler(QuizAPIError)
async def quiz_error_handler(request: Request, exc: QuizAPIError):
    logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content={
            **ValidationError("Invalid request").to_dict(),
            "detail": jsonable_errors(exc),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    err = InternalError()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


# ------------------------------------------------------------
# Routes
# ------------------------------------------------------------
@app.get("/api/questions", response_model=Union[Stats, List[Score], List[Question]])
def list_questions(
    type: Optional[str] = None,
    step: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=0),
    recent: bool = False,
    store: QuestionStore = Depends(get_store),
):
    if type == "stats":
        return store.stats()
    if type == "scores":
        return store.recent_scores(limit or 10)
    if recent:
        return store.recent_generated(limit or 10)
    if step is not None:
        if step not in STEPS:
            raise ValidationError("Step must be one of 1, 2 or 3")
        return store.step_questions(step, limit)
    return store.mixed_questions(limit)


@app.post("/api/questions", status_code=HTTP_201_CREATED, response_model=Union[Score, Question])
def create_record(
    payload: Dict[str, Any] = Body(...),
    store: QuestionStore = Depends(get_store),
):
    if payload.get("type") == "score":
        req = _validate(ScoreCreate, payload)
        return store.insert_score(
            score=req.score,
            total=req.total,
            percentage=req.percentage,
            duration=req.duration,
            step=req.step or "mixed",
        )

    req = _validate(QuestionCreate, payload)
    return store.insert_question(
        question=req.question,
        options=req.options,
        correct=req.correct,
        explanation=req.explanation,
        subject=req.subject,
        difficulty=req.difficulty,
    )


@app.delete("/api/questions", response_model=DeleteResponse)
def delete_questions(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    store: QuestionStore = Depends(get_store),
):
    req = _validate(DeleteRequest, payload or {})
    count = store.delete_generated(req.ids)
    return {"message": f"Deleted {count} questions", "count": count}


@app.post("/api/generate", response_model=GenerateResponse)
async def generate_route(req: GenerateRequest, store: QuestionStore = Depends(get_store)):
    logger.info(f"Generating {req.count} questions with prompt: \"{req.prompt}\"")
    generated = await generate_questions(req.prompt, req.count)
    saved = await run_in_threadpool(store.insert_generated, generated, req.difficulty)
    logger.info(f"Successfully generated and saved {len(saved)} questions")
    return {
        "success": True,
        "questions": saved,
        "count": len(saved),
        "message": f"Successfully generated {len(saved)} questions",
    }


@app.get("/healthz")
def healthz():
    return {"ok": True}
