# backend/usmle_prep/core/question_parser.py
"""
Turns free-text model output into well-formed question records.

The model is asked for a bare JSON array but routinely wraps it in prose or
markdown fences. We locate the array, parse it, and salvage every element
that has the required shape instead of rejecting the whole batch.
"""

import json
import logging
from numbers import Real
from typing import Any, Dict, List, Optional

from .errors import MalformedResponseError, NoValidQuestionsError

logger = logging.getLogger("usmle.parser")

OPTION_COUNT = 4


# ------------------------------------------------------------
# JSON span extraction
# ------------------------------------------------------------
def _balanced_end(text: str, start: int) -> Optional[int]:
    """Index of the ']' closing the '[' at `start`, skipping string literals."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return i
    return None


def extract_json_array(text: str) -> Any:
    """
    Parse the first balanced `[...]` span of `text` that is valid JSON.
    Falls back to parsing the whole text when no such span exists.
    """
    start = text.find("[")
    while start != -1:
        end = _balanced_end(text, start)
        if end is not None:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                pass
        start = text.find("[", start + 1)

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse model output as JSON: {e}")
        raise MalformedResponseError(
            "Failed to parse questions from Gemini response. "
            "The AI response was not in the expected format."
        ) from e


# ------------------------------------------------------------
# Per-element validation
# ------------------------------------------------------------
def _valid_correct(value: Any) -> bool:
    # bool is a subclass of int; true/false are not answer indexes
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return 0 <= value < OPTION_COUNT and float(value).is_integer()


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "\n".join(_text(v) for v in value)
    return str(value)


def _normalize(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "question": item["question"].strip(),
        "options": [o if isinstance(o, str) else str(o) for o in item["options"]],
        "correct": int(item["correct"]),
        "explanation": _text(item.get("explanation")),
        "subject": _text(item.get("subject")),
    }


def validate_questions(items: Any) -> List[Dict[str, Any]]:
    if not isinstance(items, list):
        raise MalformedResponseError("Generated response is not an array of questions")

    valid: List[Dict[str, Any]] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning(f"Question {i} is not an object")
            continue
        if not isinstance(item.get("question"), str) or not item["question"].strip():
            logger.warning(f"Question {i} missing or invalid question text")
            continue
        options = item.get("options")
        if not isinstance(options, list) or len(options) != OPTION_COUNT:
            logger.warning(f"Question {i} missing or invalid options array")
            continue
        if not _valid_correct(item.get("correct")):
            logger.warning(f"Question {i} missing or invalid correct answer index")
            continue
        valid.append(_normalize(item))

    if not valid:
        raise NoValidQuestionsError()
    return valid


def parse_questions(text: str) -> List[Dict[str, Any]]:
    """Extract, validate and normalize the questions contained in `text`."""
    if not text or not text.strip():
        raise MalformedResponseError("Empty response from model")
    questions = validate_questions(extract_json_array(text))
    logger.info(f"Validated {len(questions)} questions from model output")
    return questions
