# backend/usmle_prep/core/question_gen.py

import logging
from typing import Any, Dict, List

import openai
from openai import AsyncOpenAI

from .config import Settings
from .errors import (
    AuthenticationError,
    EmptyResponseError,
    RateLimitError,
    UpstreamError,
    UpstreamUnavailableError,
)
from .question_parser import parse_questions

logger = logging.getLogger("usmle.qg")

# ------------------------------------------------------------
# Global Gemini client (async, OpenAI-compatible endpoint)
# ------------------------------------------------------------
_client: AsyncOpenAI | None = None

GENERATION_CONFIG = {
    "temperature": 0.8,
    "top_p": 0.95,
    "max_tokens": 8192,
}


def configure_client(settings: Settings | None = None) -> AsyncOpenAI:
    """Create or reuse the AsyncOpenAI client pointed at Gemini."""
    global _client
    if _client is None:
        settings = settings or Settings.from_env()
        key = settings.require("gemini_api_key")
        _client = AsyncOpenAI(
            api_key=key,
            base_url=settings.gemini_base_url,
            max_retries=0,
        )
        logger.info("Gemini async client configured (global instance).")
    return _client


# ------------------------------------------------------------
# Prompt template
# ------------------------------------------------------------
QG_PROMPT_TEMPLATE = (
    "You are a USMLE question writer with extensive medical knowledge. "
    "Generate exactly {count} high-quality USMLE Step 1, 2 or 3 style multiple choice "
    "questions based on: \"{topic}\"\n\n"
    "Content rules:\n"
    "- Test clinical reasoning, differential diagnosis and medical decision-making.\n"
    "- Use realistic patient vignettes: demographics, chief complaint, history, exam findings, "
    "and labs or imaging where relevant.\n"
    "- Ask for the most likely diagnosis, next best step, mechanism or treatment.\n"
    "- Each question has exactly 4 plausible answer choices and exactly one correct answer.\n"
    "- Distractors must be medically reasonable but clearly incorrect.\n"
    "- Do NOT indicate which option is correct in the question text.\n"
    "- Follow current guidelines; use proper units for vitals and lab values.\n\n"
    "Output rules:\n"
    "- Output ONLY a JSON array (no markdown, no commentary outside JSON).\n"
    "- The array MUST contain exactly {count} objects.\n"
    "- Each object MUST have keys: ['question','options','correct','explanation','subject'].\n"
    "- 'options' is an array of exactly 4 strings.\n"
    "- 'correct' is the integer index (0-3) of the correct option.\n"
    "- 'explanation' gives the reasoning; 'subject' names the specialty "
    "(e.g. Cardiology, Infectious Disease, Surgery).\n\n"
    "Example:\n"
    "[\n"
    "  {{\n"
    "    \"question\": \"A 54-year-old man presents with ...\",\n"
    "    \"options\": [\"Option A\", \"Option B\", \"Option C\", \"Option D\"],\n"
    "    \"correct\": 0,\n"
    "    \"explanation\": \"Detailed medical explanation\",\n"
    "    \"subject\": \"Cardiology\"\n"
    "  }}\n"
    "]\n"
)


def build_prompt(topic: str, count: int) -> str:
    return QG_PROMPT_TEMPLATE.format(topic=topic.strip(), count=count)


# ------------------------------------------------------------
# AI client
# ------------------------------------------------------------
async def request_completion(prompt: str, count: int, settings: Settings | None = None) -> str:
    """Send one generation request and return the first candidate's text."""
    settings = settings or Settings.from_env()
    settings.require("gemini_api_key")
    client = configure_client(settings)

    logger.info(f"Requesting {count} questions from {settings.gemini_model}")
    try:
        resp = await client.chat.completions.create(
            model=settings.gemini_model,
            messages=[{"role": "user", "content": build_prompt(prompt, count)}],
            **GENERATION_CONFIG,
        )
    except openai.AuthenticationError as e:
        logger.error(f"Gemini rejected the API key: {e}")
        raise AuthenticationError() from e
    except openai.RateLimitError as e:
        logger.error(f"Gemini quota exceeded: {e}")
        raise RateLimitError() from e
    except openai.InternalServerError as e:
        logger.error(f"Gemini unavailable: {e}")
        raise UpstreamUnavailableError() from e
    except openai.APIStatusError as e:
        logger.error(f"Gemini API error: {e.status_code} {e.message}")
        raise UpstreamError(e.status_code, e.message) from e
    except openai.APIConnectionError as e:
        logger.error(f"Could not reach Gemini: {e}")
        raise UpstreamUnavailableError(
            "Network error. Please check your internet connection and try again."
        ) from e

    if not resp.choices:
        raise EmptyResponseError()
    raw = resp.choices[0].message.content
    if not raw:
        raise EmptyResponseError()

    logger.debug(f"Raw Gemini response: {raw}")
    return raw


# ------------------------------------------------------------
# Main generator
# ------------------------------------------------------------
async def generate_questions(
    prompt: str,
    count: int = 5,
    settings: Settings | None = None,
) -> List[Dict[str, Any]]:
    raw = await request_completion(prompt, count, settings)
    questions = parse_questions(raw)
    logger.info(f"Successfully generated {len(questions)} valid USMLE questions")
    return questions
