# backend/usmle_prep/core/errors.py
"""
Error taxonomy shared by the API, the question generator and the quiz session.
Every error carries the HTTP status it is rendered with.
"""


class QuizAPIError(Exception):
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"status": "error", "error": self.code, "message": self.message}


class ConfigurationError(QuizAPIError):
    code = "configuration_error"


class InternalError(QuizAPIError):
    code = "internal_error"


class ValidationError(QuizAPIError):
    status_code = 400
    code = "validation_error"


# ------------------------------------------------------------
# AI client failures
# ------------------------------------------------------------
class AuthenticationError(QuizAPIError):
    status_code = 401
    code = "authentication_error"

    def __init__(self, message: str = "Invalid Gemini API key"):
        super().__init__(message)


class RateLimitError(QuizAPIError):
    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str = "API quota exceeded. Please try again later."):
        super().__init__(message)


class UpstreamUnavailableError(QuizAPIError):
    status_code = 503
    code = "upstream_unavailable"

    def __init__(self, message: str = "Gemini API service unavailable. Please try again later."):
        super().__init__(message)


class UpstreamError(QuizAPIError):
    code = "upstream_error"

    def __init__(self, upstream_status: int, description: str = ""):
        super().__init__(f"Gemini API error: {upstream_status} {description}".strip())
        self.upstream_status = upstream_status


class EmptyResponseError(QuizAPIError):
    code = "empty_response"

    def __init__(self, message: str = "No response generated from Gemini API"):
        super().__init__(message)


# ------------------------------------------------------------
# Validator failures
# ------------------------------------------------------------
class MalformedResponseError(QuizAPIError):
    code = "malformed_response"


class NoValidQuestionsError(QuizAPIError):
    code = "no_valid_questions"

    def __init__(self, message: str = "No valid questions could be generated from the AI response"):
        super().__init__(message)


# ------------------------------------------------------------
# Quiz session misuse
# ------------------------------------------------------------
class SessionStateError(QuizAPIError):
    status_code = 409
    code = "session_state"


class AnswerLockedError(SessionStateError):
    code = "answer_locked"
