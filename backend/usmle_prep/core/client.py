# backend/usmle_prep/core/client.py

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger("usmle.client")


class QuizAPIClient:
    """Thin HTTP client for the quiz API, used by quiz sessions and scripts."""

    def __init__(self, base_url: str = "http://localhost:8000", http: httpx.Client | None = None):
        self.http = http or httpx.Client(base_url=base_url)

    def _get(self, params: Dict[str, Any]) -> Any:
        r = self.http.get("/api/questions", params={k: v for k, v in params.items() if v is not None})
        r.raise_for_status()
        return r.json()

    def stats(self) -> Dict[str, int]:
        return self._get({"type": "stats"})

    def recent_scores(self, limit: int = 5) -> List[Dict[str, Any]]:
        return self._get({"type": "scores", "limit": limit})

    def questions(self, step: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self._get({"step": step, "limit": limit})

    def recent_generated(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self._get({"recent": "true", "limit": limit})

    def save_score(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        r = self.http.post("/api/questions", json={"type": "score", **payload})
        r.raise_for_status()
        return r.json()

    def delete_questions(self, ids: List[str]) -> int:
        r = self.http.request("DELETE", "/api/questions", json={"ids": ids})
        r.raise_for_status()
        return r.json()["count"]

    def generate(self, prompt: str, count: int = 5, difficulty: str = "Medium") -> List[Dict[str, Any]]:
        r = self.http.post(
            "/api/generate",
            json={"prompt": prompt, "count": count, "difficulty": difficulty},
        )
        r.raise_for_status()
        data = r.json()
        logger.info(f"Generated {data['count']} questions about {prompt!r}")
        return data["questions"]

    def close(self) -> None:
        self.http.close()
