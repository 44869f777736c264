"""
Async HTTP client for the learner-facing quiz endpoints.

Used by the attempt session as its gateway: every state change of an attempt
goes through one of these calls, and the server re-validates all of them.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Non-2xx response or transport failure. status_code is None for the latter."""

    def __init__(self, status_code: Optional[int], detail: Any):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"[{status_code}] {detail}")


class PortalClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.portal_base_url,
            timeout=timeout or settings.portal_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "PortalClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._client.request(
                method, url, headers=self._headers(), **kwargs
            )
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise PortalError(None, str(e)) from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                detail = body.get("detail") or body.get("error") or body
            elif body is not None:
                detail = body
            else:
                detail = response.text
            raise PortalError(response.status_code, detail)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Log in and keep the access token for later calls."""
        data = await self._request(
            "POST", "/auth/login", json={"email": email, "password": password}
        )
        self.token = data["access_token"]
        return data

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def fetch_available_quizzes(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/student/quizzes")

    async def fetch_quiz_with_questions(self, quiz_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/student/quizzes/{quiz_id}")

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    async def create_attempt(self, quiz_id: int) -> Dict[str, Any]:
        return await self._request("POST", f"/student/quizzes/{quiz_id}/attempts")

    async def persist_answers(
        self, attempt_id: int, answers: Mapping[str, Any]
    ) -> Dict[str, Any]:
        return await self._request(
            "PUT",
            f"/student/attempts/{attempt_id}/answers",
            json={"answers": dict(answers)},
        )

    async def save_answer(
        self, attempt_id: int, question_id: int, value: Any
    ) -> Dict[str, Any]:
        return await self._request(
            "PUT",
            f"/student/attempts/{attempt_id}/answers/{question_id}",
            json={"answer": value},
        )

    async def complete_attempt(
        self, attempt_id: int, answers: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        payload = {"answers": dict(answers) if answers is not None else None}
        return await self._request(
            "POST", f"/student/attempts/{attempt_id}/submit", json=payload
        )

    async def abandon_attempt(self, attempt_id: int) -> Dict[str, Any]:
        return await self._request("POST", f"/student/attempts/{attempt_id}/abandon")
