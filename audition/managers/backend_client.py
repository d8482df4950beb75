from typing import Any, Dict, List, Optional

import httpx
import structlog

from audition.application.models import Question, question_from_wire
from audition.core.exceptions import BackendError, ConflictError, NotFoundError

logger = structlog.get_logger(__name__)


class AuditionBackendClient:
    """Async client for the audition backend REST API."""

    def __init__(self,
                 base_url: str,
                 timeout: float = 30.0,
                 api_prefix: str = "/api",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self._prefix = api_prefix.rstrip("/")
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AuditionBackendClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def list_opportunities(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/opportunities")

    async def fetch_questions(self,
                              opportunity_id: str,
                              user_id: str,
                              default_hard_limit: int) -> List[Question]:
        """Fetch the ordered question list for one candidate and opportunity."""
        data = await self._request(
            "GET",
            f"/opportunities/{opportunity_id}/questions",
            params={"userId": user_id},
        )
        questions = [question_from_wire(item, default_hard_limit) for item in data]
        logger.info("questions_fetched", opportunity_id=opportunity_id, count=len(questions))
        return questions

    async def create_session(self, user_id: str, opportunity_id: str) -> str:
        """Create the submission record; raises ConflictError if one already exists."""
        data = await self._request(
            "POST",
            "/audition/sessions",
            json={"userId": user_id, "opportunityId": opportunity_id},
        )
        return str(data["submissionId"])

    async def submit_answer(self, *,
                            session_id: str,
                            user_id: str,
                            opportunity_id: str,
                            question_id: str,
                            question_text: str,
                            payload: bytes,
                            mime_type: str,
                            filename: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/audition/submit-answer",
            data={
                "sessionId": session_id,
                "userId": user_id,
                "opportunityId": opportunity_id,
                "questionId": question_id,
                "questionText": question_text,
            },
            files={"audio_file": (filename, payload, mime_type)},
        )

    async def submit_survey(self,
                            submission_id: str,
                            rating: int,
                            reason: Optional[str] = None,
                            status: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"submissionId": submission_id, "rating": rating}
        if reason:
            body["reason"] = reason
        if status:
            body["status"] = status
        return await self._request("POST", "/audition/submit-survey", json=body)

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self._prefix}{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("backend_unreachable", method=method, url=url, error=str(e))
            raise BackendError(f"Could not reach the audition backend: {e}") from e

        if response.is_success:
            return response.json()

        message = _error_message(response)
        logger.warning("backend_error", method=method, url=url, status=response.status_code, message=message)
        if response.status_code == 409:
            raise ConflictError(message, response.status_code)
        if response.status_code == 404:
            raise NotFoundError(message, response.status_code)
        raise BackendError(message, response.status_code)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"
