import structlog

from audition.application.models import UploadResult
from audition.core.exceptions import BackendError
from audition.core.interfaces import AnswerUploader
from .backend_client import AuditionBackendClient

logger = structlog.get_logger(__name__)

_EXTENSIONS = {
    "audio/wav": "wav",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
}


class HttpAnswerUploader(AnswerUploader):
    """Uploads one answer per call to the submit-answer endpoint. No retries."""

    def __init__(self, client: AuditionBackendClient, user_id: str, opportunity_id: str):
        self._client = client
        self.user_id = user_id
        self.opportunity_id = opportunity_id

    async def submit(self,
                     session_id: str,
                     question_id: str,
                     question_text: str,
                     payload: bytes,
                     mime_type: str = "audio/wav") -> UploadResult:
        filename = f"answer_{question_id}.{_EXTENSIONS.get(mime_type, 'bin')}"
        logger.info("answer_upload", question_id=question_id, size=len(payload))
        try:
            body = await self._client.submit_answer(
                session_id=session_id,
                user_id=self.user_id,
                opportunity_id=self.opportunity_id,
                question_id=question_id,
                question_text=question_text,
                payload=payload,
                mime_type=mime_type,
                filename=filename,
            )
        except BackendError as e:
            logger.warning("answer_upload_failed", question_id=question_id, error=e.message)
            return UploadResult(success=False, error=e.message)

        data = body.get("data") or {}
        answer_id = data.get("answerId")
        logger.info("answer_uploaded", question_id=question_id, answer_id=answer_id)
        return UploadResult(
            success=True,
            remote_answer_id=str(answer_id) if answer_id is not None else None,
            transcript=data.get("transcript"),
        )
