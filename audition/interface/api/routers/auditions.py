from datetime import datetime, timezone
from pathlib import Path

import aiofiles
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse
import structlog

from audition.core.config import Settings
from ..dependencies import get_app_settings, get_store
from ..schemas import CreateSessionRequest, SurveyRequest, answer_to_dict, submission_to_dict
from ..store import AuditionStore

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["auditions"])

_EXTENSIONS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
}


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@router.post("/audition/sessions", status_code=201)
async def create_session(body: CreateSessionRequest, store: AuditionStore = Depends(get_store)):
    """Create the submission record an audition's answers are attached to."""
    submission = store.create_submission(body.user_id, body.opportunity_id)
    logger.info("submission_created", submission_id=submission.id,
                user_id=body.user_id, opportunity_id=body.opportunity_id)
    return {"success": True, "submissionId": submission.id}


@router.post("/audition/submit-answer")
async def submit_answer(
    session_id: str = Form(alias="sessionId"),
    user_id: str = Form(alias="userId"),
    opportunity_id: str = Form(alias="opportunityId"),
    question_id: str = Form(alias="questionId"),
    question_text: str = Form(alias="questionText"),
    audio_file: UploadFile = File(...),
    store: AuditionStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """
    Receives one recorded answer, stores the audio under the upload
    directory and attaches it to the candidate's submission.
    """
    submission = store.get_submission(session_id)
    if submission.user_id != user_id or submission.opportunity_id != opportunity_id:
        return _bad_request("Session does not belong to this candidate and opportunity")

    opportunity = store.get_opportunity(opportunity_id)
    if question_id not in {q.id for q in opportunity.questions}:
        return _bad_request(f"Question {question_id} is not part of this audition")

    content = await audio_file.read()
    if not content:
        return _bad_request("No audio file provided")

    # only server-issued ids and seeded question ids end up in the path
    extension = _EXTENSIONS.get(audio_file.content_type or "", "bin")
    timestamp = int(datetime.now(timezone.utc).timestamp() * 1000)
    relative_path = Path("answers") / submission.id / f"{question_id}_{timestamp}.{extension}"
    upload_root = settings.UPLOAD_DIR.resolve()
    target = (upload_root / relative_path).resolve()
    if upload_root not in target.parents:
        logger.warning("upload_path_rejected", submission_id=submission.id, question_id=question_id)
        return _bad_request("Invalid upload path")
    target.parent.mkdir(parents=True, exist_ok=True)

    async with aiofiles.open(target, "wb") as out_file:
        await out_file.write(content)

    answer = store.add_answer(
        session_id,
        user_id=user_id,
        opportunity_id=opportunity_id,
        question_id=question_id,
        question_text=question_text,
        audio_path=relative_path.as_posix(),
        size=len(content),
    )
    logger.info("answer_stored", submission_id=session_id, question_id=question_id,
                answer_id=answer.id, size=len(content))
    return {
        "success": True,
        "message": "Answer submitted successfully",
        "data": answer_to_dict(answer),
    }


@router.post("/audition/submit-survey")
async def submit_survey(body: SurveyRequest, store: AuditionStore = Depends(get_store)):
    submission = store.record_survey(body.submission_id, body.rating, body.reason, body.status)
    logger.info("survey_recorded", submission_id=submission.id, rating=body.rating,
                status=submission.status)
    return {"success": True, "submission": submission_to_dict(submission)}


@router.get("/submissions")
async def list_submissions(user_id: str = Query(alias="userId", min_length=1),
                           store: AuditionStore = Depends(get_store)):
    return [submission_to_dict(s) for s in store.list_submissions(user_id)]


@router.get("/submissions/{submission_id}")
async def get_submission(submission_id: str, store: AuditionStore = Depends(get_store)):
    return submission_to_dict(store.get_submission(submission_id))
