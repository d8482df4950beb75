from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .store import AnswerRecord, OpportunityRecord, SubmissionRecord


class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    opportunity_id: str = Field(alias="opportunityId", min_length=1)


class SurveyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    submission_id: str = Field(alias="submissionId", min_length=1)
    rating: int = Field(ge=1, le=5)
    reason: Optional[str] = Field(default=None, max_length=2000)
    status: Optional[Literal["completed", "expired"]] = None


def opportunity_to_dict(opportunity: OpportunityRecord) -> dict:
    return {
        "id": opportunity.id,
        "title": opportunity.title,
        "company": opportunity.company,
        "location": opportunity.location,
        "type": opportunity.type,
        "rate": opportunity.rate,
        "skills": list(opportunity.skills),
        "status": opportunity.status,
        "questionCount": len(opportunity.questions),
    }


def answer_to_dict(answer: AnswerRecord) -> dict:
    return {
        "answerId": answer.id,
        "questionId": answer.question_id,
        "questionText": answer.question_text,
        "audioPath": answer.audio_path,
        "transcript": answer.transcript,
        "submittedAt": answer.submitted_at.isoformat(),
    }


def submission_to_dict(submission: SubmissionRecord) -> dict:
    return {
        "id": submission.id,
        "userId": submission.user_id,
        "opportunityId": submission.opportunity_id,
        "status": submission.status,
        "rating": submission.rating,
        "feedback": submission.feedback,
        "createdAt": submission.created_at.isoformat(),
        "answers": [answer_to_dict(a) for a in submission.answers],
    }
