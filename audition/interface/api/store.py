"""In-memory storage for the reference audition backend."""

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from audition.core.exceptions import ConflictError, NotFoundError


@dataclass
class QuestionRecord:
    id: str
    question_text: str
    time_limit_seconds: int


@dataclass
class OpportunityRecord:
    id: str
    title: str
    company: str
    location: str
    type: str
    rate: str
    skills: List[str]
    questions: List[QuestionRecord]
    status: str = "active"


@dataclass
class AnswerRecord:
    id: str
    submission_id: str
    user_id: str
    opportunity_id: str
    question_id: str
    question_text: str
    audio_path: str
    size: int
    transcript: Optional[str] = None
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class SubmissionRecord:
    id: str
    user_id: str
    opportunity_id: str
    status: str = "pending"
    rating: Optional[int] = None
    feedback: Optional[str] = None
    answers: List[AnswerRecord] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AuditionStore:
    """
    Opportunities, submissions and answers held in memory.

    One instance is created per application and handed to the routers
    through a dependency, so tests get a fresh store per app.
    """

    def __init__(self, opportunities: Optional[List[OpportunityRecord]] = None):
        self._opportunities: Dict[str, OpportunityRecord] = {
            o.id: o for o in (opportunities or [])
        }
        self._submissions: Dict[str, SubmissionRecord] = {}
        self._submission_ids = itertools.count(1)
        self._answer_ids = itertools.count(1)

    def list_opportunities(self, status: str = "active") -> List[OpportunityRecord]:
        return [o for o in self._opportunities.values() if o.status == status]

    def get_opportunity(self, opportunity_id: str) -> OpportunityRecord:
        try:
            return self._opportunities[opportunity_id]
        except KeyError:
            raise NotFoundError(f"Opportunity {opportunity_id} not found") from None

    def find_submission(self, user_id: str, opportunity_id: str) -> Optional[SubmissionRecord]:
        for submission in self._submissions.values():
            if submission.user_id == user_id and submission.opportunity_id == opportunity_id:
                return submission
        return None

    def create_submission(self, user_id: str, opportunity_id: str) -> SubmissionRecord:
        self.get_opportunity(opportunity_id)
        if self.find_submission(user_id, opportunity_id) is not None:
            raise ConflictError("You have already started an audition for this opportunity")
        submission = SubmissionRecord(
            id=str(next(self._submission_ids)),
            user_id=user_id,
            opportunity_id=opportunity_id,
        )
        self._submissions[submission.id] = submission
        return submission

    def get_submission(self, submission_id: str) -> SubmissionRecord:
        try:
            return self._submissions[submission_id]
        except KeyError:
            raise NotFoundError(f"Submission {submission_id} not found") from None

    def list_submissions(self, user_id: str) -> List[SubmissionRecord]:
        items = [s for s in self._submissions.values() if s.user_id == user_id]
        return sorted(items, key=lambda s: s.created_at, reverse=True)

    def add_answer(self, submission_id: str, *, user_id: str, opportunity_id: str,
                   question_id: str, question_text: str, audio_path: str,
                   size: int) -> AnswerRecord:
        submission = self.get_submission(submission_id)
        answer = AnswerRecord(
            id=str(next(self._answer_ids)),
            submission_id=submission_id,
            user_id=user_id,
            opportunity_id=opportunity_id,
            question_id=question_id,
            question_text=question_text,
            audio_path=audio_path,
            size=size,
        )
        submission.answers.append(answer)
        return answer

    def record_survey(self, submission_id: str, rating: int,
                      feedback: Optional[str], status: Optional[str]) -> SubmissionRecord:
        submission = self.get_submission(submission_id)
        submission.rating = rating
        submission.feedback = feedback
        if status:
            submission.status = status
        return submission


def _questions(*items) -> List[QuestionRecord]:
    return [QuestionRecord(id=qid, question_text=text, time_limit_seconds=limit)
            for qid, text, limit in items]


def seed_opportunities() -> List[OpportunityRecord]:
    return [
        OpportunityRecord(
            id="1",
            title="Backend Engineer",
            company="Vetted AI",
            location="Remote (Global)",
            type="Full-time",
            rate="$80 - $100 /hr",
            skills=["Node.js", "TypeScript", "Supabase", "PostgreSQL"],
            questions=_questions(
                ("be-1", "Tell us about a backend system you designed and built from scratch.", 90),
                ("be-2", "Describe a time when you optimized database performance. What was your approach?", 90),
                ("be-3", "Why are you interested in working with our tech stack at Vetted AI?", 60),
            ),
        ),
        OpportunityRecord(
            id="2",
            title="Full Stack Developer",
            company="TechCorp Solutions",
            location="Nairobi, Kenya",
            type="Contract",
            rate="$60 - $85 /hr",
            skills=["React", "Python", "AWS", "Docker"],
            questions=_questions(
                ("fs-1", "Tell us about a project you are proud of.", 90),
                ("fs-2", "What was a major challenge you faced in full-stack development and how did you solve it?", 90),
                ("fs-3", "How do you approach building scalable applications?", 90),
            ),
        ),
        OpportunityRecord(
            id="3",
            title="Senior Frontend Engineer",
            company="Digital Innovations",
            location="Remote (Africa)",
            type="Full-time",
            rate="$70 - $95 /hr",
            skills=["React", "TypeScript", "Next.js", "Tailwind CSS"],
            questions=_questions(
                ("fe-1", "Describe your experience with building responsive and accessible user interfaces.", 90),
                ("fe-2", "Tell us about a time when you improved the performance of a React application.", 90),
                ("fe-3", "Why are you interested in this role at Digital Innovations?", 60),
            ),
        ),
    ]
