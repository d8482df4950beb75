from fastapi import APIRouter, Depends, Query
import structlog

from ..dependencies import get_store
from ..schemas import opportunity_to_dict
from ..store import AuditionStore

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["opportunities"])


@router.get("/opportunities")
async def list_opportunities(store: AuditionStore = Depends(get_store)):
    """Active opportunities, newest seed order preserved."""
    opportunities = store.list_opportunities()
    logger.info("opportunities_listed", count=len(opportunities))
    return [opportunity_to_dict(o) for o in opportunities]


@router.get("/opportunities/{opportunity_id}/questions")
async def list_questions(opportunity_id: str,
                         user_id: str = Query(alias="userId", min_length=1),
                         store: AuditionStore = Depends(get_store)):
    """Ordered audition questions for one candidate and opportunity."""
    opportunity = store.get_opportunity(opportunity_id)
    logger.info("questions_served", opportunity_id=opportunity_id, user_id=user_id)
    return [
        {
            "id": q.id,
            "question_text": q.question_text,
            "time_limit_seconds": q.time_limit_seconds,
        }
        for q in opportunity.questions
    ]
