from fastapi import APIRouter

from gradebook.core.errors import to_http_exception
from gradebook.dependencies.database import DBSessionDep
from gradebook.schemas.score import RankRecomputeResponse
from gradebook.services.exceptions import ScoreServiceError
from gradebook.services.score_service import ScoreService

router = APIRouter(prefix="/api/v1/rankings", tags=["rankings"])


@router.post("/exams/{exam_id}/courses/{course_id}/recompute", response_model=RankRecomputeResponse)
async def recompute_rankings(exam_id: int, course_id: int, session: DBSessionDep) -> RankRecomputeResponse:
    """Recompute class and grade ranks of an exam and course from the stored scores."""
    try:
        ranks = await ScoreService(session).recompute_rankings(exam_id, course_id)
    except ScoreServiceError as e:
        raise to_http_exception(e)
    ranked = sum(1 for scope_ranks in ranks.values() if scope_ranks.grade_rank is not None)
    return RankRecomputeResponse(exam_id=exam_id, course_id=course_id, ranked=ranked, unranked=len(ranks) - ranked)
