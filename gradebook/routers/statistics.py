from fastapi import APIRouter, Query

from gradebook.core.errors import to_http_exception
from gradebook.dependencies.database import DBSessionDep
from gradebook.schemas.statistics import StatisticsResponse
from gradebook.services.exceptions import ScoreServiceError
from gradebook.services.score_service import ScoreService

router = APIRouter(prefix="/api/v1/statistics", tags=["statistics"])


@router.get("/class", response_model=StatisticsResponse, response_model_exclude_none=True)
async def get_class_statistics(
    session: DBSessionDep,
    exam_id: int = Query(..., gt=0),
    course_id: int = Query(..., gt=0),
    class_id: int = Query(..., gt=0),
) -> StatisticsResponse:
    """Score statistics of one class for an exam and course."""
    try:
        return await ScoreService(session).get_statistics(exam_id, course_id, class_id)
    except ScoreServiceError as e:
        raise to_http_exception(e)


@router.get("/grade", response_model=StatisticsResponse, response_model_exclude_none=True)
async def get_grade_statistics(
    session: DBSessionDep,
    exam_id: int = Query(..., gt=0),
    course_id: int = Query(..., gt=0),
) -> StatisticsResponse:
    """Score statistics of the whole cohort for an exam and course."""
    try:
        return await ScoreService(session).get_statistics(exam_id, course_id)
    except ScoreServiceError as e:
        raise to_http_exception(e)
