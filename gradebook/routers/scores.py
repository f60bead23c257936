import math

from fastapi import APIRouter, File, HTTPException, Query, UploadFile, status

from gradebook.core.errors import to_http_exception
from gradebook.dependencies.database import DBSessionDep
from gradebook.schemas.score import (
    BatchScoreCreate,
    BatchScoreCreateResponse,
    ScoreCreate,
    ScoreListResponse,
    ScoreResponse,
    ScoreUpdate,
)
from gradebook.services.exceptions import ScoreServiceError
from gradebook.services.score_service import ScoreService
from gradebook.services.score_sheet import ScoreSheetParseError, build_score_entries, parse_score_sheet
from gradebook.services.score_store import ScoreRow

router = APIRouter(prefix="/api/v1/scores", tags=["scores"])


def score_response(row: ScoreRow) -> ScoreResponse:
    response = ScoreResponse.model_validate(row.score)
    response.class_id = row.class_id
    return response


@router.post("", response_model=ScoreResponse, status_code=status.HTTP_201_CREATED)
async def create_score(score: ScoreCreate, session: DBSessionDep) -> ScoreResponse:
    """Enter a single score. Ranks of the exam and course are recomputed."""
    try:
        row = await ScoreService(session).add_score(score)
    except ScoreServiceError as e:
        raise to_http_exception(e)
    return score_response(row)


@router.post("/batch", response_model=BatchScoreCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_scores_batch(batch: BatchScoreCreate, session: DBSessionDep) -> BatchScoreCreateResponse:
    """Enter several scores at once. Either every entry is stored or none is."""
    try:
        rows = await ScoreService(session).batch_add_scores(batch.scores)
    except ScoreServiceError as e:
        raise to_http_exception(e)
    return BatchScoreCreateResponse(created=len(rows), items=[score_response(row) for row in rows])


@router.post("/import", response_model=BatchScoreCreateResponse, status_code=status.HTTP_201_CREATED)
async def import_scores(
    session: DBSessionDep,
    exam_id: int = Query(..., gt=0),
    course_id: int = Query(..., gt=0),
    teacher_id: int | None = Query(None),
    file: UploadFile = File(...),
) -> BatchScoreCreateResponse:
    """Import a filled-in score sheet (Excel or CSV) as one atomic batch."""
    file_content = await file.read()
    try:
        sheet_rows = parse_score_sheet(file_content, file.filename or "unknown")
        entries = await build_score_entries(session, sheet_rows, exam_id, course_id, teacher_id)
    except ScoreSheetParseError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail={"code": "VALIDATION_ERROR", "message": str(e)}
        )

    try:
        rows = await ScoreService(session).batch_add_scores(entries)
    except ScoreServiceError as e:
        raise to_http_exception(e)
    return BatchScoreCreateResponse(created=len(rows), items=[score_response(row) for row in rows])


@router.get("", response_model=ScoreListResponse)
async def list_scores(
    session: DBSessionDep,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    exam_id: int | None = Query(None),
    student_id: int | None = Query(None),
    course_id: int | None = Query(None),
    class_id: int | None = Query(None),
) -> ScoreListResponse:
    """List scores with pagination and optional filters."""
    rows, total = await ScoreService(session).list_scores(
        page, page_size, exam_id=exam_id, student_id=student_id, course_id=course_id, class_id=class_id
    )
    total_pages = math.ceil(total / page_size) if total > 0 else 0
    return ScoreListResponse(
        items=[score_response(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


@router.get("/exams/{exam_id}/courses/{course_id}", response_model=list[ScoreResponse])
async def get_scores_by_scope(
    exam_id: int, course_id: int, session: DBSessionDep, class_id: int | None = Query(None)
) -> list[ScoreResponse]:
    """Scores of an exam and course in rank order, for one class or the whole cohort."""
    rows = await ScoreService(session).get_scores_by_scope(exam_id, course_id, class_id)
    return [score_response(row) for row in rows]


@router.get("/students/{student_id}", response_model=list[ScoreResponse])
async def get_student_scores(
    student_id: int, session: DBSessionDep, exam_id: int | None = Query(None)
) -> list[ScoreResponse]:
    """All scores of one student, optionally for a single exam."""
    try:
        rows = await ScoreService(session).get_student_scores(student_id, exam_id)
    except ScoreServiceError as e:
        raise to_http_exception(e)
    return [score_response(row) for row in rows]


@router.get("/{score_id}", response_model=ScoreResponse)
async def get_score(score_id: int, session: DBSessionDep) -> ScoreResponse:
    try:
        row = await ScoreService(session).get_score(score_id)
    except ScoreServiceError as e:
        raise to_http_exception(e)
    return score_response(row)


@router.put("/{score_id}", response_model=ScoreResponse)
async def update_score(score_id: int, score: ScoreUpdate, session: DBSessionDep) -> ScoreResponse:
    """Correct a score. Ranks of the exam and course are recomputed."""
    try:
        row = await ScoreService(session).update_score(score_id, score)
    except ScoreServiceError as e:
        raise to_http_exception(e)
    return score_response(row)


@router.delete("/{score_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_score(score_id: int, session: DBSessionDep) -> None:
    """Delete a score. The remaining scores of the exam and course are re-ranked."""
    try:
        await ScoreService(session).delete_score(score_id)
    except ScoreServiceError as e:
        raise to_http_exception(e)
