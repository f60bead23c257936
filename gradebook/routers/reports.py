from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from gradebook.core.errors import to_http_exception
from gradebook.dependencies.database import DBSessionDep
from gradebook.services.exceptions import ScoreServiceError
from gradebook.services.score_sheet import generate_class_score_export, generate_score_entry_template

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/template")
async def download_score_entry_template(
    session: DBSessionDep,
    exam_id: int = Query(..., gt=0),
    course_id: int = Query(..., gt=0),
    class_id: int = Query(..., gt=0),
) -> StreamingResponse:
    """Download an Excel score entry sheet listing the students of a class."""
    try:
        file_bytes, filename = await generate_score_entry_template(session, exam_id, course_id, class_id)
    except ScoreServiceError as e:
        raise to_http_exception(e)
    return StreamingResponse(
        iter([file_bytes]),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/classes/{class_id}/export")
async def export_class_scores(
    class_id: int, session: DBSessionDep, exam_id: int = Query(..., gt=0)
) -> StreamingResponse:
    """Export every course score and rank of a class for an exam as Excel."""
    try:
        file_bytes, filename = await generate_class_score_export(session, exam_id, class_id)
    except ScoreServiceError as e:
        raise to_http_exception(e)
    return StreamingResponse(
        iter([file_bytes]),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
