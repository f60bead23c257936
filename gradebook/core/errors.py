from fastapi import HTTPException, status

from gradebook.services.exceptions import ScoreServiceError

STATUS_BY_CODE = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "DUPLICATE_SCORE": status.HTTP_409_CONFLICT,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "CONFIGURATION_MISSING": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "CONCURRENCY_CONFLICT": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http_exception(error: ScoreServiceError) -> HTTPException:
    """Map a score service error to an HTTPException carrying its code and message."""
    status_code = STATUS_BY_CODE.get(error.code, status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=error.to_detail())
