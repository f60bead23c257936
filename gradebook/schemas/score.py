from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, Field, PlainSerializer, field_validator, model_validator

from gradebook.utils.score_utils import parse_score_value

# Decimal in Python, plain number in JSON
ScoreValue = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ScoreBase(BaseModel):
    score: Decimal | None = Field(
        None, description="Score with at most one decimal place; None when absent or not entered"
    )
    absent: bool = Field(False, description="Absent entries are counted but never ranked or averaged")
    grade_level_label: str | None = Field(None, max_length=10, description="Display-only letter grade")
    teacher_id: int | None = None

    @field_validator("score", mode="before")
    @classmethod
    def validate_score(cls, v: str | float | Decimal | None) -> Decimal | None:
        """Validate and normalize score value."""
        return parse_score_value(v)

    @model_validator(mode="after")
    def clear_absent_score(self) -> "ScoreBase":
        # An absent student has no score
        if self.absent:
            self.score = None
        return self


class ScoreCreate(ScoreBase):
    """Schema for entering a new score."""

    exam_id: int = Field(..., gt=0)
    student_id: int = Field(..., gt=0)
    course_id: int = Field(..., gt=0)


class ScoreUpdate(ScoreBase):
    """Schema for correcting an existing score. The (exam, student, course) key cannot change."""

    pass


class BatchScoreCreate(BaseModel):
    """Schema for atomic batch score entry."""

    scores: list[ScoreCreate] = Field(..., min_length=1)


class ScoreResponse(BaseModel):
    id: int
    exam_id: int
    student_id: int
    course_id: int
    class_id: int | None = None
    score: ScoreValue | None
    absent: bool
    class_rank: int | None
    grade_rank: int | None
    grade_level_label: str | None = None
    teacher_id: int | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ScoreListResponse(BaseModel):
    items: list[ScoreResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class BatchScoreCreateResponse(BaseModel):
    created: int
    items: list[ScoreResponse]


class RankRecomputeResponse(BaseModel):
    exam_id: int
    course_id: int
    ranked: int = Field(..., description="Scores that received a rank")
    unranked: int = Field(..., description="Absent or unscored entries left without a rank")
