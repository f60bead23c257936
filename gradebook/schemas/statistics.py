"""Schemas for score statistics reports."""

from pydantic import BaseModel, Field

from gradebook.schemas.score import ScoreValue


class ScoreStatistics(BaseModel):
    """
    Descriptive summary of a score population.

    Score and rate fields are None when they do not apply: all of them when nobody has a
    valid score, and the count/rate pair of any threshold the course leaves unconfigured.
    """

    total_count: int = Field(..., ge=0, description="All entries, including absentees and unscored")
    valid_count: int = Field(..., ge=0, description="Entries that are present and scored")
    absent_count: int = Field(..., ge=0)
    max_score: ScoreValue | None = None
    min_score: ScoreValue | None = None
    mean_score: ScoreValue | None = None
    pass_count: int | None = None
    pass_rate: ScoreValue | None = Field(None, description="Percentage of valid scores at or above the pass cutoff")
    good_count: int | None = None
    good_rate: ScoreValue | None = None
    excellent_count: int | None = None
    excellent_rate: ScoreValue | None = None


class StatisticsResponse(BaseModel):
    exam_id: int
    course_id: int
    class_id: int | None = Field(None, description="Set for class statistics, omitted for the whole cohort")
    statistics: ScoreStatistics
