"""Assessment schemas for modules, quizzes, questions, attempts, and scoring.

Wire format is camelCase (``totalPoints``, ``correctOptionIndex`` ...); Python
code builds the models with snake_case field names.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising field names as camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- catalog -----------------------------------------------------------------

class ModuleCreate(CamelModel):
    """Payload for creating a learning module."""
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class ModuleSummary(CamelModel):
    id: int
    title: str


class ModuleOut(ModuleSummary):
    description: Optional[str] = None


class QuestionCreate(CamelModel):
    """A multiple-choice question as authored by staff."""
    text: str = Field(min_length=1)
    options: List[str] = Field(min_length=2)
    correct_option_index: int = Field(ge=0)
    points: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_correct_index(self) -> "QuestionCreate":
        if self.correct_option_index >= len(self.options):
            raise ValueError("correctOptionIndex must point at one of the options")
        return self


class QuizCreate(CamelModel):
    """Payload for creating a quiz; at least one question is required."""
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    module_id: Optional[int] = None
    lesson_id: Optional[str] = None
    questions: List[QuestionCreate] = Field(min_length=1)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class QuestionPublic(CamelModel):
    """A question as shown to a student taking the quiz (no answer key)."""
    id: int
    text: str
    options: List[str]
    points: int


class QuestionOut(QuestionPublic):
    correct_option_index: int


class QuizSummary(CamelModel):
    id: int
    title: str
    module: Optional[ModuleSummary] = None


class QuizPublic(QuizSummary):
    slug: str
    description: Optional[str] = None
    lesson_id: Optional[str] = None
    questions: List[QuestionPublic] = []


class QuizOut(QuizPublic):
    created_by: str
    questions: List[QuestionOut] = []


# --- attempts ----------------------------------------------------------------

class SubmittedAnswer(CamelModel):
    """One answer in a submission: which question, which option index."""
    question_id: int
    selected_option: int


class SubmitAttemptRequest(CamelModel):
    answers: List[SubmittedAnswer]


class GradedAnswer(CamelModel):
    """Result of grading one submitted answer."""
    question_id: int
    selected_option: int
    is_correct: bool
    points_earned: int


class StartAttemptResponse(CamelModel):
    attempt_id: int
    quiz: QuizPublic
    started_at: datetime
    total_points: int


class SubmitAttemptResponse(CamelModel):
    attempt_id: int
    score: int
    total_points: int
    percentage: int
    correct_answers: int
    total_questions: int
    duration: int
    completed_at: datetime
    quiz: QuizSummary


class AttemptListItem(CamelModel):
    id: int
    quiz: Optional[QuizSummary] = None
    score: int
    total_points: int
    percentage: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration: Optional[int] = None
    is_completed: bool


class AttemptDetail(AttemptListItem):
    student_id: str
    answers: List[GradedAnswer] = []
