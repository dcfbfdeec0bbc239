"""Read-model projections: ORM rows -> response schemas.

Attaches display data (quiz title, module title) to attempts after the
service has done its work.
"""

from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from packages.schemas.assessment import (
    AttemptDetail,
    AttemptListItem,
    GradedAnswer,
    ModuleSummary,
    QuestionOut,
    QuestionPublic,
    QuizOut,
    QuizPublic,
    QuizSummary,
    StartAttemptResponse,
    SubmitAttemptResponse,
)
from . import repo
from .models import Attempt, Quiz
from .scorer import percentage, question_points
from .service import StartOutcome, SubmitOutcome


def module_summary(quiz: Quiz) -> Optional[ModuleSummary]:
    """Id and title of the quiz's module, or None when it has none."""
    if quiz.module is None:
        return None
    return ModuleSummary(id=quiz.module.id, title=quiz.module.title)


def quiz_summary(quiz: Quiz) -> QuizSummary:
    """Quiz id and title with its module summary, for attempt listings."""
    return QuizSummary(id=quiz.id, title=quiz.title, module=module_summary(quiz))


def quiz_public(quiz: Quiz) -> QuizPublic:
    """Quiz as served to students: the answer key is left out."""
    return QuizPublic(
        id=quiz.id,
        title=quiz.title,
        module=module_summary(quiz),
        slug=quiz.slug,
        description=quiz.description,
        lesson_id=quiz.lesson_id,
        questions=[
            QuestionPublic(id=q.id, text=q.text, options=list(q.options), points=question_points(q))
            for q in quiz.questions
        ],
    )


def quiz_out(quiz: Quiz) -> QuizOut:
    """Quiz as served to staff, answer key and author included."""
    return QuizOut(
        id=quiz.id,
        title=quiz.title,
        module=module_summary(quiz),
        slug=quiz.slug,
        description=quiz.description,
        lesson_id=quiz.lesson_id,
        created_by=quiz.created_by,
        questions=[
            QuestionOut(
                id=q.id,
                text=q.text,
                options=list(q.options),
                points=question_points(q),
                correct_option_index=q.correct_option_index,
            )
            for q in quiz.questions
        ],
    )


def start_response(outcome: StartOutcome) -> StartAttemptResponse:
    """Body of a start call: attempt id, public quiz and the point total fixed at start."""
    return StartAttemptResponse(
        attempt_id=outcome.attempt.id,
        quiz=quiz_public(outcome.quiz),
        started_at=outcome.attempt.started_at,
        total_points=outcome.attempt.total_points,
    )


def submit_response(outcome: SubmitOutcome) -> SubmitAttemptResponse:
    """Result card of a submission.

    Args:
        outcome: What `AttemptService.submit` returned.

    Returns:
        Score, totals and quiz summary; `totalQuestions` counts graded answers.
    """
    attempt = outcome.attempt
    return SubmitAttemptResponse(
        attempt_id=attempt.id,
        score=attempt.score,
        total_points=attempt.total_points,
        percentage=outcome.percentage,
        correct_answers=outcome.correct_answers,
        total_questions=len(outcome.graded_answers),
        duration=attempt.duration or 0,
        completed_at=attempt.completed_at,
        quiz=quiz_summary(outcome.quiz),
    )


def _item_fields(attempt: Attempt, summary: Optional[QuizSummary]) -> dict:
    return dict(
        id=attempt.id,
        quiz=summary,
        score=attempt.score,
        total_points=attempt.total_points,
        percentage=percentage(attempt.score, attempt.total_points),
        started_at=attempt.started_at,
        completed_at=attempt.completed_at,
        duration=attempt.duration,
        is_completed=attempt.is_completed,
    )


def attempt_item(attempt: Attempt, summary: Optional[QuizSummary] = None) -> AttemptListItem:
    """List row for one attempt; `summary` supplies the quiz title when known."""
    return AttemptListItem(**_item_fields(attempt, summary))


def attempt_detail(attempt: Attempt, summary: Optional[QuizSummary] = None) -> AttemptDetail:
    """Full attempt view including the student and the stored graded answers."""
    return AttemptDetail(
        **_item_fields(attempt, summary),
        student_id=attempt.student_id,
        answers=[GradedAnswer.model_validate(a) for a in attempt.answers or []],
    )


async def quiz_summaries(session: AsyncSession, attempts: Iterable[Attempt]) -> dict[int, QuizSummary]:
    """Load a summary for every quiz referenced by `attempts`, keyed by quiz id."""
    quizzes = await repo.get_quizzes(session, [a.quiz_id for a in attempts])
    return {qid: quiz_summary(quiz) for qid, quiz in quizzes.items()}
