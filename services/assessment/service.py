"""Attempt lifecycle for the Assessment service.

    [no attempt] --start--> ongoing --submit--> completed (terminal)

`AttemptService` orchestrates the attempt store (`repo`) and the grading
engine (`scorer`). It returns bare ORM rows; display fields such as quiz or
module titles are attached by the API layer (see `projections`).
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.auth import User
from packages.common.rbac import can_access
from packages.schemas.assessment import GradedAnswer, SubmittedAnswer
from . import repo
from .errors import AssessmentError, DuplicateOngoingAttempt, Forbidden, InvalidInput, InvalidState, NotFound
from .models import Attempt, Quiz, as_utc, utcnow
from .scorer import correct_count, frozen_points, grade, percentage, point_snapshot, total_points

log = logging.getLogger(__name__)

# create attempts tried before a lost race is reported as a conflict
START_RETRIES = 2


@dataclass
class StartOutcome:
    attempt: Attempt
    quiz: Quiz
    created: bool


@dataclass
class SubmitOutcome:
    attempt: Attempt
    quiz: Quiz
    graded_answers: List[GradedAnswer]
    percentage: int
    correct_answers: int


def elapsed_seconds(started_at: datetime, completed_at: datetime) -> int:
    """Whole seconds between the two instants, clamped at 0 for clock skew."""
    delta = (as_utc(completed_at) - as_utc(started_at)).total_seconds()
    return max(0, math.floor(delta))


class AttemptService:
    """Start, submit, fetch and list quiz attempts for an authenticated caller."""

    def __init__(
        self,
        session: AsyncSession,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session = session
        self.log = logger or log
        self.clock = clock

    def _ctx(self, op: str, **fields: Any) -> dict:
        return {"ctx": {"op": op, **fields}}

    async def start(self, quiz_id: int, user: User) -> StartOutcome:
        """Open an attempt for `user`, or hand back the one still ongoing."""
        self.log.info("attempt.start", extra=self._ctx("start", quiz_id=quiz_id, student=user.sub))
        try:
            for _ in range(START_RETRIES):
                quiz = await repo.get_quiz(self.session, quiz_id)
                if quiz is None:
                    raise NotFound("Quiz not found")

                existing = await repo.find_ongoing(self.session, quiz_id, user.sub)
                if existing is not None:
                    self.log.info("attempt.resumed", extra=self._ctx("start", attempt_id=existing.id))
                    return StartOutcome(existing, quiz, created=False)

                try:
                    attempt = await repo.create_attempt(
                        self.session,
                        quiz_id,
                        user.sub,
                        total_points(quiz.questions),
                        self.clock(),
                        question_points=point_snapshot(quiz.questions),
                    )
                except DuplicateOngoingAttempt:
                    # lost a race with a concurrent start; look again for the winner's attempt
                    self.log.info("attempt.start.raced", extra=self._ctx("start", quiz_id=quiz_id))
                    continue
                break
            else:
                raise DuplicateOngoingAttempt("Could not open an attempt, try again")
        except AssessmentError as exc:
            self.log.info("attempt.start.rejected", extra=self._ctx("start", quiz_id=quiz_id, kind=exc.kind))
            raise

        self.log.info(
            "attempt.started",
            extra=self._ctx("start", attempt_id=attempt.id, total_points=attempt.total_points),
        )
        return StartOutcome(attempt, quiz, created=True)

    async def submit(self, attempt_id: int, answers: Any, user: User) -> SubmitOutcome:
        """Grade `answers` and close the attempt. Rejects resubmission."""
        self.log.info("attempt.submit", extra=self._ctx("submit", attempt_id=attempt_id, student=user.sub))
        try:
            if not isinstance(answers, list):
                raise InvalidInput("Answers must be an array")
            try:
                submitted = [
                    a if isinstance(a, SubmittedAnswer) else SubmittedAnswer.model_validate(a)
                    for a in answers
                ]
            except ValidationError as exc:
                raise InvalidInput("Each answer needs an integer questionId and selectedOption") from exc

            attempt = await repo.get_attempt(self.session, attempt_id)
            if attempt is None:
                raise NotFound("Attempt not found")
            if attempt.student_id != user.sub:
                raise Forbidden("Access denied")
            if attempt.is_completed:
                raise InvalidState("Attempt already completed")

            quiz = await repo.get_quiz(self.session, attempt.quiz_id)
            if quiz is None:
                raise NotFound("Quiz not found")

            questions = quiz.questions
            if attempt.question_points:
                questions = frozen_points(questions, attempt.question_points)
            result = grade(questions, submitted)
            completed_at = self.clock()
            duration = elapsed_seconds(attempt.started_at, completed_at)
            attempt = await repo.mark_completed(
                self.session, attempt.id, result.graded_answers, result.total_score, completed_at, duration
            )
        except AssessmentError as exc:
            self.log.info("attempt.submit.rejected", extra=self._ctx("submit", attempt_id=attempt_id, kind=exc.kind))
            raise

        pct = percentage(attempt.score, attempt.total_points)
        self.log.info(
            "attempt.completed",
            extra=self._ctx(
                "submit",
                attempt_id=attempt.id,
                score=attempt.score,
                total_points=attempt.total_points,
                percentage=pct,
                duration=duration,
            ),
        )
        return SubmitOutcome(
            attempt=attempt,
            quiz=quiz,
            graded_answers=result.graded_answers,
            percentage=pct,
            correct_answers=correct_count(result.graded_answers),
        )

    async def get(self, attempt_id: int, user: User) -> Attempt:
        attempt = await repo.get_attempt(self.session, attempt_id)
        if attempt is None:
            self.log.info("attempt.get.rejected", extra=self._ctx("get", attempt_id=attempt_id, kind=NotFound.kind))
            raise NotFound("Attempt not found")
        if not can_access(user, attempt.student_id):
            self.log.warning(
                "attempt.get.rejected",
                extra=self._ctx("get", attempt_id=attempt_id, kind=Forbidden.kind, caller=user.sub),
            )
            raise Forbidden("Access denied")
        self.log.debug("attempt.get", extra=self._ctx("get", attempt_id=attempt_id))
        return attempt

    async def list_for_quiz(self, quiz_id: int, user: User) -> List[Attempt]:
        attempts = await repo.list_by_quiz_and_student(self.session, quiz_id, user.sub)
        self.log.debug("attempt.list", extra=self._ctx("list_for_quiz", quiz_id=quiz_id, count=len(attempts)))
        return attempts

    async def list_for_student(self, user: User) -> List[Attempt]:
        attempts = await repo.list_by_student(self.session, user.sub)
        self.log.debug("attempt.list", extra=self._ctx("list_for_student", count=len(attempts)))
        return attempts
