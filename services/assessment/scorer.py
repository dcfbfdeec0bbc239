"""Scoring utilities for the Assessment service.

Functions:
- question_points: point value of a question (unset counts as 1).
- total_points: snapshot total for a quiz's question list.
- frozen_points: questions re-valued with the points recorded at start.
- grade: grade a submission against a quiz's questions.
- percentage: integer percentage, rounded half-up.
- correct_count: number of correct graded answers.

Everything here is pure; no I/O and no clock.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from packages.schemas.assessment import GradedAnswer, SubmittedAnswer

DEFAULT_POINTS = 1


class GradableQuestion(Protocol):
    id: int
    correct_option_index: int
    points: Optional[int]


@dataclass(frozen=True)
class GradeResult:
    graded_answers: List[GradedAnswer] = field(default_factory=list)
    total_score: int = 0


def question_points(q: GradableQuestion) -> int:
    """Return the point value of `q`, treating an unset value as 1."""
    return DEFAULT_POINTS if q.points is None else q.points


def total_points(questions: Iterable[GradableQuestion]) -> int:
    return sum(question_points(q) for q in questions)


@dataclass(frozen=True)
class FrozenQuestion:
    id: int
    correct_option_index: int
    points: Optional[int]


def point_snapshot(questions: Iterable[GradableQuestion]) -> Dict[int, int]:
    """Map each question id to its current point value."""
    return {q.id: question_points(q) for q in questions}


def frozen_points(questions: Iterable[GradableQuestion], snapshot: Mapping[str, int]) -> List[FrozenQuestion]:
    """Re-value `questions` with the points in `snapshot` (keyed by str(id)).

    Questions missing from the snapshot were added after it was taken and are
    dropped. The answer key is always the current one.
    """
    frozen: List[FrozenQuestion] = []
    for q in questions:
        pts = snapshot.get(str(q.id))
        if pts is None:
            continue
        frozen.append(FrozenQuestion(q.id, q.correct_option_index, pts))
    return frozen


def _last_answer_per_question(submitted: Sequence[SubmittedAnswer]) -> List[SubmittedAnswer]:
    # last answer for a question wins; survivors keep their own relative order
    seen: set[int] = set()
    kept: List[SubmittedAnswer] = []
    for ans in reversed(submitted):
        if ans.question_id in seen:
            continue
        seen.add(ans.question_id)
        kept.append(ans)
    kept.reverse()
    return kept


def grade(questions: Iterable[GradableQuestion], submitted: Sequence[SubmittedAnswer]) -> GradeResult:
    """Grade `submitted` answers against `questions`.

    Answers referencing a question that is not part of the quiz are skipped:
    they earn nothing and do not appear in the output. Several answers for the
    same question collapse to the last one. Output follows submission order.
    """
    by_id = {q.id: q for q in questions}
    graded: List[GradedAnswer] = []
    score = 0
    for ans in _last_answer_per_question(submitted):
        q = by_id.get(ans.question_id)
        if q is None:
            continue
        is_correct = ans.selected_option == q.correct_option_index
        earned = question_points(q) if is_correct else 0
        score += earned
        graded.append(GradedAnswer(
            question_id=ans.question_id,
            selected_option=ans.selected_option,
            is_correct=is_correct,
            points_earned=earned,
        ))
    return GradeResult(graded_answers=graded, total_score=score)


def percentage(score: int, total: int) -> int:
    """Return ``round(score / total * 100)`` with halves rounded up; 0 when total is 0."""
    if total <= 0:
        return 0
    # integer form of floor(score * 100 / total + 0.5)
    return (score * 200 + total) // (2 * total)


def correct_count(graded: Iterable[GradedAnswer]) -> int:
    return sum(1 for a in graded if a.is_correct)
