"""Tests for the grading engine."""

from dataclasses import dataclass
from typing import Optional

import pytest

from packages.schemas.assessment import SubmittedAnswer
from services.assessment.scorer import (
    correct_count,
    frozen_points,
    grade,
    percentage,
    point_snapshot,
    question_points,
    total_points,
)


@dataclass
class Q:
    id: int
    correct_option_index: int
    points: Optional[int] = None


def ans(qid: int, opt: int) -> SubmittedAnswer:
    return SubmittedAnswer(question_id=qid, selected_option=opt)


QUIZ = [Q(1, 1), Q(2, 0)]


def test_all_correct_scores_full_marks() -> None:
    res = grade(QUIZ, [ans(1, 1), ans(2, 0)])
    assert res.total_score == 2
    assert total_points(QUIZ) == 2
    assert percentage(res.total_score, total_points(QUIZ)) == 100
    assert correct_count(res.graded_answers) == 2


def test_one_wrong_answer_halves_the_score() -> None:
    res = grade(QUIZ, [ans(1, 0), ans(2, 0)])
    assert res.total_score == 1
    assert [a.is_correct for a in res.graded_answers] == [False, True]
    assert [a.points_earned for a in res.graded_answers] == [0, 1]
    assert percentage(res.total_score, 2) == 50


def test_unknown_question_is_dropped() -> None:
    res = grade(QUIZ, [ans(99, 0), ans(1, 1)])
    assert res.total_score == 1
    assert [a.question_id for a in res.graded_answers] == [1]


def test_unanswered_questions_produce_nothing() -> None:
    res = grade(QUIZ, [ans(2, 0)])
    assert len(res.graded_answers) == 1
    assert res.total_score == 1


def test_empty_submission_scores_zero() -> None:
    res = grade(QUIZ, [])
    assert res.graded_answers == []
    assert res.total_score == 0


def test_output_follows_submission_order() -> None:
    res = grade(QUIZ, [ans(2, 0), ans(1, 1)])
    assert [a.question_id for a in res.graded_answers] == [2, 1]


def test_question_order_and_regrading_do_not_change_result() -> None:
    submitted = [ans(1, 0), ans(2, 0)]
    first = grade(QUIZ, submitted)
    again = grade(list(reversed(QUIZ)), submitted)
    assert first == again
    assert first.graded_answers == grade(QUIZ, submitted).graded_answers


def test_duplicate_answers_keep_only_the_last_one() -> None:
    # counting every duplicate would let a student push score above totalPoints
    res = grade(QUIZ, [ans(1, 1), ans(2, 0), ans(1, 1), ans(1, 2)])
    assert res.total_score == 1
    assert [(a.question_id, a.selected_option) for a in res.graded_answers] == [(2, 0), (1, 2)]
    assert res.total_score <= total_points(QUIZ)


def test_points_default_to_one_and_zero_is_respected() -> None:
    qs = [Q(1, 0, points=5), Q(2, 0), Q(3, 0, points=0)]
    assert [question_points(q) for q in qs] == [5, 1, 0]
    assert total_points(qs) == 6
    res = grade(qs, [ans(1, 0), ans(2, 0), ans(3, 0)])
    assert res.total_score == 6
    assert sum(a.points_earned for a in res.graded_answers) == res.total_score


@pytest.mark.parametrize(
    "score,total,expected",
    [
        (0, 0, 0),
        (3, 0, 0),
        (1, 8, 13),   # 12.5 rounds half up
        (1, 3, 33),
        (2, 3, 67),
        (1, 200, 1),  # 0.5 rounds half up
        (0, 5, 0),
        (7, 7, 100),
    ],
)
def test_percentage(score: int, total: int, expected: int) -> None:
    assert percentage(score, total) == expected


def test_frozen_points_use_start_values_and_current_key() -> None:
    snapshot = {str(k): v for k, v in point_snapshot([Q(1, 1), Q(2, 0, points=3)]).items()}
    assert snapshot == {"1": 1, "2": 3}

    # after start: points raised, key of question 1 changed, question 3 added
    live = [Q(1, 2, points=10), Q(2, 0, points=10), Q(3, 0, points=10)]
    frozen = frozen_points(live, snapshot)
    assert [(q.id, q.correct_option_index, q.points) for q in frozen] == [(1, 2, 1), (2, 0, 3)]

    res = grade(frozen, [ans(1, 2), ans(2, 0), ans(3, 0)])
    assert res.total_score == 4 == total_points(frozen)
    assert [a.question_id for a in res.graded_answers] == [1, 2]
