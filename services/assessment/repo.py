"""Repository layer for the Assessment service.

Provides async database initialization, the session dependency, catalog
helpers (modules, quizzes) and the attempt store.
"""

import re
import time
from datetime import datetime
from typing import AsyncIterator, Mapping, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool
from sqlalchemy import select, update, delete

from packages.common.config import get_settings
from packages.schemas.assessment import GradedAnswer, QuestionCreate, QuizCreate
from .errors import NotFound, InvalidState, DuplicateOngoingAttempt
from .models import Base, Module, Quiz, Question, Attempt

s = get_settings()
engine = create_async_engine(
    s.POSTGRES_DSN,
    echo=s.SQL_ECHO,
    poolclass=NullPool if s.is_test else None,
)
Session = async_sessionmaker(engine, expire_on_commit=False)


async def init_db() -> None:
    """Create database schema if it doesn't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a session that is rolled back on error."""
    async with Session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


# --- catalog -----------------------------------------------------------------

async def add_module(session: AsyncSession, title: str, description: str | None = None) -> Module:
    """Insert a new module row and return it.

    Args:
        session: Active AsyncSession.
        title: Module title.
        description: Optional long description.

    Returns:
        The freshly persisted Module.
    """
    module = Module(title=title, description=description)
    session.add(module)
    await session.commit()
    await session.refresh(module)
    return module


async def get_module(session: AsyncSession, module_id: int) -> Module | None:
    """Fetch a single module by id.

    Returns:
        The Module if found; otherwise None.
    """
    return await session.get(Module, module_id)


async def list_modules(session: AsyncSession) -> list[Module]:
    """List every module in id order.

    Returns:
        A list of Module rows.
    """
    res = await session.execute(select(Module).order_by(Module.id))
    return list(res.scalars())


def slugify(title: str) -> str:
    """Lowercase `title` and join its alphanumeric runs with hyphens."""
    return re.sub(r"[^a-z0-9]+", "-", title.lower().strip()).strip("-")


async def slug_exists(session: AsyncSession, slug: str) -> bool:
    """Return True if a quiz already uses `slug`."""
    res = await session.execute(select(Quiz.id).where(Quiz.slug == slug))
    return res.first() is not None


def _new_question(position: int, q: QuestionCreate) -> Question:
    return Question(
        position=position,
        text=q.text,
        options=list(q.options),
        correct_option_index=q.correct_option_index,
        points=q.points,
    )


async def _check_module(session: AsyncSession, module_id: int | None) -> None:
    if module_id is not None and await get_module(session, module_id) is None:
        raise NotFound("Module not found")


async def add_quiz(session: AsyncSession, payload: QuizCreate, created_by: str) -> Quiz:
    """Insert a quiz with its questions and return it with questions loaded.

    Args:
        session: Active AsyncSession.
        payload: Validated quiz definition.
        created_by: Subject of the authoring identity.

    Returns:
        The freshly persisted Quiz.

    Raises:
        NotFound: If `payload.module_id` names a module that does not exist.
    """
    await _check_module(session, payload.module_id)

    slug = slugify(payload.title) or "quiz"
    if await slug_exists(session, slug):
        slug = f"{slug}-{int(time.time() * 1000)}"

    quiz = Quiz(
        slug=slug,
        title=payload.title,
        description=payload.description,
        module_id=payload.module_id,
        lesson_id=payload.lesson_id,
        created_by=created_by,
        questions=[_new_question(i, q) for i, q in enumerate(payload.questions)],
    )
    session.add(quiz)
    await session.commit()
    return await get_quiz(session, quiz.id)


async def update_quiz(session: AsyncSession, quiz_id: int, payload: QuizCreate) -> Quiz:
    """Replace a quiz's fields and questions with `payload`.

    Questions are matched by position: existing rows are rewritten in place
    and keep their ids, extra payload questions are appended and surplus rows
    are deleted. The slug and author are left untouched.

    Args:
        session: Active AsyncSession.
        quiz_id: Quiz to update.
        payload: Validated quiz definition.

    Returns:
        The updated Quiz with questions loaded.

    Raises:
        NotFound: If the quiz, or the module `payload` names, does not exist.
    """
    quiz = await get_quiz(session, quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found")
    await _check_module(session, payload.module_id)

    quiz.title = payload.title
    quiz.description = payload.description
    quiz.module_id = payload.module_id
    quiz.lesson_id = payload.lesson_id

    current = list(quiz.questions)
    for i, q in enumerate(payload.questions):
        if i < len(current):
            row = current[i]
            row.text = q.text
            row.options = list(q.options)
            row.correct_option_index = q.correct_option_index
            row.points = q.points
        else:
            quiz.questions.append(_new_question(i, q))
    for row in current[len(payload.questions):]:
        quiz.questions.remove(row)

    await session.commit()
    return await get_quiz(session, quiz_id)


async def get_quiz(session: AsyncSession, quiz_id: int) -> Quiz | None:
    """Fetch a quiz (questions and module eagerly loaded) by id."""
    res = await session.execute(
        select(Quiz).where(Quiz.id == quiz_id).execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def list_quizzes(
    session: AsyncSession, module_id: int | None = None, lesson_id: str | None = None
) -> list[Quiz]:
    """List quizzes, optionally filtered by module and/or lesson.

    Args:
        session: Active AsyncSession.
        module_id: If provided, restrict results to this module.
        lesson_id: If provided, restrict results to this lesson key.

    Returns:
        A list of Quiz rows in id order.
    """
    q = select(Quiz).order_by(Quiz.id)
    if module_id is not None:
        q = q.where(Quiz.module_id == module_id)
    if lesson_id is not None:
        q = q.where(Quiz.lesson_id == lesson_id)
    res = await session.execute(q)
    return list(res.scalars())


async def get_quizzes(session: AsyncSession, quiz_ids: Sequence[int]) -> dict[int, Quiz]:
    """Fetch several quizzes in one query.

    Args:
        session: Active AsyncSession.
        quiz_ids: Ids to load; duplicates are fine.

    Returns:
        Mapping of quiz id to Quiz for the ids that exist.
    """
    if not quiz_ids:
        return {}
    res = await session.execute(select(Quiz).where(Quiz.id.in_(set(quiz_ids))))
    return {quiz.id: quiz for quiz in res.scalars()}


async def delete_quiz(session: AsyncSession, quiz_id: int) -> None:
    """Delete a quiz together with every attempt recorded against it."""
    quiz = await get_quiz(session, quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found")
    await session.execute(delete(Attempt).where(Attempt.quiz_id == quiz_id))
    await session.delete(quiz)
    await session.commit()


# --- attempt store -----------------------------------------------------------

async def find_ongoing(session: AsyncSession, quiz_id: int, student_id: str) -> Attempt | None:
    """Fetch the student's not-yet-completed attempt at a quiz.

    Returns:
        The ongoing Attempt if there is one; otherwise None.
    """
    res = await session.execute(
        select(Attempt).where(
            Attempt.quiz_id == quiz_id,
            Attempt.student_id == student_id,
            Attempt.completed_at.is_(None),
        )
    )
    return res.scalars().first()


async def create_attempt(
    session: AsyncSession,
    quiz_id: int,
    student_id: str,
    total_points: int,
    started_at: datetime,
    question_points: Mapping[int, int] | None = None,
) -> Attempt:
    """Insert a new ongoing attempt.

    Args:
        session: Active AsyncSession.
        quiz_id: Quiz being attempted.
        student_id: Subject of the student.
        total_points: Quiz total at start time.
        started_at: Start timestamp.
        question_points: Point value of each question at start time, keyed
            by question id.

    Returns:
        The persisted Attempt.

    Raises:
        NotFound: If the quiz does not exist.
        DuplicateOngoingAttempt: If the partial unique index rejects the row
            because another ongoing attempt already exists.
    """
    if await session.get(Quiz, quiz_id) is None:
        raise NotFound("Quiz not found")
    attempt = Attempt(
        quiz_id=quiz_id,
        student_id=student_id,
        answers=[],
        score=0,
        total_points=total_points,
        question_points={str(k): v for k, v in (question_points or {}).items()},
        started_at=started_at,
    )
    session.add(attempt)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise DuplicateOngoingAttempt("An ongoing attempt already exists") from exc
    await session.refresh(attempt)
    return attempt


async def get_attempt(session: AsyncSession, attempt_id: int) -> Attempt | None:
    """Fetch a single attempt by id, refreshed from the database.

    Returns:
        The Attempt if found; otherwise None.
    """
    return await session.get(Attempt, attempt_id, populate_existing=True)


async def mark_completed(
    session: AsyncSession,
    attempt_id: int,
    graded_answers: Sequence[GradedAnswer],
    score: int,
    completed_at: datetime,
    duration: int,
) -> Attempt:
    """Record the graded submission and close the attempt.

    The UPDATE only matches rows still ongoing, so a completed attempt is
    never rewritten even when two submissions race.

    Raises:
        NotFound: If the attempt does not exist.
        InvalidState: If the attempt is already completed.
    """
    res = await session.execute(
        update(Attempt)
        .where(Attempt.id == attempt_id, Attempt.completed_at.is_(None))
        .values(
            answers=[a.model_dump(by_alias=True) for a in graded_answers],
            score=score,
            completed_at=completed_at,
            duration=duration,
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        if await get_attempt(session, attempt_id) is None:
            raise NotFound("Attempt not found")
        raise InvalidState("Attempt already completed")
    await session.commit()
    return await get_attempt(session, attempt_id)


async def list_by_quiz_and_student(session: AsyncSession, quiz_id: int, student_id: str) -> list[Attempt]:
    """List one student's attempts at one quiz.

    Args:
        session: Active AsyncSession.
        quiz_id: Quiz the attempts belong to.
        student_id: Subject of the student.

    Returns:
        Attempts ordered newest first.
    """
    res = await session.execute(
        select(Attempt)
        .where(Attempt.quiz_id == quiz_id, Attempt.student_id == student_id)
        .order_by(Attempt.started_at.desc(), Attempt.id.desc())
    )
    return list(res.scalars())


async def list_by_student(session: AsyncSession, student_id: str) -> list[Attempt]:
    """List every attempt a student has made, across quizzes.

    Args:
        session: Active AsyncSession.
        student_id: Subject of the student.

    Returns:
        Attempts ordered newest first.
    """
    res = await session.execute(
        select(Attempt)
        .where(Attempt.student_id == student_id)
        .order_by(Attempt.started_at.desc(), Attempt.id.desc())
    )
    return list(res.scalars())
