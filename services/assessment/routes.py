# services/assessment/routes.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.auth import ADMIN, INSTITUTE_ADMIN, STUDENT, User, get_current_user
from packages.common.rbac import require_roles
from packages.schemas.assessment import (
    AttemptDetail,
    AttemptListItem,
    ModuleCreate,
    ModuleOut,
    QuizCreate,
    QuizOut,
    StartAttemptResponse,
    SubmitAttemptRequest,
    SubmitAttemptResponse,
)
from . import projections, repo
from .errors import NotFound
from .service import AttemptService

STAFF = (ADMIN, INSTITUTE_ADMIN)

attempts = APIRouter(prefix="/attempts", tags=["attempts"])
catalog = APIRouter(tags=["catalog"])


def get_service(session: AsyncSession = Depends(repo.get_session)) -> AttemptService:
    return AttemptService(session)


# --- attempts ----------------------------------------------------------------

@attempts.post("/start/{quiz_id}", response_model=StartAttemptResponse, status_code=status.HTTP_201_CREATED)
async def start_attempt(
    quiz_id: int,
    response: Response,
    user: User = Depends(require_roles(STUDENT)),
    svc: AttemptService = Depends(get_service),
) -> StartAttemptResponse:
    """Start a quiz attempt; an ongoing attempt is resumed with 200."""
    outcome = await svc.start(quiz_id, user)
    if not outcome.created:
        response.status_code = status.HTTP_200_OK
    return projections.start_response(outcome)


@attempts.post("/submit/{attempt_id}", response_model=SubmitAttemptResponse)
async def submit_attempt(
    attempt_id: int,
    body: SubmitAttemptRequest,
    user: User = Depends(require_roles(STUDENT)),
    svc: AttemptService = Depends(get_service),
) -> SubmitAttemptResponse:
    """Grade the submitted answers and complete the attempt."""
    outcome = await svc.submit(attempt_id, body.answers, user)
    return projections.submit_response(outcome)


@attempts.get("/quiz/{quiz_id}", response_model=List[AttemptListItem])
async def quiz_attempts(
    quiz_id: int,
    user: User = Depends(require_roles(STUDENT)),
    svc: AttemptService = Depends(get_service),
) -> List[AttemptListItem]:
    """The caller's attempts at one quiz, newest first."""
    rows = await svc.list_for_quiz(quiz_id, user)
    return [projections.attempt_item(a) for a in rows]


@attempts.get("/user/my-attempts", response_model=List[AttemptListItem])
async def my_attempts(
    user: User = Depends(require_roles(STUDENT)),
    svc: AttemptService = Depends(get_service),
) -> List[AttemptListItem]:
    """All of the caller's attempts across quizzes, newest first."""
    rows = await svc.list_for_student(user)
    summaries = await projections.quiz_summaries(svc.session, rows)
    return [projections.attempt_item(a, summaries.get(a.quiz_id)) for a in rows]


@attempts.get("/{attempt_id}", response_model=AttemptDetail)
async def get_attempt(
    attempt_id: int,
    user: User = Depends(get_current_user),
    svc: AttemptService = Depends(get_service),
) -> AttemptDetail:
    """One attempt in full; visible to its student and to admins."""
    attempt = await svc.get(attempt_id, user)
    summaries = await projections.quiz_summaries(svc.session, [attempt])
    return projections.attempt_detail(attempt, summaries.get(attempt.quiz_id))


# --- catalog -----------------------------------------------------------------

@catalog.post("/modules", response_model=ModuleOut, status_code=status.HTTP_201_CREATED)
async def create_module(
    body: ModuleCreate,
    _: User = Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(repo.get_session),
) -> ModuleOut:
    module = await repo.add_module(session, body.title, body.description)
    return ModuleOut.model_validate(module)


@catalog.get("/modules", response_model=List[ModuleOut])
async def list_modules(
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(repo.get_session),
) -> List[ModuleOut]:
    return [ModuleOut.model_validate(m) for m in await repo.list_modules(session)]


@catalog.post("/quizzes", response_model=QuizOut, status_code=status.HTTP_201_CREATED)
async def create_quiz(
    body: QuizCreate,
    user: User = Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(repo.get_session),
) -> QuizOut:
    quiz = await repo.add_quiz(session, body, created_by=user.sub)
    return projections.quiz_out(quiz)


@catalog.get("/quizzes", response_model=None)
async def list_quizzes(
    module_id: Optional[int] = Query(default=None, alias="moduleId"),
    lesson_id: Optional[str] = Query(default=None, alias="lessonId"),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(repo.get_session),
):
    """List quizzes; the answer key is only included for staff."""
    rows = await repo.list_quizzes(session, module_id=module_id, lesson_id=lesson_id)
    render = projections.quiz_out if user.has_role(*STAFF) else projections.quiz_public
    return [render(q) for q in rows]


@catalog.get("/quizzes/{quiz_id}", response_model=None)
async def get_quiz(
    quiz_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(repo.get_session),
):
    quiz = await repo.get_quiz(session, quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found")
    if user.has_role(*STAFF):
        return projections.quiz_out(quiz)
    return projections.quiz_public(quiz)


@catalog.put("/quizzes/{quiz_id}", response_model=QuizOut)
async def update_quiz(
    quiz_id: int,
    body: QuizCreate,
    _: User = Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(repo.get_session),
) -> QuizOut:
    """Replace a quiz's content. Ongoing attempts keep the points they started with."""
    quiz = await repo.update_quiz(session, quiz_id, body)
    return projections.quiz_out(quiz)


@catalog.delete("/quizzes/{quiz_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quiz(
    quiz_id: int,
    _: User = Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(repo.get_session),
) -> Response:
    """Delete a quiz and every attempt made at it."""
    await repo.delete_quiz(session, quiz_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
