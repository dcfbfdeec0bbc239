"""SQLAlchemy models for the Assessment service.

Defines four tables:
- Module: Learning module a quiz can belong to (display title only here).
- Quiz: A titled quiz with an ordered list of questions.
- Question: Multiple-choice question belonging to a quiz.
- Attempt: One student's run at one quiz.
"""

from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base, relationship, Mapped, mapped_column
from sqlalchemy import Integer, String, Text, ForeignKey, DateTime, JSON, Index, text

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(ts: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops tzinfo on the way back)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


class Module(Base):
    """Learning module that groups quizzes under a title.

    Attributes:
        id: Primary key.
        title: Human-readable module title.
        description: Optional long description.
    """

    __tablename__ = "modules"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class Quiz(Base):
    """Quiz entity owning an ordered list of questions.

    Attributes:
        id: Primary key.
        slug: URL-friendly unique key derived from the title.
        title: Quiz title.
        description: Optional description.
        module_id: Optional parent module.
        lesson_id: Optional lesson key the quiz is attached to.
        created_by: Subject of the identity that authored the quiz.
        questions: Questions in authoring order.
    """

    __tablename__ = "quizzes"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    module_id: Mapped[int | None] = mapped_column(ForeignKey("modules.id"), nullable=True)
    lesson_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    created_by: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    module = relationship("Module", lazy="selectin")
    questions = relationship(
        "Question",
        back_populates="quiz",
        order_by="Question.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class Question(Base):
    """Multiple-choice question.

    Attributes:
        options: JSON list of option strings.
        correct_option_index: Index into `options` of the right answer.
        points: Point value; NULL counts as 1.
    """

    __tablename__ = "questions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(ForeignKey("quizzes.id", ondelete="CASCADE"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    text: Mapped[str] = mapped_column(Text)
    options: Mapped[list] = mapped_column(JSON)
    correct_option_index: Mapped[int] = mapped_column(Integer)
    points: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quiz = relationship("Quiz", back_populates="questions")


class Attempt(Base):
    """A student's attempt at a quiz.

    `completed_at` is the state discriminator: NULL means ongoing. The partial
    unique index allows a single ongoing attempt per (quiz, student).
    """

    __tablename__ = "attempts"
    __table_args__ = (
        Index(
            "uq_attempts_ongoing_quiz_student",
            "quiz_id",
            "student_id",
            unique=True,
            postgresql_where=text("completed_at IS NULL"),
            sqlite_where=text("completed_at IS NULL"),
        ),
        Index("ix_attempts_student_started", "student_id", "started_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(ForeignKey("quizzes.id", ondelete="CASCADE"), index=True)
    student_id: Mapped[str] = mapped_column(String(128))
    answers: Mapped[list] = mapped_column(JSON, default=list)
    score: Mapped[int] = mapped_column(Integer, default=0)
    total_points: Mapped[int] = mapped_column(Integer, default=0)
    # point value per question id at start time; grading uses these, not the live quiz
    question_points: Mapped[dict] = mapped_column(JSON, default=dict)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None
