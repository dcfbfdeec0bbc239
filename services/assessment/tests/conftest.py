"""Shared fixtures for the Assessment service tests.

Environment is configured before any service module is imported: a throwaway
SQLite database and a freshly generated RSA key pair for signing JWTs.
"""

import os
import tempfile
import time
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

_PRIVATE_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
PRIVATE_PEM = _PRIVATE_KEY.private_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PrivateFormat.PKCS8,
    encryption_algorithm=serialization.NoEncryption(),
)
PUBLIC_PEM = _PRIVATE_KEY.public_key().public_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PublicFormat.SubjectPublicKeyInfo,
).decode()

ISSUER = "https://id.safeschool.test"
AUDIENCE = "safeschool-api"
_DB_PATH = Path(tempfile.mkdtemp(prefix="safeschool-tests-")) / "assessment.db"

os.environ["ENV"] = "test"
os.environ["POSTGRES_DSN"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["JWT_PUBLIC_KEY"] = PUBLIC_PEM
os.environ["OIDC_ISSUER"] = ISSUER
os.environ["OIDC_AUDIENCE"] = AUDIENCE
os.environ["LOG_LEVEL"] = "INFO"

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from packages.common.auth import User  # noqa: E402
from packages.schemas.assessment import QuestionCreate, QuizCreate  # noqa: E402
from services.assessment import repo  # noqa: E402
from services.assessment.app import app  # noqa: E402
from services.assessment.models import Base  # noqa: E402


def sign(sub: str, roles=None, expires_in: int = 3600, **claims) -> str:
    """Return an RS256 token as the identity provider would issue it."""
    now = int(time.time())
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": now,
        "exp": now + expires_in,
        **claims,
    }
    if roles is not None:
        payload["roles"] = roles
    return jwt.encode(payload, PRIVATE_PEM, algorithm="RS256")


def bearer(sub: str, *roles: str) -> dict:
    return {"Authorization": f"Bearer {sign(sub, list(roles))}"}


def two_question_quiz(title: str = "Earthquake Basics") -> QuizCreate:
    """Two one-point questions whose correct options are 1 and 0."""
    return QuizCreate(
        title=title,
        questions=[
            QuestionCreate(text="Drop, cover and ...?", options=["run", "hold on", "jump"], correct_option_index=1),
            QuestionCreate(text="Safest spot indoors?", options=["under a sturdy table", "by a window"], correct_option_index=0),
        ],
    )


@pytest_asyncio.fixture
async def db():
    await repo.init_db()
    yield
    async with repo.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await repo.engine.dispose()


@pytest_asyncio.fixture
async def session(db):
    async with repo.Session() as s:
        yield s


@pytest_asyncio.fixture
async def client(db):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def quiz(session):
    return await repo.add_quiz(session, two_question_quiz(), created_by="teacher-1")


@pytest.fixture
def alice() -> User:
    return User(sub="student-alice", roles=["student"])


@pytest.fixture
def bob() -> User:
    return User(sub="student-bob", roles=["student"])


@pytest.fixture
def admin() -> User:
    return User(sub="admin-1", roles=["admin"])


@pytest.fixture
def headers():
    """Factory: ``headers("student-alice", "student")`` -> Authorization header."""
    return bearer


@pytest.fixture
def token():
    """Factory signing arbitrary tokens, see `sign`."""
    return sign
