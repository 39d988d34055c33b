"""
Pytest configuration for the examguard API and proctoring agent tests
"""
import os
import tempfile
from datetime import timedelta

import pytest

# settings are read at import time
os.environ.setdefault("DATABASE_URL_OVERRIDE", f"sqlite+aiosqlite:///{tempfile.gettempdir()}/examguard_unused.db")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("SECRET_KEY", "test-secret-key-at-least-32-characters")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from examguard.core.database import Base, get_async_db
from examguard.core.security import create_access_token, get_password_hash
from examguard.models import User, Exam, Question, ExamAttempt
from examguard.utils.timezone import utc_now


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "examguard_test.db"


@pytest.fixture
def sync_engine(db_path):
    """Creates the schema and seeds rows without touching any event loop"""
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_path, sync_engine):
    # NullPool: every session opens its connection in the loop that uses it
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        poolclass=NullPool,
        connect_args={"timeout": 15},
    )
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def client(session_factory):
    """FastAPI test client bound to the per-test database"""
    from examguard.main import app

    async def override_get_async_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_async_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class Seeder:
    def __init__(self, engine):
        self.engine = engine

    def _add(self, obj):
        with Session(self.engine, expire_on_commit=False) as session:
            session.add(obj)
            session.commit()
            session.refresh(obj)
        return obj

    def user(self, email="student@example.com", name="Student One", role="student", password="secret123"):
        return self._add(User(
            email=email,
            name=name,
            role=role,
            hashed_password=get_password_hash(password),
            is_active=True,
        ))

    def exam(self, teacher_id=None, live_in=timedelta(hours=-1), ends_in=timedelta(hours=2), code="", name="Midterm"):
        now = utc_now()
        return self._add(Exam(
            exam_name=name,
            total_questions=2,
            duration=60,
            live_date=now + live_in,
            dead_date=now + ends_in,
            exam_code=code,
            teacher_id=teacher_id,
        ))

    def question(self, exam_id, text="2 + 2 = ?"):
        return self._add(Question(
            exam_id=exam_id,
            question=text,
            options=[
                {"optionText": "4", "isCorrect": True},
                {"optionText": "5", "isCorrect": False},
            ],
        ))

    def attempt(self, exam_id, user_id, completed=False):
        now = utc_now()
        return self._add(ExamAttempt(
            exam_id=exam_id,
            user_id=user_id,
            started_at=now - timedelta(minutes=30),
            completed_at=now if completed else None,
        ))

    def reschedule(self, exam_id, live_in, ends_in):
        now = utc_now()
        with Session(self.engine) as session:
            session.query(Exam).filter_by(exam_id=exam_id).update(
                {"live_date": now + live_in, "dead_date": now + ends_in}
            )
            session.commit()

    def count(self, model, **filters):
        with Session(self.engine) as session:
            return session.query(model).filter_by(**filters).count()


@pytest.fixture
def seed(sync_engine):
    return Seeder(sync_engine)


@pytest.fixture
def teacher(seed):
    return seed.user(email="teacher@example.com", name="Teacher", role="teacher")


@pytest.fixture
def student(seed):
    return seed.user()


@pytest.fixture
def exam(seed, teacher):
    exam = seed.exam(teacher_id=teacher.id)
    seed.question(exam.exam_id)
    seed.question(exam.exam_id, text="Capital of France?")
    return exam


def auth_headers_for(user):
    token = create_access_token(data={"sub": user.email}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers(student):
    return auth_headers_for(student)


@pytest.fixture
def teacher_headers(teacher):
    return auth_headers_for(teacher)


@pytest.fixture
def headers_for():
    return auth_headers_for
