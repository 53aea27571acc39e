import itertools
from datetime import date
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.models import AcademicYear, Level, SchoolClass, Subject, User
from app.db.session import Base, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"

_seq = itertools.count(1)


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test, with the FastAPI dependency pointed at it."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ----- Seed helpers -----
async def make_user(db: AsyncSession, role: str = "student", name: str = None, status: str = "ACTIVE") -> User:
    n = next(_seq)
    user = User(
        full_name=name or f"{role.title()} {n}",
        email=f"{role}{n}@school.test",
        role=role,
        status=status,
    )
    db.add(user)
    await db.commit()
    return user


async def make_year(
    db: AsyncSession,
    name: str = None,
    start: date = date(2025, 9, 1),
    end: date = date(2026, 6, 30),
    is_current: bool = False,
) -> AcademicYear:
    ay = AcademicYear(name=name or f"Year {next(_seq)}", start_date=start, end_date=end, is_current=is_current)
    db.add(ay)
    await db.commit()
    return ay


async def make_level(db: AsyncSession, name: str = None) -> Level:
    level = Level(name=name or f"Level {next(_seq)}")
    db.add(level)
    await db.commit()
    return level


async def make_class(
    db: AsyncSession,
    year: AcademicYear,
    level: Level,
    name: str = None,
    max_students: int = None,
) -> SchoolClass:
    obj = SchoolClass(
        academic_year_id=year.id,
        level_id=level.id,
        name=name or f"Class {next(_seq)}",
        max_students=max_students,
    )
    db.add(obj)
    await db.commit()
    return obj


async def make_subject(db: AsyncSession, level: Level = None, name: str = None) -> Subject:
    n = next(_seq)
    subject = Subject(
        name=name or f"Subject {n}",
        code=f"SUB{n}",
        level_id=level.id if level is not None else None,
    )
    db.add(subject)
    await db.commit()
    return subject


@pytest.fixture()
async def school(db_session: AsyncSession) -> dict:
    """Current year, one level, one class without capacity limit and one teacher."""
    year = await make_year(db_session, name="2025-2026", is_current=True)
    level = await make_level(db_session, name="Grade 6")
    school_class = await make_class(db_session, year, level, name="6A")
    teacher = await make_user(db_session, role="teacher", name="Alice Teacher")
    return {"year": year, "level": level, "class": school_class, "teacher": teacher}
