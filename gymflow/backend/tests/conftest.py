from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.db.session import Base
from app.db import models


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_member(db_session):
    counter = {"value": 0}

    def factory(full_name: str | None = None, email: str | None = None) -> models.Member:
        counter["value"] += 1
        member = models.Member(
            full_name=full_name or f"Member {counter['value']}",
            email=email if email is not None else f"member{counter['value']}@example.com",
        )
        db_session.add(member)
        db_session.commit()
        db_session.refresh(member)
        return member

    return factory


@pytest.fixture()
def make_class(db_session):
    def factory(capacity: int = 2, title: str = "CrossFit WOD", starts_in=timedelta(days=2)):
        starts_at = datetime.now(timezone.utc) + starts_in
        gym_class = models.ClassSession(
            title=title,
            starts_at=starts_at,
            ends_at=starts_at + timedelta(hours=1),
            capacity=capacity,
        )
        db_session.add(gym_class)
        db_session.commit()
        db_session.refresh(gym_class)
        return gym_class

    return factory
