import os

os.environ.setdefault("GUARDDUTY_DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("GUARDDUTY_BOOTSTRAP_SCHEMA_ON_STARTUP", "false")
os.environ.setdefault("GUARDDUTY_LOG_JSON", "false")

import datetime as dt  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from guardduty.api.deps import get_db  # noqa: E402
from guardduty.core.config import get_settings  # noqa: E402
from guardduty.core.timeutils import parse_time_to_minutes  # noqa: E402
from guardduty.db.base import Base  # noqa: E402
from guardduty.main import app  # noqa: E402
from guardduty.models import (  # noqa: E402
    Activity,
    ActivityEnrollment,
    ActivitySupervisor,
    ClassGroup,
    Institute,
    ScheduleSlot,
    StudentClassEnrollment,
    Subject,
    Teacher,
)


class Seeder:
    """Inserts directory rows straight into the test database."""

    def __init__(self, db):
        self.db = db

    def _save(self, record):
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def institute(self, name="Institut Test", **kwargs):
        return self._save(Institute(name=name, **kwargs))

    def teacher(self, institute, name, *, workload=0, **kwargs):
        return self._save(
            Teacher(institute_id=institute.id, display_name=name, workload_score=workload, **kwargs)
        )

    def subject(self, institute, name):
        return self._save(Subject(institute_id=institute.id, name=name))

    def class_group(self, institute, name, students=()):
        group = self._save(ClassGroup(institute_id=institute.id, name=name))
        for student_id in students:
            self.db.add(StudentClassEnrollment(student_id=student_id, class_id=group.id))
        self.db.commit()
        return group

    def slot(self, teacher, class_group, subject, day_of_week, start, end, *, room=None):
        return self._save(
            ScheduleSlot(
                institute_id=teacher.institute_id,
                teacher_id=teacher.id,
                class_id=class_group.id,
                subject_id=subject.id,
                day_of_week=day_of_week,
                start_minute=parse_time_to_minutes(start),
                end_minute=parse_time_to_minutes(end),
                room=room,
            )
        )

    def activity(self, institute, start_date, end_date, *, supervisors=(), students=(), title="Excursion"):
        activity = self._save(
            Activity(institute_id=institute.id, title=title, start_date=start_date, end_date=end_date)
        )
        for teacher in supervisors:
            self.db.add(ActivitySupervisor(activity_id=activity.id, teacher_id=teacher.id))
        for student_id in students:
            self.db.add(ActivityEnrollment(activity_id=activity.id, student_id=student_id))
        self.db.commit()
        return activity


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def seed(db):
    return Seeder(db)


@pytest.fixture()
def file_session_factory(tmp_path):
    # On-disk database: every session gets its own connection.
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'guardduty.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def file_seed(file_session_factory):
    session = file_session_factory()
    try:
        yield Seeder(session)
    finally:
        session.close()


@pytest.fixture()
def settings():
    return get_settings().model_copy()


@pytest.fixture()
def monday():
    # 2024-03-04 is a Monday.
    return dt.date(2024, 3, 4)


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
