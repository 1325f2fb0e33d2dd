from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from guardduty.core.config import get_settings
from guardduty.db.session import SessionLocal
from guardduty.services.guard_automation import GuardAutomationService
from guardduty.services.schedule import ScheduleService


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    return ScheduleService(db)


def get_guard_automation_service(db: Session = Depends(get_db)) -> GuardAutomationService:
    return GuardAutomationService(db, settings=get_settings())
