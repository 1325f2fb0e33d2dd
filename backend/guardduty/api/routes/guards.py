from datetime import date

from fastapi import APIRouter, Depends, Query

from guardduty.api.deps import get_guard_automation_service
from guardduty.models.guard_duty import GuardDutyStatus
from guardduty.schemas.guard import GuardAssignmentSummaryOut, GuardConfigOut, GuardDutyOut, GuardStatsOut
from guardduty.services.guard_automation import GuardAutomationService

router = APIRouter()


@router.post("/guard-automation/activities/{activity_id}/assign", response_model=GuardAssignmentSummaryOut)
def assign_guards_for_activity(
    activity_id: str,
    service: GuardAutomationService = Depends(get_guard_automation_service),
) -> GuardAssignmentSummaryOut:
    return GuardAssignmentSummaryOut(**service.assign_for_activity(activity_id))


@router.get("/guard-automation/config", response_model=GuardConfigOut)
def guard_automation_config(
    service: GuardAutomationService = Depends(get_guard_automation_service),
) -> GuardConfigOut:
    return GuardConfigOut(**service.config())


@router.get("/institutes/{institute_id}/guard-duties", response_model=list[GuardDutyOut])
def list_guard_duties(
    institute_id: str,
    status: GuardDutyStatus | None = Query(default=None),
    teacher_id: str | None = Query(default=None),
    service: GuardAutomationService = Depends(get_guard_automation_service),
) -> list[GuardDutyOut]:
    duties = service.list_guard_duties(institute_id, status=status, teacher_id=teacher_id)
    return [GuardDutyOut.from_duty(item) for item in duties]


@router.get("/institutes/{institute_id}/guard-duties/stats", response_model=GuardStatsOut)
def guard_duty_stats(
    institute_id: str,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    service: GuardAutomationService = Depends(get_guard_automation_service),
) -> GuardStatsOut:
    return GuardStatsOut(**service.guard_stats(institute_id, start_date=start_date, end_date=end_date))
