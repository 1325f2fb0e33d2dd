from guardduty.models.activity import Activity, ActivityEnrollment, ActivitySupervisor  # noqa: F401
from guardduty.models.audit_log import AuditLog  # noqa: F401
from guardduty.models.class_group import ClassGroup, StudentClassEnrollment  # noqa: F401
from guardduty.models.guard_duty import AssignmentReason, GuardDuty, GuardDutyStatus  # noqa: F401
from guardduty.models.institute import Institute  # noqa: F401
from guardduty.models.notification import Notification, NotificationAudience, NotificationEvent  # noqa: F401
from guardduty.models.schedule_slot import ScheduleSlot  # noqa: F401
from guardduty.models.subject import Subject  # noqa: F401
from guardduty.models.teacher import Teacher  # noqa: F401
