from .user import User, UserRole
from .student import Student, StudentGroup, student_group_members
from .recurring_template import RecurringSessionTemplate, ClassType
from .session_occurrence import SessionOccurrence, OccurrenceStatus, OccurrenceSource
from .change_request import (
    SessionChangeRequest,
    ChangeRequestStatus,
    ChangeRequestType,
    RequesterType,
)
from .notification import Notification, NotificationType
from .audit_log import AuditLog
