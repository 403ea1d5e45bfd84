from .user import User, UserCreate, UserUpdate
from .student import Student, StudentCreate, StudentUpdate, StudentGroup, StudentGroupCreate, GroupMembersUpdate
from .template import (
    RecurringSessionTemplate,
    RecurringSessionTemplateCreate,
    RecurringSessionTemplateUpdate,
    GenerateOccurrences,
    GenerateOccurrencesResult,
)
from .occurrence import (
    SessionOccurrence,
    SessionOccurrenceCreate,
    SessionOccurrenceUpdate,
    SessionOccurrenceWithRequest,
    PendingChangeRequestSummary,
    SessionFlag,
)
from .change_request import (
    SessionChangeRequest,
    SessionChangeRequestCreate,
    TutorRescheduleRequestCreate,
    ChangeRequestApprove,
    ChangeRequestReject,
)
from .notification import Notification
from .audit_log import AuditLog
