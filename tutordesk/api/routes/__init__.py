from . import (
    auth,
    users,
    students,
    recurring_sessions,
    occurrences,
    change_requests,
    notifications,
    audit_logs,
    misc,
)

__all__ = [
    "auth",
    "users",
    "students",
    "recurring_sessions",
    "occurrences",
    "change_requests",
    "notifications",
    "audit_logs",
    "misc",
]
