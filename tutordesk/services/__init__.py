from . import (
    admin,
    audit,
    change_request_service,
    notification_service,
    occurrence_service,
    template_service,
)
__all__ = [
    "admin",
    "audit",
    "change_request_service",
    "notification_service",
    "occurrence_service",
    "template_service",
]
