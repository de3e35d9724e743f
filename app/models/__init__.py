from app.models.user import User
from app.models.note import (
    Note,
    NoteCollaborator,
    FileType,
    NoteCategory,
    ProcessingStatus,
    CollaboratorPermission,
    InvalidStatusTransition,
)
from app.models.audit_log import AuditLog, AuditAction

__all__ = [
    "User",
    "Note",
    "NoteCollaborator",
    "FileType",
    "NoteCategory",
    "ProcessingStatus",
    "CollaboratorPermission",
    "InvalidStatusTransition",
    "AuditLog",
    "AuditAction",
]
