from app.schemas.note import (
    NoteUpdate,
    NoteResponse,
    NoteSummaryResponse,
    NoteEnvelope,
    NoteListEnvelope,
    CollaboratorUpsert,
    CollaboratorResponse,
    KeyConcept,
    MindMap,
    AIMetadata,
)
from app.schemas.quiz import QuizGenerateRequest, QuizResponse, MoodleExportRequest

__all__ = [
    "NoteUpdate", "NoteResponse", "NoteSummaryResponse", "NoteEnvelope", "NoteListEnvelope",
    "CollaboratorUpsert", "CollaboratorResponse",
    "KeyConcept", "MindMap", "AIMetadata",
    "QuizGenerateRequest", "QuizResponse", "MoodleExportRequest",
]
