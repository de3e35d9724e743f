import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func

from app.db.database import Base


class FileType(str, enum.Enum):
    TXT = "txt"
    PDF = "pdf"
    DOCX = "docx"
    PPT = "ppt"
    PPTX = "pptx"
    JPG = "jpg"
    JPEG = "jpeg"
    PNG = "png"
    MP3 = "mp3"
    MP4 = "mp4"
    WAV = "wav"


AUDIO_FILE_TYPES = {FileType.MP3, FileType.MP4, FileType.WAV}


class NoteCategory(str, enum.Enum):
    LECTURE = "lecture"
    ASSIGNMENT = "assignment"
    STUDY = "study"
    RESEARCH = "research"
    OTHER = "other"


class ProcessingStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_STATUS_RANK = {
    ProcessingStatus.PENDING.value: 0,
    ProcessingStatus.PROCESSING.value: 1,
    ProcessingStatus.COMPLETED.value: 2,
    ProcessingStatus.FAILED.value: 2,
}


class CollaboratorPermission(str, enum.Enum):
    READ = "read"
    WRITE = "write"
    ADMIN = "admin"


class InvalidStatusTransition(ValueError):
    """Raised when processing_status would move backwards or leave a terminal state."""


class Note(Base):
    __tablename__ = "notes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    title = Column(String(255), nullable=False)
    original_content = Column(Text, nullable=False)
    summary = Column(Text, nullable=False, default="")
    transcription = Column(Text, nullable=False, default="")

    # AI-derived structures, stored as JSON documents
    key_concepts = Column(JSON, nullable=False, default=list)
    mind_map = Column(JSON, nullable=True)
    concept_index = Column(Text, nullable=False, default="")  # concept names, for search

    # Store enums as strings for cross-DB compatibility (SQLite/PostgreSQL)
    file_type = Column(String(10), nullable=False)
    file_url = Column(String(1000), nullable=True)
    category = Column(String(20), nullable=False, default=NoteCategory.OTHER.value)
    tags = Column(JSON, nullable=False, default=list)
    is_public = Column(Boolean, nullable=False, default=False)

    is_processed = Column(Boolean, nullable=False, default=False)
    processing_status = Column(String(20), nullable=False, default=ProcessingStatus.PENDING.value)
    ai_metadata = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    last_modified = Column(DateTime(timezone=True), server_default=func.now())

    owner = relationship("User", backref="notes")
    collaborators = relationship(
        "NoteCollaborator",
        back_populates="note",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="NoteCollaborator.id",
    )

    __table_args__ = (
        Index("ix_notes_user_created", "user_id", "created_at"),
        Index("ix_notes_user_category", "user_id", "category"),
    )

    @validates("file_type")
    def _validate_file_type(self, key, value):
        value = FileType(value).value
        if self.file_type is not None and self.file_type != value:
            raise ValueError("file_type cannot be changed after creation")
        return value

    @validates("processing_status")
    def _validate_processing_status(self, key, value):
        value = ProcessingStatus(value).value
        current = self.processing_status
        if current is None or current == value:
            return value
        if _STATUS_RANK[current] == 2:
            raise InvalidStatusTransition(f"Note is already {current}")
        if _STATUS_RANK[value] < _STATUS_RANK[current]:
            raise InvalidStatusTransition(f"Cannot move from {current} back to {value}")
        return value

    @validates("category")
    def _validate_category(self, key, value):
        return NoteCategory(value).value

    def set_key_concepts(self, concepts: list[dict]) -> None:
        """Replace key concepts and refresh the search index column."""
        self.key_concepts = list(concepts)
        self.concept_index = "\n".join(c.get("concept", "") for c in concepts)


class NoteCollaborator(Base):
    __tablename__ = "note_collaborators"

    id = Column(Integer, primary_key=True, index=True)
    note_id = Column(Integer, ForeignKey("notes.id", ondelete="CASCADE"), nullable=False)
    email = Column(String(255), nullable=False)
    permissions = Column(String(10), nullable=False, default=CollaboratorPermission.READ.value)
    added_at = Column(DateTime(timezone=True), server_default=func.now())

    note = relationship("Note", back_populates="collaborators")

    __table_args__ = (
        UniqueConstraint("note_id", "email", name="uq_note_collaborator_email"),
    )
