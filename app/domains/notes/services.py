"""Notes domain service - note lifecycle, queries and collaborators."""

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.core.logging_config import get_logger
from app.models.note import AUDIO_FILE_TYPES, FileType, Note, NoteCollaborator, ProcessingStatus
from app.models.user import User
from app.schemas.note import NoteUpdate
from app.services.ai_service import GenerativeClient
from app.services.enrichment import EnrichmentOrchestrator
from app.services.file_processor import ContentExtractor, transcoded_path

logger = get_logger(__name__)

# Fields an owner may change through update_note
UPDATABLE_FIELDS = ("title", "category", "tags", "is_public")


def save_upload(upload_dir: Path, filename: str, data: bytes) -> Path:
    """Persist an upload as ``<epoch ms><original extension>`` under upload_dir.

    The stamp is unique across extensions, since transcoding writes a
    ``<stamp>.wav`` sibling next to audio and video uploads.
    """
    upload_dir.mkdir(parents=True, exist_ok=True)
    ext = Path(filename or "").suffix.lower()
    stamp = int(time.time() * 1000)
    while any(upload_dir.glob(f"{stamp}.*")) or (upload_dir / str(stamp)).exists():
        stamp += 1
    path = upload_dir / f"{stamp}{ext}"
    path.write_bytes(data)
    logger.debug(f"Stored upload {filename} as {path}")
    return path


def remove_file(path: Optional[str | Path]) -> bool:
    if not path:
        return False
    path = Path(path)
    if not path.is_file():
        return False
    path.unlink()
    logger.debug(f"Removed file {path}")
    return True


class NoteService:
    """Service for note records. Every lookup is scoped to the owning user."""

    def __init__(self, db: Session):
        self.db = db

    # ── Processing ────────────────────────────────────────────

    def create_note(
        self,
        user: User,
        *,
        title: str,
        file_type: str,
        file_url: str,
        content: str,
        category: str,
        tags: list[str],
    ) -> Note:
        """Create the note for a freshly extracted upload, in ``processing`` state."""
        note = Note(
            user_id=user.id,
            title=title,
            file_type=file_type,
            file_url=file_url,
            original_content=content,
            transcription=content if FileType(file_type) in AUDIO_FILE_TYPES else "",
            category=category,
            tags=tags,
            processing_status=ProcessingStatus.PROCESSING.value,
        )
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        logger.info(f"Note created | note={note.id} | user={user.id} | type={file_type}")
        return note

    def process_upload(
        self,
        user: User,
        *,
        file_path: Path,
        file_type: str,
        title: str,
        category: str,
        tags: list[str],
        extractor: ContentExtractor,
        client: GenerativeClient,
    ) -> Note:
        """
        Extract text from a stored upload, create its note and enrich it.

        Any error raised before the note exists removes the stored upload
        (and its transcoded copy) and propagates. Once the note exists, any
        unexpected error marks it failed before re-raising.
        """
        try:
            content = extractor.extract(file_path, file_type)
            note = self.create_note(
                user,
                title=title,
                file_type=file_type,
                file_url=str(file_path),
                content=content,
                category=category,
                tags=tags,
            )
        except Exception:
            logger.warning(f"Discarding upload without a note | file={Path(file_path).name}")
            remove_file(file_path)
            remove_file(transcoded_path(file_path, file_type))
            raise

        note_id = note.id
        started_at = time.monotonic()
        try:
            return EnrichmentOrchestrator(self.db, client).run(note, content, started_at)
        except Exception:
            logger.exception(f"Enrichment failed | note={note_id}")
            self.mark_failed(note_id)
            raise

    def mark_failed(self, note_id: int) -> None:
        """Move a note to the terminal failed state, keeping whatever was already stored."""
        self.db.rollback()
        note = self.db.get(Note, note_id)
        if note is None or note.processing_status == ProcessingStatus.COMPLETED.value:
            return
        note.processing_status = ProcessingStatus.FAILED.value
        self.db.commit()

    # ── Queries ───────────────────────────────────────────────

    def list_notes(
        self,
        user: User,
        category: Optional[str] = None,
        tags: Optional[list[str]] = None,
        search: Optional[str] = None,
    ) -> list[Note]:
        """Owner's notes, newest first.

        Args:
            category: exact category match
            tags: keep notes carrying at least one of these tags
            search: case-insensitive substring over title, content, summary,
                    transcription and key-concept names
        """
        query = self.db.query(Note).filter(Note.user_id == user.id)
        if category:
            query = query.filter(Note.category == category.strip().lower())
        if search and search.strip():
            term = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    Note.title.ilike(term),
                    Note.original_content.ilike(term),
                    Note.summary.ilike(term),
                    Note.transcription.ilike(term),
                    Note.concept_index.ilike(term),
                )
            )
        notes = query.order_by(Note.created_at.desc(), Note.id.desc()).all()

        # Tags are a JSON list, so the intersection is applied here for portability
        if tags:
            wanted = set(tags)
            notes = [n for n in notes if wanted.intersection(n.tags or [])]
        return notes

    def get_note(self, note_id: int, user: User) -> Note:
        note = self.db.query(Note).filter(Note.id == note_id, Note.user_id == user.id).first()
        if not note:
            raise NotFoundError("Note not found")
        return note

    # ── Owner updates ─────────────────────────────────────────

    def update_note(self, note_id: int, user: User, data: NoteUpdate) -> Note:
        note = self.get_note(note_id, user)
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        for field_name in UPDATABLE_FIELDS:
            if field_name in update_data:
                setattr(note, field_name, update_data[field_name])
        note.last_modified = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(note)
        logger.info(f"Note updated | note={note.id} | fields={sorted(update_data)}")
        return note

    def delete_note(self, note_id: int, user: User) -> None:
        """Delete the note together with its upload and any transcoded copy."""
        note = self.get_note(note_id, user)
        if note.file_url:
            remove_file(note.file_url)
            remove_file(transcoded_path(note.file_url, note.file_type))
        self.db.delete(note)
        self.db.commit()
        logger.info(f"Note deleted | note={note_id} | user={user.id}")

    def upsert_collaborator(self, note_id: int, user: User, email: str, permissions: str) -> Note:
        """Add a collaborator, or change the permissions of the existing entry for that email."""
        note = self.get_note(note_id, user)
        existing = next((c for c in note.collaborators if c.email == email), None)
        if existing:
            existing.permissions = permissions
        else:
            note.collaborators.append(NoteCollaborator(email=email, permissions=permissions))
        self.db.commit()
        self.db.refresh(note)
        return note

    def remove_collaborator(self, note_id: int, user: User, collaborator_id: int) -> Note:
        note = self.get_note(note_id, user)
        note.collaborators = [c for c in note.collaborators if c.id != collaborator_id]
        self.db.commit()
        self.db.refresh(note)
        return note
