from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_content_extractor, get_current_user, get_generative_client
from app.core.config import settings
from app.core.exceptions import ApiError, BadRequestError
from app.core.logging_config import get_logger
from app.core.rate_limit import limiter
from app.db.database import get_db
from app.domains.notes.services import NoteService, save_upload
from app.models.audit_log import AuditAction
from app.models.user import User
from app.schemas.note import (
    VALID_CATEGORIES,
    CollaboratorUpsert,
    MessageEnvelope,
    NoteEnvelope,
    NoteListEnvelope,
    NoteResponse,
    NoteSummaryResponse,
    NoteUpdate,
    parse_tags,
)
from app.services.ai_service import GenerativeClient
from app.services.audit_service import log_action
from app.services.file_processor import (
    ContentExtractor,
    FileProcessingError,
    declared_file_type,
    is_supported,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/notes", tags=["Notes"])


def _envelope(note) -> NoteEnvelope:
    return NoteEnvelope(note=NoteResponse.model_validate(note))


@router.post("/upload", response_model=NoteEnvelope)
@limiter.limit(settings.upload_rate_limit)
def upload_note(
    request: Request,
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    category: str = Form("other"),
    tags: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    extractor: ContentExtractor = Depends(get_content_extractor),
    client: GenerativeClient = Depends(get_generative_client),
):
    """
    Upload study material and turn it into an enriched note.

    The file is stored, its text extracted by type, then summary, key
    concepts and mind map are generated one after another. The response
    carries the note in its final state (completed, or failed).
    """
    filename = file.filename or ""
    file_type = declared_file_type(filename)
    if not is_supported(file_type):
        raise BadRequestError(f"Unsupported file type: {file_type or '(none)'}")

    category = (category or "other").strip().lower()
    if category not in VALID_CATEGORIES:
        raise BadRequestError(f"Invalid category. Must be one of: {', '.join(sorted(VALID_CATEGORIES))}")

    data = file.file.read()
    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    if len(data) > max_bytes:
        raise ApiError(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            f"File size exceeds maximum allowed size of {settings.max_upload_size_mb} MB",
        )

    file_path = save_upload(extractor.config.upload_dir, filename, data)
    service = NoteService(db)
    try:
        note = service.process_upload(
            current_user,
            file_path=file_path,
            file_type=file_type,
            title=(title or "").strip() or filename,
            category=category,
            tags=parse_tags(tags),
            extractor=extractor,
            client=client,
        )
    except FileProcessingError as e:
        logger.error(f"Upload extraction failed | file={filename} | error={e}")
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Failed to process file: {e}")
    except Exception as e:
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Failed to process note: {e}") from e

    log_action(
        db,
        user_id=current_user.id,
        action=AuditAction.CREATE,
        resource_type="note",
        resource_id=note.id,
        details={"file_type": file_type, "status": note.processing_status},
        request=request,
    )
    db.commit()
    return _envelope(note)


@router.get("", response_model=NoteListEnvelope)
def list_notes(
    category: Optional[str] = Query(None, description="Filter by category"),
    tags: Optional[str] = Query(None, description="Comma-separated tags; matches any"),
    search: Optional[str] = Query(None, description="Text search"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List the current user's notes, newest first. Original content is omitted."""
    notes = NoteService(db).list_notes(
        current_user,
        category=category,
        tags=parse_tags(tags) or None,
        search=search,
    )
    return NoteListEnvelope(notes=[NoteSummaryResponse.model_validate(n) for n in notes])


@router.get("/{note_id}", response_model=NoteEnvelope)
def get_note(
    note_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _envelope(NoteService(db).get_note(note_id, current_user))


@router.put("/{note_id}", response_model=NoteEnvelope)
def update_note(
    note_id: int,
    data: NoteUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update title, category, tags or visibility. Other fields are ignored."""
    note = NoteService(db).update_note(note_id, current_user, data)
    log_action(
        db,
        user_id=current_user.id,
        action=AuditAction.UPDATE,
        resource_type="note",
        resource_id=note.id,
        details={"fields": sorted(data.model_dump(exclude_unset=True, exclude_none=True))},
        request=request,
    )
    db.commit()
    return _envelope(note)


@router.delete("/{note_id}", response_model=MessageEnvelope)
def delete_note(
    note_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete a note and its uploaded file."""
    NoteService(db).delete_note(note_id, current_user)
    log_action(
        db,
        user_id=current_user.id,
        action=AuditAction.DELETE,
        resource_type="note",
        resource_id=note_id,
        request=request,
    )
    db.commit()
    return MessageEnvelope(message="Note deleted successfully")


@router.post("/{note_id}/collaborators", response_model=NoteEnvelope)
def upsert_collaborator(
    note_id: int,
    data: CollaboratorUpsert,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Add a collaborator, or update the permissions of an existing one (matched by email)."""
    note = NoteService(db).upsert_collaborator(note_id, current_user, data.email, data.permissions)
    log_action(
        db,
        user_id=current_user.id,
        action=AuditAction.SHARE,
        resource_type="note",
        resource_id=note_id,
        details={"email": data.email, "permissions": data.permissions},
        request=request,
    )
    db.commit()
    return _envelope(note)


@router.delete("/{note_id}/collaborators/{collaborator_id}", response_model=NoteEnvelope)
def remove_collaborator(
    note_id: int,
    collaborator_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    note = NoteService(db).remove_collaborator(note_id, current_user, collaborator_id)
    log_action(
        db,
        user_id=current_user.id,
        action=AuditAction.UNSHARE,
        resource_type="note",
        resource_id=note_id,
        details={"collaborator_id": collaborator_id},
        request=request,
    )
    db.commit()
    return _envelope(note)
