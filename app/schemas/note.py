from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.models.note import CollaboratorPermission, NoteCategory

VALID_CATEGORIES = {c.value for c in NoteCategory}
VALID_PERMISSIONS = {p.value for p in CollaboratorPermission}

MindMapLevel = Literal["central", "main", "sub", "leaf"]
MindMapCategory = Literal["concept", "example", "application", "definition"]
MindMapRelationship = Literal["defines", "contains", "leads_to", "example_of", "related_to"]


class CamelModel(BaseModel):
    """Base for API payloads: snake_case in Python, camelCase on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


def parse_tags(value: Any) -> list[str]:
    """Accept a comma-separated string or a list; strip, drop blanks, keep first occurrence."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    tags: list[str] = []
    for tag in value:
        tag = str(tag).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


# ── AI-derived structures ─────────────────────────────────────


class KeyConcept(CamelModel):
    concept: str = Field(min_length=1)
    importance: int = Field(3, ge=1, le=5)
    description: str = ""
    examples: list[str] = []
    prerequisites: list[str] = []
    related_concepts: list[str] = []


class MindMapNode(CamelModel):
    id: str = Field(min_length=1)
    label: str
    description: str = ""
    category: MindMapCategory = "concept"
    level: MindMapLevel
    importance: int = Field(3, ge=1, le=5)


class MindMapEdge(CamelModel):
    source: str
    target: str
    relationship: MindMapRelationship
    description: str = ""


class MindMapLayout(BaseModel):
    central: list[str] = []
    main_branches: list[str] = []
    sub_branches: list[str] = []

    class Config:
        extra = "allow"


class MindMap(BaseModel):
    """Mind map as answered by the model. Styles are attached after validation."""

    nodes: list[MindMapNode]
    edges: list[MindMapEdge] = []
    layout: MindMapLayout = Field(default_factory=MindMapLayout)

    @model_validator(mode="after")
    def check_edges_reference_nodes(self):
        if not self.nodes:
            raise ValueError("mind map has no nodes")
        node_ids = {n.id for n in self.nodes}
        for edge in self.edges:
            if edge.source not in node_ids or edge.target not in node_ids:
                raise ValueError(f"edge {edge.source}->{edge.target} references an unknown node")
        return self


class AIMetadata(CamelModel):
    model: str
    confidence: float
    processing_time: int  # milliseconds


# ── Requests ──────────────────────────────────────────────────


class NoteUpdate(CamelModel):
    """Owner-editable fields. Anything else in the request body is ignored."""
    title: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    is_public: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Title cannot be empty")
        return v.strip() if v is not None else v

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        normalized = v.strip().lower()
        if normalized not in VALID_CATEGORIES:
            raise ValueError(f"Invalid category. Must be one of: {', '.join(sorted(VALID_CATEGORIES))}")
        return normalized

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v):
        return None if v is None else parse_tags(v)


class CollaboratorUpsert(BaseModel):
    email: str
    permissions: str = CollaboratorPermission.READ.value

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        normalized = v.strip().lower()
        if "@" not in normalized or normalized.startswith("@") or normalized.endswith("@"):
            raise ValueError("Invalid email address")
        return normalized

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in VALID_PERMISSIONS:
            raise ValueError(f"Invalid permissions. Must be one of: {', '.join(sorted(VALID_PERMISSIONS))}")
        return normalized


# ── Responses ─────────────────────────────────────────────────


class CollaboratorResponse(CamelModel):
    id: int
    email: str
    permissions: str
    added_at: Optional[datetime] = None


class NoteSummaryResponse(CamelModel):
    """Note as listed: everything except the extracted original content."""
    id: int
    title: str
    summary: str = ""
    key_concepts: list[dict[str, Any]] = []
    mind_map: Optional[dict[str, Any]] = None
    file_type: str
    file_url: Optional[str] = None
    transcription: str = ""
    is_processed: bool
    processing_status: str
    tags: list[str] = []
    category: str
    is_public: bool = False
    collaborators: list[CollaboratorResponse] = []
    ai_metadata: Optional[AIMetadata] = None
    created_at: Optional[datetime] = None
    last_modified: Optional[datetime] = None


class NoteResponse(NoteSummaryResponse):
    original_content: str


class NoteEnvelope(BaseModel):
    success: bool = True
    note: NoteResponse


class NoteListEnvelope(BaseModel):
    success: bool = True
    notes: list[NoteSummaryResponse]


class MessageEnvelope(BaseModel):
    success: bool = True
    message: str
