"""
Enrichment pipeline: turns extracted text into a summary, key concepts and a
mind map through three independent AI calls.

Each stage builds a prompt, calls the generative client, decodes the answer
into a tagged ``StageResult`` and, only when decoding succeeded, applies the
value to the note. Execution (prompt + call + decode) touches no database
state, so results could be gathered in any order before being applied.
"""
import enum
import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from app.core.logging_config import get_logger
from app.models.note import Note, ProcessingStatus
from app.schemas.note import AIMetadata, KeyConcept, MindMap
from app.services.ai_service import (
    GenerativeClient,
    build_key_concepts_prompt,
    build_mind_map_prompt,
    build_summary_prompt,
)

logger = get_logger(__name__)

MIND_MAP_STYLES = {
    "central": {
        "backgroundColor": "#3a8dff",
        "textColor": "#ffffff",
        "borderColor": "#2970ff",
        "fontSize": "20px",
    },
    "main": {
        "backgroundColor": "#a182ff",
        "textColor": "#ffffff",
        "borderColor": "#8b5cf6",
        "fontSize": "18px",
    },
    "sub": {
        "backgroundColor": "#f8fafc",
        "textColor": "#1e293b",
        "borderColor": "#e2e8f0",
        "fontSize": "16px",
    },
    "leaf": {
        "backgroundColor": "#ffffff",
        "textColor": "#475569",
        "borderColor": "#cbd5e1",
        "fontSize": "14px",
    },
}

MIND_MAP_LAYOUT_HINTS = {
    "spacing": {"vertical": 40, "horizontal": 60},
    "direction": "vertical",
}

_key_concepts_adapter = TypeAdapter(list[KeyConcept])


class StageStatus(str, enum.Enum):
    OK = "ok"
    UNAVAILABLE = "unavailable"  # AI returned nothing
    PARSE_FAILED = "parse_failed"


@dataclass
class StageResult:
    stage: str
    status: StageStatus
    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == StageStatus.OK


class DecodeError(ValueError):
    pass


@dataclass
class EnrichmentStage:
    name: str
    build_prompt: Callable[[str], str]
    decode: Callable[[str], Any]  # raises DecodeError
    apply: Callable[[Note, Any], None]

    def execute(self, client: GenerativeClient, text: str) -> StageResult:
        raw = client.generate(self.build_prompt(text))
        if raw is None:
            return StageResult(self.name, StageStatus.UNAVAILABLE)
        try:
            return StageResult(self.name, StageStatus.OK, value=self.decode(raw))
        except DecodeError as e:
            return StageResult(self.name, StageStatus.PARSE_FAILED, error=str(e))


def strip_json_fences(text: str) -> str:
    """Strip markdown code fences (```json ... ```) from AI responses."""
    stripped = re.sub(r"^```(?:json)?\s*\n?", "", text.strip())
    stripped = re.sub(r"\n?```\s*$", "", stripped)
    return stripped.strip()


def _load_json(raw: str) -> Any:
    try:
        return json.loads(strip_json_fences(raw))
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON: {e}")


def decode_summary(raw: str) -> str:
    # Stored verbatim, whatever structure the model chose
    return raw


def decode_key_concepts(raw: str) -> list[dict]:
    data = _load_json(raw)
    try:
        concepts = _key_concepts_adapter.validate_python(data)
    except ValidationError as e:
        raise DecodeError(f"key concepts failed validation: {e.error_count()} errors")
    return [c.model_dump(by_alias=True) for c in concepts]


def decode_mind_map(raw: str) -> dict:
    data = _load_json(raw)
    try:
        mind_map = MindMap.model_validate(data)
    except ValidationError as e:
        raise DecodeError(f"mind map failed validation: {e.error_count()} errors")

    result = mind_map.model_dump(by_alias=True)
    result["styles"] = {level: dict(style) for level, style in MIND_MAP_STYLES.items()}
    result["layout"] = {
        **result["layout"],
        "spacing": dict(MIND_MAP_LAYOUT_HINTS["spacing"]),
        "direction": MIND_MAP_LAYOUT_HINTS["direction"],
    }
    return result


def _apply_summary(note: Note, value: str) -> None:
    note.summary = value


def _apply_key_concepts(note: Note, value: list[dict]) -> None:
    note.set_key_concepts(value)


def _apply_mind_map(note: Note, value: dict) -> None:
    note.mind_map = value


DEFAULT_STAGES = (
    EnrichmentStage("summary", build_summary_prompt, decode_summary, _apply_summary),
    EnrichmentStage("key_concepts", build_key_concepts_prompt, decode_key_concepts, _apply_key_concepts),
    EnrichmentStage("mind_map", build_mind_map_prompt, decode_mind_map, _apply_mind_map),
)


@dataclass
class EnrichmentOrchestrator:
    """Runs the enrichment stages one after another against the same text."""

    db: Session
    client: GenerativeClient
    stages: tuple[EnrichmentStage, ...] = DEFAULT_STAGES
    results: list[StageResult] = field(default_factory=list)

    def run(self, note: Note, text: str, started_at: float) -> Note:
        """
        Enrich a note in ``processing`` state and mark it completed.

        Args:
            note: Persisted note to update
            text: Extracted text the prompts are built from
            started_at: ``time.monotonic()`` taken when the note was created

        Unexpected exceptions propagate; the caller owns failure handling.
        """
        for stage in self.stages:
            result = stage.execute(self.client, text)
            self.results.append(result)

            if result.ok:
                stage.apply(note, result.value)
                self.db.commit()
                logger.info(f"Enrichment stage done | note={note.id} | stage={stage.name}")
            elif result.status == StageStatus.PARSE_FAILED:
                logger.warning(
                    f"Enrichment stage unparseable, keeping previous value | note={note.id} | "
                    f"stage={stage.name} | error={result.error}"
                )
            else:
                logger.warning(f"Enrichment unavailable | note={note.id} | stage={stage.name}")

        duration_ms = int((time.monotonic() - started_at) * 1000)
        note.ai_metadata = AIMetadata(
            model=self.client.model,
            confidence=self.client.confidence,
            processing_time=duration_ms,
        ).model_dump(by_alias=True)
        note.is_processed = True
        note.processing_status = ProcessingStatus.COMPLETED.value
        self.db.commit()
        self.db.refresh(note)

        logger.info(
            f"Note enrichment completed | note={note.id} | duration={duration_ms}ms | "
            f"stages={','.join(f'{r.stage}:{r.status.value}' for r in self.results)}"
        )
        return note
