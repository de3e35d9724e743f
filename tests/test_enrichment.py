import json
import time

import pytest

from app.models.note import InvalidStatusTransition, Note
from app.services.enrichment import (
    DecodeError,
    EnrichmentOrchestrator,
    StageStatus,
    decode_key_concepts,
    decode_mind_map,
    decode_summary,
    strip_json_fences,
)
from conftest import ScriptedClient


class TestDecoders:
    def test_summary_is_kept_verbatim(self):
        raw = "# Title\n\nSome **markdown**"
        assert decode_summary(raw) == raw

    def test_strip_json_fences(self):
        assert strip_json_fences('```json\n[{"a": 1}]\n```') == '[{"a": 1}]'
        assert strip_json_fences("```\n{}\n```  ") == "{}"
        assert strip_json_fences("[1]") == "[1]"

    def test_key_concepts_defaults_and_aliases(self):
        concepts = decode_key_concepts('[{"concept": "Osmosis", "relatedConcepts": ["Diffusion"]}]')
        assert concepts == [{
            "concept": "Osmosis",
            "importance": 3,
            "description": "",
            "examples": [],
            "prerequisites": [],
            "relatedConcepts": ["Diffusion"],
        }]

    def test_key_concepts_rejects_non_json(self):
        with pytest.raises(DecodeError):
            decode_key_concepts("Osmosis, diffusion")

    def test_key_concepts_rejects_out_of_range_importance(self):
        with pytest.raises(DecodeError):
            decode_key_concepts('[{"concept": "Osmosis", "importance": 9}]')

    def test_key_concepts_rejects_object(self):
        with pytest.raises(DecodeError):
            decode_key_concepts('{"concept": "Osmosis"}')

    def test_mind_map_requires_nodes(self):
        with pytest.raises(DecodeError):
            decode_mind_map('{"nodes": [], "edges": []}')

    def test_mind_map_rejects_unknown_relationship(self):
        raw = json.dumps({
            "nodes": [{"id": "a", "label": "A", "level": "central"}, {"id": "b", "label": "B", "level": "main"}],
            "edges": [{"source": "a", "target": "b", "relationship": "loves"}],
        })
        with pytest.raises(DecodeError):
            decode_mind_map(raw)

    def test_mind_map_keeps_extra_layout_keys(self):
        raw = json.dumps({
            "nodes": [{"id": "a", "label": "A", "level": "central"}],
            "layout": {"central": ["a"], "radial": True},
        })
        mind_map = decode_mind_map(raw)
        assert mind_map["layout"]["radial"] is True
        assert mind_map["layout"]["direction"] == "vertical"
        assert mind_map["nodes"][0]["category"] == "concept"


class TestStatusTransitions:
    def test_completed_note_cannot_regress(self):
        note = Note(title="t", original_content="", file_type="txt", processing_status="processing")
        note.processing_status = "completed"
        with pytest.raises(InvalidStatusTransition):
            note.processing_status = "processing"
        with pytest.raises(InvalidStatusTransition):
            note.processing_status = "failed"

    def test_failed_is_terminal(self):
        note = Note(title="t", original_content="", file_type="txt", processing_status="processing")
        note.processing_status = "failed"
        with pytest.raises(InvalidStatusTransition):
            note.processing_status = "completed"

    def test_processing_cannot_go_back_to_pending(self):
        note = Note(title="t", original_content="", file_type="txt", processing_status="processing")
        with pytest.raises(InvalidStatusTransition):
            note.processing_status = "pending"

    def test_file_type_is_immutable(self):
        note = Note(title="t", original_content="", file_type="txt")
        with pytest.raises(ValueError):
            note.file_type = "pdf"

    def test_key_concepts_refresh_search_index(self):
        note = Note(title="t", original_content="", file_type="txt")
        note.set_key_concepts([{"concept": "Entropy"}, {"concept": "Enthalpy"}])
        assert note.concept_index == "Entropy\nEnthalpy"


class TestOrchestrator:
    def _note(self, db_session, make_user, email):
        user = make_user(email)
        note = Note(
            user_id=user.id, title="t", original_content="Enzymes speed up reactions.",
            file_type="txt", processing_status="processing",
        )
        db_session.add(note)
        db_session.commit()
        db_session.refresh(note)
        return note

    def test_stages_run_in_order_and_complete(self, db_session, make_user):
        note = self._note(db_session, make_user, "orchestrator@test.com")
        client = ScriptedClient("Summary text", '[{"concept": "Enzyme"}]', None)
        orchestrator = EnrichmentOrchestrator(db_session, client)

        orchestrator.run(note, note.original_content, time.monotonic())

        assert [r.stage for r in orchestrator.results] == ["summary", "key_concepts", "mind_map"]
        assert [r.status for r in orchestrator.results] == [
            StageStatus.OK, StageStatus.OK, StageStatus.UNAVAILABLE,
        ]
        assert "Create a comprehensive" in client.prompts[0]
        assert note.summary == "Summary text"
        assert note.key_concepts[0]["concept"] == "Enzyme"
        assert note.concept_index == "Enzyme"
        assert note.mind_map is None
        assert note.processing_status == "completed"
        assert note.is_processed is True
        assert note.ai_metadata["model"] == "test-model"
        assert set(note.ai_metadata) == {"model", "confidence", "processingTime"}

    def test_parse_failure_is_recorded_and_skipped(self, db_session, make_user):
        note = self._note(db_session, make_user, "orchestrator_parse@test.com")
        client = ScriptedClient("Summary", "not json", "also not json")
        orchestrator = EnrichmentOrchestrator(db_session, client)

        orchestrator.run(note, note.original_content, time.monotonic())

        assert orchestrator.results[1].status == StageStatus.PARSE_FAILED
        assert orchestrator.results[1].error
        assert note.key_concepts == []
        assert note.processing_status == "completed"
