"""Tests for domain models."""

import pytest
from pydantic import ValidationError

from knowledge_ingestion.models.chunk import FanOutResult
from knowledge_ingestion.models.document import (
    Document,
    DocumentStatus,
    IngestionRule,
    parse_chunk_record_ids,
)
from knowledge_ingestion.models.retrieval import RetrievalSearchOptions, SearchMode


class TestDocumentStatus:
    """Status values and terminal states."""

    def test_values_match_names(self):
        assert DocumentStatus("TypeDetectionSuccess") is DocumentStatus.TYPE_DETECTION_SUCCESS
        assert DocumentStatus.STORING_EMBEDDINGS.value == "StoringEmbeddings"

    def test_terminal_statuses(self):
        terminal = {s for s in DocumentStatus if s.is_terminal}
        assert terminal == {
            DocumentStatus.COMPLETED,
            DocumentStatus.FAILED,
            DocumentStatus.TYPE_DETECTION_FAILED,
        }


class TestChunkRecordIds:
    """Parsing of stored chunk record ids."""

    def test_json_array(self):
        assert parse_chunk_record_ids('["a", "b"]') == ["a", "b"]

    def test_list_and_none(self):
        assert parse_chunk_record_ids(["a"]) == ["a"]
        assert parse_chunk_record_ids(None) is None
        assert parse_chunk_record_ids("[]") == []

    @pytest.mark.parametrize("value", ["{bad", '{"a": 1}', "[1, 2]", '"a"', 42])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_chunk_record_ids(value)


class TestDocument:
    """Test suite for the Document model."""

    def test_negative_size_is_rejected(self):
        with pytest.raises(ValidationError):
            Document(id="d", tenant_id="t", size_bytes=-1)

    def test_labels_are_decoded(self):
        document = Document(id="d", tenant_id="t", labels='["a"]', tags="plain")
        assert document.labels == ["a"]
        assert document.tags == "plain"

    def test_display_name(self):
        assert Document(id="d", tenant_id="t", name="Name").display_name == "Name"
        assert Document(id="d", tenant_id="t", original_filename="f.pdf").display_name == "f.pdf"
        assert Document(id="d", tenant_id="t").display_name == "d"


class TestIngestionRule:
    """Test suite for the IngestionRule model."""

    def test_summarization_requires_completion_endpoint(self):
        assert IngestionRule(id="r").summarization_enabled is False
        assert IngestionRule(id="r", summarization={"order": "TopDown"}).summarization_enabled is False
        assert IngestionRule(id="r", summarization={"completion_endpoint_id": "c"}).summarization_enabled

    def test_config_blocks_decode_from_json(self):
        rule = IngestionRule(id="r", chunking='{"strategy": "Paragraph"}', embedding="  ")
        assert rule.chunking == {"strategy": "Paragraph"}
        assert rule.embedding is None

    def test_max_parallel_tasks(self):
        assert IngestionRule(id="r").max_parallel_tasks is None
        assert IngestionRule(id="r", summarization={"max_parallel_tasks": "6"}).max_parallel_tasks == 6


class TestRetrievalSearchOptions:
    """Search option defaults and bounds."""

    def test_defaults(self):
        options = RetrievalSearchOptions()
        assert options.search_mode == SearchMode.VECTOR
        assert options.text_weight == 0.3
        assert options.full_text_search_type.value == "TsRank"
        assert options.full_text_language == "english"
        assert options.full_text_normalization == 32
        assert options.full_text_minimum_score is None
        assert options.include_neighbors == 0

    def test_mode_flags(self):
        assert RetrievalSearchOptions(search_mode=SearchMode.HYBRID).uses_vector
        assert RetrievalSearchOptions(search_mode=SearchMode.HYBRID).uses_full_text
        assert not RetrievalSearchOptions(search_mode=SearchMode.FULL_TEXT).uses_vector

    @pytest.mark.parametrize(
        "field,value",
        [("text_weight", 1.5), ("text_weight", -0.1), ("include_neighbors", -1), ("full_text_language", "")],
    )
    def test_bounds(self, field, value):
        with pytest.raises(ValidationError):
            RetrievalSearchOptions(**{field: value})


def test_fan_out_result_failed_count():
    assert FanOutResult(stored_count=3, total_count=5).failed_count == 2
