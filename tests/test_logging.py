"""Tests for logging utilities."""

import json
import logging

from knowledge_ingestion.utils.logging import (
    ContextFilter,
    JSONFormatter,
    StandardFormatter,
    document_id_var,
    get_logger,
    request_id_var,
)


def make_record(message="hello", **extra):
    record = logging.LogRecord("knowledge_ingestion.test", logging.INFO, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_get_logger_namespace():
    assert get_logger("ingestion_service").name == "knowledge_ingestion.ingestion_service"
    assert get_logger().name == "knowledge_ingestion"


def test_context_filter_stamps_ids():
    request_token = request_id_var.set("req-1")
    document_token = document_id_var.set("doc-1")
    try:
        record = make_record()
        assert ContextFilter().filter(record) is True
    finally:
        request_id_var.reset(request_token)
        document_id_var.reset(document_token)

    assert record.request_id == "req-1"
    assert record.document_id == "doc-1"


def test_json_formatter():
    record = make_record(extra_fields={"path": "/x"}, request_id="req-1", document_id="doc-1")

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "hello"
    assert data["level"] == "INFO"
    assert data["request_id"] == "req-1"
    assert data["document_id"] == "doc-1"
    assert data["path"] == "/x"


def test_json_formatter_includes_extra_attributes():
    data = json.loads(JSONFormatter().format(make_record(chunk_count=3)))

    assert data["chunk_count"] == 3
    assert "request_id" not in data


def test_standard_formatter_defaults():
    line = StandardFormatter().format(make_record())

    assert "[N/A] [-] - hello" in line
