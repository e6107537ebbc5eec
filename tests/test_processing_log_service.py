"""Tests for per-document processing logs."""

import os
import time

import pytest

from knowledge_ingestion.config import ProcessingLogSettings
from knowledge_ingestion.services.processing_log_service import ProcessingLogService


@pytest.fixture
def processing_log(tmp_path):
    return ProcessingLogService(ProcessingLogSettings(directory=str(tmp_path), retention_days=1))


class TestProcessingLogService:
    """Test suite for ProcessingLogService."""

    @pytest.mark.asyncio
    async def test_lines_are_appended_with_level(self, processing_log, tmp_path):
        await processing_log.info("doc-1", "first", tenant_id="tenant-1")
        await processing_log.warn("doc-1", "second", tenant_id="tenant-1")
        await processing_log.error("doc-1", "third", tenant_id="tenant-1")

        path = tmp_path / "tenant-1" / "doc-1.log"
        lines = path.read_text().splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("[") and lines[0].endswith("[INFO] first")
        assert lines[1].endswith("[WARN] second")
        assert lines[2].endswith("[ERROR] third")

    @pytest.mark.asyncio
    async def test_get_log(self, processing_log):
        await processing_log.info("doc-1", "hello", tenant_id="tenant-1")

        assert "hello" in await processing_log.get_log("doc-1", "tenant-1")
        assert await processing_log.get_log("doc-2", "tenant-1") is None

    @pytest.mark.asyncio
    async def test_get_log_falls_back_to_flat_path(self, processing_log, tmp_path):
        (tmp_path / "doc-1.log").write_text("legacy line\n")

        assert await processing_log.get_log("doc-1", "tenant-1") == "legacy line\n"

    @pytest.mark.asyncio
    async def test_path_components_are_sanitized(self, processing_log, tmp_path):
        await processing_log.info("../escape", "x", tenant_id="a/b")

        assert (tmp_path / "a_b" / ".._escape.log").exists()

    @pytest.mark.asyncio
    async def test_step_timing(self, processing_log):
        started = await processing_log.step_start("doc-1", "Chunking", tenant_id="tenant-1")
        await processing_log.step_complete("doc-1", "Chunking", started, "3 chunks", tenant_id="tenant-1")

        lines = (await processing_log.get_log("doc-1", "tenant-1")).splitlines()
        assert lines[0].endswith("Chunking started")
        assert "Chunking completed in " in lines[1]
        assert lines[1].endswith("ms: 3 chunks")

    @pytest.mark.asyncio
    async def test_disabled_writes_nothing(self, tmp_path):
        service = ProcessingLogService(
            ProcessingLogSettings(enabled=False, directory=str(tmp_path / "logs"))
        )

        await service.info("doc-1", "ignored")

        assert not (tmp_path / "logs").exists()

    @pytest.mark.asyncio
    async def test_cleanup_old_logs(self, processing_log, tmp_path):
        await processing_log.info("old", "x", tenant_id="tenant-1")
        await processing_log.info("new", "x", tenant_id="tenant-1")
        old_path = tmp_path / "tenant-1" / "old.log"
        two_days_ago = time.time() - 2 * 86400
        os.utime(old_path, (two_days_ago, two_days_ago))

        deleted = await processing_log.cleanup_old_logs()

        assert deleted == 1
        assert not old_path.exists()
        assert (tmp_path / "tenant-1" / "new.log").exists()
