"""Per-document processing log files."""

import asyncio
import os
import re
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from knowledge_ingestion.config import ProcessingLogSettings, get_settings
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("processing_log_service")

_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _safe_name(value: str) -> str:
    return _UNSAFE_PATH_CHARS.sub("_", value)


class ProcessingLogService:
    """
    Append-only log of pipeline events for each document.

    Lines are written as ``[<iso timestamp>] [<LEVEL>] <message>`` to
    ``<directory>/<tenant_id>/<document_id>.log``. Failures to write or read
    are logged and never propagate into the pipeline.
    """

    def __init__(self, log_settings: Optional[ProcessingLogSettings] = None):
        self._settings = log_settings or get_settings().processing_log
        self._directory = Path(self._settings.directory)
        if self._settings.enabled:
            self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    def _log_path(self, document_id: str, tenant_id: Optional[str] = None) -> Path:
        if tenant_id:
            return self._directory / _safe_name(tenant_id) / f"{_safe_name(document_id)}.log"
        return self._directory / f"{_safe_name(document_id)}.log"

    def _append(self, path: Path, line: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(line)

    async def log(
        self,
        document_id: str,
        level: str,
        message: str,
        tenant_id: Optional[str] = None,
    ) -> None:
        """Append one line to the document's processing log."""
        if not self.enabled or not document_id:
            return

        timestamp = datetime.now(timezone.utc).isoformat()
        line = f"[{timestamp}] [{level.upper()}] {message}\n"
        path = self._log_path(document_id, tenant_id)
        try:
            await asyncio.to_thread(self._append, path, line)
        except OSError as e:
            logger.warning(f"Failed to write processing log for {document_id}: {e}")

    async def info(self, document_id: str, message: str, tenant_id: Optional[str] = None) -> None:
        await self.log(document_id, "INFO", message, tenant_id)

    async def warn(self, document_id: str, message: str, tenant_id: Optional[str] = None) -> None:
        await self.log(document_id, "WARN", message, tenant_id)

    async def error(self, document_id: str, message: str, tenant_id: Optional[str] = None) -> None:
        await self.log(document_id, "ERROR", message, tenant_id)

    async def step_start(
        self, document_id: str, step_name: str, tenant_id: Optional[str] = None
    ) -> float:
        """Log the start of a step and return its start time for step_complete."""
        await self.log(document_id, "INFO", f"{step_name} started", tenant_id)
        return time.perf_counter()

    async def step_complete(
        self,
        document_id: str,
        step_name: str,
        started_at: Optional[float],
        result: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> None:
        if started_at is not None:
            elapsed = f"{(time.perf_counter() - started_at) * 1000:.2f}ms"
        else:
            elapsed = "unknown"
        message = f"{step_name} completed in {elapsed}"
        if result:
            message += f": {result}"
        await self.log(document_id, "INFO", message, tenant_id)

    def _read(self, document_id: str, tenant_id: Optional[str]) -> Optional[str]:
        path = self._log_path(document_id, tenant_id)
        # Logs written before tenant namespacing live at the flat path
        if not path.exists() and tenant_id:
            flat_path = self._log_path(document_id)
            if flat_path.exists():
                path = flat_path
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    async def get_log(self, document_id: str, tenant_id: Optional[str] = None) -> Optional[str]:
        """Return the full log text, or None if no log exists."""
        if not document_id:
            return None
        try:
            return await asyncio.to_thread(self._read, document_id, tenant_id)
        except OSError as e:
            logger.warning(f"Failed to read processing log for {document_id}: {e}")
            return None

    def _cleanup(self) -> int:
        if not self._directory.exists():
            return 0
        cutoff = (
            datetime.now(timezone.utc) - timedelta(days=self._settings.retention_days)
        ).timestamp()
        deleted = 0
        for path in self._directory.rglob("*.log"):
            if os.path.getmtime(path) < cutoff:
                path.unlink()
                deleted += 1
        return deleted

    async def cleanup_old_logs(self) -> int:
        """Delete log files older than the retention period; returns the number removed."""
        try:
            deleted = await asyncio.to_thread(self._cleanup)
        except OSError as e:
            logger.warning(f"Error during processing log cleanup: {e}")
            return 0
        if deleted:
            logger.info(f"Cleaned up {deleted} old processing log files")
        return deleted
