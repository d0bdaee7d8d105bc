"""
Batch processing of multiple source files.

Each file runs the synchronous pipeline in a worker thread; a semaphore caps
concurrency and one file's failure never stops the others.
"""
import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import structlog

from ledgermap.config import get_settings
from ledgermap.engine.orchestrator import PipelineResult, process_file
from ledgermap.exceptions import LedgerMapError

logger = structlog.get_logger(__name__)


@dataclass
class BatchItem:
    """Outcome for one file of a batch."""

    file: str
    status: str  # success, failed
    result: Optional[PipelineResult] = None
    error: Optional[Dict[str, Any]] = None


@dataclass
class BatchResult:
    """Result of a batch run."""

    batch_id: uuid.UUID
    total_files: int
    items: List[BatchItem] = field(default_factory=list)
    processing_time_ms: float = 0.0
    completed_at: Optional[datetime] = None

    @property
    def successful(self) -> int:
        return sum(1 for i in self.items if i.status == "success")

    @property
    def failed(self) -> int:
        return sum(1 for i in self.items if i.status == "failed")


class BatchProcessor:
    """
    Processes several files concurrently.

    Features:
    - Configurable concurrency
    - Error isolation per file
    - Results returned in input order
    """

    def __init__(
        self,
        max_concurrency: Optional[int] = None,
        process: Callable[..., PipelineResult] = process_file,
    ):
        """
        Initialize batch processor.

        Args:
            max_concurrency: Files processed at once; defaults to settings.
            process: Single-file pipeline function.
        """
        self._max_concurrency = max_concurrency or get_settings().batch_concurrency
        self._process = process

    async def process(self, files: List[Path], **kwargs: Any) -> BatchResult:
        """
        Process files concurrently.

        Args:
            files: File paths.
            **kwargs: Passed to the single-file pipeline for every file.

        Returns:
            BatchResult with one item per file, in input order.
        """
        start_time = time.time()
        batch = BatchResult(batch_id=uuid.uuid4(), total_files=len(files))
        semaphore = asyncio.Semaphore(self._max_concurrency)
        loop = asyncio.get_running_loop()

        logger.info("Batch started", batch_id=str(batch.batch_id), file_count=len(files))

        async def run_one(file_path: Path) -> BatchItem:
            async with semaphore:
                try:
                    result = await loop.run_in_executor(
                        None,
                        lambda: self._process(file_path, **kwargs),
                    )
                    return BatchItem(file=str(file_path), status="success", result=result)
                except LedgerMapError as e:
                    logger.warning("Batch file failed", file=str(file_path), error_code=e.error_code, error=e.message)
                    return BatchItem(file=str(file_path), status="failed", error=e.to_dict())
                except Exception as e:
                    logger.exception("Batch file crashed", file=str(file_path))
                    return BatchItem(
                        file=str(file_path),
                        status="failed",
                        error={"error": True, "error_code": "LGM-000", "message": str(e), "details": {}},
                    )

        batch.items = list(await asyncio.gather(*(run_one(Path(f)) for f in files)))
        batch.completed_at = datetime.now(timezone.utc)
        batch.processing_time_ms = (time.time() - start_time) * 1000

        logger.info(
            "Batch completed",
            batch_id=str(batch.batch_id),
            successful=batch.successful,
            failed=batch.failed,
            time_ms=round(batch.processing_time_ms, 2),
        )
        return batch

    def process_sync(self, files: List[Path], **kwargs: Any) -> BatchResult:
        """Run ``process`` on a fresh event loop."""
        return asyncio.run(self.process(files, **kwargs))
