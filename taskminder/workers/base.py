"""Base worker abstraction for polling background jobs.

A worker polls the database for due items and processes each one in its
own transaction:
1. fetch_pending() - Get due items (up to batch_size)
2. mark_processing() - Claim the item so a second pass skips it
3. process_item() - Do the actual work
4. mark_completed() or mark_failed() - Record the final status
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlmodel import Session

logger = logging.getLogger(__name__)


class WorkerStatus(str, Enum):
    """Status of a worker run."""

    SUCCESS = "success"
    PARTIAL = "partial"  # Some items processed, some failed
    FAILED = "failed"
    NO_WORK = "no_work"


@dataclass
class WorkerResult:
    """Result of a worker processing cycle.

    Attributes:
        status: Overall status of the worker run
        processed_count: Number of items successfully processed
        failed_count: Number of items that failed
        duration_ms: Time taken for the processing cycle
        errors: List of error details for failed items
    """

    status: WorkerStatus
    processed_count: int = 0
    failed_count: int = 0
    duration_ms: float = 0.0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "status": self.status.value,
            "processed_count": self.processed_count,
            "failed_count": self.failed_count,
            "duration_ms": self.duration_ms,
            "errors": self.errors,
        }


# Generic type for work items
T = TypeVar("T")


class WorkerBase(ABC, Generic[T]):
    """Abstract base class for polling workers.

    Subclasses must implement all abstract methods.
    """

    def __init__(self, batch_size: int = 50) -> None:
        """Initialize the worker.

        Args:
            batch_size: Maximum items to process per cycle
        """
        self.batch_size = batch_size
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def worker_name(self) -> str:
        """Return the worker name for logging."""

    @abstractmethod
    def fetch_pending(self, session: Session, now: datetime) -> list[T]:
        """Fetch items that are due as of ``now``."""

    @abstractmethod
    def mark_processing(self, session: Session, item: T) -> bool:
        """Claim an item; return False if it is no longer eligible."""

    @abstractmethod
    def process_item(self, session: Session, item: T, now: datetime) -> None:
        """Process a single item.

        Raises:
            Exception: If processing fails
        """

    @abstractmethod
    def mark_completed(self, session: Session, item: T, now: datetime) -> None:
        """Record successful completion."""

    @abstractmethod
    def mark_failed(self, session: Session, item: T, error: str, now: datetime) -> None:
        """Record failure."""

    @abstractmethod
    def get_item_id(self, item: T) -> UUID:
        """Get the unique identifier for an item."""

    def run(self, session: Session, now: datetime | None = None) -> WorkerResult:
        """Execute one processing cycle.

        Args:
            session: Database session
            now: Reference time for due checks (default: now)

        Returns:
            WorkerResult with processing statistics
        """
        start_time = datetime.utcnow()
        now = now or start_time
        processed = 0
        failed = 0
        errors: list[dict[str, Any]] = []

        self._logger.info(
            f"[{self.worker_name}] Starting processing cycle",
            extra={"batch_size": self.batch_size},
        )

        try:
            items = self.fetch_pending(session, now)

            if not items:
                self._logger.debug(f"[{self.worker_name}] No pending items")
                return WorkerResult(
                    status=WorkerStatus.NO_WORK,
                    duration_ms=self._elapsed_ms(start_time),
                )

            self._logger.info(
                f"[{self.worker_name}] Found {len(items)} items to process"
            )

            for item in items:
                item_id = self.get_item_id(item)

                try:
                    if not self.mark_processing(session, item):
                        self._logger.debug(
                            f"[{self.worker_name}] Item {item_id} already claimed"
                        )
                        continue

                    self.process_item(session, item, now)
                    self.mark_completed(session, item, now)
                    session.commit()

                    processed += 1
                    self._logger.info(
                        f"[{self.worker_name}] Processed item {item_id}",
                        extra={"item_id": str(item_id)},
                    )

                except Exception as e:
                    session.rollback()
                    failed += 1
                    error_msg = str(e)[:500]

                    self.mark_failed(session, item, error_msg, now)
                    session.commit()

                    errors.append({"item_id": str(item_id), "error": error_msg})

                    self._logger.error(
                        f"[{self.worker_name}] Failed to process item {item_id}",
                        extra={"item_id": str(item_id), "error": error_msg},
                        exc_info=True,
                    )

        except Exception as e:
            self._logger.error(
                f"[{self.worker_name}] Worker cycle failed",
                extra={"error": str(e)},
                exc_info=True,
            )
            return WorkerResult(
                status=WorkerStatus.FAILED,
                duration_ms=self._elapsed_ms(start_time),
                errors=[{"error": str(e)}],
            )

        if failed == 0 and processed > 0:
            status = WorkerStatus.SUCCESS
        elif processed > 0 and failed > 0:
            status = WorkerStatus.PARTIAL
        elif failed > 0:
            status = WorkerStatus.FAILED
        else:
            status = WorkerStatus.NO_WORK

        result = WorkerResult(
            status=status,
            processed_count=processed,
            failed_count=failed,
            duration_ms=self._elapsed_ms(start_time),
            errors=errors,
        )

        self._logger.info(
            f"[{self.worker_name}] Cycle complete",
            extra=result.to_dict(),
        )

        return result

    def _elapsed_ms(self, start: datetime) -> float:
        """Calculate elapsed time in milliseconds."""
        return (datetime.utcnow() - start).total_seconds() * 1000
