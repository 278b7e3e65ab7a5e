"""
Recurring arrears reclassification.

A background task sweeps every open debt once per interval and writes back
any change in day count or tier. Each debt is handled on its own; a failing
record is reported and the sweep carries on.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from collections_service.core.clock import Clock
from collections_service.core.logging import correlation_context, log_business_event, performance_timing
from collections_service.models.domain import Debt
from collections_service.services.classifier import classify
from collections_service.services.store import CollectionsStore

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class SweepFailure:
    debt_id: str
    error: str


@dataclass
class SweepReport:
    """Outcome of one reclassification sweep."""
    reference_date: date
    examined: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failures: List[SweepFailure] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference_date": self.reference_date.isoformat(),
            "examined": self.examined,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "failures": [{"debt_id": f.debt_id, "error": f.error} for f in self.failures],
        }


class ReclassificationScheduler:
    """Runs the reclassification sweep now and on a fixed interval."""

    def __init__(
        self,
        store: CollectionsStore,
        clock: Clock,
        interval_seconds: float = 24 * 3600,
        concurrency: int = 10,
        run_on_startup: bool = True,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Args:
            store: Store holding the debts
            clock: Source of the reference date
            interval_seconds: Pause between sweeps
            concurrency: Maximum debts processed at once
            run_on_startup: Sweep immediately when started instead of after one interval
            sleep: Awaitable used to wait between sweeps
        """
        self.store = store
        self.clock = clock
        self.interval_seconds = interval_seconds
        self.concurrency = concurrency
        self.run_on_startup = run_on_startup
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.last_report: Optional[SweepReport] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> SweepReport:
        """
        Reclassify every open debt as of the clock's current date.

        Returns:
            SweepReport with counts and per-debt failures
        """
        reference_date = self.clock.today()
        report = SweepReport(reference_date=reference_date)

        with performance_timing("reclassification_sweep", reference_date=reference_date.isoformat()):
            debts = await self.store.list_open_debts()
            semaphore = asyncio.Semaphore(self.concurrency)
            await asyncio.gather(
                *(self._reclassify(debt, reference_date, report, semaphore) for debt in debts)
            )

        self.last_report = report
        logger.info(
            "Reclassification sweep completed",
            reference_date=reference_date.isoformat(),
            examined=report.examined,
            updated=report.updated,
            unchanged=report.unchanged,
            skipped=report.skipped,
            failed=len(report.failures),
        )
        return report

    async def _reclassify(
        self,
        debt: Debt,
        reference_date: date,
        report: SweepReport,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            report.examined += 1
            with correlation_context(debt_id=debt.id):
                try:
                    result = classify(debt.due_date, reference_date, debt.tier, debt.days_in_arrears)
                    if result.days_in_arrears == debt.days_in_arrears and result.tier == debt.tier:
                        report.unchanged += 1
                        return
                    written = await self.store.apply_classification(
                        debt.id, result.days_in_arrears, result.tier
                    )
                except Exception as e:
                    logger.error(
                        "Failed to reclassify debt",
                        debt_id=debt.id,
                        error=str(e),
                        exc_info=True,
                    )
                    report.failures.append(SweepFailure(debt_id=debt.id, error=str(e)))
                    return

                if not written:
                    # Paid or cancelled since the sweep read it
                    report.skipped += 1
                    return

                report.updated += 1
                if result.tier != debt.tier:
                    log_business_event(
                        "debt_reclassified",
                        debt_id=debt.id,
                        previous_tier=debt.tier.value,
                        tier=result.tier.value,
                        days_in_arrears=result.days_in_arrears,
                    )

    async def start(self) -> None:
        """Start the background sweep task."""
        if self.is_running:
            logger.warning("Reclassification scheduler already running")
            return

        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "Reclassification scheduler started",
            interval_seconds=self.interval_seconds,
            concurrency=self.concurrency,
        )

    async def stop(self) -> None:
        """Cancel the background sweep task and wait for it to finish."""
        if self.is_running:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Reclassification scheduler stopped")
        self._task = None

    async def _run_loop(self) -> None:
        logger.info("Starting reclassification loop")
        first = True

        while True:
            try:
                if not (first and self.run_on_startup):
                    await self._sleep(self.interval_seconds)
                first = False
                await self.run_once()

            except asyncio.CancelledError:
                logger.info("Reclassification loop cancelled")
                raise
            except Exception as e:
                logger.error(
                    "Error in reclassification loop",
                    error=str(e),
                    exc_info=True,
                )
