"""
Inventory Scan Orchestration

Runs the resource scanners concurrently and folds their results into a single
snapshot. A failing scanner becomes a `ScanFailure` for its own kind; the
other kinds are unaffected.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import structlog

# Ensure plugins are registered
import app.modules.inventory.adapters.aws.plugins  # noqa: F401
from app.modules.inventory.domain.plugin import ResourceScanner
from app.modules.inventory.domain.registry import registry
from app.schemas.inventory import InventorySnapshot, ResourceKind, ScanFailure
from app.shared.adapters.aws_utils import AWSClientProvider

logger = structlog.get_logger()

ScanOutcome = Tuple[ResourceKind, Union[List, ScanFailure]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScanOrchestrator:
    def __init__(
        self,
        provider: AWSClientProvider,
        scanners: Optional[Sequence[ResourceScanner]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.provider = provider
        plugins = list(scanners) if scanners is not None else registry.get_plugins()
        self.scanners: Dict[ResourceKind, ResourceScanner] = {p.kind: p for p in plugins}
        self._clock = clock

    async def scan(self, kinds: Optional[Iterable[ResourceKind]] = None) -> InventorySnapshot:
        """
        Scan the requested kinds (all registered kinds by default).
        The snapshot timestamp is taken before any scanner starts.
        """
        captured_at = self._clock()
        selected = list(dict.fromkeys(kinds)) if kinds is not None else list(self.scanners)
        missing = [k.value for k in selected if k not in self.scanners]
        if missing:
            raise ValueError(f"No scanner configured for: {', '.join(missing)}")

        start = time.perf_counter()
        outcomes = await asyncio.gather(
            *(self._run(self.scanners[kind]) for kind in selected)
        )

        records = {}
        failures = {}
        for kind, outcome in outcomes:
            if isinstance(outcome, ScanFailure):
                failures[kind] = outcome
            else:
                records[kind] = outcome

        logger.info(
            "inventory_scan_complete",
            kinds=[k.value for k in selected],
            failed=[k.value for k in failures],
            duration_seconds=round(time.perf_counter() - start, 3),
        )
        return InventorySnapshot(captured_at=captured_at, records=records, failures=failures)

    async def scan_all(self) -> InventorySnapshot:
        return await self.scan()

    async def _run(self, scanner: ResourceScanner) -> ScanOutcome:
        try:
            return scanner.kind, await scanner.scan(self.provider)
        except Exception as e:
            logger.error("scanner_failed", kind=scanner.kind.value, error=str(e))
            return scanner.kind, ScanFailure(
                kind=scanner.kind,
                error=str(e),
                code=getattr(e, "code", "scan_failed"),
            )
