"""
Deep-Scan Enrichment Orchestrator.

Responsibilities:
- Fetch per-asset sub-resources in fixed-size batches, each batch's
  requests in flight together.
- Isolate per-asset transport failures (empty result, logged, run continues).
- Honour a run's CancelToken before every batch and every request.
- Report monotonic "completed / total" progress after each batch.

Non-Responsibilities:
- No matching or scoring.
- No retries; a failed asset stays empty.

Invariant:
Batch N+1 is never started before every member of batch N has settled.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

from .cancel import CancelToken, RunCancelled
from .client import TransportError
from .logger import get_logger
from .models import AssetReference, CandidateEntity, ReferenceTag, UnitReference

logger = get_logger()

DEFAULT_BATCH_SIZE = 5
POLL_INTERVAL = 0.05

T = TypeVar("T")
ProgressCallback = Callable[[int, int], None]


class EnrichmentCancelled(RunCancelled):
    """Cancelled mid-scan. ``partial`` holds what was gathered so far."""

    def __init__(self, completed: int, total: int, partial=None):
        super().__init__(f"Enrichment cancelled after {completed}/{total} assets", completed, total)
        self.partial = partial


def run_batches(
    items: Sequence[T],
    work: Callable[[T], None],
    batch_size: int = DEFAULT_BATCH_SIZE,
    token: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> int:
    """Run ``work`` over ``items`` batch by batch; returns the number completed.

    ``work`` must handle its own per-item failures. Anything it raises is a
    bug and propagates.

    Raises:
        EnrichmentCancelled: When the token fires; requests still in flight
            are abandoned, not awaited.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    total = len(items)
    completed = 0
    executor = ThreadPoolExecutor(max_workers=batch_size, thread_name_prefix="assetmatch-scan")
    try:
        for start in range(0, total, batch_size):
            if token is not None and token.cancelled:
                raise EnrichmentCancelled(completed, total)

            batch = items[start:start + batch_size]
            futures = [executor.submit(work, item) for item in batch]
            pending = set(futures)
            while pending:
                if token is None:
                    _, pending = wait(pending)
                    break
                _, pending = wait(pending, timeout=POLL_INTERVAL)
                if pending and token.cancelled:
                    raise EnrichmentCancelled(completed, total)
            for future in futures:
                future.result()

            completed += len(batch)
            logger.debug("Batch settled", completed=completed, total=total)
            if on_progress:
                on_progress(completed, total)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    return completed




class ResultGate:
    """Serializes worker writes against the end of a run.

    A write is dropped once the token has fired or the gate is closed. The
    orchestrator closes the gate when it surfaces a cancellation, so nothing
    lands in the run's output after that point.
    """

    def __init__(self, token: Optional[CancelToken] = None):
        self._lock = threading.Lock()
        self._token = token
        self._closed = False

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def store(self, write: Callable[[], None]) -> bool:
        with self._lock:
            if self._closed or (self._token is not None and self._token.cancelled):
                return False
            write()
            return True


def enrich_with_references(
    candidates: List[CandidateEntity],
    fetch_references: Callable[[str], Iterable[ReferenceTag]],
    batch_size: int = DEFAULT_BATCH_SIZE,
    token: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[CandidateEntity]:
    """Attach each candidate's reference tags in place and return the same list.

    A candidate whose fetch raises TransportError ends up with an empty
    reference list. Any other exception propagates.
    """
    gate = ResultGate(token)

    def _enrich(candidate: CandidateEntity) -> None:
        if token is not None and token.cancelled:
            return
        try:
            tags = list(fetch_references(candidate.id))
        except TransportError as e:
            logger.record_reference_fetch(False)
            logger.warning("Reference fetch failed", asset_id=candidate.id, error=str(e), status=e.status)
            tags = []
        else:
            logger.record_reference_fetch(True)
        gate.store(lambda: setattr(candidate, "references", tags))

    logger.info("Deep scan started", assets=len(candidates), batch_size=batch_size)
    try:
        run_batches(candidates, _enrich, batch_size, token, on_progress)
    except EnrichmentCancelled as e:
        gate.close()
        logger.warning("Deep scan cancelled", completed=e.completed, total=e.total)
        e.partial = candidates
        raise
    logger.info("Deep scan complete", assets=len(candidates))
    return candidates


def _collect_in_order(
    asset_ids: Sequence[str],
    fetch_one: Callable[[str], List[T]],
    scan: str,
    batch_size: int,
    token: Optional[CancelToken],
    on_progress: Optional[ProgressCallback],
) -> List[T]:
    """Run ``fetch_one`` per asset and flatten the lists in asset-id order."""
    collected: List[Optional[List[T]]] = [None] * len(asset_ids)
    gate = ResultGate(token)

    def _collect(indexed) -> None:
        index, asset_id = indexed
        if token is not None and token.cancelled:
            return
        rows = fetch_one(asset_id)
        gate.store(lambda: collected.__setitem__(index, rows))

    def _flatten() -> List[T]:
        return [row for rows in collected if rows for row in rows]

    logger.info(f"{scan} started", assets=len(asset_ids), batch_size=batch_size)
    try:
        run_batches(list(enumerate(asset_ids)), _collect, batch_size, token, on_progress)
    except EnrichmentCancelled as e:
        gate.close()
        logger.warning(f"{scan} cancelled", completed=e.completed, total=e.total)
        e.partial = _flatten()
        raise
    rows = _flatten()
    logger.info(f"{scan} complete", assets=len(asset_ids), rows=len(rows))
    return rows


def collect_asset_references(
    asset_ids: Sequence[str],
    fetch_references: Callable[[str], Iterable[ReferenceTag]],
    batch_size: int = DEFAULT_BATCH_SIZE,
    token: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[AssetReference]:
    """Every reference of every listed asset, in asset-id order.

    An asset the service does not know (404) simply has no references.
    """

    def _references(asset_id: str) -> List[AssetReference]:
        try:
            tags = list(fetch_references(asset_id))
        except TransportError as e:
            logger.record_reference_fetch(False)
            if e.status == 404:
                logger.debug("Asset has no references", asset_id=asset_id)
            else:
                logger.warning("Reference fetch failed", asset_id=asset_id, error=str(e), status=e.status)
            return []
        logger.record_reference_fetch(True)
        return [AssetReference.of(asset_id, tag) for tag in tags]

    return _collect_in_order(asset_ids, _references, "Asset reference scan", batch_size, token, on_progress)


def collect_unit_references(
    asset_ids: Sequence[str],
    client,
    batch_size: int = DEFAULT_BATCH_SIZE,
    token: Optional[CancelToken] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[UnitReference]:
    """Group discovery then per-group detail fetches for every asset.

    ``client`` needs ``fetch_reference_groups(asset_id)`` and
    ``fetch_group_references(asset_id, group)``. Results come back in
    asset-id order regardless of completion order. An asset counts as a
    successful fetch only when discovery and every group detail succeeded.
    """

    def _unit_references(asset_id: str) -> List[UnitReference]:
        try:
            groups = client.fetch_reference_groups(asset_id)
        except TransportError as e:
            logger.record_reference_fetch(False)
            logger.warning("Reference group fetch failed", asset_id=asset_id, error=str(e), status=e.status)
            return []

        refs: List[UnitReference] = []
        failed = False
        for group in groups:
            if token is not None and token.cancelled:
                return refs
            try:
                refs.extend(client.fetch_group_references(asset_id, group))
            except TransportError as e:
                failed = True
                logger.warning(
                    "Unit reference fetch failed",
                    asset_id=asset_id,
                    group_id=group.get("id"),
                    error=str(e),
                )
        logger.record_reference_fetch(not failed)
        return refs

    return _collect_in_order(asset_ids, _unit_references, "Unit reference scan", batch_size, token, on_progress)
