"""
Workflow runs: catalog fetch, optional deep scan, matching and ranking.

Every run returns its own RunResult with exactly one terminal status:
completed, cancelled or failed. Nothing is accumulated between runs except
through a CatalogCache the caller passes in explicitly.
"""

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence

from .cancel import CancelToken, RunCancelled
from .client import SightMapClient, TransportError
from .enrichment import (
    DEFAULT_BATCH_SIZE,
    collect_asset_references,
    collect_unit_references,
    enrich_with_references,
)
from .logger import get_logger
from .matcher import match_records
from .models import CandidateEntity, InputRecord
from .ranking import rank_by_proximity, rank_by_tier
from .scoring import Profile

logger = get_logger()

GLOBAL_SCOPE = "global"

# Workflows whose cancelled runs keep the rows scanned so far.
RAW_SCAN_WORKFLOWS = {"unit-refs", "asset-refs"}

# on_progress(stage, done, total); total is None while the catalog size is unknown.
StageProgress = Callable[[str, int, Optional[int]], None]


class RunStatus:
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class RunResult:
    workflow: str
    status: str
    results: list = field(default_factory=list)
    catalog_size: int = 0
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def cancelled(self) -> bool:
        return self.status == RunStatus.CANCELLED

    @property
    def failed(self) -> bool:
        return self.status == RunStatus.FAILED

    @property
    def matched_count(self) -> int:
        return sum(1 for r in self.results if getattr(r, "candidate", None) is not None)

    def summary(self) -> str:
        if self.failed:
            return f"Error: {self.error}"
        if self.cancelled:
            return "Cancelled. Results are incomplete."
        return f"Complete. {len(self.results)} results."


class CatalogCache:
    """Catalog fetched earlier in the session, keyed by account or global scope."""

    def __init__(self):
        self._catalogs: Dict[str, List[CandidateEntity]] = {}

    def get(self, scope: str) -> Optional[List[CandidateEntity]]:
        return self._catalogs.get(scope)

    def put(self, scope: str, candidates: List[CandidateEntity]) -> None:
        self._catalogs[scope] = candidates

    def clear(self) -> None:
        self._catalogs.clear()

    def __contains__(self, scope: str) -> bool:
        return scope in self._catalogs


def load_catalog(
    client: SightMapClient,
    account_id: Optional[str] = None,
    cache: Optional[CatalogCache] = None,
    token: Optional[CancelToken] = None,
    on_progress: Optional[StageProgress] = None,
) -> List[CandidateEntity]:
    scope = account_id or GLOBAL_SCOPE
    if cache is not None:
        cached = cache.get(scope)
        if cached is not None:
            logger.info("Using cached asset catalog", scope=scope, assets=len(cached))
            return cached

    def _on_page(loaded: int, total: Optional[int]) -> None:
        if on_progress:
            on_progress("catalog", loaded, total)

    candidates = client.fetch_assets(account_id, token=token, on_page=_on_page)
    if cache is not None:
        cache.put(scope, candidates)
    return candidates


def _finish(workflow: str, body: Callable[[RunResult], None]) -> RunResult:
    run = RunResult(workflow=workflow, status=RunStatus.COMPLETED)
    try:
        body(run)
    except RunCancelled as e:
        run.status = RunStatus.CANCELLED
        partial = getattr(e, "partial", None)
        # Matching never runs on a partial scan; only raw scan output survives.
        run.results = list(partial) if workflow in RAW_SCAN_WORKFLOWS and partial else []
        logger.warning("Run cancelled", workflow=workflow, completed=e.completed, total=e.total)
    except TransportError as e:
        run.status = RunStatus.FAILED
        run.results = []
        run.error = str(e)
        logger.error("Run failed", workflow=workflow, error=str(e), status=e.status)
    logger.record_run(workflow, run.status)
    return run


def run_reference_match(
    client: SightMapClient,
    records: Sequence[InputRecord],
    account_id: Optional[str] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    token: Optional[CancelToken] = None,
    cache: Optional[CatalogCache] = None,
    on_progress: Optional[StageProgress] = None,
) -> RunResult:
    """Deep scan every catalog asset for reference codes, then match.

    Exact code hits score 1.0; otherwise the name alone is scored, capped
    below an exact hit.
    """
    token = token or CancelToken()

    def body(run: RunResult) -> None:
        # Cached entities are shared across runs; each deep scan fills its own copies.
        candidates = [
            replace(c, references=[]) for c in load_catalog(client, account_id, cache, token, on_progress)
        ]
        run.catalog_size = len(candidates)

        def _on_batch(done: int, total: int) -> None:
            if on_progress:
                on_progress("enrich", done, total)

        enrich_with_references(candidates, client.fetch_references, batch_size, token, _on_batch)
        results = match_records(records, candidates, Profile.REFERENCE)
        run.results = rank_by_proximity(results)

    return _finish("ref-match", body)


def run_name_search(
    client: SightMapClient,
    records: Sequence[InputRecord],
    account_id: str,
    token: Optional[CancelToken] = None,
    cache: Optional[CatalogCache] = None,
    on_progress: Optional[StageProgress] = None,
) -> RunResult:
    """Match name/city/state rows against one account's catalog."""

    def body(run: RunResult) -> None:
        candidates = load_catalog(client, account_id, cache, token, on_progress)
        run.catalog_size = len(candidates)
        run.results = rank_by_tier(match_records(records, candidates, Profile.LOCATION))

    return _finish("search", body)


def run_global_search(
    client: SightMapClient,
    records: Sequence[InputRecord],
    token: Optional[CancelToken] = None,
    cache: Optional[CatalogCache] = None,
    on_progress: Optional[StageProgress] = None,
) -> RunResult:
    """Match rows against the global catalog, using street addresses when given."""

    def body(run: RunResult) -> None:
        candidates = load_catalog(client, None, cache, token, on_progress)
        run.catalog_size = len(candidates)
        run.results = rank_by_proximity(match_records(records, candidates, Profile.AUTO))

    return _finish("global-search", body)


def run_unit_references(
    client: SightMapClient,
    asset_ids: Sequence[str],
    batch_size: int = DEFAULT_BATCH_SIZE,
    token: Optional[CancelToken] = None,
    on_progress: Optional[StageProgress] = None,
) -> RunResult:
    """Collect unit-level references (group, then group detail) for each asset."""

    def body(run: RunResult) -> None:
        def _on_batch(done: int, total: int) -> None:
            if on_progress:
                on_progress("enrich", done, total)

        run.catalog_size = len(asset_ids)
        run.results = collect_unit_references(asset_ids, client, batch_size, token, _on_batch)

    return _finish("unit-refs", body)


def run_asset_references(
    client: SightMapClient,
    asset_ids: Sequence[str],
    batch_size: int = DEFAULT_BATCH_SIZE,
    token: Optional[CancelToken] = None,
    on_progress: Optional[StageProgress] = None,
) -> RunResult:
    """List every asset-level reference of each listed asset."""

    def body(run: RunResult) -> None:
        def _on_batch(done: int, total: int) -> None:
            if on_progress:
                on_progress("enrich", done, total)

        run.catalog_size = len(asset_ids)
        run.results = collect_asset_references(asset_ids, client.fetch_references, batch_size, token, _on_batch)

    return _finish("asset-refs", body)


def _contains(haystack: str, needle: Optional[str]) -> bool:
    return not needle or needle.lower() in haystack.lower()


def filter_assets(
    candidates: Sequence[CandidateEntity],
    city: Optional[str] = None,
    state: Optional[str] = None,
    tag: Optional[str] = None,
) -> List[CandidateEntity]:
    """Keep assets whose city, state and any tag contain the given text.

    Matching is a case-insensitive substring test; a blank filter keeps everything.
    """
    return [
        c
        for c in candidates
        if _contains(c.city, city)
        and _contains(c.state, state)
        and (not tag or any(_contains(t, tag) for t in c.tags))
    ]


def run_asset_list(
    client: SightMapClient,
    account_id: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    tag: Optional[str] = None,
    token: Optional[CancelToken] = None,
    cache: Optional[CatalogCache] = None,
    on_progress: Optional[StageProgress] = None,
) -> RunResult:
    """List the catalog of one account (or the global one), filtered.

    ``catalog_size`` keeps the unfiltered count.
    """

    def body(run: RunResult) -> None:
        candidates = load_catalog(client, account_id, cache, token, on_progress)
        run.catalog_size = len(candidates)
        run.results = filter_assets(candidates, city, state, tag)
        logger.info("Assets listed", shown=len(run.results), total=run.catalog_size)

    return _finish("assets", body)
