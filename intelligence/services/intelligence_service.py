import time
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from intelligence.core.config import CacheConfig
from intelligence.core.types import IntelligenceReport, IntelligenceResponse, OrchestrationOptions
from intelligence.orchestration.intelligence_orchestrator import IntelligenceOrchestrator
from intelligence.validation.structural_validator import StructuralValidator

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_PARTIAL_CONTENT = 206


@dataclass
class _CacheEntry:
    report: IntelligenceReport
    expires_at: float


class IntelligenceService:
    """
    Request-level entry point: caching, status mapping and data-quality gating.

    Reports are cached per (workspace, brand, domain, options) for
    `CacheConfig.ttl_seconds`. `refresh=True` skips the cache read but stores
    the fresh report. A response with structural errors is still returned,
    with status 206 instead of 200.
    """

    def __init__(
        self,
        orchestrator: IntelligenceOrchestrator,
        validator: Optional[StructuralValidator] = None,
        cache_config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.orchestrator = orchestrator
        self.validator = validator or orchestrator.validator
        self.ttl_seconds = (cache_config or CacheConfig()).ttl_seconds
        self._clock = clock
        self._cache: Dict[Tuple[Any, ...], _CacheEntry] = {}
        self._lock = threading.Lock()

    def get_intelligence(
        self,
        workspace_id: str,
        brand_name: str,
        domain: str,
        refresh: bool = False,
        options: Any = None,
    ) -> IntelligenceReport:
        if not workspace_id:
            raise ValueError("workspace_id is required")

        opts = OrchestrationOptions.from_value(
            options, default_max_opportunities=self.orchestrator.config.orchestration.max_opportunities)
        key = (workspace_id, brand_name, domain) + opts.cache_key()

        if not refresh:
            cached = self._lookup(key)
            if cached is not None:
                logger.info("Returning cached intelligence", extra={"workspace_id": workspace_id})
                return IntelligenceReport(
                    response=cached.response,
                    status_code=cached.status_code,
                    data_quality=cached.data_quality,
                    cached=True,
                    created_at=cached.created_at,
                )

        response = self.orchestrator.orchestrate(workspace_id, brand_name, domain, opts)
        report = IntelligenceReport(
            response=response,
            status_code=self.status_for(response),
            data_quality=self.validator.validate_data_quality(response),
        )
        if not report.data_quality.meets_threshold:
            logger.warning(
                "Intelligence below data-quality threshold",
                extra={"workspace_id": workspace_id, "issues": report.data_quality.issues},
            )
        self._store(key, report)
        return report

    @staticmethod
    def status_for(response: IntelligenceResponse) -> int:
        return HTTP_PARTIAL_CONTENT if response.metadata.errors else HTTP_OK

    def invalidate(self, workspace_id: str) -> int:
        """Drop every cached report for a workspace; returns the number removed."""
        with self._lock:
            keys = [k for k in self._cache if k[0] == workspace_id]
            for k in keys:
                del self._cache[k]
        logger.debug("Invalidated cached intelligence", extra={"workspace_id": workspace_id, "count": len(keys)})
        return len(keys)

    def clear_cache(self) -> None:
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.debug("Cleared %s cached intelligence reports", count)

    def _lookup(self, key: Tuple[Any, ...]) -> Optional[IntelligenceReport]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._cache[key]
                return None
            return entry.report

    def _store(self, key: Tuple[Any, ...], report: IntelligenceReport) -> None:
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            self._cache[key] = _CacheEntry(report=report, expires_at=self._clock() + self.ttl_seconds)
