"""
RequestOrchestrator - the single seam every service operation runs through.

Combines:
- ResponseCache for fingerprint-keyed response reuse
- RequestDeduplicator for concurrent identical cache misses
- PerformanceMonitor for per-operation metrics
- normalize_error for a uniform failure shape

An operation is attempted exactly once. There are no retries.
"""

import asyncio
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, Mapping, Sequence, TypeVar

from loguru import logger

from yardpass.datastore.base import RemoteStore, StoreTimeoutError
from yardpass.services.cache import ResponseCache, generate_cache_key
from yardpass.services.deduplicator import RequestDeduplicator
from yardpass.services.envelope import (
    ResponseEnvelope,
    ResponseMeta,
    format_response,
)
from yardpass.services.errors import ServiceError, ValidationError, normalize_error
from yardpass.services.performance import PerformanceMonitor
from yardpass.services.profiles import EntityType, FieldSpec, Tier
from yardpass.services.profiles import get_profile as _get_profile
from yardpass.services.profiles import get_select as _get_select
from yardpass.settings import Settings, global_settings

T = TypeVar("T")

OperationFn = Callable[[], Awaitable[Any]]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


class RequestOrchestrator:
    """
    Runs service operations with caching, timing and error normalization.

    Usage:
        orchestrator = create_orchestrator(store=RestStore(url, key))

        envelope = await orchestrator.run(
            lambda: fetch_profile(user_id),
            context="profile",
            operation_name="getById",
            params=(user_id, "enhanced"),
            required={"user_id": user_id},
        )
        envelope.data  # the profile row

    Failures raise a ServiceError (ValidationError, RemoteCallError,
    NotFoundError) whose code follows `{CONTEXT}_{OPERATION}_FAILED`.
    """

    def __init__(
        self,
        cache: ResponseCache,
        monitor: PerformanceMonitor | None = None,
        deduplicator: RequestDeduplicator | None = None,
        store: RemoteStore | None = None,
        slow_operation_threshold: timedelta = timedelta(milliseconds=1000),
        operation_timeout: timedelta | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self._cache = cache
        self._monitor = monitor or PerformanceMonitor(
            slow_threshold_ms=slow_operation_threshold.total_seconds() * 1000,
            slow_alerts=False,
        )
        self._deduplicator = deduplicator
        self._store = store
        self._slow_threshold_ms = slow_operation_threshold.total_seconds() * 1000
        self._operation_timeout = operation_timeout
        self._clock = clock

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def monitor(self) -> PerformanceMonitor:
        return self._monitor

    @property
    def store(self) -> RemoteStore:
        if self._store is None:
            raise RuntimeError("No remote store configured for this orchestrator")
        return self._store

    async def run(
        self,
        operation_fn: OperationFn,
        context: str,
        operation_name: str,
        *,
        params: Sequence[Any] = (),
        cache_key: str | None = None,
        use_cache: bool = True,
        required: Mapping[str, Any] | None = None,
        timeout: timedelta | None = None,
    ) -> ResponseEnvelope:
        """
        Run one operation.

        Args:
            operation_fn: Zero-argument coroutine function doing the remote call.
                It may return raw data or a ResponseEnvelope carrying meta.
            context: Feature context, e.g. "profile"
            operation_name: Operation name, e.g. "getById"
            params: Ordered parameters that identify the request
            cache_key: Explicit fingerprint, overrides context/operation/params
            use_cache: Skip the cache entirely when False (writes, mutations)
            required: name -> value pairs that must not be blank
            timeout: Override the configured operation timeout

        Returns:
            ResponseEnvelope with data and meta

        Raises:
            ValidationError: a required parameter is blank
            RemoteCallError: the operation failed or timed out
            NotFoundError: the store had no row for a single-row read
        """
        start = self._clock()

        if required:
            missing = [name for name, value in required.items() if _is_blank(value)]
            if missing:
                raise normalize_error(
                    ValueError(f"Missing required parameter(s): {', '.join(missing)}"),
                    context,
                    operation_name,
                    error_cls=ValidationError,
                )

        key = None
        if use_cache:
            key = cache_key or generate_cache_key(context, operation_name, *params)
            cached = self._cache.get(key)
            if cached is not None:
                self._finish(context, operation_name, start, success=True)
                return self._envelope(cached, from_cache=True)

        try:
            result = await self._execute(operation_fn, key, timeout)
        except Exception as e:
            self._finish(context, operation_name, start, success=False)
            error = normalize_error(e, context, operation_name)
            if error is e:
                raise
            raise error from e

        if key is not None and result is not None:
            self._cache.set(key, result)

        self._finish(context, operation_name, start, success=True)
        return self._envelope(result)

    async def try_run(
        self,
        operation_fn: OperationFn,
        context: str,
        operation_name: str,
        **kwargs: Any,
    ) -> ResponseEnvelope:
        """Like run(), but returns the error inside the envelope instead of raising."""
        try:
            return await self.run(operation_fn, context, operation_name, **kwargs)
        except ServiceError as e:
            return ResponseEnvelope(error=e.to_envelope())

    def validate(self, check: Callable[[], T], context: str, operation: str) -> T:
        """
        Run a caller-side precondition check.

        Any exception from `check` becomes a ValidationError envelope; the
        check's return value is passed through.
        """
        try:
            return check()
        except ServiceError:
            raise
        except Exception as e:
            raise normalize_error(e, context, operation, error_cls=ValidationError) from e

    async def _execute(
        self,
        operation_fn: OperationFn,
        key: str | None,
        timeout: timedelta | None,
    ) -> Any:
        limit = timeout or self._operation_timeout

        if self._deduplicator is not None and key is not None:
            pending = self._deduplicator.dedupe(key, operation_fn)
        else:
            pending = operation_fn()

        if limit is None:
            return await pending
        # Per caller: a joiner that gives up leaves the shared call running
        try:
            return await asyncio.wait_for(pending, limit.total_seconds())
        except asyncio.TimeoutError as e:
            raise StoreTimeoutError(limit.total_seconds()) from e

    def _finish(
        self, context: str, operation_name: str, start: float, success: bool
    ) -> float:
        duration_ms = (self._clock() - start) * 1000
        if success and duration_ms > self._slow_threshold_ms:
            logger.warning(
                f"Slow operation detected: {context}.{operation_name} "
                f"took {round(duration_ms)}ms"
            )
        self._monitor.record_metric(context, operation_name, duration_ms, success)
        return duration_ms

    @staticmethod
    def _envelope(result: Any, from_cache: bool = False) -> ResponseEnvelope:
        if isinstance(result, ResponseEnvelope):
            if from_cache:
                return result.model_copy(update={"from_cache": True})
            return result
        return format_response(result, from_cache=from_cache)

    # Helpers exposed to feature services

    def format_response(
        self, data: Any, meta: ResponseMeta | dict[str, Any] | None = None
    ) -> ResponseEnvelope:
        return format_response(data, meta)

    def get_profile(
        self, entity_type: EntityType | str, tier: Tier | str = Tier.ENHANCED
    ) -> list[FieldSpec]:
        return _get_profile(entity_type, tier)

    def get_select(
        self, entity_type: EntityType | str, tier: Tier | str = Tier.ENHANCED
    ) -> str:
        return _get_select(entity_type, tier)

    def generate_cache_key(self, prefix: str, *params: Any) -> str:
        return generate_cache_key(prefix, *params)

    def get_cached(self, key: str) -> Any | None:
        return self._cache.get(key)

    def set_cached(self, key: str, value: Any) -> None:
        self._cache.set(key, value)

    def delete_cached(self, key: str) -> bool:
        return self._cache.delete(key)

    def invalidate_cache(self, pattern: str) -> int:
        return self._cache.invalidate(pattern)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def health_check(self) -> dict[str, Any]:
        """Probe the store and report latency and cache size."""
        start = self._clock()
        try:
            await self.store.ping()
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            return {
                "status": "unhealthy",
                "details": {
                    "error": str(e),
                    "duration_ms": round((self._clock() - start) * 1000),
                },
            }

        return {
            "status": "healthy",
            "details": {
                "duration_ms": round((self._clock() - start) * 1000),
                "cache": self._cache.get_stats().to_dict(),
            },
        }

    async def close(self) -> None:
        """End the session: drop cached responses and in-flight calls."""
        self._cache.clear()
        if self._deduplicator is not None:
            await self._deduplicator.cancel_all()
        close = getattr(self._store, "close", None)
        if close is not None:
            await close()
        logger.debug("RequestOrchestrator closed")

    async def __aenter__(self) -> "RequestOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def create_orchestrator(
    settings: Settings | None = None,
    store: RemoteStore | None = None,
    clock: Callable[[], float] = time.perf_counter,
) -> RequestOrchestrator:
    """Build a session-scoped orchestrator with its own cache and monitor."""
    settings = settings or global_settings
    slow = timedelta(milliseconds=settings.slow_operation_threshold_ms)

    if store is None and settings.supabase_url:
        from yardpass.datastore.rest import RestStore

        store = RestStore(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout=settings.request_timeout,
        )

    return RequestOrchestrator(
        cache=ResponseCache(
            ttl=timedelta(milliseconds=settings.cache_ttl_ms),
            max_size=settings.cache_max_size,
            debug=settings.debug,
        ),
        monitor=PerformanceMonitor(
            slow_threshold_ms=slow.total_seconds() * 1000, slow_alerts=False
        ),
        deduplicator=(
            RequestDeduplicator(debug=settings.debug) if settings.single_flight else None
        ),
        store=store,
        slow_operation_threshold=slow,
        operation_timeout=(
            timedelta(milliseconds=settings.operation_timeout_ms)
            if settings.operation_timeout_ms
            else None
        ),
        clock=clock,
    )
