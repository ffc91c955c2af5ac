"""
Service layer - tiered field selection, response caching, orchestration.

Provides:
- Field-selection profiles: per-entity column sets by detail tier
- ResponseCache: fingerprint-keyed TTL cache with substring invalidation
- normalize_error / ServiceError: one error shape for every failure
- RequestOrchestrator: validate, cache, call, time, normalize
- Feature services built on the orchestrator
"""

from yardpass.services.errors import (
    NotFoundError,
    RemoteCallError,
    ServiceError,
    ValidationError,
    normalize_error,
)
from yardpass.services.envelope import ErrorEnvelope, ResponseEnvelope, ResponseMeta
from yardpass.services.cache import CacheEntry, ResponseCache, generate_cache_key
from yardpass.services.profiles import (
    EntityType,
    FieldProfile,
    FieldSpec,
    Tier,
    get_profile,
    get_select,
)
from yardpass.services.deduplicator import RequestDeduplicator
from yardpass.services.performance import PerformanceMonitor
from yardpass.services.orchestrator import RequestOrchestrator, create_orchestrator
from yardpass.services.base import BaseService
from yardpass.services.auth import AuthService
from yardpass.services.profile import ProfileService
from yardpass.services.events import EventService

__all__ = [
    # Errors
    "ServiceError",
    "ValidationError",
    "RemoteCallError",
    "NotFoundError",
    "normalize_error",
    # Envelopes
    "ErrorEnvelope",
    "ResponseEnvelope",
    "ResponseMeta",
    # Cache
    "ResponseCache",
    "CacheEntry",
    "generate_cache_key",
    # Field selection
    "EntityType",
    "FieldProfile",
    "FieldSpec",
    "Tier",
    "get_profile",
    "get_select",
    # Orchestration
    "RequestDeduplicator",
    "PerformanceMonitor",
    "RequestOrchestrator",
    "create_orchestrator",
    # Feature services
    "BaseService",
    "AuthService",
    "ProfileService",
    "EventService",
]
