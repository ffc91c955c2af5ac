"""
Base feature service.
"""

from abc import ABC
from typing import Any

from yardpass.datastore.base import RemoteStore
from yardpass.services.envelope import ResponseMeta
from yardpass.services.orchestrator import RequestOrchestrator
from yardpass.services.query import Pagination


class BaseService(ABC):
    """
    Base class for feature services.

    Feature services should:
    - Run every store call through the orchestrator (caching, timing, errors)
    - Pick columns with a field-selection tier, never ad hoc
    - Invalidate their cache prefix after writes
    """

    context: str = ""

    def __init__(self, orchestrator: RequestOrchestrator):
        self.orchestrator = orchestrator

    @property
    def store(self) -> RemoteStore:
        return self.orchestrator.store

    def cache_key(self, *params: Any) -> str:
        return self.orchestrator.generate_cache_key(self.context, *params)

    def validate(self, check, operation: str):
        return self.orchestrator.validate(check, self.context, operation)

    @staticmethod
    def page_meta(
        pagination: Pagination, total: int | None, page: int | None = None
    ) -> ResponseMeta:
        has_more = None if total is None else pagination.to + 1 < total
        return ResponseMeta(
            total=total,
            page=page,
            limit=pagination.limit,
            has_more=has_more,
        )
