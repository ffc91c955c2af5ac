"""Event service: single events, paged listings, search."""

from typing import Any, Literal

from yardpass.services.base import BaseService
from yardpass.services.envelope import ResponseEnvelope
from yardpass.services.profiles import EntityType, Tier, resolve_profile
from yardpass.services.query import (
    DEFAULT_PAGE_SIZE,
    build_filters,
    build_pagination,
    build_search_query,
    build_sorting,
    validate_query,
)

EVENT_SEARCH_FIELDS = ["title", "description", "venue", "city"]

# Columns list_events may filter on
FILTERABLE_COLUMNS = frozenset({"status", "visibility", "category", "city", "org_id"})


class EventService(BaseService):
    context = "event"

    async def get_event(
        self, event_id: str, tier: Tier | str = Tier.ENHANCED
    ) -> ResponseEnvelope:
        profile = resolve_profile(EntityType.EVENT, tier)

        async def fetch():
            result = await self.store.select(
                "events",
                columns=profile.render(),
                filters={"id": event_id},
                single=True,
            )
            return result.data

        return await self.orchestrator.run(
            fetch,
            self.context,
            "get",
            cache_key=self.cache_key(event_id, profile.tier.value),
            required={"event_id": event_id},
        )

    async def list_events(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        filters: dict[str, Any] | None = None,
        sort_by: str = "start_at",
        sort_order: Literal["asc", "desc"] = "asc",
        tier: Tier | str = Tier.BASIC,
    ) -> ResponseEnvelope:
        def check():
            active = build_filters(filters or {})
            unknown = sorted(active.keys() - FILTERABLE_COLUMNS)
            if unknown:
                raise ValueError(f"Unsupported event filters: {', '.join(unknown)}")
            return (
                build_pagination(page, limit),
                build_sorting(sort_by, sort_order),
                active,
            )

        pagination, sorting, active = self.validate(check, "list")
        profile = resolve_profile(EntityType.EVENT, tier)

        async def fetch():
            result = await self.store.select(
                "events",
                columns=profile.render(),
                filters=active,
                order=sorting.order,
                range_=pagination.range,
                count=True,
            )
            return self.orchestrator.format_response(
                result.data, self.page_meta(pagination, result.count, page)
            )

        filter_key = ",".join(f"{k}={active[k]}" for k in sorted(active)) or None
        return await self.orchestrator.run(
            fetch,
            self.context,
            "list",
            params=(page, limit, filter_key, sort_by, sort_order, profile.tier.value),
        )

    async def search_events(
        self,
        query: str,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> ResponseEnvelope:
        def check():
            term = validate_query(query).lower()
            return (
                term,
                build_search_query(term, EVENT_SEARCH_FIELDS),
                build_pagination(page, limit),
            )

        term, search, pagination = self.validate(check, "search")
        profile = resolve_profile(EntityType.EVENT, Tier.SEARCH)

        async def fetch():
            if search is None:
                return self.orchestrator.format_response(
                    [], self.page_meta(pagination, 0, page)
                )
            result = await self.store.select(
                "events",
                columns=profile.render(),
                filters={"visibility": "public"},
                search=search,
                order=("start_at", True),
                range_=pagination.range,
                count=True,
            )
            return self.orchestrator.format_response(
                result.data, self.page_meta(pagination, result.count, page)
            )

        return await self.orchestrator.run(
            fetch,
            self.context,
            "search",
            params=(term, page, limit),
        )
