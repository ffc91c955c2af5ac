"""
Profile service.

Cache keys:
    profile:{id}:{tier}                         get_profile_by_id
    profile:{id}:stats                          get_user_stats
    profile:{id}:followers:{limit}:{offset}     get_followers
    profile:{id}:following:{limit}:{offset}     get_following
    profile:{id}:is_following:{other}           is_following
    profile:username:{name}:{tier}              get_profile_by_username
    profile:search:{q}:{limit}:{tier}           search_profiles
    profile:trending:{limit}:{tier}             get_trending_profiles
    auth:user:{user_id}                         AuthService.get_current_user

update_profile drops every `profile:{id}:` key plus the auth and username
views of the updated row. follow_user / unfollow_user drop `profile:{id}:`
for both sides.
"""

from datetime import datetime, timezone
from typing import Any

from yardpass.datastore.base import RecordNotFoundError
from yardpass.services.auth import current_user_key
from yardpass.services.base import BaseService
from yardpass.services.envelope import ResponseEnvelope
from yardpass.services.profiles import (
    PROFILE_STATS,
    EntityType,
    FieldSpec,
    Tier,
    resolve_profile,
    to_select,
)
from yardpass.services.query import (
    build_offset_pagination,
    build_search_query,
    validate_query,
)

PROFILE_SEARCH_FIELDS = ["username", "display_name", "bio"]

# Columns a client may never write through update_profile
READ_ONLY_COLUMNS = frozenset({"id", "user_id", "created_at", "updated_at"})

TRENDING_MIN_FOLLOWERS = 10

FOLLOWS_TABLE = "follows"


def _follow_columns(side: str) -> str:
    """`follower:profiles!follows_follower_id_fkey(<social tier>)`"""
    social = resolve_profile(EntityType.PROFILE, Tier.SOCIAL)
    spec = FieldSpec(
        side,
        relation="profiles",
        hint=f"follows_{side}_id_fkey",
        fields=social.fields,
    )
    return spec.render()


def _first_row(data: Any) -> dict[str, Any]:
    if isinstance(data, list):
        data = data[0] if data else None
    return data if isinstance(data, dict) else {}


class ProfileService(BaseService):
    context = "profile"

    async def get_profile_by_id(
        self, user_id: str, tier: Tier | str = Tier.ENHANCED
    ) -> ResponseEnvelope:
        profile = resolve_profile(EntityType.PROFILE, tier)

        async def fetch():
            result = await self.store.select(
                "profiles", columns=profile.render(), filters={"id": user_id}, single=True
            )
            return result.data

        return await self.orchestrator.run(
            fetch,
            self.context,
            "getById",
            cache_key=self.cache_key(user_id, profile.tier.value),
            required={"user_id": user_id},
        )

    async def get_profile_by_username(
        self, username: str, tier: Tier | str = Tier.ENHANCED
    ) -> ResponseEnvelope:
        profile = resolve_profile(EntityType.PROFILE, tier)

        async def fetch():
            result = await self.store.select(
                "profiles",
                columns=profile.render(),
                filters={"username": username},
                single=True,
            )
            return result.data

        return await self.orchestrator.run(
            fetch,
            self.context,
            "getByUsername",
            cache_key=self.cache_key("username", username, profile.tier.value),
            required={"username": username},
        )

    async def update_profile(
        self, user_id: str, updates: dict[str, Any]
    ) -> ResponseEnvelope:
        def check() -> dict[str, Any]:
            if not updates:
                raise ValueError("No profile fields to update")
            blocked = sorted(READ_ONLY_COLUMNS & updates.keys())
            if blocked:
                raise ValueError(f"Read-only profile fields: {', '.join(blocked)}")
            return {**updates, "updated_at": datetime.now(timezone.utc).isoformat()}

        values = self.validate(check, "update")

        async def write():
            result = await self.store.update(
                "profiles",
                values,
                filters={"id": user_id},
                columns=self.orchestrator.get_select(EntityType.PROFILE, Tier.ENHANCED),
                single=True,
            )
            return result.data

        envelope = await self.orchestrator.run(
            write,
            self.context,
            "update",
            use_cache=False,
            required={"user_id": user_id},
        )

        self.orchestrator.invalidate_cache(self.cache_key(user_id, ""))
        row = _first_row(envelope.data)
        if row.get("user_id"):
            self.orchestrator.delete_cached(current_user_key(row["user_id"]))
        if "username" in updates:
            # The previous name is unknown here
            self.orchestrator.invalidate_cache(self.cache_key("username", ""))
        elif row.get("username"):
            self.orchestrator.invalidate_cache(
                self.cache_key("username", row["username"], "")
            )
        return envelope

    async def get_user_stats(self, user_id: str) -> ResponseEnvelope:
        async def fetch():
            result = await self.store.select(
                "profiles",
                columns=to_select(PROFILE_STATS),
                filters={"id": user_id},
                single=True,
            )
            return result.data

        return await self.orchestrator.run(
            fetch,
            self.context,
            "getStats",
            cache_key=self.cache_key(user_id, "stats"),
            required={"user_id": user_id},
        )

    async def search_profiles(
        self,
        query: str,
        limit: int = 10,
        tier: Tier | str = Tier.SEARCH,
    ) -> ResponseEnvelope:
        def check() -> tuple[str, str | None]:
            if limit < 1:
                raise ValueError("limit must be >= 1")
            term = validate_query(query).lower()
            return term, build_search_query(term, PROFILE_SEARCH_FIELDS)

        term, search = self.validate(check, "search")
        profile = resolve_profile(EntityType.PROFILE, tier)

        async def fetch():
            if search is None:
                return []
            result = await self.store.select(
                "profiles",
                columns=profile.render(),
                search=search,
                order=("followers_count", False),
                range_=(0, limit - 1),
            )
            return result.data

        return await self.orchestrator.run(
            fetch,
            self.context,
            "search",
            cache_key=self.cache_key("search", term, limit, profile.tier.value),
        )

    async def get_trending_profiles(
        self, limit: int = 10, tier: Tier | str = Tier.SEARCH
    ) -> ResponseEnvelope:
        """Most-followed active profiles, at least 10 followers."""
        pagination = self.validate(lambda: build_offset_pagination(limit), "getTrending")
        profile = resolve_profile(EntityType.PROFILE, tier)

        async def fetch():
            result = await self.store.select(
                "profiles",
                columns=profile.render(),
                filters={"followers_count": ("gte", TRENDING_MIN_FOLLOWERS)},
                order=[("followers_count", False), ("last_activity_at", False)],
                range_=pagination.range,
            )
            return result.data

        return await self.orchestrator.run(
            fetch,
            self.context,
            "getTrending",
            cache_key=self.cache_key("trending", limit, profile.tier.value),
        )

    async def get_followers(
        self, user_id: str, limit: int = 20, offset: int = 0
    ) -> ResponseEnvelope:
        return await self._follow_list(
            user_id, "follower", "following_id", "getFollowers", "followers", limit, offset
        )

    async def get_following(
        self, user_id: str, limit: int = 20, offset: int = 0
    ) -> ResponseEnvelope:
        return await self._follow_list(
            user_id, "following", "follower_id", "getFollowing", "following", limit, offset
        )

    async def _follow_list(
        self,
        user_id: str,
        side: str,
        match_column: str,
        operation: str,
        key_label: str,
        limit: int,
        offset: int,
    ) -> ResponseEnvelope:
        pagination = self.validate(
            lambda: build_offset_pagination(limit, offset), operation
        )

        async def fetch():
            result = await self.store.select(
                FOLLOWS_TABLE,
                columns=_follow_columns(side),
                filters={match_column: user_id},
                order=("created_at", False),
                range_=pagination.range,
            )
            return [row[side] for row in result.data or [] if row.get(side)]

        return await self.orchestrator.run(
            fetch,
            self.context,
            operation,
            cache_key=self.cache_key(user_id, key_label, limit, offset),
            required={"user_id": user_id},
        )

    async def follow_user(self, follower_id: str, following_id: str) -> ResponseEnvelope:
        self._check_follow_pair(follower_id, following_id, "follow")

        async def write():
            await self.store.insert(
                FOLLOWS_TABLE,
                {"follower_id": follower_id, "following_id": following_id},
            )
            return {"success": True}

        return await self._write_follow(write, "follow", follower_id, following_id)

    async def unfollow_user(
        self, follower_id: str, following_id: str
    ) -> ResponseEnvelope:
        self._check_follow_pair(follower_id, following_id, "unfollow")

        async def write():
            await self.store.delete(
                FOLLOWS_TABLE,
                filters={"follower_id": follower_id, "following_id": following_id},
            )
            return {"success": True}

        return await self._write_follow(write, "unfollow", follower_id, following_id)

    async def is_following(
        self, follower_id: str, following_id: str
    ) -> ResponseEnvelope:
        async def fetch():
            try:
                await self.store.select(
                    FOLLOWS_TABLE,
                    columns="id",
                    filters={"follower_id": follower_id, "following_id": following_id},
                    single=True,
                )
            except RecordNotFoundError:
                return {"is_following": False}
            return {"is_following": True}

        return await self.orchestrator.run(
            fetch,
            self.context,
            "checkFollowing",
            cache_key=self.cache_key(follower_id, "is_following", following_id),
            required={"follower_id": follower_id, "following_id": following_id},
        )

    def _check_follow_pair(self, follower_id: str, following_id: str, operation: str):
        def check():
            if follower_id and follower_id == following_id:
                raise ValueError("A profile cannot follow itself")

        self.validate(check, operation)

    async def _write_follow(
        self, write, operation: str, follower_id: str, following_id: str
    ) -> ResponseEnvelope:
        envelope = await self.orchestrator.run(
            write,
            self.context,
            operation,
            use_cache=False,
            required={"follower_id": follower_id, "following_id": following_id},
        )
        self.orchestrator.invalidate_cache(self.cache_key(follower_id, ""))
        self.orchestrator.invalidate_cache(self.cache_key(following_id, ""))
        return envelope
