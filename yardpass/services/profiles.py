"""
Field-selection profiles.

Each entity type has a set of detail tiers. A tier is an ordered tuple of
FieldSpecs that renders into a PostgREST `select=` string:

    basic     list views
    enhanced  basic + extra scalar columns (default tier)
    full      enhanced + remaining scalars + nested relations
    search    search result rows
    social    follower/following rows

Field names are fixed here; callers pick a tier, never a column.
"""

import re
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from yardpass.services.errors import ValidationError, normalize_error

_IDENTIFIER = re.compile(r"[a-z_][a-z0-9_]*")


class Tier(str, Enum):
    """Field-selection detail tiers."""

    BASIC = "basic"
    ENHANCED = "enhanced"
    FULL = "full"
    SEARCH = "search"
    SOCIAL = "social"


class EntityType(str, Enum):
    PROFILE = "profile"
    EVENT = "event"
    ORGANIZATION = "organization"
    POST = "post"
    TICKET = "ticket"


DEFAULT_TIER = Tier.ENHANCED


@dataclass(frozen=True)
class FieldSpec:
    """
    One selected field: a scalar column or a nested relation.

    Relation rendering follows PostgREST embedding:
        FieldSpec("org", relation="orgs", fields=(...))  -> org:orgs(id,name)
        FieldSpec("tickets", fields=(...))               -> tickets(id,price)
        FieldSpec("profiles", hint="orgs_profiles_fkey") -> profiles!orgs_profiles_fkey(...)
    """

    name: str
    relation: str | None = None
    hint: str | None = None
    fields: tuple["FieldSpec", ...] = ()

    def __post_init__(self) -> None:
        for part in (self.name, self.relation, self.hint):
            if part is not None and not _IDENTIFIER.fullmatch(part):
                raise ValueError(f"Invalid field identifier: {part!r}")

    @property
    def is_relation(self) -> bool:
        return bool(self.fields)

    def render(self) -> str:
        if not self.fields:
            return self.name

        head = self.name
        if self.relation and self.relation != self.name:
            head = f"{self.name}:{self.relation}"
        if self.hint:
            head = f"{head}!{self.hint}"
        inner = ",".join(f.render() for f in self.fields)
        return f"{head}({inner})"


@dataclass(frozen=True)
class FieldProfile:
    entity_type: EntityType
    tier: Tier
    fields: tuple[FieldSpec, ...]

    def render(self) -> str:
        return to_select(self.fields)


def scalars(*names: str) -> tuple[FieldSpec, ...]:
    return tuple(FieldSpec(name) for name in names)


def relation(
    name: str,
    *children: str | FieldSpec,
    table: str | None = None,
    hint: str | None = None,
) -> FieldSpec:
    fields = tuple(c if isinstance(c, FieldSpec) else FieldSpec(c) for c in children)
    return FieldSpec(name, relation=table, hint=hint, fields=fields)


def compose(*groups: tuple[FieldSpec, ...]) -> tuple[FieldSpec, ...]:
    """Concatenate field groups, keeping first occurrence order."""
    seen: set[FieldSpec] = set()
    out: list[FieldSpec] = []
    for group in groups:
        for spec in group:
            if spec not in seen:
                seen.add(spec)
                out.append(spec)
    return tuple(out)


def to_select(fields: tuple[FieldSpec, ...] | list[FieldSpec]) -> str:
    return ",".join(f.render() for f in fields)


# Profiles

PROFILE_BASIC = scalars(
    "id",
    "user_id",
    "username",
    "display_name",
    "avatar_url",
    "bio",
    "verified",
    "created_at",
)

PROFILE_STATS = scalars(
    "posts_count",
    "followers_count",
    "following_count",
    "events_count",
    "events_attending_count",
    "events_attended_count",
    "organizations_count",
    "organizations_owned_count",
    "years_active",
    "total_events_created",
    "total_events_attended",
    "total_tickets_purchased",
    "last_activity_at",
)

PROFILE_DETAIL = scalars(
    "phone",
    "date_of_birth",
    "gender",
    "onboarding_completed",
    "interests",
    "tags",
    "user_role",
    "account_type",
    "badge",
    "verification_level",
    "business_verified",
    "tier_level",
    "updated_at",
)

PROFILE_SEARCH = scalars(
    "id",
    "username",
    "display_name",
    "avatar_url",
    "bio",
    "verified",
    "followers_count",
    "posts_count",
    "events_count",
    "created_at",
)

PROFILE_SOCIAL = scalars(
    "id",
    "username",
    "display_name",
    "avatar_url",
    "bio",
    "verified",
    "followers_count",
    "following_count",
    "posts_count",
    "last_activity_at",
)

# Events

EVENT_BASIC = scalars(
    "id",
    "title",
    "slug",
    "start_at",
    "end_at",
    "status",
    "visibility",
    "cover_image_url",
    "venue",
    "city",
    "created_at",
)

EVENT_DETAIL = scalars("description", "category", "tags")

EVENT_FULL_EXTRA = scalars("address", "org_id", "updated_at")

EVENT_RELATIONS = (
    relation(
        "org",
        "id",
        "name",
        "description",
        "logo_url",
        "website_url",
        "is_verified",
        table="orgs",
    ),
    relation(
        "tickets",
        "id",
        "name",
        "description",
        "price",
        "currency",
        "quantity_available",
        "quantity_sold",
        "perks",
        "access_level",
        "is_active",
    ),
    relation("posts", "id", "title", "content", "media_urls", "created_at"),
)

EVENT_SEARCH = compose(
    scalars(
        "id",
        "title",
        "slug",
        "description",
        "start_at",
        "end_at",
        "status",
        "visibility",
        "cover_image_url",
        "venue",
        "city",
        "category",
        "tags",
    ),
    (relation("org", "id", "name", "logo_url", "is_verified", table="orgs"),),
)

# Organizations

ORGANIZATION_BASIC = scalars(
    "id",
    "name",
    "description",
    "logo_url",
    "is_verified",
    "followers_count",
    "total_events",
    "created_at",
)

ORGANIZATION_DETAIL = scalars("website_url", "social_links", "settings")

ORGANIZATION_RELATIONS = (
    relation(
        "profiles",
        "id",
        "user_id",
        "username",
        "display_name",
        "avatar_url",
        "verified",
        hint="orgs_profiles_fkey",
    ),
    relation(
        "events",
        "id",
        "title",
        "slug",
        "start_at",
        "end_at",
        "status",
        "cover_image_url",
        "category",
    ),
)

ORGANIZATION_SEARCH = scalars(
    "id",
    "name",
    "description",
    "logo_url",
    "is_verified",
    "followers_count",
    "total_events",
    "website_url",
)

# Posts

POST_BASIC = scalars(
    "id",
    "title",
    "content",
    "visibility",
    "access_level",
    "is_active",
    "created_at",
)

POST_DETAIL = scalars("author_id", "event_id", "media_urls")

POST_RELATIONS = (
    relation(
        "author",
        "id",
        "user_id",
        "username",
        "display_name",
        "avatar_url",
        "bio",
        "verified",
        table="profiles",
    ),
    relation(
        "event",
        "id",
        "title",
        "slug",
        "start_at",
        "end_at",
        "venue",
        "cover_image_url",
        table="events",
    ),
    relation(
        "media_asset",
        "id",
        "type",
        "url",
        "thumbnail_url",
        "metadata",
        table="media_assets",
    ),
)

POST_SEARCH = compose(
    POST_BASIC,
    (
        relation(
            "author", "id", "username", "display_name", "avatar_url", table="profiles"
        ),
        relation("event", "id", "title", "slug", "start_at", table="events"),
    ),
)

# Tickets

TICKET_BASIC = scalars(
    "id",
    "name",
    "price",
    "quantity_available",
    "quantity_sold",
    "is_active",
    "created_at",
)

TICKET_DETAIL = scalars("description", "currency", "perks", "access_level")

TICKET_RELATIONS = (
    relation(
        "event",
        "id",
        "title",
        "slug",
        "description",
        "start_at",
        "end_at",
        "venue",
        "city",
        "address",
        "cover_image_url",
        relation("org", "id", "name", "logo_url", "is_verified", table="orgs"),
        table="events",
    ),
)


def _tiers(
    basic: tuple[FieldSpec, ...],
    detail: tuple[FieldSpec, ...],
    full_extra: tuple[FieldSpec, ...],
    **extra_tiers: tuple[FieldSpec, ...],
) -> dict[Tier, tuple[FieldSpec, ...]]:
    enhanced = compose(basic, detail)
    tiers = {
        Tier.BASIC: basic,
        Tier.ENHANCED: enhanced,
        Tier.FULL: compose(enhanced, full_extra),
    }
    for name, fields in extra_tiers.items():
        tiers[Tier(name)] = fields
    return tiers


_REGISTRY: dict[EntityType, dict[Tier, tuple[FieldSpec, ...]]] = {
    EntityType.PROFILE: _tiers(
        PROFILE_BASIC,
        PROFILE_STATS,
        PROFILE_DETAIL,
        search=PROFILE_SEARCH,
        social=PROFILE_SOCIAL,
    ),
    EntityType.EVENT: _tiers(
        EVENT_BASIC,
        EVENT_DETAIL,
        compose(EVENT_FULL_EXTRA, EVENT_RELATIONS),
        search=EVENT_SEARCH,
    ),
    EntityType.ORGANIZATION: _tiers(
        ORGANIZATION_BASIC,
        ORGANIZATION_DETAIL,
        ORGANIZATION_RELATIONS,
        search=ORGANIZATION_SEARCH,
    ),
    EntityType.POST: _tiers(
        POST_BASIC,
        POST_DETAIL,
        POST_RELATIONS,
        search=POST_SEARCH,
    ),
    EntityType.TICKET: _tiers(
        TICKET_BASIC,
        TICKET_DETAIL,
        TICKET_RELATIONS,
    ),
}


def _check_superset_law() -> None:
    for entity_type, tiers in _REGISTRY.items():
        basic = set(tiers[Tier.BASIC])
        enhanced = set(tiers[Tier.ENHANCED])
        full = set(tiers[Tier.FULL])
        if not basic <= enhanced <= full:
            raise RuntimeError(f"Tier superset law broken for {entity_type.value}")


_check_superset_law()


def entity_types() -> list[EntityType]:
    return list(_REGISTRY)


def available_tiers(entity_type: EntityType | str) -> list[Tier]:
    return list(_REGISTRY[_entity(entity_type)])


def _entity(entity_type: EntityType | str) -> EntityType:
    try:
        return EntityType(entity_type)
    except ValueError:
        raise normalize_error(
            ValueError(f"Unknown entity type: {entity_type!r}"),
            "field_profile",
            "get",
            error_cls=ValidationError,
        ) from None


def resolve_profile(
    entity_type: EntityType | str,
    tier: Tier | str = DEFAULT_TIER,
) -> FieldProfile:
    """
    Look up a field profile.

    Tiers an entity does not define (or unknown tier names) fall back to
    `enhanced`.
    """
    entity = _entity(entity_type)
    tiers = _REGISTRY[entity]

    try:
        resolved = Tier(tier)
    except ValueError:
        resolved = None

    if resolved not in tiers:
        logger.warning(
            f"No '{tier}' field profile for {entity.value}, using '{DEFAULT_TIER.value}'"
        )
        resolved = DEFAULT_TIER

    return FieldProfile(entity_type=entity, tier=resolved, fields=tiers[resolved])


def get_profile(
    entity_type: EntityType | str,
    tier: Tier | str = DEFAULT_TIER,
) -> list[FieldSpec]:
    """Ordered FieldSpecs for an entity type and tier."""
    return list(resolve_profile(entity_type, tier).fields)


def get_select(
    entity_type: EntityType | str,
    tier: Tier | str = DEFAULT_TIER,
) -> str:
    """PostgREST select string for an entity type and tier."""
    return resolve_profile(entity_type, tier).render()
