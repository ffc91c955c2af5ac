"""Tests for field-selection profiles."""

import pytest

from yardpass.services.errors import ValidationError
from yardpass.services.profiles import (
    EntityType,
    FieldSpec,
    Tier,
    available_tiers,
    entity_types,
    get_profile,
    get_select,
    relation,
    resolve_profile,
)


class TestGetProfile:
    def test_idempotent_and_order_stable(self):
        first = get_profile("profile", "enhanced")
        second = get_profile("profile", "enhanced")
        assert first == second
        assert [f.name for f in first] == [f.name for f in second]

    def test_returns_fresh_list(self):
        fields = get_profile(EntityType.EVENT, Tier.BASIC)
        fields.clear()
        assert get_profile(EntityType.EVENT, Tier.BASIC)

    @pytest.mark.parametrize("entity_type", list(EntityType))
    def test_superset_law(self, entity_type):
        basic = set(get_profile(entity_type, Tier.BASIC))
        enhanced = set(get_profile(entity_type, Tier.ENHANCED))
        full = set(get_profile(entity_type, Tier.FULL))
        assert basic <= enhanced <= full

    def test_enhanced_adds_only_scalars(self):
        for entity_type in entity_types():
            basic = set(get_profile(entity_type, Tier.BASIC))
            extra = set(get_profile(entity_type, Tier.ENHANCED)) - basic
            assert not any(f.is_relation for f in extra)

    def test_full_event_has_nested_relations(self):
        names = {f.name for f in get_profile("event", "full") if f.is_relation}
        assert names == {"org", "tickets", "posts"}

    def test_undefined_tier_falls_back_to_enhanced(self, log_messages):
        # Tickets have no social tier
        assert get_profile("ticket", "social") == get_profile("ticket", "enhanced")
        assert resolve_profile("ticket", "social").tier is Tier.ENHANCED
        assert any("using 'enhanced'" in m for m in log_messages)

    def test_unknown_tier_name_falls_back(self):
        assert get_profile("profile", "everything") == get_profile("profile", "enhanced")

    def test_unknown_entity_raises_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            get_profile("spaceship", "basic")
        assert exc_info.value.code == "FIELD_PROFILE_GET_FAILED"

    def test_profile_has_search_and_social(self):
        tiers = available_tiers("profile")
        assert Tier.SEARCH in tiers
        assert Tier.SOCIAL in tiers


class TestSelectRendering:
    def test_basic_profile_select(self):
        assert get_select("profile", "basic") == (
            "id,user_id,username,display_name,avatar_url,bio,verified,created_at"
        )

    def test_aliased_relation(self):
        spec = relation("org", "id", "name", table="orgs")
        assert spec.render() == "org:orgs(id,name)"

    def test_relation_with_fk_hint(self):
        spec = relation("profiles", "id", hint="orgs_profiles_fkey")
        assert spec.render() == "profiles!orgs_profiles_fkey(id)"

    def test_nested_relation(self):
        spec = relation(
            "event", "id", relation("org", "name", table="orgs"), table="events"
        )
        assert spec.render() == "event:events(id,org:orgs(name))"

    def test_event_search_includes_org(self):
        assert get_select("event", "search").endswith(
            "org:orgs(id,name,logo_url,is_verified)"
        )


class TestFieldSpecValidation:
    @pytest.mark.parametrize(
        "name", ["id,secret", "name)", "x; drop table", "", "Name", "a\n"]
    )
    def test_rejects_non_identifiers(self, name):
        with pytest.raises(ValueError):
            FieldSpec(name)

    def test_hashable_and_comparable(self):
        assert FieldSpec("id") == FieldSpec("id")
        assert len({FieldSpec("id"), FieldSpec("id")}) == 1
