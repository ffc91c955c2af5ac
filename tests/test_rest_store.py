"""Tests for RestStore request shaping and error mapping."""

import httpx
import pytest

from yardpass.datastore.base import (
    RecordNotFoundError,
    RemoteStore,
    StoreError,
    StoreTimeoutError,
)
from yardpass.datastore.rest import RestStore


def make_store(handler, **kwargs) -> RestStore:
    return RestStore(
        "https://example.supabase.co/",
        "anon-key",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestSelect:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=[{"id": "e1"}],
                headers={"Content-Range": "0-19/42"},
            )

        async with make_store(handler) as store:
            result = await store.select(
                "events",
                columns="id,title,org:orgs(id,name)",
                filters={"status": "published", "featured": True},
                search="title.ilike.%jazz%",
                order=("start_at", True),
                range_=(0, 19),
                count=True,
            )

        assert result.data == [{"id": "e1"}]
        assert result.count == 42

        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/events"
        params = request.url.params
        assert params["select"] == "id,title,org:orgs(id,name)"
        assert params["status"] == "eq.published"
        assert params["featured"] == "eq.true"
        assert params["or"] == "(title.ilike.%jazz%)"
        assert params["order"] == "start_at.asc"
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["Authorization"] == "Bearer anon-key"
        assert request.headers["Range"] == "0-19"
        assert request.headers["Prefer"] == "count=exact"

    @pytest.mark.asyncio
    async def test_single_row_accept_header(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "u1"})

        store = make_store(handler, access_token="user-jwt")
        result = await store.select("profiles", filters={"id": "u1"}, single=True)
        await store.close()

        assert result.data == {"id": "u1"}
        assert result.count is None
        assert seen[0].headers["Accept"] == "application/vnd.pgrst.object+json"
        assert seen[0].headers["Authorization"] == "Bearer user-jwt"

    @pytest.mark.asyncio
    async def test_no_rows_is_not_found(self):
        def handler(request):
            return httpx.Response(
                406,
                json={
                    "code": "PGRST116",
                    "message": "JSON object requested, multiple (or no) rows returned",
                },
            )

        store = make_store(handler)
        with pytest.raises(RecordNotFoundError) as exc_info:
            await store.select("profiles", filters={"id": "nope"}, single=True)
        await store.close()

        assert exc_info.value.code == "PGRST116"
        assert exc_info.value.status_code == 406

    @pytest.mark.asyncio
    async def test_server_error(self):
        def handler(request):
            return httpx.Response(500, text="upstream exploded")

        store = make_store(handler)
        with pytest.raises(StoreError) as exc_info:
            await store.select("events")
        await store.close()

        assert not isinstance(exc_info.value, RecordNotFoundError)
        assert "HTTP 500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        store = make_store(handler, timeout=2.0)
        with pytest.raises(StoreTimeoutError):
            await store.select("events")
        await store.close()

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        store = make_store(handler)
        with pytest.raises(StoreError, match="refused"):
            await store.select("events")
        await store.close()


class TestUpdate:
    @pytest.mark.asyncio
    async def test_patch_with_representation(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "u1", "bio": "hi"})

        store = make_store(handler)
        result = await store.update(
            "profiles", {"bio": "hi"}, filters={"id": "u1"}, single=True
        )
        await store.close()

        assert result.data == {"id": "u1", "bio": "hi"}
        assert seen[0].method == "PATCH"
        assert seen[0].url.params["id"] == "eq.u1"
        assert seen[0].headers["Prefer"] == "return=representation"
        assert b'"bio"' in seen[0].content

    @pytest.mark.asyncio
    async def test_unfiltered_update_refused(self):
        store = make_store(lambda request: httpx.Response(200, json=[]))
        with pytest.raises(StoreError):
            await store.update("profiles", {"bio": "x"}, filters={})
        await store.close()


def test_satisfies_protocol():
    assert isinstance(RestStore("https://x", "k"), RemoteStore)


class TestWrites:
    @pytest.mark.asyncio
    async def test_insert_posts_row(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json=[{"id": "f1"}])

        store = make_store(handler)
        result = await store.insert("follows", {"follower_id": "p1", "following_id": "p2"})
        await store.close()

        assert result.data == [{"id": "f1"}]
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/rest/v1/follows"
        assert seen[0].headers["Prefer"] == "return=representation"
        assert b'"follower_id"' in seen[0].content

    @pytest.mark.asyncio
    async def test_delete_sends_filters(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        store = make_store(handler)
        await store.delete("follows", {"follower_id": "p1", "following_id": "p2"})
        await store.close()

        assert seen[0].method == "DELETE"
        assert seen[0].url.params["follower_id"] == "eq.p1"
        assert seen[0].url.params["following_id"] == "eq.p2"

    @pytest.mark.asyncio
    async def test_unfiltered_delete_refused(self):
        store = make_store(lambda request: httpx.Response(200, json=[]))
        with pytest.raises(StoreError):
            await store.delete("follows", {})
        await store.close()


class TestOperators:
    @pytest.mark.asyncio
    async def test_operator_filter_and_multi_column_order(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        store = make_store(handler)
        await store.select(
            "profiles",
            filters={"followers_count": ("gte", 10), "verified": ("is", True)},
            order=[("followers_count", False), ("last_activity_at", False)],
        )
        await store.close()

        params = seen[0].url.params
        assert params["followers_count"] == "gte.10"
        assert params["verified"] == "is.true"
        assert params["order"] == "followers_count.desc,last_activity_at.desc"
